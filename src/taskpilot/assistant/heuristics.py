"""Keyword heuristics for task suggestions and canned productivity tips."""

import math
import random
from datetime import datetime, timedelta
from typing import Any

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "work": ["meeting", "project", "deadline", "client", "report", "presentation", "email", "call", "review"],
    "personal": ["exercise", "workout", "doctor", "family", "vacation", "hobby", "read", "clean"],
    "shopping": ["buy", "purchase", "grocery", "store", "order", "amazon", "shopping"],
    "health": ["doctor", "appointment", "medicine", "exercise", "diet", "checkup", "hospital"],
    "education": ["study", "learn", "course", "book", "research", "homework", "exam", "lecture"],
    "finance": ["pay", "bill", "bank", "invest", "budget", "tax", "insurance", "loan"],
}

URGENT_KEYWORDS = ["urgent", "asap", "emergency", "critical", "important", "deadline"]
HIGH_KEYWORDS = ["meeting", "client", "presentation", "interview", "appointment"]
LOW_KEYWORDS = ["maybe", "when free", "someday", "optional", "nice to have"]

# Hours implied by a keyword; the largest match wins
TIME_KEYWORDS: dict[str, float] = {
    "quick": 0.25,
    "fast": 0.5,
    "brief": 0.5,
    "short": 0.5,
    "meeting": 1,
    "call": 0.5,
    "email": 0.25,
    "review": 1,
    "read": 1,
    "write": 2,
    "research": 3,
    "project": 8,
    "develop": 6,
    "design": 4,
    "plan": 2,
}

SUBTASK_TEMPLATES: dict[str, list[str]] = {
    "work": [
        "Research and gather information",
        "Create initial draft/outline",
        "Review and refine",
        "Get feedback from stakeholders",
        "Finalize and submit",
    ],
    "project": [
        "Define project scope",
        "Break down into phases",
        "Assign responsibilities",
        "Execute main tasks",
        "Testing and quality check",
        "Final review and delivery",
    ],
    "meeting": [
        "Prepare agenda",
        "Send meeting invites",
        "Gather necessary materials",
        "Conduct meeting",
        "Send follow-up notes",
    ],
    "shopping": [
        "Make shopping list",
        "Check for deals/coupons",
        "Visit store or order online",
        "Compare prices",
        "Complete purchase",
    ],
}

DEFAULT_SUBTASKS = ["Plan and prepare", "Execute main task", "Review and finalize"]

# (keywords, responses) checked in order; first group with a matching keyword answers
FALLBACK_RESPONSES: list[tuple[list[str], list[str]]] = [
    (
        ["productivity", "efficient"],
        [
            "Focus on breaking down large tasks into smaller, manageable steps.",
            "Try the Pomodoro Technique: work for 25 minutes, then take a 5-minute break.",
            "Prioritize your most important tasks during your peak energy hours.",
            "Eliminate distractions by turning off notifications during focused work time.",
            "Use the two-minute rule: if a task takes less than 2 minutes, do it immediately.",
        ],
    ),
    (
        ["plan", "schedule", "day"],
        [
            "Start each day by listing your top 3 priorities and tackle them first.",
            "Time-block your calendar to allocate specific hours for different types of work.",
            "Review your task list the night before to prepare mentally for the next day.",
            "Build buffer time between meetings to avoid feeling rushed.",
            "Use the ABCDE method: A=must do, B=should do, C=nice to do, D=delegate, E=eliminate.",
        ],
    ),
    (
        ["task", "organize"],
        [
            "Group similar tasks together and complete them in batches for better efficiency.",
            "Use the Getting Things Done (GTD) method: capture, clarify, organize, reflect, engage.",
            "Set clear deadlines for all tasks, even those without external deadlines.",
            "Break large projects into smaller, actionable tasks that take 15-30 minutes each.",
            "Use task categories to separate different types of work (urgent, important, routine).",
        ],
    ),
    (
        ["tip", "advice", "help"],
        [
            "Take regular breaks to maintain focus and prevent burnout.",
            "Keep a done list alongside your to-do list to track your accomplishments.",
            "Limit your daily task list to 3-5 important items to avoid overwhelm.",
            "Use the 80/20 rule: focus on the 20% of tasks that create 80% of the results.",
            "Create templates for recurring tasks to save time and ensure consistency.",
        ],
    ),
    (
        ["stress", "overwhelm", "busy"],
        [
            "When overwhelmed, step back and ask: \"What's the most important thing right now?\"",
            "Practice saying no to non-essential commitments to protect your time.",
            "Use the \"brain dump\" technique: write down everything on your mind, then organize.",
            "Remember: you can't do everything. Focus on what truly matters.",
            "Take 5 deep breaths and tackle just one small task to build momentum.",
        ],
    ),
    (
        ["?", "how", "what", "why"],
        [
            "Great question! Consider starting with the most urgent item and working from there.",
            "That depends on your specific situation, but generally, prioritizing by impact works well.",
            "Try experimenting with different approaches to see what works best for your workflow.",
            "The key is consistency - find a system that you can stick with long-term.",
            "Start small and build habits gradually rather than trying to change everything at once.",
        ],
    ),
]

DEFAULT_RESPONSES = [
    "Keep working consistently and review your progress regularly.",
    "Focus on one task at a time to maintain quality and reduce stress.",
    "Celebrate small wins to stay motivated on your productivity journey.",
    "Remember that perfect productivity isn't the goal - sustainable progress is.",
    "Consider what's working well in your current system and build upon it.",
]


def _text(title: str, description: str | None) -> str:
    return f"{title} {description or ''}".lower()


def suggest_category(title: str, description: str | None) -> dict[str, Any]:
    """Category with the most keyword hits. Ties keep the first category seen."""
    text = _text(title, description)
    max_score = 0
    suggested = "other"

    for category, keywords in CATEGORY_KEYWORDS.items():
        score = sum(1 for keyword in keywords if keyword in text)
        if score > max_score:
            max_score = score
            suggested = category

    return {
        "category": suggested,
        "confidence": min(max_score * 20, 100) if max_score > 0 else 10,
    }


def suggest_priority(
    title: str, description: str | None, due_date: datetime | None, now: datetime
) -> dict[str, Any]:
    """Priority from urgency keywords first, then due date, then softer keywords."""
    text = _text(title, description)

    if any(keyword in text for keyword in URGENT_KEYWORDS):
        return {"priority": "urgent", "confidence": 90}

    if due_date is not None:
        days_until_due = math.ceil((due_date - now) / timedelta(days=1))
        if days_until_due <= 1:
            return {"priority": "urgent", "confidence": 85}
        if days_until_due <= 3:
            return {"priority": "high", "confidence": 80}
        if days_until_due <= 7:
            return {"priority": "medium", "confidence": 70}

    if any(keyword in text for keyword in HIGH_KEYWORDS):
        return {"priority": "high", "confidence": 75}

    if any(keyword in text for keyword in LOW_KEYWORDS):
        return {"priority": "low", "confidence": 80}

    return {"priority": "medium", "confidence": 60}


def estimate_time_required(title: str, description: str | None) -> float:
    """Estimated hours, rounded to the nearest quarter hour."""
    description = description or ""
    text = _text(title, description)
    hours = 1.0

    for keyword, keyword_hours in TIME_KEYWORDS.items():
        if keyword in text:
            hours = max(hours, keyword_hours)

    # Longer descriptions usually mean more work
    word_count = len(description.split(" "))
    if word_count > 50:
        hours *= 1.5
    elif word_count < 10:
        hours *= 0.7

    return math.floor(hours * 4 + 0.5) / 4


def generate_subtasks(title: str, description: str | None, category: str) -> list[dict[str, Any]]:
    """Template subtasks for the detected task type."""
    text = _text(title, description)

    task_type = category
    if "project" in text:
        task_type = "project"
    elif "meeting" in text:
        task_type = "meeting"
    elif "buy" in text or "purchase" in text:
        task_type = "shopping"

    templates = SUBTASK_TEMPLATES.get(task_type) or SUBTASK_TEMPLATES.get(category) or DEFAULT_SUBTASKS

    return [
        {
            "title": template,
            "completed": False,
            "progress": 0,
            "estimated_hours": estimate_time_required(template, "") / len(templates),
        }
        for template in templates
    ]


def fallback_response(prompt: str, rng: random.Random | None = None) -> str:
    """Canned tip matching the prompt's topic."""
    rng = rng or random.Random()
    lower = prompt.lower()
    for keywords, responses in FALLBACK_RESPONSES:
        if any(keyword in lower for keyword in keywords):
            return rng.choice(responses)
    return rng.choice(DEFAULT_RESPONSES)
