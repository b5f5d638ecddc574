"""Recommendations, insights, statistics and scheduling over a user's tasks."""

from collections import Counter
from datetime import UTC, date, datetime, time, timedelta
from typing import Any

from taskpilot.tracking.derived import is_overdue, round_half_up
from taskpilot.tracking.records import Task

PRIORITY_WEIGHTS = {"urgent": 4, "high": 3, "medium": 2, "low": 1}

SCHEDULE_DAY_START = time(9, 0)
SCHEDULE_BREAK = timedelta(minutes=15)

MAX_RECOMMENDATIONS = 3
STREAK_THRESHOLD = 5

GENERAL_SUGGESTIONS = [
    "- **Time blocking**: Allocate specific time slots for different types of tasks.",
    "- **Regular reviews**: Set aside 15 minutes daily to review and adjust your task list.",
    "- **Break down large tasks**: Split complex projects into smaller, manageable sub-tasks.",
    "- **Batch similar tasks**: Group related activities to improve efficiency and focus.",
]


def generate_task_recommendations(tasks: list[Task], now: datetime) -> list[dict[str, Any]]:
    """Time-of-day and backlog driven recommendations, at most three."""
    recommendations: list[dict[str, Any]] = []

    if 6 <= now.hour <= 10:
        recommendations.append(
            {
                "title": "Daily Planning Session",
                "description": "Review today's priorities and plan your schedule",
                "category": "personal",
                "priority": "medium",
                "estimated_hours": 0.25,
                "reason": "Morning planning helps set a productive tone for the day",
            }
        )

    if 14 <= now.hour <= 16:
        recommendations.append(
            {
                "title": "Take a Break",
                "description": "Step away from work for 15 minutes to recharge",
                "category": "personal",
                "priority": "low",
                "estimated_hours": 0.25,
                "reason": "Afternoon breaks improve focus and productivity",
            }
        )

    if now.weekday() >= 5:
        recommendations.append(
            {
                "title": "Weekly Review",
                "description": "Review completed tasks and plan for next week",
                "category": "personal",
                "priority": "medium",
                "estimated_hours": 0.5,
                "reason": "Weekly reviews help maintain long-term productivity",
            }
        )

    overdue = [t for t in tasks if is_overdue(t, now)]
    if overdue:
        recommendations.append(
            {
                "title": "Address Overdue Tasks",
                "description": f"You have {len(overdue)} overdue task(s) that need attention",
                "category": "work",
                "priority": "urgent",
                "estimated_hours": 1,
                "reason": "Clearing overdue tasks reduces stress and improves workflow",
            }
        )

    return recommendations[:MAX_RECOMMENDATIONS]


def _time_slot(moment: datetime) -> str:
    if moment.hour < 12:
        return "morning"
    if moment.hour < 18:
        return "afternoon"
    return "evening"


def generate_productivity_insights(tasks: list[Task], now: datetime) -> list[dict[str, Any]]:
    """Most productive time of day and weekly completion streak."""
    insights: list[dict[str, Any]] = []

    slots = {slot: {"completed": 0} for slot in ("morning", "afternoon", "evening")}
    for task in tasks:
        if task.completed_at is not None:
            slots[_time_slot(task.completed_at)]["completed"] += 1

    best_slot = "morning"
    best_count = slots["morning"]["completed"]
    for slot, data in slots.items():
        if data["completed"] > best_count:
            best_slot = slot
            best_count = data["completed"]

    if best_count > 0:
        insights.append(
            {
                "type": "productivity",
                "message": f"You're most productive in the {best_slot}",
                "suggestion": f"Consider scheduling important tasks during {best_slot} hours",
                "data": slots,
            }
        )

    week_ago = now - timedelta(days=7)
    recent = [
        t
        for t in tasks
        if t.status == "completed" and t.completed_at is not None and t.completed_at > week_ago
    ]
    if len(recent) >= STREAK_THRESHOLD:
        insights.append(
            {
                "type": "streak",
                "message": f"Great job! You've completed {len(recent)} tasks this week",
                "suggestion": "Keep up the momentum!",
                "data": {"weekly_completions": len(recent)},
            }
        )

    return insights


def task_metrics(tasks: list[Task], now: datetime) -> dict[str, Any]:
    completed = [t for t in tasks if t.status == "completed"]
    overdue = [t for t in tasks if is_overdue(t, now)]
    return {
        "total_tasks": len(tasks),
        "completed_tasks": len(completed),
        "completion_rate": _rate(len(completed), len(tasks)),
        "overdue_tasks": len(overdue),
        "average_completion_time": (
            round_half_up(sum(t.actual_hours or 0 for t in completed) / len(completed), 2)
            if completed
            else 0
        ),
    }


def analyze_tasks(tasks: list[Task], now: datetime) -> dict[str, Any]:
    """Completion, backlog and distribution statistics for task analysis."""
    completed = [t for t in tasks if t.status == "completed"]
    pending = [t for t in tasks if t.status != "completed"]
    overdue = [t for t in tasks if is_overdue(t, now)]
    return {
        "total_tasks": len(tasks),
        "completed_tasks": len(completed),
        "completion_rate": _rate(len(completed), len(tasks)),
        "pending_tasks": len(pending),
        "overdue_tasks": len(overdue),
        "category_distribution": dict(Counter(t.category for t in tasks)),
        "priority_distribution": dict(Counter(t.priority for t in tasks)),
    }


def build_analysis_prompt(stats: dict[str, Any]) -> str:
    categories = ", ".join(f"{k}: {v}" for k, v in stats["category_distribution"].items())
    priorities = ", ".join(f"{k}: {v}" for k, v in stats["priority_distribution"].items())
    return (
        "Analyze this user's task management patterns:\n"
        f"- Total tasks: {stats['total_tasks']}\n"
        f"- Completed: {stats['completed_tasks']} ({stats['completion_rate']}%)\n"
        f"- Pending: {stats['pending_tasks']}\n"
        f"- Overdue: {stats['overdue_tasks']}\n"
        f"- Categories: {categories}\n"
        f"- Priorities: {priorities}\n\n"
        "Provide:\n"
        "1. Brief analysis of their productivity patterns\n"
        "2. 3 specific actionable suggestions for improvement\n"
        "3. Identify any potential productivity issues\n\n"
        "Keep it concise and actionable."
    )


def fallback_analysis(stats: dict[str, Any]) -> str:
    """Markdown analysis built from the statistics alone."""
    rate = stats["completion_rate"]
    overdue = stats["overdue_tasks"]
    parts = ["**Productivity Analysis:**"]

    if rate >= 80:
        parts.append(
            f"Excellent completion rate of {rate}%! You're very effective at finishing what you start."
        )
    elif rate >= 60:
        parts.append(
            f"Good completion rate of {rate}%. There's room for improvement in task completion."
        )
    else:
        parts.append(
            f"Your completion rate of {rate}% suggests you might be taking on too many "
            "tasks or facing obstacles."
        )

    if stats["category_distribution"]:
        top_category, top_count = max(
            stats["category_distribution"].items(), key=lambda item: item[1]
        )
        parts.append(
            f'Your primary focus is "{top_category}" tasks ({top_count} tasks), '
            "which shows clear priorities."
        )

    if overdue:
        parts.append(f"You have {overdue} overdue task(s) that need immediate attention.")
    else:
        parts.append("Great job staying on top of deadlines! No overdue tasks.")

    suggestions: list[str] = []
    if rate < 70:
        suggestions.append(
            "- **Reduce task load**: Focus on 3-5 important tasks per day instead of overcommitting."
        )
    if overdue:
        suggestions.append(
            "- **Address overdue items**: Schedule dedicated time to clear your backlog "
            "and prevent future delays."
        )
    if stats["pending_tasks"] > stats["completed_tasks"] * 2:
        suggestions.append(
            "- **Prioritize ruthlessly**: Use the Eisenhower Matrix to focus on urgent "
            "and important tasks first."
        )
    for general in GENERAL_SUGGESTIONS:
        if len(suggestions) >= 3:
            break
        suggestions.append(general)

    parts.append("**Recommendations:**")
    parts.append("\n\n".join(suggestions[:3]))
    return "\n\n".join(parts)


def build_recommendation_prompt(tasks: list[Task]) -> str:
    completed = sum(1 for t in tasks if t.status == "completed")
    recent_titles = ", ".join(t.title for t in tasks[:5])
    return (
        f"Based on user task history: {completed} completed tasks, "
        f"{len(tasks) - completed} pending tasks.\n"
        f"Recent tasks: {recent_titles}.\n"
        "Provide 2 personalized productivity recommendations."
    )


def build_chat_prompt(message: str, tasks: list[Task]) -> str:
    task_context = ", ".join(f"{t.title} ({t.status})" for t in tasks)
    return (
        "You are a productivity assistant for a task management system.\n"
        f"User's recent tasks: {task_context}.\n"
        f"User's question: {message}\n\n"
        "Provide helpful, concise advice related to task management, productivity, "
        "or the user's question.\n"
        "Keep responses under 200 words and actionable."
    )


def build_smart_schedule(tasks: list[Task], day: date, working_hours: float) -> dict[str, Any]:
    """Greedy day plan: highest priority first, earliest due date breaks ties.

    Each task takes its estimate (1 hour when unset) followed by a short break.
    Tasks that do not fit in the remaining time are skipped.
    """
    pending = [t for t in tasks if t.status in ("todo", "in-progress") and not t.is_archived]
    ordered = sorted(
        pending,
        key=lambda t: (
            -PRIORITY_WEIGHTS.get(t.priority, 0),
            t.due_date is None,
            t.due_date or datetime.max.replace(tzinfo=UTC),
        ),
    )

    current = datetime.combine(day, SCHEDULE_DAY_START, tzinfo=UTC)
    day_end = current + timedelta(hours=working_hours)

    schedule: list[dict[str, Any]] = []
    for task in ordered:
        hours = task.estimated_hours or 1
        remaining_hours = (day_end - current) / timedelta(hours=1)

        if hours <= remaining_hours:
            task_end = current + timedelta(hours=hours)
            schedule.append(
                {
                    "task": {
                        "id": task.id,
                        "title": task.title,
                        "priority": task.priority,
                        "estimated_hours": hours,
                    },
                    "start_time": current,
                    "end_time": task_end,
                    "duration_minutes": hours * 60,
                }
            )
            current = task_end + SCHEDULE_BREAK

        if current >= day_end:
            break

    return {
        "schedule": schedule,
        "date": day,
        "working_hours": working_hours,
        "total_scheduled_tasks": len(schedule),
        "total_scheduled_hours": round_half_up(
            sum(item["duration_minutes"] for item in schedule) / 60, 2
        ),
    }


def _rate(part: int, whole: int) -> float:
    if whole == 0:
        return 0
    return round_half_up(part / whole * 100, 1)
