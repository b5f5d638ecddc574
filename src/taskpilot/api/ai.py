"""Assistant API endpoints: suggestions, insights, scheduling and chat."""

import asyncio
import logging
from typing import Any

from fastapi import APIRouter

from taskpilot.api.auth import CurrentUser
from taskpilot.api.models import ChatRequest, ScheduleRequest, SuggestionRequest
from taskpilot.api.tasks import task_to_response
from taskpilot.assistant import heuristics, insights
from taskpilot.assistant.client import AssistantUnavailableError
from taskpilot.factory import get_assistant, get_task_service
from taskpilot.tracking.records import as_utc

logger = logging.getLogger(__name__)

router = APIRouter()

# How many of the caller's tasks feed each analysis
RECOMMENDATION_TASK_LIMIT = 50
INSIGHT_TASK_LIMIT = 100
CHAT_TASK_LIMIT = 10


@router.post("/suggestions")
async def get_task_suggestions(user_id: CurrentUser, request: SuggestionRequest) -> dict[str, Any]:
    """Heuristic category, priority, estimate and subtasks for a draft task."""
    now = get_task_service().now()
    suggestions = {
        "category": heuristics.suggest_category(request.title, request.description),
        "priority": heuristics.suggest_priority(
            request.title, request.description, as_utc(request.due_date), now
        ),
        "estimated_hours": heuristics.estimate_time_required(request.title, request.description),
        "subtasks": heuristics.generate_subtasks(request.title, request.description, "work"),
    }
    return {"success": True, "suggestions": suggestions}


@router.get("/recommendations")
async def get_task_recommendations(user_id: CurrentUser) -> dict[str, Any]:
    """Recommendations from the caller's recent tasks, plus an assistant insight if available."""
    service = get_task_service()
    tasks = await asyncio.to_thread(service.recent_tasks, user_id, RECOMMENDATION_TASK_LIMIT)
    recommendations = insights.generate_task_recommendations(tasks, service.now())

    try:
        insight = await get_assistant().ask(insights.build_recommendation_prompt(tasks))
        recommendations.append(
            {
                "title": "AI Productivity Insight",
                "description": insight,
                "category": "personal",
                "priority": "medium",
                "estimated_hours": 0.5,
                "reason": "AI analysis of your task patterns",
            }
        )
    except AssistantUnavailableError as e:
        logger.info(f"[AI] No assistant insight for recommendations: {e}")

    return {"success": True, "recommendations": recommendations, "count": len(recommendations)}


@router.get("/insights")
async def get_productivity_insights(user_id: CurrentUser, time_range: str = "week") -> dict[str, Any]:
    service = get_task_service()
    tasks = await asyncio.to_thread(service.recent_tasks, user_id, INSIGHT_TASK_LIMIT)
    now = service.now()
    return {
        "success": True,
        "insights": insights.generate_productivity_insights(tasks, now),
        "metrics": insights.task_metrics(tasks, now),
        "time_range": time_range,
    }


@router.put("/enhance/{task_id}")
async def enhance_task(task_id: str, user_id: CurrentUser) -> dict[str, Any]:
    """Apply confident heuristic suggestions to an existing task."""
    service = get_task_service()
    task, enhancements = await asyncio.to_thread(service.enhance_task, task_id, user_id)
    return {
        "success": True,
        "task": task_to_response(task, service.now()),
        "enhancements": enhancements,
    }


@router.post("/schedule")
async def generate_smart_schedule(user_id: CurrentUser, request: ScheduleRequest) -> dict[str, Any]:
    """Plan pending tasks into a working day."""
    service = get_task_service()
    tasks = await asyncio.to_thread(service.recent_tasks, user_id, INSIGHT_TASK_LIMIT)
    result = insights.build_smart_schedule(tasks, request.date, request.working_hours)
    return {"success": True, **result}


@router.post("/chat")
async def ai_chat(user_id: CurrentUser, request: ChatRequest) -> dict[str, Any]:
    """Answer a free-text question with the caller's recent tasks as context."""
    service = get_task_service()
    tasks = await asyncio.to_thread(service.recent_tasks, user_id, CHAT_TASK_LIMIT)
    prompt = insights.build_chat_prompt(request.message, tasks)
    response = await get_assistant().reply(prompt, topic=request.message)
    return {"success": True, "response": response, "timestamp": service.now()}


@router.post("/analyze")
async def analyze_user_tasks(user_id: CurrentUser) -> dict[str, Any]:
    """Analyze the caller's task patterns."""
    service = get_task_service()
    tasks = await asyncio.to_thread(service.recent_tasks, user_id, RECOMMENDATION_TASK_LIMIT)
    if not tasks:
        return {
            "success": True,
            "analysis": "No tasks found. Start by creating some tasks to get personalized insights!",
            "stats": None,
        }

    stats = insights.analyze_tasks(tasks, service.now())
    try:
        analysis = await get_assistant().ask(insights.build_analysis_prompt(stats))
    except AssistantUnavailableError as e:
        logger.info(f"[AI] Using fallback analysis: {e}")
        analysis = insights.fallback_analysis(stats)

    return {"success": True, "analysis": analysis, "stats": stats}
