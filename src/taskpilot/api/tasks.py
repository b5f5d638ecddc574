"""Task API endpoints."""

import asyncio
import logging
from datetime import datetime
from typing import Annotated, Literal

from fastapi import APIRouter, Query, Response

from taskpilot.api.auth import CurrentUser
from taskpilot.api.models import (
    CreateTaskRequest,
    ProgressRequest,
    ProgressSummaryResponse,
    SortField,
    TaskListResponse,
    TaskResponse,
    TaskStatsResponse,
    UpdateEstimatesRequest,
    UpdateTaskRequest,
)
from taskpilot.factory import get_config, get_task_service
from taskpilot.tracking import derived
from taskpilot.tracking.records import Task

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/tasks", response_model=TaskListResponse)
async def list_tasks(
    user_id: CurrentUser,
    status: str | None = None,
    priority: str | None = None,
    category: str | None = None,
    tags: str | None = None,
    search: str | None = None,
    sort_by: SortField = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1)] = 10,
) -> TaskListResponse:
    """List the caller's active tasks.

    Args:
        status: Status to filter by
        priority: Priority to filter by
        category: Category to filter by
        tags: Comma-separated list of tags, any match counts
        search: Case-insensitive text searched in title and description
        sort_by: Field to sort by
        sort_order: asc or desc
        page: 1-based page number
        limit: Page size, capped by configuration

    Returns:
        Page of tasks with pagination info
    """
    service = get_task_service()

    # Parse tags filter
    tag_filter: list[str] | None = None
    if tags:
        tag_filter = [t.strip() for t in tags.split(",") if t.strip()]

    tasks, pagination = await asyncio.to_thread(
        service.list_tasks,
        user_id,
        status=status,
        priority=priority,
        category=category,
        tags=tag_filter,
        search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=min(limit, get_config().list_limit_max),
    )
    now = service.now()
    return TaskListResponse(
        tasks=[task_to_response(task, now) for task in tasks],
        pagination=pagination,
    )


@router.get("/tasks/stats", response_model=TaskStatsResponse)
async def get_task_stats(user_id: CurrentUser) -> TaskStatsResponse:
    """Task counts by status, priority and category for the caller."""
    stats = await asyncio.to_thread(get_task_service().get_task_stats, user_id)
    return TaskStatsResponse(**stats)


@router.post("/tasks", response_model=TaskResponse, status_code=201)
async def create_task(user_id: CurrentUser, request: CreateTaskRequest) -> TaskResponse:
    """Create a task. It is assigned to the caller unless assigned_to is given."""
    service = get_task_service()
    task = await asyncio.to_thread(
        service.create_task,
        user_id,
        request.title,
        description=request.description,
        priority=request.priority,
        category=request.category,
        due_date=request.due_date,
        tags=request.tags,
        subtasks=[s.model_dump() for s in request.subtasks],
        assigned_to=request.assigned_to,
        estimated_hours=request.estimated_hours,
    )
    return task_to_response(task, service.now())


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(task_id: str, user_id: CurrentUser) -> TaskResponse:
    service = get_task_service()
    task = await asyncio.to_thread(service.get_task, task_id, user_id)
    return task_to_response(task, service.now())


@router.put("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str, user_id: CurrentUser, request: UpdateTaskRequest
) -> TaskResponse:
    """Edit general task fields. Only fields present in the body are changed."""
    service = get_task_service()
    changes = request.model_dump(exclude_unset=True)
    task = await asyncio.to_thread(service.update_task, task_id, user_id, changes)
    return task_to_response(task, service.now())


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(task_id: str, user_id: CurrentUser) -> Response:
    await asyncio.to_thread(get_task_service().delete_task, task_id, user_id)
    return Response(status_code=204)


@router.patch("/tasks/{task_id}/toggle", response_model=TaskResponse)
async def toggle_task_completion(task_id: str, user_id: CurrentUser) -> TaskResponse:
    """Mark a task completed, or reopen it as todo if it already is."""
    service = get_task_service()
    task = await asyncio.to_thread(service.toggle_completion, task_id, user_id)
    return task_to_response(task, service.now())


@router.get("/tasks/{task_id}/progress", response_model=ProgressSummaryResponse)
async def get_task_progress(task_id: str, user_id: CurrentUser) -> ProgressSummaryResponse:
    summary = await asyncio.to_thread(get_task_service().get_progress_summary, task_id, user_id)
    return ProgressSummaryResponse(**summary)


@router.put("/tasks/{task_id}/progress", response_model=TaskResponse)
async def update_task_progress(
    task_id: str, user_id: CurrentUser, request: ProgressRequest
) -> TaskResponse:
    """Set manual progress (0-100). The status follows the new value."""
    service = get_task_service()
    task = await asyncio.to_thread(service.set_task_progress, task_id, user_id, request.progress)
    return task_to_response(task, service.now())


@router.put("/tasks/{task_id}/subtasks/{subtask_id}/progress", response_model=TaskResponse)
async def update_subtask_progress(
    task_id: str, subtask_id: str, user_id: CurrentUser, request: ProgressRequest
) -> TaskResponse:
    service = get_task_service()
    task = await asyncio.to_thread(
        service.set_subtask_progress, task_id, subtask_id, user_id, request.progress
    )
    return task_to_response(task, service.now())


@router.put("/tasks/{task_id}/estimates", response_model=TaskResponse)
async def update_time_estimates(
    task_id: str, user_id: CurrentUser, request: UpdateEstimatesRequest
) -> TaskResponse:
    """Update task and subtask estimates. Unknown subtask ids are ignored."""
    service = get_task_service()
    subtask_estimates = (
        [e.model_dump() for e in request.subtask_estimates]
        if request.subtask_estimates is not None
        else None
    )
    task = await asyncio.to_thread(
        service.update_time_estimates,
        task_id,
        user_id,
        estimated_hours=request.estimated_hours,
        subtask_estimates=subtask_estimates,
    )
    return task_to_response(task, service.now())


@router.post("/tasks/{task_id}/time/start", response_model=TaskResponse)
async def start_time_tracking(task_id: str, user_id: CurrentUser) -> TaskResponse:
    service = get_task_service()
    task = await asyncio.to_thread(service.start_time_tracking, task_id, user_id)
    return task_to_response(task, service.now())


@router.post("/tasks/{task_id}/time/stop", response_model=TaskResponse)
async def stop_time_tracking(task_id: str, user_id: CurrentUser) -> TaskResponse:
    service = get_task_service()
    task = await asyncio.to_thread(service.stop_time_tracking, task_id, user_id)
    return task_to_response(task, service.now())


def task_to_response(task: Task, now: datetime) -> TaskResponse:
    """Convert Task to TaskResponse, computing derived fields."""
    return TaskResponse(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        category=task.category,
        due_date=task.due_date,
        completed_at=task.completed_at,
        tags=task.tags,
        assigned_to=task.assigned_to,
        created_by=task.created_by,
        subtasks=[
            {
                "id": s.id,
                "title": s.title,
                "completed": s.completed,
                "completed_at": s.completed_at,
                "progress": s.progress,
                "estimated_hours": s.estimated_hours,
                "actual_hours": s.actual_hours,
            }
            for s in task.subtasks
        ],
        progress=task.progress,
        estimated_hours=task.estimated_hours,
        actual_hours=task.actual_hours,
        time_tracking={
            "started": task.time_tracking.started,
            "start_time": task.time_tracking.start_time,
            "sessions": [
                {
                    "start_time": s.start_time,
                    "end_time": s.end_time,
                    "duration_ms": s.duration_ms,
                }
                for s in task.time_tracking.sessions
            ],
        },
        is_archived=task.is_archived,
        created_at=task.created_at,
        updated_at=task.updated_at,
        is_overdue=derived.is_overdue(task, now),
        completion_percentage=derived.completion_percentage(task),
        efficiency=derived.efficiency(task),
        total_time_spent=derived.total_time_spent(task),
    )
