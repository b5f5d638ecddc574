"""API models for TaskPilot."""

from datetime import date as date_type
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

SortField = Literal["created_at", "updated_at", "due_date", "priority", "title", "status"]


class SubtaskInput(BaseModel):
    """Subtask in create/update requests. Existing subtasks are matched by id."""

    id: str | None = None
    title: str
    completed: bool = False


class CreateTaskRequest(BaseModel):
    """Request model for creating a task."""

    title: str
    description: str = ""
    priority: str | None = None
    category: str | None = None
    due_date: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    subtasks: list[SubtaskInput] = Field(default_factory=list)
    assigned_to: str | None = None
    estimated_hours: float | None = None


class UpdateTaskRequest(BaseModel):
    """Request model for general field edits. Only fields sent are changed."""

    title: str | None = None
    description: str | None = None
    status: str | None = None
    priority: str | None = None
    category: str | None = None
    due_date: datetime | None = None
    tags: list[str] | None = None
    subtasks: list[SubtaskInput] | None = None
    is_archived: bool | None = None
    assigned_to: str | None = None


class ProgressRequest(BaseModel):
    """Request model for task or subtask progress updates."""

    progress: int


class SubtaskEstimate(BaseModel):
    subtask_id: str
    estimated_hours: float


class UpdateEstimatesRequest(BaseModel):
    """Request model for updating time estimates."""

    estimated_hours: float | None = None
    subtask_estimates: list[SubtaskEstimate] | None = None


class SubtaskResponse(BaseModel):
    id: str
    title: str
    completed: bool
    completed_at: datetime | None
    progress: int
    estimated_hours: float
    actual_hours: float


class SessionResponse(BaseModel):
    start_time: datetime
    end_time: datetime | None
    duration_ms: int


class TimeTrackingResponse(BaseModel):
    started: bool
    start_time: datetime | None
    sessions: list[SessionResponse]


class TaskResponse(BaseModel):
    """API response model for tasks, derived fields computed at response time."""

    id: str
    title: str
    description: str
    status: str
    priority: str
    category: str
    due_date: datetime | None
    completed_at: datetime | None
    tags: list[str]
    assigned_to: str
    created_by: str
    subtasks: list[SubtaskResponse]
    progress: int
    estimated_hours: float
    actual_hours: float
    time_tracking: TimeTrackingResponse
    is_archived: bool
    created_at: datetime | None
    updated_at: datetime | None
    is_overdue: bool
    completion_percentage: int
    efficiency: int | None
    total_time_spent: float


class PaginationResponse(BaseModel):
    current_page: int
    total_pages: int
    total_tasks: int
    has_more: bool


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
    pagination: PaginationResponse


class ProgressSubtaskResponse(BaseModel):
    id: str
    title: str
    progress: int
    completed: bool
    estimated_hours: float
    actual_hours: float


class ProgressSummaryResponse(BaseModel):
    """API response model for the progress summary of one task."""

    task_id: str
    title: str
    status: str
    progress: int
    completion_percentage: int
    estimated_hours: float
    actual_hours: float
    total_time_spent: float
    efficiency: int | None
    is_overdue: bool
    due_date: datetime | None
    subtasks: list[ProgressSubtaskResponse]
    time_tracking: TimeTrackingResponse


class TaskStatsResponse(BaseModel):
    status_stats: dict[str, int]
    priority_stats: dict[str, int]
    category_stats: dict[str, int]
    overdue_count: int
    due_today_count: int
    total_tasks: int


class SuggestionRequest(BaseModel):
    """Request model for suggestions on a draft task."""

    title: str = Field(min_length=1)
    description: str = ""
    due_date: datetime | None = None


class ScheduleRequest(BaseModel):
    """Request model for building a day schedule."""

    date: date_type
    working_hours: float = Field(default=8, gt=0, le=24)


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
