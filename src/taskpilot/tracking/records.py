"""Task records: the task document with its owned subtasks and sessions."""

import math
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from taskpilot.tracking.errors import ValidationError

STATUSES = ("todo", "in-progress", "completed")
PRIORITIES = ("low", "medium", "high", "urgent")
CATEGORIES = ("personal", "work", "shopping", "health", "education", "finance", "other")

TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000
TAG_MAX_LENGTH = 30

MS_PER_HOUR = 1000 * 60 * 60


@dataclass
class Subtask:
    """Subtask owned by a task. The id is only unique within its task."""

    id: str
    title: str
    completed: bool = False
    completed_at: datetime | None = None
    progress: int = 0
    estimated_hours: float = 0
    actual_hours: float = 0


@dataclass
class Session:
    """A time tracking session. Open while end_time is unset."""

    start_time: datetime
    end_time: datetime | None = None
    duration_ms: int = 0

    @property
    def is_open(self) -> bool:
        return self.end_time is None


@dataclass
class TimeTracking:
    """Time tracking state of a task."""

    started: bool = False
    start_time: datetime | None = None
    sessions: list[Session] = field(default_factory=list)

    @property
    def latest_session(self) -> Session | None:
        return self.sessions[-1] if self.sessions else None


@dataclass
class Task:
    """A task document."""

    id: str
    title: str
    assigned_to: str
    created_by: str
    description: str = ""
    status: str = "todo"
    priority: str = "medium"
    category: str = "personal"
    due_date: datetime | None = None
    completed_at: datetime | None = None
    tags: list[str] = field(default_factory=list)
    subtasks: list[Subtask] = field(default_factory=list)
    progress: int = 0
    estimated_hours: float = 0
    actual_hours: float = 0
    time_tracking: TimeTracking = field(default_factory=TimeTracking)
    is_archived: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def find_subtask(self, subtask_id: str) -> Subtask | None:
        """Find an owned subtask by id."""
        for subtask in self.subtasks:
            if subtask.id == subtask_id:
                return subtask
        return None

    def add_subtask(self, title: str, **fields: Any) -> Subtask:
        """Append a subtask with a freshly generated id."""
        subtask = Subtask(id=self._new_subtask_id(), title=title, **fields)
        self.subtasks.append(subtask)
        return subtask

    def _new_subtask_id(self) -> str:
        taken = {s.id for s in self.subtasks}
        while True:
            candidate = uuid.uuid4().hex[:12]
            if candidate not in taken:
                return candidate


def new_task_id() -> str:
    """Generate a task id."""
    return uuid.uuid4().hex


def as_utc(value: datetime | None) -> datetime | None:
    """Interpret naive datetimes as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def validate_progress(value: int, field_name: str = "progress") -> int:
    """Reject progress outside 0..100."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field_name, "Progress must be an integer")
    if value < 0 or value > 100:
        raise ValidationError(field_name, "Progress must be between 0 and 100")
    return value


def validate_hours(value: float, field_name: str = "estimated_hours") -> float:
    """Reject negative or non-finite hour values."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationError(field_name, "Hours must be a number")
    if isinstance(value, float) and not math.isfinite(value):
        raise ValidationError(field_name, "Hours must be a finite number")
    if value < 0:
        raise ValidationError(field_name, "Hours cannot be negative")
    return value


def validate_title(value: str, field_name: str = "title") -> str:
    """Trim and check a task or subtask title."""
    title = (value or "").strip()
    if not title:
        raise ValidationError(field_name, "Title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            field_name, f"Title cannot exceed {TITLE_MAX_LENGTH} characters"
        )
    return title


def validate_description(value: str | None) -> str:
    description = (value or "").strip()
    if len(description) > DESCRIPTION_MAX_LENGTH:
        raise ValidationError(
            "description", f"Description cannot exceed {DESCRIPTION_MAX_LENGTH} characters"
        )
    return description


def validate_tags(values: list[str] | None) -> list[str]:
    """Trim tags, drop empty ones and reject overlong ones. Keeps first occurrence order."""
    tags: list[str] = []
    for raw in values or []:
        tag = raw.strip()
        if not tag:
            continue
        if len(tag) > TAG_MAX_LENGTH:
            raise ValidationError("tags", f"Tag cannot exceed {TAG_MAX_LENGTH} characters")
        if tag not in tags:
            tags.append(tag)
    return tags


def validate_choice(value: str, choices: tuple[str, ...], field_name: str) -> str:
    if value not in choices:
        raise ValidationError(field_name, f"{field_name} must be one of: {', '.join(choices)}")
    return value
