"""Derived task state and invariant bookkeeping.

Everything here is a pure function of a task snapshot, except ``normalize``
which only touches the completion timestamps it is responsible for.
"""

import math
from datetime import datetime

from taskpilot.tracking.records import MS_PER_HOUR, Task

# Completion percentage reported when neither progress nor subtasks say anything
_STATUS_DEFAULT_PERCENTAGE = {"todo": 0, "in-progress": 25, "completed": 100}


def round_half_up(value: float, digits: int = 0) -> float:
    """Round .5 away from zero for positive values (Python's round() is banker's)."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def is_overdue(task: Task, now: datetime) -> bool:
    """Whether the task is past its due date and not completed."""
    if task.due_date is None or task.status == "completed":
        return False
    return now > task.due_date


def completion_percentage(task: Task) -> int:
    """Completion percentage, most explicit signal first.

    completed status > manual progress > subtask average > status default.
    """
    if task.status == "completed":
        return 100

    if task.progress > 0:
        return task.progress

    if task.subtasks:
        total = sum(100 if s.completed else (s.progress or 0) for s in task.subtasks)
        return int(round_half_up(total / len(task.subtasks)))

    return _STATUS_DEFAULT_PERCENTAGE.get(task.status, 0)


def efficiency(task: Task) -> int | None:
    """Estimated over actual hours as a percentage. None when either is zero."""
    if not task.estimated_hours or not task.actual_hours:
        return None
    return int(round_half_up(task.estimated_hours / task.actual_hours * 100))


def total_time_spent(task: Task) -> float:
    """Sum of session durations in hours, two decimals."""
    sessions = task.time_tracking.sessions
    if not sessions:
        return 0
    total_ms = sum(s.duration_ms or 0 for s in sessions)
    return round_half_up(total_ms / MS_PER_HOUR, 2)


def sessions_hours(task: Task) -> float:
    """Unrounded sum of session durations in hours, used for actual_hours."""
    return sum(s.duration_ms or 0 for s in task.time_tracking.sessions) / MS_PER_HOUR


def next_status(current: str, progress: int) -> str:
    """Status implied by writing ``progress`` to a task currently in ``current``."""
    if progress == 0:
        return "todo"
    if progress == 100:
        return "completed"
    if current == "todo":
        return "in-progress"
    return current


def normalize(task: Task, now: datetime) -> Task:
    """Keep completion timestamps consistent with completion flags.

    status == completed <=> completed_at set, and the same per subtask.
    An existing timestamp is kept so re-saving a completed task does not move it.
    """
    if task.status == "completed":
        if task.completed_at is None:
            task.completed_at = now
    else:
        task.completed_at = None

    for subtask in task.subtasks:
        if subtask.completed:
            if subtask.completed_at is None:
                subtask.completed_at = now
        else:
            subtask.completed_at = None

    return task
