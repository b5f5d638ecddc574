"""Task service: progress, time tracking and general task mutations.

Every mutation runs inside the store's per-task lock and follows the same
sequence: load, authorize, check preconditions, apply, normalize, save.
Nothing is written when a check fails.
"""

import logging
import math
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from typing import Any

from taskpilot.assistant import heuristics
from taskpilot.storage.task_store import TaskStore
from taskpilot.tracking import derived
from taskpilot.tracking.errors import ConflictError, ForbiddenError, NotFoundError
from taskpilot.tracking.records import (
    CATEGORIES,
    PRIORITIES,
    STATUSES,
    Session,
    Task,
    as_utc,
    new_task_id,
    validate_choice,
    validate_description,
    validate_hours,
    validate_progress,
    validate_tags,
    validate_title,
)

logger = logging.getLogger(__name__)

SORT_FIELDS = ("created_at", "updated_at", "due_date", "priority", "title", "status")

_PRIORITY_RANK = {p: i for i, p in enumerate(PRIORITIES)}

_EDITABLE_FIELDS = (
    "title",
    "description",
    "status",
    "priority",
    "category",
    "due_date",
    "tags",
    "subtasks",
    "is_archived",
    "assigned_to",
)


def utc_now() -> datetime:
    return datetime.now(UTC)


class TaskService:
    """Applies one coherent state change to a task at a time."""

    def __init__(self, store: TaskStore, clock: Callable[[], datetime] = utc_now) -> None:
        """Initialize with a task store and a clock returning aware UTC datetimes."""
        self._store = store
        self._clock = clock

    def now(self) -> datetime:
        """Current time as seen by the service."""
        return self._clock()

    # Progress & time tracking

    def set_task_progress(self, task_id: str, user_id: str, progress: int) -> Task:
        """Set manual progress and derive the status from it."""
        validate_progress(progress)

        with self._mutate(task_id, user_id) as task:
            task.progress = progress
            task.status = derived.next_status(task.status, progress)
            logger.info(
                f"[TaskService] Task {task_id} progress={progress} status={task.status}"
            )
        return task

    def set_subtask_progress(
        self, task_id: str, subtask_id: str, user_id: str, progress: int
    ) -> Task:
        """Set subtask progress. 100 completes the subtask, less reopens it."""
        validate_progress(progress)

        with self._mutate(task_id, user_id) as task:
            subtask = task.find_subtask(subtask_id)
            if subtask is None:
                raise NotFoundError("Subtask not found")

            subtask.progress = progress
            if progress == 100:
                # Every completion write restamps the subtask
                subtask.completed = True
                subtask.completed_at = self._clock()
            elif subtask.completed:
                subtask.completed = False
            logger.info(
                f"[TaskService] Task {task_id} subtask {subtask_id} progress={progress}"
            )
        return task

    def start_time_tracking(self, task_id: str, user_id: str) -> Task:
        """Open a new tracking session."""
        with self._mutate(task_id, user_id) as task:
            tracking = task.time_tracking
            if tracking.started:
                raise ConflictError("Time tracking already started")

            now = self._clock()
            tracking.started = True
            tracking.start_time = now
            tracking.sessions.append(Session(start_time=now))
            if task.status == "todo":
                task.status = "in-progress"
            logger.info(f"[TaskService] Started time tracking for task {task_id}")
        return task

    def stop_time_tracking(self, task_id: str, user_id: str) -> Task:
        """Close the open session and recompute actual hours."""
        with self._mutate(task_id, user_id) as task:
            tracking = task.time_tracking
            if not tracking.started:
                raise ConflictError("Time tracking not started")

            now = self._clock()
            tracking.started = False
            latest = tracking.latest_session
            if latest is not None and latest.is_open:
                latest.end_time = now
                elapsed = (now - latest.start_time) / timedelta(milliseconds=1)
                # Clock skew must never produce a negative duration
                latest.duration_ms = max(0, int(elapsed))

            task.actual_hours = derived.sessions_hours(task)
            logger.info(
                f"[TaskService] Stopped time tracking for task {task_id}, "
                f"actual_hours={task.actual_hours:.2f}"
            )
        return task

    def update_time_estimates(
        self,
        task_id: str,
        user_id: str,
        estimated_hours: float | None = None,
        subtask_estimates: list[dict[str, Any]] | None = None,
    ) -> Task:
        """Update the task estimate and any subtask estimates.

        Entries for unknown subtasks are skipped.
        """
        if estimated_hours is not None:
            validate_hours(estimated_hours)
        for entry in subtask_estimates or []:
            validate_hours(entry.get("estimated_hours"), "subtask_estimates.estimated_hours")

        with self._mutate(task_id, user_id) as task:
            if estimated_hours is not None:
                task.estimated_hours = estimated_hours

            for entry in subtask_estimates or []:
                subtask = task.find_subtask(str(entry.get("subtask_id")))
                if subtask is None:
                    logger.warning(
                        f"[TaskService] Skipping estimate for unknown subtask "
                        f"{entry.get('subtask_id')} on task {task_id}"
                    )
                    continue
                subtask.estimated_hours = entry["estimated_hours"]
        return task

    def get_progress_summary(self, task_id: str, user_id: str) -> dict[str, Any]:
        """Progress view of a task with derived fields computed now."""
        task = self._load_for_owner(task_id, user_id)
        now = self._clock()
        return {
            "task_id": task.id,
            "title": task.title,
            "status": task.status,
            "progress": task.progress,
            "completion_percentage": derived.completion_percentage(task),
            "estimated_hours": task.estimated_hours,
            "actual_hours": task.actual_hours,
            "total_time_spent": derived.total_time_spent(task),
            "efficiency": derived.efficiency(task),
            "is_overdue": derived.is_overdue(task, now),
            "due_date": task.due_date,
            "subtasks": [
                {
                    "id": s.id,
                    "title": s.title,
                    "progress": s.progress,
                    "completed": s.completed,
                    "estimated_hours": s.estimated_hours,
                    "actual_hours": s.actual_hours,
                }
                for s in task.subtasks
            ],
            "time_tracking": {
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
        }

    def toggle_completion(self, task_id: str, user_id: str) -> Task:
        """Flip between completed and todo."""
        with self._mutate(task_id, user_id) as task:
            task.status = "todo" if task.status == "completed" else "completed"
            logger.info(f"[TaskService] Task {task_id} marked as {task.status}")
        return task

    # General task operations

    def create_task(
        self,
        user_id: str,
        title: str,
        description: str | None = "",
        priority: str | None = None,
        category: str | None = None,
        due_date: datetime | None = None,
        tags: list[str] | None = None,
        subtasks: list[dict[str, Any]] | None = None,
        assigned_to: str | None = None,
        estimated_hours: float | None = None,
    ) -> Task:
        """Create a task owned by ``assigned_to`` (defaults to the caller)."""
        now = self._clock()
        task = Task(
            id=new_task_id(),
            title=validate_title(title),
            assigned_to=assigned_to or user_id,
            created_by=user_id,
            description=validate_description(description),
            priority=validate_choice(priority or "medium", PRIORITIES, "priority"),
            category=validate_choice(category or "personal", CATEGORIES, "category"),
            due_date=as_utc(due_date),
            tags=validate_tags(tags),
            estimated_hours=validate_hours(estimated_hours or 0),
            created_at=now,
            updated_at=now,
        )
        for entry in _validate_subtasks(subtasks):
            task.add_subtask(
                entry["title"],
                completed=entry["completed"],
                progress=100 if entry["completed"] else 0,
            )

        derived.normalize(task, now)
        self._store.create(task)
        logger.info(f"[TaskService] Created task {task.id} for {task.assigned_to}")
        return task

    def get_task(self, task_id: str, user_id: str) -> Task:
        """Load a task visible to its assignee or creator."""
        task = self._store.get(task_id)
        self._check_participant(task, user_id)
        return task

    def update_task(self, task_id: str, user_id: str, changes: dict[str, Any]) -> Task:
        """Edit general fields. Progress has its own operation."""
        unknown = set(changes) - set(_EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields not editable: {', '.join(sorted(unknown))}")

        with self._store.lock(task_id):
            task = self._store.get(task_id)
            self._check_participant(task, user_id)

            # Validate everything before touching the record
            updates = self._validate_changes(changes)
            if "subtasks" in updates:
                self._replace_subtasks(task, updates.pop("subtasks"))
            for name, value in updates.items():
                setattr(task, name, value)

            self._persist(task)
        logger.info(f"[TaskService] Updated task {task_id}: {', '.join(sorted(changes))}")
        return task

    def delete_task(self, task_id: str, user_id: str) -> None:
        with self._store.lock(task_id):
            task = self._store.get(task_id)
            self._check_participant(task, user_id)
            self._store.delete(task_id)
        logger.info(f"[TaskService] Deleted task {task_id}")

    def list_tasks(
        self,
        user_id: str,
        status: str | None = None,
        priority: str | None = None,
        category: str | None = None,
        tags: list[str] | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Task], dict[str, Any]]:
        """List the caller's active tasks with filters and pagination."""
        if sort_by not in SORT_FIELDS:
            raise ValueError(f"Cannot sort by {sort_by}")
        page = max(page, 1)
        limit = max(limit, 1)

        tasks = [t for t in self._store.list_tasks() if t.assigned_to == user_id and not t.is_archived]
        if status:
            tasks = [t for t in tasks if t.status == status]
        if priority:
            tasks = [t for t in tasks if t.priority == priority]
        if category:
            tasks = [t for t in tasks if t.category == category]
        if tags:
            wanted = set(tags)
            tasks = [t for t in tasks if wanted.intersection(t.tags)]
        if search:
            needle = search.lower()
            tasks = [
                t for t in tasks if needle in t.title.lower() or needle in t.description.lower()
            ]

        tasks = _sort_tasks(tasks, sort_by, descending=sort_order == "desc")

        total = len(tasks)
        skip = (page - 1) * limit
        page_items = tasks[skip : skip + limit]
        pagination = {
            "current_page": page,
            "total_pages": math.ceil(total / limit),
            "total_tasks": total,
            "has_more": skip + len(page_items) < total,
        }
        return page_items, pagination

    def recent_tasks(self, user_id: str, limit: int = 50) -> list[Task]:
        """The caller's tasks newest first, archived ones included."""
        tasks = [t for t in self._store.list_tasks() if t.assigned_to == user_id]
        return _sort_tasks(tasks, "created_at", descending=True)[:limit]

    def get_task_stats(self, user_id: str) -> dict[str, Any]:
        """Counts by status, priority and category plus overdue and due-today counts."""
        now = self._clock()
        tasks = [t for t in self._store.list_tasks() if t.assigned_to == user_id and not t.is_archived]

        status_stats = dict.fromkeys(STATUSES, 0)
        priority_stats = dict.fromkeys(PRIORITIES, 0)
        category_stats: dict[str, int] = {}
        for task in tasks:
            status_stats[task.status] = status_stats.get(task.status, 0) + 1
            priority_stats[task.priority] = priority_stats.get(task.priority, 0) + 1
            category_stats[task.category] = category_stats.get(task.category, 0) + 1

        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        end_of_day = start_of_day + timedelta(days=1)
        open_tasks = [t for t in tasks if t.status != "completed" and t.due_date is not None]

        return {
            "status_stats": status_stats,
            "priority_stats": priority_stats,
            "category_stats": category_stats,
            "overdue_count": sum(1 for t in open_tasks if t.due_date < now),
            "due_today_count": sum(1 for t in open_tasks if start_of_day <= t.due_date < end_of_day),
            "total_tasks": len(tasks),
        }

    def enhance_task(self, task_id: str, user_id: str) -> tuple[Task, dict[str, Any]]:
        """Fill in category, priority, estimate and subtasks from heuristics."""
        with self._mutate(task_id, user_id) as task:
            now = self._clock()
            category = heuristics.suggest_category(task.title, task.description)
            priority = heuristics.suggest_priority(
                task.title, task.description, task.due_date, now
            )
            estimate = heuristics.estimate_time_required(task.title, task.description)

            enhancements: dict[str, Any] = {}
            if category["confidence"] > 70 and task.category == "other":
                enhancements["category"] = category["category"]
            if priority["confidence"] > 80 and task.priority == "medium":
                enhancements["priority"] = priority["priority"]
            if not task.estimated_hours and estimate > 0:
                enhancements["estimated_hours"] = estimate

            for name, value in enhancements.items():
                setattr(task, name, value)

            if not task.subtasks:
                suggested = heuristics.generate_subtasks(
                    task.title, task.description, task.category
                )[:3]
                for entry in suggested:
                    task.add_subtask(entry["title"], estimated_hours=entry["estimated_hours"])
                enhancements["subtasks"] = [s.title for s in task.subtasks]

            logger.info(
                f"[TaskService] Enhanced task {task_id}: {', '.join(enhancements) or 'nothing'}"
            )
        return task, enhancements

    # Internals

    @contextmanager
    def _mutate(self, task_id: str, user_id: str) -> Iterator[Task]:
        """Hold the task lock, load and authorize, then normalize and save on success."""
        with self._store.lock(task_id):
            task = self._store.get(task_id)
            self._check_owner(task, user_id)
            yield task
            self._persist(task)

    def _persist(self, task: Task) -> None:
        now = self._clock()
        derived.normalize(task, now)
        task.updated_at = now
        self._store.save(task)

    def _load_for_owner(self, task_id: str, user_id: str) -> Task:
        task = self._store.get(task_id)
        self._check_owner(task, user_id)
        return task

    def _check_owner(self, task: Task, user_id: str) -> None:
        if task.assigned_to != user_id:
            raise ForbiddenError("Not authorized to update this task")

    def _check_participant(self, task: Task, user_id: str) -> None:
        if user_id not in (task.assigned_to, task.created_by):
            raise ForbiddenError("Access denied")

    def _validate_changes(self, changes: dict[str, Any]) -> dict[str, Any]:
        validators: dict[str, Callable[[Any], Any]] = {
            "title": validate_title,
            "description": validate_description,
            "status": lambda v: validate_choice(v, STATUSES, "status"),
            "priority": lambda v: validate_choice(v, PRIORITIES, "priority"),
            "category": lambda v: validate_choice(v, CATEGORIES, "category"),
            "due_date": as_utc,
            "tags": validate_tags,
            "is_archived": bool,
            "assigned_to": lambda v: validate_title(v, "assigned_to"),
            "subtasks": _validate_subtasks,
        }
        return {name: validators[name](value) for name, value in changes.items()}

    def _replace_subtasks(self, task: Task, entries: list[dict[str, Any]]) -> None:
        """Replace the subtask list, keeping tracked fields of subtasks that keep their id."""
        existing = {s.id: s for s in task.subtasks}
        task.subtasks = []
        for entry in entries:
            kept = existing.pop(entry.get("id") or "", None)
            if kept is not None:
                kept.title = entry["title"]
                kept.completed = entry["completed"]
                if kept.completed:
                    kept.progress = 100
                elif kept.progress == 100:
                    kept.progress = 0
                task.subtasks.append(kept)
            else:
                task.add_subtask(
                    entry["title"],
                    completed=entry["completed"],
                    progress=100 if entry["completed"] else 0,
                )


def _validate_subtasks(entries: list[dict[str, Any]] | None) -> list[dict[str, Any]]:
    """Normalize submitted subtasks. A null list clears them."""
    return [
        {
            "id": entry.get("id"),
            "title": validate_title(entry.get("title", ""), "subtasks.title"),
            "completed": bool(entry.get("completed", False)),
        }
        for entry in entries or []
    ]


def _sort_tasks(tasks: list[Task], sort_by: str, descending: bool) -> list[Task]:
    """Sort tasks; tasks missing the sort value always go last."""

    def key(task: Task) -> Any:
        if sort_by == "priority":
            return _PRIORITY_RANK.get(task.priority, 0)
        if sort_by in ("title", "status"):
            return getattr(task, sort_by).lower()
        return getattr(task, sort_by)

    present = [t for t in tasks if key(t) is not None]
    missing = [t for t in tasks if key(t) is None]
    return sorted(present, key=key, reverse=descending) + missing
