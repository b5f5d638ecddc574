"""Task store persisting one markdown document per task."""

import logging
import os
import re
import tempfile
import threading
import weakref
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

import yaml

from taskpilot.tracking.errors import NotFoundError
from taskpilot.tracking.records import Session, Subtask, Task, TimeTracking, as_utc

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(r"^---\s*\n(.*?)\n---\s*\n?", re.DOTALL)
_TASK_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class TaskStore(Protocol):
    """Protocol for task persistence."""

    def create(self, task: Task) -> Task:
        """Persist a new task."""
        ...

    def get(self, task_id: str) -> Task:
        """Load a task by id. Raises NotFoundError."""
        ...

    def save(self, task: Task) -> Task:
        """Persist an existing task."""
        ...

    def delete(self, task_id: str) -> None:
        """Remove a task. Raises NotFoundError."""
        ...

    def list_tasks(self) -> list[Task]:
        """Load all tasks."""
        ...

    def lock(self, task_id: str) -> threading.Lock:
        """Lock serializing read-modify-write cycles on one task."""
        ...


class MarkdownTaskStore:
    """Stores tasks as ``<id>.md`` files: YAML frontmatter plus description body."""

    def __init__(self, data_dir: str | Path) -> None:
        """Initialize store, creating the data directory if needed."""
        self._data_dir = Path(data_dir)
        self._data_dir.mkdir(parents=True, exist_ok=True)
        # Entries vanish once no caller holds the lock
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._locks_guard = threading.Lock()

    def lock(self, task_id: str) -> threading.Lock:
        """Get the lock for a task id, creating it on first use."""
        with self._locks_guard:
            lock = self._locks.get(task_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[task_id] = lock
            return lock

    def create(self, task: Task) -> Task:
        file_path = self._path(task.id)
        if file_path.exists():
            raise ValueError(f"Task already exists: {task.id}")
        self._write(task)
        logger.info(f"[TaskStore] Created task {task.id}")
        return task

    def get(self, task_id: str) -> Task:
        file_path = self._path(task_id)
        if not file_path.exists():
            raise NotFoundError("Task not found")
        return self._parse_task(file_path)

    def save(self, task: Task) -> Task:
        if not self._path(task.id).exists():
            raise NotFoundError("Task not found")
        self._write(task)
        logger.debug(f"[TaskStore] Saved task {task.id}")
        return task

    def delete(self, task_id: str) -> None:
        file_path = self._path(task_id)
        if not file_path.exists():
            raise NotFoundError("Task not found")
        file_path.unlink()
        logger.info(f"[TaskStore] Deleted task {task_id}")

    def list_tasks(self) -> list[Task]:
        """Load every task, skipping files that fail to parse."""
        tasks: list[Task] = []
        for file_path in sorted(self._data_dir.glob("*.md")):
            try:
                tasks.append(self._parse_task(file_path))
            except Exception as e:
                logger.warning(f"[TaskStore] Failed to parse {file_path.name}: {e}")
                continue
        return tasks

    def _path(self, task_id: str) -> Path:
        # Ids become file names, so anything outside the id alphabet cannot exist
        if not _TASK_ID_RE.match(task_id):
            raise NotFoundError("Task not found")
        return self._data_dir / f"{task_id}.md"

    def _write(self, task: Task) -> None:
        """Write atomically: temp file in the same directory, then replace."""
        frontmatter = yaml.safe_dump(
            task_to_document(task), default_flow_style=False, sort_keys=False, allow_unicode=True
        )
        content = f"---\n{frontmatter}---\n{task.description}"

        fd, tmp_name = tempfile.mkstemp(dir=self._data_dir, prefix=f".{task.id}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            os.replace(tmp_name, self._path(task.id))
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _parse_task(self, file_path: Path) -> Task:
        """Parse a task document."""
        # Try UTF-8 first, fallback to latin-1 for non-UTF-8 files
        try:
            content = file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            content = file_path.read_text(encoding="latin-1")

        match = _FRONTMATTER_RE.match(content)
        if not match:
            raise ValueError(f"Task {file_path.stem} has no frontmatter")

        try:
            data = yaml.safe_load(match.group(1)) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in task {file_path.stem}") from e
        if not isinstance(data, dict):
            raise ValueError(f"Invalid frontmatter in task {file_path.stem}")

        data.setdefault("id", file_path.stem)
        return task_from_document(data, description=content[match.end() :])


def task_to_document(task: Task) -> dict[str, Any]:
    """Frontmatter mapping for a task. The description goes into the body."""
    return {
        "id": task.id,
        "title": task.title,
        "status": task.status,
        "priority": task.priority,
        "category": task.category,
        "due_date": _dt_to_string(task.due_date),
        "completed_at": _dt_to_string(task.completed_at),
        "tags": list(task.tags),
        "assigned_to": task.assigned_to,
        "created_by": task.created_by,
        "progress": task.progress,
        "estimated_hours": task.estimated_hours,
        "actual_hours": task.actual_hours,
        "is_archived": task.is_archived,
        "created_at": _dt_to_string(task.created_at),
        "updated_at": _dt_to_string(task.updated_at),
        "subtasks": [
            {
                "id": s.id,
                "title": s.title,
                "completed": s.completed,
                "completed_at": _dt_to_string(s.completed_at),
                "progress": s.progress,
                "estimated_hours": s.estimated_hours,
                "actual_hours": s.actual_hours,
            }
            for s in task.subtasks
        ],
        "time_tracking": {
            "started": task.time_tracking.started,
            "start_time": _dt_to_string(task.time_tracking.start_time),
            "sessions": [
                {
                    "start_time": _dt_to_string(s.start_time),
                    "end_time": _dt_to_string(s.end_time),
                    "duration_ms": s.duration_ms,
                }
                for s in task.time_tracking.sessions
            ],
        },
    }


def task_from_document(data: dict[str, Any], description: str = "") -> Task:
    """Build a task from its frontmatter mapping."""
    tracking = data.get("time_tracking") or {}
    return Task(
        id=str(data["id"]),
        title=str(data.get("title", "")),
        assigned_to=str(data.get("assigned_to", "")),
        created_by=str(data.get("created_by", "")),
        description=description,
        status=data.get("status", "todo"),
        priority=data.get("priority", "medium"),
        category=data.get("category", "personal"),
        due_date=_parse_dt(data.get("due_date")),
        completed_at=_parse_dt(data.get("completed_at")),
        tags=[str(t) for t in data.get("tags") or []],
        subtasks=[
            Subtask(
                id=str(s["id"]),
                title=str(s.get("title", "")),
                completed=bool(s.get("completed", False)),
                completed_at=_parse_dt(s.get("completed_at")),
                progress=int(s.get("progress", 0)),
                estimated_hours=s.get("estimated_hours", 0),
                actual_hours=s.get("actual_hours", 0),
            )
            for s in data.get("subtasks") or []
        ],
        progress=int(data.get("progress", 0)),
        estimated_hours=data.get("estimated_hours", 0),
        actual_hours=data.get("actual_hours", 0),
        time_tracking=TimeTracking(
            started=bool(tracking.get("started", False)),
            start_time=_parse_dt(tracking.get("start_time")),
            sessions=[
                Session(
                    start_time=_parse_dt(s["start_time"]),
                    end_time=_parse_dt(s.get("end_time")),
                    duration_ms=int(s.get("duration_ms", 0)),
                )
                for s in tracking.get("sessions") or []
            ],
        ),
        is_archived=bool(data.get("is_archived", False)),
        created_at=_parse_dt(data.get("created_at")),
        updated_at=_parse_dt(data.get("updated_at")),
    )


def _dt_to_string(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Any) -> datetime | None:
    """Parse ISO strings. YAML may also hand back datetime objects for hand-edited files."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value)))
