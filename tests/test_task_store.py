"""Tests for MarkdownTaskStore."""

from datetime import UTC, datetime, timedelta, timezone
from pathlib import Path

import pytest

from taskpilot.storage.task_store import MarkdownTaskStore
from taskpilot.tracking.errors import NotFoundError
from taskpilot.tracking.records import Session, Subtask, Task, TimeTracking

STARTED = datetime(2026, 3, 4, 9, 0, tzinfo=UTC)


def make_task(task_id: str = "task1") -> Task:
    return Task(
        id=task_id,
        title="Prepare client meeting",
        assigned_to="alice",
        created_by="alice",
        description="Agenda and slides.\n\nSecond paragraph.",
        status="in-progress",
        priority="high",
        category="work",
        due_date=STARTED + timedelta(days=2),
        tags=["client", "q1"],
        subtasks=[
            Subtask(id="s1", title="Agenda", completed=True, completed_at=STARTED, progress=100),
            Subtask(id="s2", title="Slides", progress=30, estimated_hours=1.5),
        ],
        progress=40,
        estimated_hours=3,
        actual_hours=1.5,
        time_tracking=TimeTracking(
            started=True,
            start_time=STARTED + timedelta(hours=3),
            sessions=[
                Session(
                    start_time=STARTED,
                    end_time=STARTED + timedelta(minutes=90),
                    duration_ms=90 * 60 * 1000,
                ),
                Session(start_time=STARTED + timedelta(hours=3)),
            ],
        ),
        created_at=STARTED,
        updated_at=STARTED,
    )


def test_create_and_get_round_trip(store: MarkdownTaskStore) -> None:
    """A task with nested subtasks and sessions comes back unchanged."""
    task = make_task()
    store.create(task)

    loaded = store.get("task1")

    assert loaded == task
    assert loaded.time_tracking.sessions[1].is_open
    assert loaded.due_date is not None and loaded.due_date.tzinfo is not None


def test_document_layout(store: MarkdownTaskStore, tmp_path: Path) -> None:
    """Frontmatter holds the fields, the body holds the description."""
    store.create(make_task())

    content = (tmp_path / "tasks" / "task1.md").read_text(encoding="utf-8")

    assert content.startswith("---\nid: task1\n")
    assert content.endswith("---\nAgenda and slides.\n\nSecond paragraph.")


def test_create_existing_task_fails(store: MarkdownTaskStore) -> None:
    store.create(make_task())

    with pytest.raises(ValueError, match="already exists"):
        store.create(make_task())


def test_save_updates_existing_task(store: MarkdownTaskStore) -> None:
    task = store.create(make_task())
    task.progress = 80

    store.save(task)

    assert store.get("task1").progress == 80


def test_save_unknown_task(store: MarkdownTaskStore) -> None:
    with pytest.raises(NotFoundError):
        store.save(make_task("missing"))


@pytest.mark.parametrize("task_id", ["missing", "../etc/passwd", "", "a b"])
def test_get_unknown_or_invalid_id(store: MarkdownTaskStore, task_id: str) -> None:
    with pytest.raises(NotFoundError):
        store.get(task_id)


def test_delete(store: MarkdownTaskStore) -> None:
    store.create(make_task())

    store.delete("task1")

    with pytest.raises(NotFoundError):
        store.get("task1")
    with pytest.raises(NotFoundError):
        store.delete("task1")


def test_list_tasks_skips_unparsable_files(store: MarkdownTaskStore, tmp_path: Path) -> None:
    store.create(make_task("task1"))
    store.create(make_task("task2"))
    tasks_dir = tmp_path / "tasks"
    (tasks_dir / "broken.md").write_text("no frontmatter here", encoding="utf-8")
    (tasks_dir / "bad-yaml.md").write_text("---\n[unclosed\n---\n", encoding="utf-8")

    tasks = store.list_tasks()

    assert sorted(t.id for t in tasks) == ["task1", "task2"]


def test_no_temp_files_left_behind(store: MarkdownTaskStore, tmp_path: Path) -> None:
    task = store.create(make_task())
    store.save(task)

    assert [p.name for p in (tmp_path / "tasks").iterdir()] == ["task1.md"]


def test_hand_edited_file_is_read(store: MarkdownTaskStore, tmp_path: Path) -> None:
    """Unquoted YAML timestamps and missing fields are accepted."""
    (tmp_path / "tasks" / "manual.md").write_text(
        """---
title: Pay electricity bill
assigned_to: alice
created_by: alice
status: completed
completed_at: 2026-03-01 10:30:00
due_date: 2026-03-02T12:00:00+02:00
---
Before the end of the month.
""",
        encoding="utf-8",
    )

    task = store.get("manual")

    assert task.id == "manual"
    assert task.completed_at == datetime(2026, 3, 1, 10, 30, tzinfo=UTC)
    assert task.due_date == datetime(2026, 3, 2, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert task.description == "Before the end of the month.\n"
    assert task.subtasks == []
    assert task.time_tracking.started is False


def test_lock_is_per_task(store: MarkdownTaskStore) -> None:
    assert store.lock("task1") is store.lock("task1")
    assert store.lock("task1") is not store.lock("task2")
