"""Tests for derived task state."""

from datetime import UTC, datetime, timedelta

import pytest

from taskpilot.tracking import derived
from taskpilot.tracking.records import Session, Subtask, Task

NOW = datetime(2026, 3, 4, 12, 0, tzinfo=UTC)


def make_task(**fields: object) -> Task:
    return Task(id="t1", title="Write report", assigned_to="alice", created_by="alice", **fields)


def test_completion_percentage_manual_progress_wins_over_subtasks() -> None:
    """Non-zero manual progress takes precedence over subtask progress."""
    task = make_task(
        status="in-progress",
        progress=40,
        subtasks=[Subtask(id="a", title="A", completed=True), Subtask(id="b", title="B", progress=50)],
    )
    assert derived.completion_percentage(task) == 40


def test_completion_percentage_averages_subtasks() -> None:
    task = make_task(
        status="in-progress",
        progress=0,
        subtasks=[Subtask(id="a", title="A", completed=True), Subtask(id="b", title="B", progress=50)],
    )
    assert derived.completion_percentage(task) == 75


def test_completion_percentage_rounds_half_up() -> None:
    task = make_task(
        subtasks=[
            Subtask(id="a", title="A", progress=1),
            Subtask(id="b", title="B", progress=0),
        ],
    )
    # 0.5 rounds up, not to even
    assert derived.completion_percentage(task) == 1


def test_completion_percentage_completed_status_overrides() -> None:
    task = make_task(status="completed", progress=10)
    assert derived.completion_percentage(task) == 100


@pytest.mark.parametrize(("status", "expected"), [("todo", 0), ("in-progress", 25)])
def test_completion_percentage_status_default(status: str, expected: int) -> None:
    assert derived.completion_percentage(make_task(status=status)) == expected


def test_efficiency_none_without_estimate_or_actual() -> None:
    assert derived.efficiency(make_task(estimated_hours=0, actual_hours=2)) is None
    assert derived.efficiency(make_task(estimated_hours=3, actual_hours=0)) is None


def test_efficiency_ratio() -> None:
    assert derived.efficiency(make_task(estimated_hours=3, actual_hours=2)) == 150
    assert derived.efficiency(make_task(estimated_hours=1, actual_hours=4)) == 25


def test_is_overdue() -> None:
    past = NOW - timedelta(days=1)
    assert derived.is_overdue(make_task(due_date=past, status="in-progress"), NOW) is True
    assert derived.is_overdue(make_task(due_date=past, status="completed"), NOW) is False
    assert derived.is_overdue(make_task(due_date=NOW + timedelta(hours=1)), NOW) is False
    assert derived.is_overdue(make_task(), NOW) is False


def test_total_time_spent_sums_sessions() -> None:
    task = make_task()
    task.time_tracking.sessions = [
        Session(start_time=NOW, end_time=NOW, duration_ms=90 * 60 * 1000),
        Session(start_time=NOW, end_time=NOW, duration_ms=20 * 60 * 1000),
    ]
    assert derived.total_time_spent(task) == 1.83


def test_total_time_spent_no_sessions() -> None:
    assert derived.total_time_spent(make_task()) == 0


@pytest.mark.parametrize(
    ("current", "progress", "expected"),
    [
        ("todo", 0, "todo"),
        ("in-progress", 0, "todo"),
        ("completed", 0, "todo"),
        ("todo", 30, "in-progress"),
        ("in-progress", 30, "in-progress"),
        ("completed", 30, "completed"),
        ("todo", 100, "completed"),
        ("in-progress", 100, "completed"),
    ],
)
def test_next_status(current: str, progress: int, expected: str) -> None:
    assert derived.next_status(current, progress) == expected


def test_normalize_sets_and_clears_completed_at() -> None:
    task = make_task(status="completed")
    derived.normalize(task, NOW)
    assert task.completed_at == NOW

    # Existing timestamp is kept
    derived.normalize(task, NOW + timedelta(hours=1))
    assert task.completed_at == NOW

    task.status = "todo"
    derived.normalize(task, NOW)
    assert task.completed_at is None


def test_normalize_subtasks_independently() -> None:
    done = Subtask(id="a", title="A", completed=True)
    reopened = Subtask(id="b", title="B", completed=False, completed_at=NOW)
    task = make_task(subtasks=[done, reopened])

    derived.normalize(task, NOW)

    assert done.completed_at == NOW
    assert reopened.completed_at is None
