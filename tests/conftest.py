"""Test fixtures for TaskPilot."""

import random
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from taskpilot.assistant.client import AssistantClient, create_claude_client_factory
from taskpilot.config import Config
from taskpilot.factory import create_app
from taskpilot.storage.task_store import MarkdownTaskStore
from taskpilot.tracking.service import TaskService

OWNER = "alice"
OTHER_USER = "mallory"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current = self.current + timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> FakeClock:
    """Clock fixed at a Wednesday morning."""
    return FakeClock(datetime(2026, 3, 4, 9, 0, tzinfo=UTC))


@pytest.fixture
def store(tmp_path: Path) -> MarkdownTaskStore:
    """Task store in a temporary directory."""
    return MarkdownTaskStore(tmp_path / "tasks")


@pytest.fixture
def service(store: MarkdownTaskStore, clock: FakeClock) -> TaskService:
    return TaskService(store, clock=clock)


@pytest.fixture
def test_client(
    tmp_path: Path,
    store: MarkdownTaskStore,
    service: TaskService,
    monkeypatch: pytest.MonkeyPatch,
) -> TestClient:
    """Create test client with factory singletons pointing at the temporary store."""
    test_config = Config(data_dir=str(tmp_path / "tasks"), ai_enabled=False)

    # Override factory singletons
    monkeypatch.setattr("taskpilot.factory._config", test_config)
    monkeypatch.setattr("taskpilot.factory._task_store", store)
    monkeypatch.setattr("taskpilot.factory._task_service", service)
    monkeypatch.setattr(
        "taskpilot.factory._assistant",
        AssistantClient(
            enabled=False,
            client_factory=create_claude_client_factory(test_config.ai_model),
            rng=random.Random(0),
        ),
    )

    app = create_app()

    return TestClient(app)
