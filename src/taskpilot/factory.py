"""Dependency injection factory."""

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from taskpilot.assistant.client import AssistantClient, create_claude_client_factory
from taskpilot.config import Config
from taskpilot.storage.task_store import MarkdownTaskStore, TaskStore
from taskpilot.tracking.errors import TaskError
from taskpilot.tracking.service import TaskService

logger = logging.getLogger(__name__)

# Global instances for dependency injection
_config: Config | None = None
_task_store: TaskStore | None = None
_task_service: TaskService | None = None
_assistant: AssistantClient | None = None


def get_config() -> Config:
    """Get or create Config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def get_task_store() -> TaskStore:
    """Get or create the task store singleton."""
    global _task_store
    if _task_store is None:
        config = get_config()
        _task_store = MarkdownTaskStore(Path(config.data_dir))
        logger.info(f"[Factory] Task store at {config.data_dir}")
    return _task_store


def get_task_service() -> TaskService:
    """Get or create the TaskService singleton."""
    global _task_service
    if _task_service is None:
        _task_service = TaskService(get_task_store())
    return _task_service


def get_assistant() -> AssistantClient:
    """Get or create the assistant singleton."""
    global _assistant
    if _assistant is None:
        config = get_config()
        _assistant = AssistantClient(
            enabled=config.ai_enabled,
            client_factory=create_claude_client_factory(config.ai_model),
            max_retries=config.ai_max_retries,
            retry_base_delay=config.ai_retry_base_delay,
        )
        logger.info(f"[Factory] Assistant enabled={config.ai_enabled} model={config.ai_model}")
    return _assistant


async def task_error_handler(request: Request, exc: TaskError) -> JSONResponse:
    """Translate task errors into JSON error responses."""
    logger.info(f"[API] {request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_detail())


def create_app() -> FastAPI:
    """Create FastAPI application (composition root)."""
    from taskpilot.api.ai import router as ai_router
    from taskpilot.api.tasks import router as tasks_router

    app = FastAPI(
        title="TaskPilot",
        description="Personal task management with progress and time tracking",
        version="0.1.0",
    )

    app.add_exception_handler(TaskError, task_error_handler)

    app.include_router(tasks_router, prefix="/api")
    app.include_router(ai_router, prefix="/api/ai")

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
