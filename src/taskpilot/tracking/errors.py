"""Errors raised by task operations."""


class TaskError(Exception):
    """Base class for errors surfaced to the caller of a task operation."""

    status_code = 500
    kind = "error"

    def __init__(self, message: str) -> None:
        """Initialize with a human readable message."""
        super().__init__(message)
        self.message = message

    def to_detail(self) -> dict[str, str]:
        """Serialize for an API error body."""
        return {"detail": self.message, "error": self.kind}


class ValidationError(TaskError):
    """Malformed input. Fixable by the caller."""

    status_code = 400
    kind = "validation_error"

    def __init__(self, field: str, message: str) -> None:
        """Initialize with the offending field name."""
        super().__init__(message)
        self.field = field

    def to_detail(self) -> dict[str, str]:
        """Serialize including the offending field."""
        detail = super().to_detail()
        detail["field"] = self.field
        return detail


class NotFoundError(TaskError):
    """Referenced task or subtask does not exist."""

    status_code = 404
    kind = "not_found"


class ForbiddenError(TaskError):
    """Caller is not allowed to act on the task."""

    status_code = 403
    kind = "forbidden"


class ConflictError(TaskError):
    """Operation invoked in a state that violates its precondition."""

    status_code = 409
    kind = "conflict"
