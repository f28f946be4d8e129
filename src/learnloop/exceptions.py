"""Domain errors.

Each error carries the HTTP status and a stable error code so the global
error handler can render `{"success": false, "error": {...}}` without the
services knowing about FastAPI.
"""

from __future__ import annotations


class LearnloopError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500
    code: str = "SYS_001"

    def __init__(self, message: str = "Internal error") -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(LearnloopError):
    """Referenced entity does not exist or is soft-deleted."""

    status_code = 404
    code = "NOT_001"

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message)


class ValidationError(LearnloopError):
    """Malformed input the transport layer could not catch."""

    status_code = 422
    code = "VAL_001"

    def __init__(self, message: str = "Validation error") -> None:
        super().__init__(message)


class ConflictError(LearnloopError):
    status_code = 409
    code = "CON_001"

    def __init__(self, message: str = "Conflict") -> None:
        super().__init__(message)


class SequenceConflictError(ConflictError):
    """Attempt number could not be assigned after the bounded retries."""

    code = "CON_002"

    def __init__(self, user_id: str, problem_id: str) -> None:
        super().__init__(f"Could not assign an attempt number for problem {problem_id}")
        self.user_id = user_id
        self.problem_id = problem_id


class LockTimeoutError(LearnloopError):
    """Another submission for the same user held the lock for too long."""

    status_code = 503
    code = "SYS_002"

    def __init__(self, key: str) -> None:
        super().__init__("Another submission is still being processed, try again")
        self.key = key
