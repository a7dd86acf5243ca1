"""
Engine exception hierarchy.

Every error raised to a caller derives from EngineError and carries a stable
machine-readable code plus an HTTP-style status for outer layers that want one.
"""
from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from loguru import logger

T = TypeVar("T")


class EngineError(Exception):
    """Base class for errors surfaced by the engine."""

    code = "ENGINE_ERROR"
    status_code = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(EngineError):
    """Raised when no active path exists or a step id is unknown."""

    code = "NOT_FOUND"
    status_code = 404


class InvalidTransitionError(EngineError):
    """Raised when an action is not allowed from the current state."""

    code = "INVALID_TRANSITION"
    status_code = 409


class RequestValidationError(EngineError):
    """Raised for malformed request parameters."""

    code = "VALIDATION_ERROR"
    status_code = 400


class ConcurrencyConflictError(EngineError):
    """Raised when a concurrent writer updated the same state first."""

    code = "CONCURRENCY_CONFLICT"
    status_code = 409


class PathIntegrityError(EngineError):
    """Raised instead of persisting a step graph that breaks its invariants."""

    code = "PATH_INTEGRITY"
    status_code = 500


def retry_on_conflict(operation: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """
    Run an operation, retrying exactly once on a concurrency conflict.

    The operation must open its own transaction so the retry sees fresh state.
    A second conflict is re-raised to the caller.
    """
    try:
        return operation(*args, **kwargs)
    except ConcurrencyConflictError as e:
        logger.warning(f"Concurrency conflict, retrying once: {e.message}")
    return operation(*args, **kwargs)
