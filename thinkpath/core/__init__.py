"""
Core building blocks shared by the engine and the CLI.

- errors: engine exception hierarchy
- dimensions: thinking dimensions and their concept keys
- logging: loguru sink configuration
"""

from thinkpath.core.dimensions import (
    DIMENSION_ORDER,
    THINKING_DIMENSIONS,
    ThinkingDimension,
    extract_concepts_from_tags,
    get_dimension,
)
from thinkpath.core.errors import (
    ConcurrencyConflictError,
    EngineError,
    InvalidTransitionError,
    NotFoundError,
    RequestValidationError,
    retry_on_conflict,
)

__all__ = [
    "DIMENSION_ORDER",
    "THINKING_DIMENSIONS",
    "ThinkingDimension",
    "extract_concepts_from_tags",
    "get_dimension",
    "ConcurrencyConflictError",
    "EngineError",
    "InvalidTransitionError",
    "NotFoundError",
    "RequestValidationError",
    "retry_on_conflict",
]
