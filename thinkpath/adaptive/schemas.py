"""
Request models for the engine's public operations.

Pydantic validates shapes and ranges; failures are re-raised as
RequestValidationError so callers only deal with engine errors.
"""
from __future__ import annotations

from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from thinkpath.adaptive.models import LearningStyle, StepAction
from thinkpath.core.dimensions import MAX_LEVEL, MIN_LEVEL, is_valid_dimension
from thinkpath.core.errors import RequestValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def _check_dimension(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_valid_dimension(value):
        raise ValueError(f"unknown thinking type '{value}'")
    return value


class GeneratePathRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    thinking_type_id: Optional[str] = None
    target_level: int = Field(default=MAX_LEVEL, ge=MIN_LEVEL, le=MAX_LEVEL)
    time_available: Optional[int] = Field(default=None, gt=0, description="Minutes per day")
    learning_style: LearningStyle = LearningStyle.BALANCED
    force_regenerate: bool = False

    @field_validator("thinking_type_id")
    @classmethod
    def known_dimension(cls, value: Optional[str]) -> Optional[str]:
        return _check_dimension(value)


class CurrentPathRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    include_completed: bool = False


class UpdateProgressRequest(BaseModel):
    """progress_percent is range-checked by the state machine, not here."""

    model_config = ConfigDict(extra="forbid")

    step_id: str = Field(min_length=1)
    action: StepAction
    progress_percent: Optional[float] = None
    time_spent: Optional[int] = Field(default=None, ge=0, description="Minutes to add")


class QuestionResultRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    thinking_type_id: str
    level: int = Field(ge=MIN_LEVEL, le=MAX_LEVEL)
    score: float = Field(ge=0, le=100)
    tags: list[str] = Field(default_factory=list)
    concept_keys: list[str] = Field(default_factory=list)
    time_spent: int = Field(default=0, ge=0)

    @field_validator("thinking_type_id")
    @classmethod
    def known_dimension(cls, value: Optional[str]) -> Optional[str]:
        return _check_dimension(value)


def parse_request(model: type[ModelT], data: ModelT | dict[str, Any] | None) -> ModelT:
    """Validate a dict (or pass through an instance) as the given request model."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data or {})
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise RequestValidationError(f"Invalid {model.__name__}", errors=errors) from e
