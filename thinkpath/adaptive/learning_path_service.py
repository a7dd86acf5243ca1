"""
Learning Path Service.

Public operations on a user's adaptive learning path:
- generate_path: build (or return the existing) active path
- get_current_path: current step, next available steps, recent completions
- update_progress: start / update / complete a step and run the unlock cascade

Each call is one transaction: the path row is read FOR UPDATE, changed in
memory through StepGraph and written back under the row's version counter.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Optional

from loguru import logger
from sqlalchemy.orm import Session

from config import Settings, get_settings
from thinkpath.adaptive.mastery_calculator import MasteryCalculator
from thinkpath.adaptive.models import (
    LearningStyle,
    PathProgress,
    PathStep,
    PathSummary,
    as_utc,
)
from thinkpath.adaptive.path_generator import LearnerSnapshot, PathGenerator
from thinkpath.adaptive.repository import (
    ActivityReader,
    LevelProgressRepository,
    MasteryRepository,
    PathStateRepository,
)
from thinkpath.adaptive.schemas import (
    CurrentPathRequest,
    GeneratePathRequest,
    UpdateProgressRequest,
    parse_request,
)
from thinkpath.adaptive.step_graph import StepGraph
from thinkpath.core.dimensions import DIMENSION_ORDER
from thinkpath.core.errors import NotFoundError, RequestValidationError
from thinkpath.db.database import session_or_scope
from thinkpath.db.models import LearningPathRow


@dataclass
class PathView:
    """Detached snapshot of a persisted path."""

    user_id: str
    status: str
    steps: list[PathStep]
    current_step_index: int
    total_steps: int
    completed_steps: int
    total_time_spent: int
    estimated_time_left: int
    learning_style: str
    target_dimensions: list[str]
    target_level: int
    version: int
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: LearningPathRow, graph: StepGraph) -> PathView:
        return cls(
            user_id=row.user_id,
            status=row.status,
            steps=list(graph.steps),
            current_step_index=row.current_step_index,
            total_steps=row.total_steps,
            completed_steps=row.completed_steps,
            total_time_spent=row.total_time_spent,
            estimated_time_left=row.estimated_time_left,
            learning_style=row.learning_style,
            target_dimensions=list(row.target_dimensions or []),
            target_level=row.target_level,
            version=row.version,
            created_at=as_utc(row.created_at),
        )

    @property
    def step_ids(self) -> list[str]:
        return [s.id for s in self.steps]

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "status": self.status,
            "steps": [s.to_dict() for s in self.steps],
            "current_step_index": self.current_step_index,
            "total_steps": self.total_steps,
            "completed_steps": self.completed_steps,
            "total_time_spent": self.total_time_spent,
            "estimated_time_left": self.estimated_time_left,
            "learning_style": self.learning_style,
            "target_dimensions": list(self.target_dimensions),
            "target_level": self.target_level,
            "version": self.version,
        }


@dataclass
class GeneratePathResult:
    path: PathView
    summary: PathSummary
    cached: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path.to_dict(), "summary": self.summary.to_dict(), "cached": self.cached}


@dataclass
class CurrentPathView:
    path: Optional[PathView] = None
    current_step: Optional[PathStep] = None
    next_steps: list[PathStep] = field(default_factory=list)
    recently_completed: list[PathStep] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path.to_dict() if self.path else None,
            "current_step": self.current_step.to_dict() if self.current_step else None,
            "next_steps": [s.to_dict() for s in self.next_steps],
            "recently_completed": [s.to_dict() for s in self.recently_completed],
        }


@dataclass
class ProgressUpdateResult:
    step: PathStep
    unlocked_steps: list[PathStep]
    path_progress: PathProgress

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step.to_dict(),
            "unlocked_steps": [s.to_dict() for s in self.unlocked_steps],
            "path_progress": self.path_progress.to_dict(),
        }


def _require_user(user_id: str) -> str:
    if not user_id or not str(user_id).strip():
        raise RequestValidationError("user_id is required")
    return str(user_id)


class LearningPathService:
    """Generates and advances adaptive learning paths."""

    MAX_NEXT_STEPS = 5
    MAX_RECENTLY_COMPLETED = 3

    def __init__(self, session: Optional[Session] = None, settings: Settings | None = None):
        self._session = session
        self.settings = settings or get_settings()
        self.generator = PathGenerator(self.settings)
        self.calculator = MasteryCalculator.from_settings(self.settings)

    def generate_path(
        self,
        user_id: str,
        options: GeneratePathRequest | dict[str, Any] | None = None,
        now: Optional[datetime] = None,
    ) -> GeneratePathResult:
        """
        Build a learning path for a user and persist it as their active path.

        An existing active path is returned unchanged (cached=True) unless
        force_regenerate is set.
        """
        user_id = _require_user(user_id)
        request = parse_request(GeneratePathRequest, options)
        now = now or datetime.now(UTC)

        with self._get_session() as session:
            repo = PathStateRepository(session)
            row = repo.load(user_id)

            if row is not None and row.is_active and not request.force_regenerate:
                graph = repo.graph_of(row)
                logger.info(f"Returning existing learning path for {user_id}")
                return GeneratePathResult(
                    path=PathView.from_row(row, graph),
                    summary=self._summarize(graph, row.learning_style, request.time_available),
                    cached=True,
                )

            snapshot = self._snapshot(session, user_id, now)
            catalog = ActivityReader(session).load_catalog(DIMENSION_ORDER)
            generated = self.generator.generate(
                snapshot,
                catalog,
                thinking_type_id=request.thinking_type_id,
                target_level=request.target_level,
                learning_style=request.learning_style,
                time_available=request.time_available,
            )

            if row is None:
                row = repo.create(user_id)
            row.target_dimensions = list(generated.target_dimensions)
            row.learning_style = generated.learning_style.value
            row.target_level = generated.target_level
            row.created_at = now
            repo.save_graph(row, generated.graph, current_step_index=0, now=now)

            logger.info(
                f"Generated learning path for {user_id}: {generated.summary.total_steps} steps, "
                f"dimensions={generated.target_dimensions}"
            )
            return GeneratePathResult(path=PathView.from_row(row, generated.graph), summary=generated.summary)

    def get_current_path(
        self,
        user_id: str,
        options: CurrentPathRequest | dict[str, Any] | None = None,
    ) -> CurrentPathView:
        """Current position in the active path; an empty view when there is none."""
        user_id = _require_user(user_id)
        request = parse_request(CurrentPathRequest, options)

        with self._get_session() as session:
            repo = PathStateRepository(session)
            row = repo.load_active(user_id, for_update=False)
            if row is None:
                return CurrentPathView()
            graph = repo.graph_of(row)
            view = PathView.from_row(row, graph)

        return CurrentPathView(
            path=view,
            current_step=graph.current_step(view.current_step_index),
            next_steps=graph.next_steps(self.MAX_NEXT_STEPS),
            recently_completed=graph.recently_completed(self.MAX_RECENTLY_COMPLETED) if request.include_completed else [],
        )

    def update_progress(
        self,
        user_id: str,
        request: UpdateProgressRequest | dict[str, Any],
        now: Optional[datetime] = None,
    ) -> ProgressUpdateResult:
        """
        Apply a start/update/complete action to one step.

        Raises:
            NotFoundError: no active path, or unknown step id
            InvalidTransitionError: locked step, completed step, bad progress_percent
            RequestValidationError: malformed request
            ConcurrencyConflictError: the path changed underneath this write
        """
        user_id = _require_user(user_id)
        request = parse_request(UpdateProgressRequest, request)
        now = now or datetime.now(UTC)

        with self._get_session() as session:
            repo = PathStateRepository(session)
            row = repo.load_active(user_id)
            if row is None:
                raise NotFoundError(f"No active learning path for {user_id}", user_id=user_id)

            graph = repo.graph_of(row)
            step_index = graph.index_of(request.step_id)
            step, opened, changed = graph.apply_action(
                request.step_id,
                request.action,
                progress_percent=request.progress_percent,
                time_spent=request.time_spent,
                now=now,
            )
            if changed:
                repo.save_graph(row, graph, current_step_index=step_index, now=now)
                if opened:
                    logger.info(f"{user_id} completed {step.id}, unlocked {[s.id for s in opened]}")
                if not row.is_active:
                    logger.info(f"{user_id} finished their learning path")

            progress = PathProgress(
                completed_steps=graph.completed_count,
                total_steps=len(graph),
                progress_percent=graph.progress_percent(),
                estimated_time_left=graph.estimated_time_left,
            )
            return ProgressUpdateResult(step=step, unlocked_steps=opened, path_progress=progress)

    # --------------------------------------------------
    # Helpers
    # --------------------------------------------------

    def _snapshot(self, session: Session, user_id: str, now: datetime) -> LearnerSnapshot:
        levels = LevelProgressRepository(session).get_all(user_id)
        states = MasteryRepository(session).list_states(user_id)
        mastery = {d: self.calculator.summarize(d, states, now) for d in DIMENSION_ORDER}
        return LearnerSnapshot(level_progress=levels, mastery=mastery)

    @staticmethod
    def _summarize(graph: StepGraph, learning_style: str, time_available: Optional[int]) -> PathSummary:
        levels = [s.level for s in graph.steps] or [0]
        total = graph.estimated_total_time
        return PathSummary(
            total_steps=len(graph),
            estimated_total_time=total,
            dimensions_covered=graph.dimensions(),
            level_min=min(levels),
            level_max=max(levels),
            learning_style=LearningStyle(learning_style),
            estimated_days=-(-total // time_available) if time_available else None,
        )

    def _get_session(self):
        """Get session context manager."""
        return session_or_scope(self._session)
