"""
Persistence access for the adaptive engine.

Repositories work on a caller-provided Session and never commit; the service
owning the transaction decides when to. Lost updates on the learning path row
surface as ConcurrencyConflictError through SQLAlchemy's version counter.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Iterable, Optional

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from thinkpath.adaptive.mastery_calculator import MasteryCalculator
from thinkpath.adaptive.models import (
    ConceptMasteryState,
    LevelProgress,
    LevelStats,
    PathStatus,
    as_utc,
)
from thinkpath.adaptive.path_generator import ContentCatalog, ContentRef
from thinkpath.adaptive.step_graph import StepGraph
from thinkpath.core.dimensions import MAX_LEVEL, MIN_LEVEL
from thinkpath.core.errors import ConcurrencyConflictError, PathIntegrityError
from thinkpath.db.models import (
    ConceptMasteryRow,
    DailyStreak,
    LearningPathRow,
    LevelProgressRow,
    PracticeContent,
    PracticeSession,
    TheoryContent,
)

ADAPTIVE_PATH_TYPE = "adaptive"
LEVELS = range(MIN_LEVEL, MAX_LEVEL + 1)


def flush_or_conflict(session: Session, what: str) -> None:
    """
    Flush pending writes, turning lost updates into ConcurrencyConflictError.

    The session is left for its owner to roll back.
    """
    try:
        session.flush()
    except StaleDataError as e:
        logger.warning(f"Stale write on {what}: {e}")
        raise ConcurrencyConflictError(f"{what} was modified concurrently") from e
    except IntegrityError as e:
        logger.warning(f"Duplicate write on {what}: {e.orig}")
        raise ConcurrencyConflictError(f"{what} was created concurrently") from e


class PathStateRepository:
    """Loads and stores the single adaptive path row of a user."""

    def __init__(self, session: Session, path_type: str = ADAPTIVE_PATH_TYPE):
        self.session = session
        self.path_type = path_type

    def load(self, user_id: str, for_update: bool = True) -> Optional[LearningPathRow]:
        """The user's path row regardless of status."""
        stmt = select(LearningPathRow).where(
            LearningPathRow.user_id == user_id,
            LearningPathRow.path_type == self.path_type,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def load_active(self, user_id: str, for_update: bool = True) -> Optional[LearningPathRow]:
        row = self.load(user_id, for_update=for_update)
        if row is None or row.status != PathStatus.ACTIVE.value:
            return None
        return row

    @staticmethod
    def graph_of(row: LearningPathRow) -> StepGraph:
        return StepGraph.from_records(row.steps or [])

    def create(self, user_id: str) -> LearningPathRow:
        row = LearningPathRow(user_id=user_id, path_type=self.path_type)
        self.session.add(row)
        return row

    def save_graph(
        self,
        row: LearningPathRow,
        graph: StepGraph,
        current_step_index: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> LearningPathRow:
        """Write steps and derived counters back, then flush under the version check."""
        problems = graph.violations()
        if problems:
            logger.error(f"Refusing to save path for {row.user_id}: {problems}")
            raise PathIntegrityError(f"Learning path of {row.user_id} violates its invariants", problems=problems)

        row.steps = graph.to_records()
        row.total_steps = len(graph)
        row.completed_steps = graph.completed_count
        row.total_time_spent = graph.total_time_spent
        row.estimated_time_left = graph.estimated_time_left
        if current_step_index is not None:
            row.current_step_index = current_step_index

        if graph.is_complete:
            if row.status != PathStatus.COMPLETED.value:
                row.status = PathStatus.COMPLETED.value
                row.completed_at = now
        else:
            row.status = PathStatus.ACTIVE.value
            row.completed_at = None

        flush_or_conflict(self.session, f"learning path of {row.user_id}")
        return row


class LevelProgressRepository:
    """Maps LevelProgressRow's per-level columns to LevelProgress."""

    def __init__(self, session: Session):
        self.session = session

    def _row(self, user_id: str, thinking_type_id: str, for_update: bool = False) -> Optional[LevelProgressRow]:
        stmt = select(LevelProgressRow).where(
            LevelProgressRow.user_id == user_id,
            LevelProgressRow.thinking_type_id == thinking_type_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get(self, user_id: str, thinking_type_id: str, for_update: bool = False) -> Optional[LevelProgress]:
        """Pass for_update=True when the progress will be saved back."""
        row = self._row(user_id, thinking_type_id, for_update=for_update)
        return self.to_progress(row) if row is not None else None

    def get_all(self, user_id: str) -> dict[str, LevelProgress]:
        rows = self.session.execute(select(LevelProgressRow).where(LevelProgressRow.user_id == user_id)).scalars()
        return {row.thinking_type_id: self.to_progress(row) for row in rows}

    @staticmethod
    def to_progress(row: LevelProgressRow) -> LevelProgress:
        progress = LevelProgress(
            user_id=row.user_id,
            thinking_type_id=row.thinking_type_id,
            current_level=row.current_level or 1,
            questions_completed=row.questions_completed or 0,
            average_score=row.average_score or 0.0,
            last_practice_at=as_utc(row.last_practice_at),
        )
        for n in LEVELS:
            progress.levels[n] = LevelStats(
                progress=getattr(row, f"level{n}_progress") or 0.0,
                questions_completed=getattr(row, f"level{n}_questions_completed") or 0,
                average_score=getattr(row, f"level{n}_average_score") or 0.0,
            )
            progress.unlocked[n] = bool(getattr(row, f"level{n}_unlocked")) or n == MIN_LEVEL
        return progress

    def save(self, progress: LevelProgress) -> LevelProgressRow:
        """
        Upsert; unlock flags are OR-ed so a stored unlock can never be undone.

        A row loaded earlier in this session is reused as loaded, so its
        version check catches writes committed in between.
        """
        row = self._row(progress.user_id, progress.thinking_type_id, for_update=True)
        if row is None:
            row = LevelProgressRow(user_id=progress.user_id, thinking_type_id=progress.thinking_type_id)
            self.session.add(row)

        row.current_level = max(row.current_level or 1, progress.current_level)
        row.questions_completed = progress.questions_completed
        row.average_score = progress.average_score
        row.last_practice_at = progress.last_practice_at
        for n in LEVELS:
            stats = progress.levels[n]
            setattr(row, f"level{n}_progress", stats.progress)
            setattr(row, f"level{n}_questions_completed", stats.questions_completed)
            setattr(row, f"level{n}_average_score", stats.average_score)
            stored = bool(getattr(row, f"level{n}_unlocked"))
            setattr(row, f"level{n}_unlocked", stored or progress.unlocked[n] or n == MIN_LEVEL)

        flush_or_conflict(self.session, f"level progress of {progress.user_id}/{progress.thinking_type_id}")
        return row


class MasteryRepository:
    """Reads and updates ConceptMasteryRow."""

    def __init__(self, session: Session):
        self.session = session

    def list_states(self, user_id: str, thinking_type_id: Optional[str] = None) -> list[ConceptMasteryState]:
        stmt = select(ConceptMasteryRow).where(ConceptMasteryRow.user_id == user_id)
        if thinking_type_id:
            stmt = stmt.where(ConceptMasteryRow.thinking_type_id == thinking_type_id)
        stmt = stmt.order_by(ConceptMasteryRow.thinking_type_id, ConceptMasteryRow.concept_key)
        return [
            ConceptMasteryState(
                thinking_type_id=row.thinking_type_id,
                concept_key=row.concept_key,
                mastery_level=row.mastery_level or 0.0,
                practice_count=row.practice_count or 0,
                last_practiced_at=as_utc(row.last_practiced_at),
            )
            for row in self.session.execute(stmt).scalars()
        ]

    def record_attempt(
        self,
        user_id: str,
        thinking_type_id: str,
        concept_key: str,
        score: float,
        now: datetime,
    ) -> ConceptMasteryState:
        """Fold one scored attempt (0-1) into a concept's stored mastery."""
        stmt = select(ConceptMasteryRow).where(
            ConceptMasteryRow.user_id == user_id,
            ConceptMasteryRow.thinking_type_id == thinking_type_id,
            ConceptMasteryRow.concept_key == concept_key,
        ).with_for_update()
        row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            row = ConceptMasteryRow(
                user_id=user_id,
                thinking_type_id=thinking_type_id,
                concept_key=concept_key,
                mastery_level=0.0,
                practice_count=0,
            )
            self.session.add(row)

        row.mastery_level = MasteryCalculator.apply_attempt(row.mastery_level or 0.0, row.practice_count or 0, score)
        row.practice_count = (row.practice_count or 0) + 1
        row.last_practiced_at = now
        flush_or_conflict(self.session, f"mastery of {user_id}/{concept_key}")
        return ConceptMasteryState(
            thinking_type_id=thinking_type_id,
            concept_key=concept_key,
            mastery_level=row.mastery_level,
            practice_count=row.practice_count,
            last_practiced_at=now,
        )


class ActivityReader:
    """Read-only access to catalogs and activity logs owned by other services."""

    def __init__(self, session: Session):
        self.session = session

    def load_catalog(self, thinking_type_ids: Iterable[str]) -> ContentCatalog:
        ids = list(thinking_type_ids)
        catalog = ContentCatalog()

        theory_rows = self.session.execute(
            select(TheoryContent)
            .where(TheoryContent.thinking_type_id.in_(ids), TheoryContent.is_published.is_(True))
            .order_by(TheoryContent.thinking_type_id, TheoryContent.level, TheoryContent.id)
        ).scalars()
        for row in theory_rows:
            catalog.theory.setdefault(
                (row.thinking_type_id, row.level),
                ContentRef(id=row.id, title=row.title, estimated_time=row.estimated_time),
            )

        practice_rows = self.session.execute(
            select(PracticeContent)
            .where(PracticeContent.thinking_type_id.in_(ids))
            .order_by(PracticeContent.thinking_type_id, PracticeContent.level, PracticeContent.order_index)
        ).scalars()
        for row in practice_rows:
            key = (row.thinking_type_id, row.level)
            existing = catalog.practice.get(key)
            if existing is None:
                catalog.practice[key] = ContentRef(id=row.id, title=row.title, estimated_time=row.estimated_time)
            elif row.estimated_time:
                # One practice step covers every item of the level
                existing.estimated_time = (existing.estimated_time or 0) + row.estimated_time
        return catalog

    def practice_session_counts(self, user_id: str) -> dict[str, int]:
        stmt = (
            select(PracticeSession.thinking_type_id, func.count(PracticeSession.id))
            .where(PracticeSession.user_id == user_id)
            .group_by(PracticeSession.thinking_type_id)
        )
        return {type_id: count for type_id, count in self.session.execute(stmt).all()}

    def practice_minutes(self, user_id: str, since: Optional[datetime] = None) -> int:
        stmt = select(func.coalesce(func.sum(PracticeSession.time_spent), 0)).where(PracticeSession.user_id == user_id)
        if since is not None:
            stmt = stmt.where(PracticeSession.created_at >= since)
        return int(self.session.execute(stmt).scalar_one())

    def streak_dates(self, user_id: str, since: Optional[date] = None) -> list[date]:
        stmt = select(DailyStreak.practice_date).where(
            DailyStreak.user_id == user_id,
            DailyStreak.completed.is_(True),
        )
        if since is not None:
            stmt = stmt.where(DailyStreak.practice_date >= since)
        return [d for d in self.session.execute(stmt).scalars()]
