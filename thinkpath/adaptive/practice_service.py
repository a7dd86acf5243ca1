"""
Practice Service.

Records scored questions: updates the level progress of the dimension (with
any level unlock) and the mastery of every concept the question touches, in
one transaction. Also serves the concept review list and mastery summaries.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Optional

from loguru import logger
from sqlalchemy.orm import Session

from config import Settings, get_settings
from thinkpath.adaptive.level_unlock import LevelUnlockEvaluator, motivational_message
from thinkpath.adaptive.mastery_calculator import DimensionMasterySummary, MasteryCalculator
from thinkpath.adaptive.models import (
    ConceptMasteryState,
    LevelProgress,
    LevelUnlockEvent,
    UnlockResult,
)
from thinkpath.adaptive.repository import LevelProgressRepository, MasteryRepository
from thinkpath.adaptive.schemas import QuestionResultRequest, parse_request
from thinkpath.core.dimensions import DIMENSION_ORDER, extract_concepts_from_tags, get_dimension
from thinkpath.core.errors import RequestValidationError
from thinkpath.db.database import session_or_scope


@dataclass
class QuestionResult:
    level_progress: LevelProgress
    unlock: UnlockResult
    event: Optional[LevelUnlockEvent] = None
    concepts_updated: list[ConceptMasteryState] = field(default_factory=list)
    progress_to_next: int = 0
    message: str = ""

    @property
    def unlocked_level(self) -> Optional[int]:
        return self.event.level if self.event else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "level_progress": self.level_progress.to_dict(),
            "unlock": self.unlock.to_dict(),
            "unlocked_level": self.unlocked_level,
            "concepts_updated": [c.to_dict() for c in self.concepts_updated],
            "progress_to_next": self.progress_to_next,
            "message": self.message,
        }


class PracticeService:
    """Writes practice outcomes into level progress and concept mastery."""

    def __init__(self, session: Optional[Session] = None, settings: Settings | None = None):
        self._session = session
        self.settings = settings or get_settings()
        self.evaluator = LevelUnlockEvaluator.from_settings(self.settings)
        self.calculator = MasteryCalculator.from_settings(self.settings)

    def record_question_result(
        self,
        user_id: str,
        request: QuestionResultRequest | dict[str, Any],
        now: Optional[datetime] = None,
    ) -> QuestionResult:
        """
        Record one scored question (score 0-100) at a level of a dimension.

        Concepts come from explicit concept_keys, otherwise from the tags.
        """
        if not user_id:
            raise RequestValidationError("user_id is required")
        request = parse_request(QuestionResultRequest, request)
        now = now or datetime.now(UTC)

        dimension = get_dimension(request.thinking_type_id)
        unknown = [k for k in request.concept_keys if k not in dimension.concept_keys]
        if unknown:
            raise RequestValidationError(
                f"Unknown concepts for {request.thinking_type_id}: {unknown}",
                concept_keys=unknown,
            )
        concept_keys = list(dict.fromkeys(request.concept_keys)) or extract_concepts_from_tags(
            request.thinking_type_id, request.tags
        )

        with self._get_session() as session:
            level_repo = LevelProgressRepository(session)
            progress = level_repo.get(user_id, request.thinking_type_id, for_update=True) or LevelProgress(
                user_id=user_id, thinking_type_id=request.thinking_type_id
            )
            unlock, event = self.evaluator.record_question(progress, request.level, request.score, now=now)
            level_repo.save(progress)

            mastery_repo = MasteryRepository(session)
            updated = [
                self.calculator.evaluate(
                    mastery_repo.record_attempt(user_id, request.thinking_type_id, key, request.score / 100, now),
                    now,
                )
                for key in concept_keys
            ]

        if unlock.next_level:
            stats = progress.levels[request.level]
            to_next = self.evaluator.level_progress_percent(stats.questions_completed, stats.average_score, unlock.next_level)
            message = motivational_message(100 if event else to_next, unlock.next_level)
        else:
            to_next = 100
            message = unlock.message

        logger.debug(
            f"{user_id} scored {request.score} at {request.thinking_type_id} L{request.level}; "
            f"concepts={concept_keys}"
        )
        return QuestionResult(
            level_progress=progress,
            unlock=unlock,
            event=event,
            concepts_updated=updated,
            progress_to_next=to_next,
            message=message,
        )

    def get_level_progress(self, user_id: str, thinking_type_id: str) -> LevelProgress:
        with self._get_session() as session:
            progress = LevelProgressRepository(session).get(user_id, thinking_type_id)
        return progress or LevelProgress(user_id=user_id, thinking_type_id=thinking_type_id)

    def concepts_needing_review(self, user_id: str, now: Optional[datetime] = None) -> list[ConceptMasteryState]:
        """Idle, not yet mastered concepts: longest idle first, then weakest."""
        now = now or datetime.now(UTC)
        with self._get_session() as session:
            states = MasteryRepository(session).list_states(user_id)
        return self.calculator.select_for_review(states, now)

    def mastery_summary(self, user_id: str, now: Optional[datetime] = None) -> dict[str, DimensionMasterySummary]:
        now = now or datetime.now(UTC)
        with self._get_session() as session:
            states = MasteryRepository(session).list_states(user_id)
        return {d: self.calculator.summarize(d, states, now) for d in DIMENSION_ORDER}

    def _get_session(self):
        """Get session context manager."""
        return session_or_scope(self._session)
