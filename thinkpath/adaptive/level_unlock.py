"""
Level Unlock Evaluator.

Each dimension has five levels. Level N+1 opens once the learner has answered
enough questions at level N with a high enough running average:

    L1 -> L2: 10 questions, 80%
    L2 -> L3:  8 questions, 75%
    L3 -> L4:  6 questions, 70%
    L4 -> L5:  5 questions, 65%

Unlock flags are monotonic: a later drop in accuracy never relocks a level.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Optional

from loguru import logger

from config import Settings, UnlockCriteria, get_settings
from thinkpath.adaptive.models import LevelProgress, LevelUnlockEvent, UnlockResult
from thinkpath.core.dimensions import MAX_LEVEL, MIN_LEVEL
from thinkpath.core.errors import InvalidTransitionError, RequestValidationError

DEFAULT_REQUIRED_QUESTIONS = 10


class LevelUnlockEvaluator:
    """Evaluates and applies level unlocks against a criteria table."""

    def __init__(self, criteria: dict[int, UnlockCriteria] | None = None):
        self.criteria = criteria if criteria is not None else get_settings().unlock_criteria()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> LevelUnlockEvaluator:
        return cls((settings or get_settings()).unlock_criteria())

    def check_level_unlock(
        self,
        current_level: int,
        questions_completed: int,
        average_score: float,
    ) -> UnlockResult:
        """
        Check whether the level above current_level can open.

        Args:
            current_level: Level the learner is practicing (1-5)
            questions_completed: Questions answered at that level
            average_score: Running average at that level (0-100)

        Returns:
            UnlockResult with a deterministic gap message
        """
        next_level = current_level + 1
        if next_level > MAX_LEVEL:
            return UnlockResult(
                can_unlock=False,
                next_level=None,
                message="Highest level reached",
            )

        criteria = self.criteria.get(next_level)
        if criteria is None:
            return UnlockResult(can_unlock=False, next_level=None, message=f"Invalid level: {current_level}")

        questions_needed = max(0, criteria.min_questions - questions_completed)
        accuracy_needed = max(0.0, criteria.min_accuracy - average_score)
        can_unlock = questions_needed == 0 and accuracy_needed == 0

        if can_unlock:
            message = f"Level {next_level} unlock criteria met"
        elif questions_needed > 0 and accuracy_needed > 0:
            message = (
                f"Complete {questions_needed} more questions and raise accuracy to "
                f"{criteria.min_accuracy:g}% (current {average_score:.1f}%)"
            )
        elif questions_needed > 0:
            message = f"Complete {questions_needed} more questions to unlock Level {next_level}"
        else:
            message = f"Raise accuracy to {criteria.min_accuracy:g}% (current {average_score:.1f}%)"

        return UnlockResult(
            can_unlock=can_unlock,
            next_level=next_level,
            message=message,
            questions_required=criteria.min_questions,
            required_score=criteria.min_accuracy,
            questions_needed=questions_needed,
            accuracy_needed=accuracy_needed,
        )

    def level_progress_percent(self, questions_completed: int, average_score: float, target_level: int) -> int:
        """Half question completion, half accuracy toward the target level's criteria."""
        criteria = self.criteria.get(target_level)
        if criteria is None:
            return 0
        question_progress = min(100.0, questions_completed / criteria.min_questions * 100)
        score_progress = min(100.0, average_score / criteria.min_accuracy * 100) if criteria.min_accuracy else 100.0
        return math.floor((question_progress + score_progress) / 2)

    def required_questions(self, level: int) -> int:
        """Questions that fill the progress bar of a level."""
        criteria = self.criteria.get(level + 1)
        return criteria.min_questions if criteria else DEFAULT_REQUIRED_QUESTIONS

    def record_question(
        self,
        progress: LevelProgress,
        level: int,
        score: float,
        now: Optional[datetime] = None,
    ) -> tuple[UnlockResult, Optional[LevelUnlockEvent]]:
        """
        Fold one scored question into a LevelProgress and apply any unlock.

        Mutates progress in place. Returns the unlock check for the level above
        and an event when that level was opened by this question.
        """
        if not MIN_LEVEL <= level <= MAX_LEVEL:
            raise RequestValidationError(f"Level must be between {MIN_LEVEL} and {MAX_LEVEL}", level=level)
        if not 0 <= score <= 100:
            raise RequestValidationError("Score must be between 0 and 100", score=score)
        if not progress.unlocked.get(level, False):
            raise InvalidTransitionError(
                f"Level {level} is locked for {progress.thinking_type_id}",
                level=level,
            )

        now = now or datetime.now(UTC)
        stats = progress.levels[level]
        count = stats.questions_completed
        stats.average_score = (stats.average_score * count + score) / (count + 1)
        stats.questions_completed = count + 1
        stats.progress = min(stats.questions_completed / self.required_questions(level) * 100, 100.0)

        total = progress.questions_completed
        progress.average_score = (progress.average_score * total + score) / (total + 1)
        progress.questions_completed = total + 1
        progress.last_practice_at = now

        result = self.check_level_unlock(level, stats.questions_completed, stats.average_score)
        event = None
        if result.can_unlock and result.next_level and not progress.unlocked[result.next_level]:
            progress.unlocked[result.next_level] = True
            progress.current_level = max(progress.current_level, result.next_level)
            event = LevelUnlockEvent(
                user_id=progress.user_id,
                thinking_type_id=progress.thinking_type_id,
                level=result.next_level,
                unlocked_at=now,
            )
            logger.info(
                f"Level {result.next_level} unlocked for {progress.user_id} in {progress.thinking_type_id}"
            )
        return result, event


def motivational_message(progress: float, next_level: int) -> str:
    if progress >= 100:
        return f"Level {next_level} is unlocked!"
    elif progress >= 80:
        return f"Almost there, one more push unlocks Level {next_level}."
    elif progress >= 60:
        return f"Keep it up, Level {next_level} is within reach."
    elif progress >= 40:
        return "Steady progress, keep going."
    return f"Start your journey toward Level {next_level}."
