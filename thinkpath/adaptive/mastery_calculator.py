"""
Concept Mastery Calculator.

Mastery is a 0-1 value per (dimension, concept):
- Smoothed from a score history with an exponentially weighted average
  (recent answers count more)
- Updated incrementally as a running mean when one new answer is scored
- Decayed at read time by the days since the concept was last practiced.
  The stored value is never rewritten by decay.

Review urgency: >14 days high, >7 days medium, otherwise low.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Iterable, Optional

from config import Settings, get_settings
from thinkpath.adaptive.models import ConceptMasteryState, ReviewUrgency, as_utc


@dataclass
class DimensionMasterySummary:
    """Mastery rolled up over the concepts of one dimension."""

    thinking_type_id: str
    average_mastery: float
    concept_count: int
    weakest_concept: Optional[str]
    weakest_mastery: Optional[float]
    max_urgency: ReviewUrgency
    max_days_since_practice: int
    practice_count: int


class MasteryCalculator:
    """
    Pure mastery arithmetic, configured from settings.

    Nothing here touches the database; the practice service and the
    recommender feed it rows and persist what it returns.
    """

    def __init__(
        self,
        ewma_alpha: float = 0.3,
        decay_per_day: float = 0.01,
        decay_cap: float = 0.5,
        medium_after_days: int = 7,
        high_after_days: int = 14,
        review_mastery_ceiling: float = 0.8,
        review_limit: int = 10,
    ):
        """
        Args:
            ewma_alpha: Weight of the newest score in a smoothed history
            decay_per_day: Fraction of mastery lost per idle day
            decay_cap: Maximum fraction removed by decay
            medium_after_days: Idle days above which urgency is medium
            high_after_days: Idle days above which urgency is high
            review_mastery_ceiling: Concepts at or above this never need review
            review_limit: Maximum concepts returned by select_for_review
        """
        self.ewma_alpha = ewma_alpha
        self.decay_per_day = decay_per_day
        self.decay_cap = decay_cap
        self.medium_after_days = medium_after_days
        self.high_after_days = high_after_days
        self.review_mastery_ceiling = review_mastery_ceiling
        self.review_limit = review_limit

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> MasteryCalculator:
        settings = settings or get_settings()
        return cls(
            ewma_alpha=settings.mastery_ewma_alpha,
            decay_per_day=settings.mastery_decay_per_day,
            decay_cap=settings.mastery_decay_cap,
            medium_after_days=settings.review_medium_after_days,
            high_after_days=settings.review_high_after_days,
            review_mastery_ceiling=settings.review_mastery_ceiling,
            review_limit=settings.review_list_limit,
        )

    # --------------------------------------------------
    # Stored value
    # --------------------------------------------------

    def ewma_mastery(self, scores: Iterable[float]) -> float:
        """
        Smooth an ordered score history (oldest first, each 0-1).

        The first score seeds the average; every later score moves it by
        ewma_alpha toward the new value. Empty history is 0.
        """
        mastery: float | None = None
        for score in scores:
            score = _clamp(score)
            if mastery is None:
                mastery = score
            else:
                mastery = mastery * (1 - self.ewma_alpha) + score * self.ewma_alpha
        return mastery if mastery is not None else 0.0

    @staticmethod
    def apply_attempt(old_mastery: float, practice_count: int, score: float) -> float:
        """Running mean update for one newly scored attempt (score 0-1)."""
        score = _clamp(score)
        if practice_count <= 0:
            return score
        return _clamp((old_mastery * practice_count + score) / (practice_count + 1))

    # --------------------------------------------------
    # Read-time view
    # --------------------------------------------------

    @staticmethod
    def days_since(last_practiced_at: Optional[datetime], now: Optional[datetime] = None) -> Optional[int]:
        if last_practiced_at is None:
            return None
        now = as_utc(now) or datetime.now(UTC)
        delta = now - as_utc(last_practiced_at)
        return max(0, delta.days)

    def effective_mastery(
        self,
        stored: float,
        last_practiced_at: Optional[datetime],
        now: Optional[datetime] = None,
    ) -> float:
        """Stored mastery minus a penalty proportional to idle days."""
        days = self.days_since(last_practiced_at, now)
        if days is None:
            return _clamp(stored)
        penalty = min(self.decay_cap, self.decay_per_day * days)
        return _clamp(stored * (1 - penalty))

    def review_urgency(self, days_since: Optional[int]) -> ReviewUrgency:
        if days_since is None:
            return ReviewUrgency.LOW
        if days_since > self.high_after_days:
            return ReviewUrgency.HIGH
        if days_since > self.medium_after_days:
            return ReviewUrgency.MEDIUM
        return ReviewUrgency.LOW

    def evaluate(self, state: ConceptMasteryState, now: Optional[datetime] = None) -> ConceptMasteryState:
        """Fill the decayed fields of a concept state in place and return it."""
        days = self.days_since(state.last_practiced_at, now)
        state.days_since_practice = days
        state.effective_mastery = self.effective_mastery(state.mastery_level, state.last_practiced_at, now)
        state.urgency = self.review_urgency(days)
        return state

    def needs_review(self, state: ConceptMasteryState, now: Optional[datetime] = None) -> bool:
        days = self.days_since(state.last_practiced_at, now)
        if days is None:
            return False
        return days >= self.medium_after_days and state.mastery_level < self.review_mastery_ceiling

    def select_for_review(
        self,
        states: Iterable[ConceptMasteryState],
        now: Optional[datetime] = None,
    ) -> list[ConceptMasteryState]:
        """Concepts due for review: longest idle first, then weakest."""
        due = [self.evaluate(s, now) for s in states if self.needs_review(s, now)]
        due.sort(key=lambda s: (-(s.days_since_practice or 0), s.mastery_level, s.concept_key))
        return due[: self.review_limit]

    def summarize(
        self,
        thinking_type_id: str,
        states: Iterable[ConceptMasteryState],
        now: Optional[datetime] = None,
    ) -> DimensionMasterySummary:
        evaluated = [self.evaluate(s, now) for s in states if s.thinking_type_id == thinking_type_id]
        if not evaluated:
            return DimensionMasterySummary(
                thinking_type_id=thinking_type_id,
                average_mastery=0.0,
                concept_count=0,
                weakest_concept=None,
                weakest_mastery=None,
                max_urgency=ReviewUrgency.LOW,
                max_days_since_practice=0,
                practice_count=0,
            )

        weakest = min(evaluated, key=lambda s: (s.effective_mastery, s.concept_key))
        most_idle = max(s.days_since_practice or 0 for s in evaluated)
        return DimensionMasterySummary(
            thinking_type_id=thinking_type_id,
            average_mastery=sum(s.effective_mastery for s in evaluated) / len(evaluated),
            concept_count=len(evaluated),
            weakest_concept=weakest.concept_key,
            weakest_mastery=weakest.effective_mastery,
            max_urgency=max((s.urgency for s in evaluated), key=lambda u: u.rank),
            max_days_since_practice=most_idle,
            practice_count=sum(s.practice_count for s in evaluated),
        )


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    if value != value:  # NaN
        return low
    return max(low, min(high, value))
