"""
Unified Progress Aggregator.

Combines four independent 0-100 signals into one progress percentage:

- path_completion: completed / total steps of the active path
- level_depth: how far up the five levels the learner has unlocked
- theory_streak: daily theory activity over the last 30 days plus a streak bonus
- practice_volume: practice sessions relative to a target count

Weights are configuration. A missing signal contributes 0 instead of failing
the whole view.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import Iterable, Optional

from loguru import logger
from sqlalchemy.orm import Session

from config import ProgressWeights, Settings, get_settings
from thinkpath.adaptive.models import LevelProgress
from thinkpath.adaptive.repository import ActivityReader, LevelProgressRepository, PathStateRepository
from thinkpath.adaptive.step_graph import StepGraph
from thinkpath.core.dimensions import DIMENSION_ORDER, MAX_LEVEL
from thinkpath.core.errors import RequestValidationError
from thinkpath.db.database import session_or_scope

SIGNAL_NAMES = ("path_completion", "level_depth", "theory_streak", "practice_volume")

# (minimum streak days, bonus points), checked from the top
STREAK_BONUSES = ((30, 20), (14, 15), (7, 10), (3, 5))


@dataclass
class ProgressSignals:
    """Signal values 0-100; None means the signal has no data."""
    path_completion: Optional[float] = None
    level_depth: Optional[float] = None
    theory_streak: Optional[float] = None
    practice_volume: Optional[float] = None

    def to_dict(self) -> dict[str, Optional[float]]:
        return {name: getattr(self, name) for name in SIGNAL_NAMES}


@dataclass
class ProgressBreakdown:
    overall: int
    signals: ProgressSignals
    contributions: dict[str, float]

    def to_dict(self) -> dict:
        return {
            "overall": self.overall,
            "signals": self.signals.to_dict(),
            "contributions": dict(self.contributions),
        }


@dataclass
class DimensionProgress:
    thinking_type_id: str
    breakdown: ProgressBreakdown
    current_level: int = 1
    level_progress: dict[int, float] = field(default_factory=dict)

    @property
    def overall(self) -> int:
        return self.breakdown.overall

    def to_dict(self) -> dict:
        return {
            "thinking_type_id": self.thinking_type_id,
            "current_level": self.current_level,
            "level_progress": dict(self.level_progress),
            **self.breakdown.to_dict(),
        }


@dataclass
class UnifiedProgress:
    user_id: str
    breakdown: ProgressBreakdown
    dimensions: dict[str, DimensionProgress]
    total_time_minutes: int = 0
    last_7_days_minutes: int = 0

    @property
    def overall(self) -> int:
        return self.breakdown.overall

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            **self.breakdown.to_dict(),
            "dimensions": {k: v.to_dict() for k, v in self.dimensions.items()},
            "time": {
                "total_minutes": self.total_time_minutes,
                "last_7_days_minutes": self.last_7_days_minutes,
            },
        }


# --------------------------------------------------
# Pure signal functions
# --------------------------------------------------


def validate_progress(value: Optional[float]) -> float:
    """Clamp a signal to 0-100; None and NaN become 0."""
    if value is None or value != value:
        return 0.0
    return max(0.0, min(100.0, float(value)))


def combine_signals(signals: ProgressSignals, weights: ProgressWeights) -> ProgressBreakdown:
    """Weighted sum of the signals. Absent signals contribute 0."""
    contributions = {}
    for name in SIGNAL_NAMES:
        contributions[name] = round(validate_progress(getattr(signals, name)) * getattr(weights, name), 1)
    overall = round(sum(contributions.values()))
    return ProgressBreakdown(overall=max(0, min(100, overall)), signals=signals, contributions=contributions)


def path_completion_signal(graph: Optional[StepGraph], thinking_type_id: Optional[str] = None) -> Optional[float]:
    if graph is None:
        return None
    steps = graph.steps if thinking_type_id is None else graph.steps_for(thinking_type_id)
    if not steps:
        return None
    done = sum(1 for s in steps if s.is_completed)
    return done / len(steps) * 100


def level_depth_signal(progress: Optional[LevelProgress]) -> Optional[float]:
    """Unlocked levels plus the fraction of the current level, over five levels."""
    if progress is None:
        return None
    current = progress.levels.get(progress.current_level)
    partial = (current.progress if current else 0.0) / 100
    return min(100.0, ((progress.highest_unlocked - 1) + partial) / MAX_LEVEL * 100)


def current_streak(active_dates: Iterable[date], today: date) -> int:
    """Consecutive active days ending today, or yesterday if today is not done yet."""
    days = set(active_dates)
    cursor = today if today in days else today - timedelta(days=1)
    streak = 0
    while cursor in days:
        streak += 1
        cursor -= timedelta(days=1)
    return streak


def theory_streak_signal(active_dates: Iterable[date], today: date, window_days: int = 30) -> Optional[float]:
    dates = set(active_dates)
    if not dates:
        return None
    window_start = today - timedelta(days=window_days - 1)
    active_in_window = sum(1 for d in dates if window_start <= d <= today)
    base = min(100, round(active_in_window / window_days * 100))

    streak = current_streak(dates, today)
    bonus = next((points for minimum, points in STREAK_BONUSES if streak >= minimum), 0)
    return float(min(100, base + bonus))


def practice_volume_signal(session_count: int, target: int) -> Optional[float]:
    if session_count <= 0:
        return None
    return min(100.0, session_count / target * 100)


def _mean(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


# --------------------------------------------------
# Service
# --------------------------------------------------


class ProgressAggregator:
    """Reads the learner's state and builds unified progress views."""

    def __init__(self, session: Optional[Session] = None, settings: Settings | None = None):
        self._session = session
        self.settings = settings or get_settings()

    def get_dimension_progress(
        self,
        user_id: str,
        thinking_type_id: str,
        now: Optional[datetime] = None,
    ) -> DimensionProgress:
        if thinking_type_id not in DIMENSION_ORDER:
            raise RequestValidationError(f"Unknown thinking type: {thinking_type_id}", thinking_type_id=thinking_type_id)
        now = now or datetime.now(UTC)
        with self._get_session() as session:
            graph, levels, streak, sessions = self._load_inputs(session, user_id, now)
        return self._dimension_view(thinking_type_id, graph, levels.get(thinking_type_id), streak, sessions)

    def get_unified_progress(self, user_id: str, now: Optional[datetime] = None) -> UnifiedProgress:
        now = now or datetime.now(UTC)
        with self._get_session() as session:
            graph, levels, streak, sessions = self._load_inputs(session, user_id, now)
            reader = self._activity_reader(session)
            practice_minutes = reader.practice_minutes(user_id)
            recent_minutes = reader.practice_minutes(user_id, since=now - timedelta(days=7))

        dimensions = {
            d: self._dimension_view(d, graph, levels.get(d), streak, sessions) for d in DIMENSION_ORDER
        }
        engaged = [
            d for d in DIMENSION_ORDER
            if d in levels or sessions.get(d, 0) > 0 or (graph is not None and graph.steps_for(d))
        ]
        signals = ProgressSignals(
            path_completion=path_completion_signal(graph),
            level_depth=_mean(dimensions[d].breakdown.signals.level_depth for d in engaged),
            theory_streak=streak,
            practice_volume=_mean(dimensions[d].breakdown.signals.practice_volume for d in engaged),
        )
        breakdown = combine_signals(signals, self.settings.progress_weights())
        path_minutes = graph.total_time_spent if graph is not None else 0
        logger.debug(f"Unified progress for {user_id}: {breakdown.overall}% {breakdown.contributions}")
        return UnifiedProgress(
            user_id=user_id,
            breakdown=breakdown,
            dimensions=dimensions,
            total_time_minutes=path_minutes + practice_minutes,
            last_7_days_minutes=recent_minutes,
        )

    def _dimension_view(
        self,
        thinking_type_id: str,
        graph: Optional[StepGraph],
        progress: Optional[LevelProgress],
        streak: Optional[float],
        sessions: dict[str, int],
    ) -> DimensionProgress:
        signals = ProgressSignals(
            path_completion=path_completion_signal(graph, thinking_type_id),
            level_depth=level_depth_signal(progress),
            theory_streak=streak,
            practice_volume=practice_volume_signal(sessions.get(thinking_type_id, 0), self.settings.practice_volume_target),
        )
        return DimensionProgress(
            thinking_type_id=thinking_type_id,
            breakdown=combine_signals(signals, self.settings.progress_weights()),
            current_level=progress.current_level if progress else 1,
            level_progress={n: s.progress for n, s in progress.levels.items()} if progress else {},
        )

    def _load_inputs(self, session: Session, user_id: str, now: datetime):
        path_repo = PathStateRepository(session)
        row = path_repo.load_active(user_id, for_update=False)
        graph = path_repo.graph_of(row) if row is not None else None
        levels = LevelProgressRepository(session).get_all(user_id)

        reader = self._activity_reader(session)
        window = self.settings.streak_window_days
        today = now.date()
        streak = theory_streak_signal(reader.streak_dates(user_id, since=today - timedelta(days=window)), today, window)
        sessions = reader.practice_session_counts(user_id)
        return graph, levels, streak, sessions

    @staticmethod
    def _activity_reader(session: Session) -> ActivityReader:
        return ActivityReader(session)

    def _get_session(self):
        """Get session context manager."""
        return session_or_scope(self._session)
