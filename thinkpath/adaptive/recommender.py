"""
Smart Recommender.

Picks one activity for today plus a few optional alternatives.

Today's task, in order of preference:
1. A step of the active path the learner can act on now: an in-progress step
   first, then the available step closest to the current position
2. The dimension whose concepts are most overdue for review
3. The default starting dimension for a learner with no data

Alternatives never repeat today's dimension and are ranked by a score mixing
the mastery gap (40%), forgetting (30%) and practice frequency (30%).
"""
from __future__ import annotations

from datetime import UTC, datetime
from typing import Optional

from loguru import logger
from sqlalchemy.orm import Session

from config import Settings, get_settings
from thinkpath.adaptive.mastery_calculator import DimensionMasterySummary, MasteryCalculator
from thinkpath.adaptive.models import (
    LevelProgress,
    OptionalPractice,
    PathStep,
    Recommendation,
    StepStatus,
    TodayTask,
)
from thinkpath.adaptive.repository import LevelProgressRepository, MasteryRepository, PathStateRepository
from thinkpath.adaptive.step_graph import StepGraph
from thinkpath.core.dimensions import DIMENSION_ORDER, get_dimension
from thinkpath.db.database import session_or_scope

WEIGHT_MASTERY_GAP = 0.4
WEIGHT_FORGETTING = 0.3
WEIGHT_FREQUENCY = 0.3
FORGETTING_HORIZON_DAYS = 7


def _name(dimension_id: str) -> str:
    dimension = get_dimension(dimension_id)
    return dimension.name if dimension else dimension_id


def priority_label(score: float) -> str:
    if score > 0.7:
        return "high"
    elif score > 0.4:
        return "medium"
    return "low"


class Recommender:
    """Derives today's recommendation from path, mastery and level state."""

    def __init__(self, session: Optional[Session] = None, settings: Settings | None = None):
        self._session = session
        self.settings = settings or get_settings()
        self.calculator = MasteryCalculator.from_settings(self.settings)

    def recommend(self, user_id: str, now: Optional[datetime] = None) -> Recommendation:
        now = now or datetime.now(UTC)
        with self._get_session() as session:
            path_repo = PathStateRepository(session)
            row = path_repo.load_active(user_id, for_update=False)
            graph = path_repo.graph_of(row) if row is not None else None
            current_index = row.current_step_index if row is not None else 0
            levels = LevelProgressRepository(session).get_all(user_id)
            states = MasteryRepository(session).list_states(user_id)

        summaries = {d: self.calculator.summarize(d, states, now) for d in DIMENSION_ORDER}
        task = self.choose_today_task(graph, current_index, summaries, levels)
        alternatives = self.rank_alternatives(task.thinking_type_id, summaries, levels)
        logger.debug(f"Recommendation for {user_id}: {task.thinking_type_id} L{task.level} via {task.source}")
        return Recommendation(today_task=task, alternatives=alternatives)

    # --------------------------------------------------
    # Today's task
    # --------------------------------------------------

    def choose_today_task(
        self,
        graph: Optional[StepGraph],
        current_index: int,
        summaries: dict[str, DimensionMasterySummary],
        levels: dict[str, LevelProgress],
    ) -> TodayTask:
        step = self.pick_path_step(graph, current_index) if graph is not None else None
        if step is not None:
            resuming = step.status == StepStatus.IN_PROGRESS
            return TodayTask(
                thinking_type_id=step.thinking_type_id,
                level=step.level,
                reason=(
                    f"Continue where you left off: {step.title}"
                    if resuming
                    else f"Next step in your learning path: {step.title}"
                ),
                source="path",
                step_id=step.id,
                content_type=step.content_type,
                content_id=step.content_id,
                href=step.href,
            )

        practiced = [s for s in summaries.values() if s.concept_count > 0]
        if practiced:
            target = min(
                practiced,
                key=lambda s: (-s.max_urgency.rank, s.average_mastery, s.thinking_type_id),
            )
            progress = levels.get(target.thinking_type_id)
            weakest = [target.weakest_concept] if target.weakest_concept else []
            return TodayTask(
                thinking_type_id=target.thinking_type_id,
                level=progress.current_level if progress else 1,
                reason=(
                    f"{_name(target.thinking_type_id)} needs attention: "
                    f"{target.max_days_since_practice} days since last practice, "
                    f"mastery {target.average_mastery:.0%}"
                ),
                source="mastery_decay",
                target_concepts=weakest,
            )

        default_dimension = self.settings.default_dimension
        progress = levels.get(default_dimension)
        return TodayTask(
            thinking_type_id=default_dimension,
            level=progress.current_level if progress else 1,
            reason=f"Start with {_name(default_dimension)}",
            source="default",
        )

    @staticmethod
    def pick_path_step(graph: StepGraph, current_index: int) -> Optional[PathStep]:
        """In-progress steps first, then available steps nearest the current index."""
        candidates = [
            (i, s) for i, s in enumerate(graph.steps)
            if s.status in (StepStatus.IN_PROGRESS, StepStatus.AVAILABLE)
        ]
        if not candidates:
            return None
        _, step = min(
            candidates,
            key=lambda item: (item[1].status != StepStatus.IN_PROGRESS, abs(item[0] - current_index), item[0]),
        )
        return step

    # --------------------------------------------------
    # Alternatives
    # --------------------------------------------------

    def smart_score(self, summary: DimensionMasterySummary, average_practice_count: float) -> float:
        if summary.concept_count == 0:
            return WEIGHT_MASTERY_GAP + WEIGHT_FREQUENCY
        mastery_gap = 1 - summary.average_mastery
        forgetting = min(summary.max_days_since_practice / FORGETTING_HORIZON_DAYS, 1.0)
        if average_practice_count > 0:
            frequency_gap = 1 - min(summary.practice_count / average_practice_count, 1.0)
        else:
            frequency_gap = 1.0
        return mastery_gap * WEIGHT_MASTERY_GAP + forgetting * WEIGHT_FORGETTING + frequency_gap * WEIGHT_FREQUENCY

    def rank_alternatives(
        self,
        exclude_dimension: str,
        summaries: dict[str, DimensionMasterySummary],
        levels: dict[str, LevelProgress],
    ) -> list[OptionalPractice]:
        practiced = [s.practice_count for s in summaries.values() if s.concept_count > 0]
        average_count = sum(practiced) / len(practiced) if practiced else 0.0

        ranked = []
        for dimension_id in DIMENSION_ORDER:
            if dimension_id == exclude_dimension:
                continue
            summary = summaries.get(dimension_id) or self.calculator.summarize(dimension_id, [])
            score = self.smart_score(summary, average_count)
            progress = levels.get(dimension_id)
            level = progress.current_level if progress else 1
            if progress is not None or summary.concept_count > 0:
                reason = f"Continue Level {level} ({priority_label(score)} priority)"
            else:
                reason = f"Start a new dimension ({priority_label(score)} priority)"
            ranked.append(OptionalPractice(thinking_type_id=dimension_id, level=level, reason=reason, score=score))

        ranked.sort(key=lambda p: (-p.score, p.thinking_type_id))
        return ranked[: self.settings.max_alternatives]

    def _get_session(self):
        """Get session context manager."""
        return session_or_scope(self._session)
