"""
Path Generation Engine.

Builds the step graph of a new learning path from a snapshot of the learner:

1. Choose target dimensions (explicit, all five for a new learner, or the
   weakest unfinished one)
2. Choose the start level (1 for multi-dimension paths, otherwise the
   learner's current level, one higher when it is nearly done)
3. Emit one theory and one practice step per dimension and level
4. Wire prerequisites according to the learning style and open the roots
"""
from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Optional

from loguru import logger

from config import Settings, get_settings
from thinkpath.adaptive.mastery_calculator import DimensionMasterySummary
from thinkpath.adaptive.models import (
    ContentType,
    LearningStyle,
    LevelProgress,
    PathStep,
    PathSummary,
    StepStatus,
)
from thinkpath.adaptive.step_graph import StepGraph
from thinkpath.core.dimensions import DIMENSION_ORDER, MAX_LEVEL, MIN_LEVEL, get_dimension

LEARN_BASE_HREF = "/learn/critical-thinking"


@dataclass
class ContentRef:
    """Catalog entry backing a step."""
    id: str
    title: str
    estimated_time: Optional[int] = None


@dataclass
class ContentCatalog:
    theory: dict[tuple[str, int], ContentRef] = field(default_factory=dict)
    practice: dict[tuple[str, int], ContentRef] = field(default_factory=dict)

    def lookup(self, content_type: ContentType, thinking_type_id: str, level: int) -> Optional[ContentRef]:
        table = self.theory if content_type == ContentType.THEORY else self.practice
        return table.get((thinking_type_id, level))


@dataclass
class LearnerSnapshot:
    """What the generator knows about a learner before building a path."""
    level_progress: dict[str, LevelProgress] = field(default_factory=dict)
    mastery: dict[str, DimensionMasterySummary] = field(default_factory=dict)

    @property
    def has_history(self) -> bool:
        if any(p.questions_completed > 0 or p.current_level > 1 for p in self.level_progress.values()):
            return True
        return any(m.concept_count > 0 for m in self.mastery.values())


@dataclass
class GeneratedPath:
    graph: StepGraph
    summary: PathSummary
    target_dimensions: list[str]
    target_level: int
    learning_style: LearningStyle


class PathGenerator:
    """Pure path builder; the service persists what it returns."""

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()

    # --------------------------------------------------
    # Target selection
    # --------------------------------------------------

    def select_dimensions(self, snapshot: LearnerSnapshot, requested: Optional[str] = None) -> list[str]:
        if requested:
            return [requested]
        if not snapshot.has_history:
            return list(DIMENSION_ORDER)

        unfinished = [d for d in DIMENSION_ORDER if not self._dimension_finished(snapshot.level_progress.get(d))]
        candidates = unfinished or list(DIMENSION_ORDER)

        def weakness(dimension_id: str) -> tuple[float, int]:
            summary = snapshot.mastery.get(dimension_id)
            mastery = summary.average_mastery if summary and summary.concept_count else 0.0
            return mastery, DIMENSION_ORDER.index(dimension_id)

        return [min(candidates, key=weakness)]

    def _dimension_finished(self, progress: Optional[LevelProgress]) -> bool:
        if progress is None:
            return False
        return (
            progress.current_level >= MAX_LEVEL
            and progress.levels[MAX_LEVEL].progress >= self.settings.dimension_complete_percent
        )

    def determine_start_level(self, progress: Optional[LevelProgress], target_level: int) -> int:
        if progress is None:
            return MIN_LEVEL
        level = max(MIN_LEVEL, min(MAX_LEVEL, progress.current_level))
        stats = progress.levels.get(level)
        if stats and stats.progress > self.settings.advance_level_percent and level < MAX_LEVEL:
            level += 1
        return min(level, target_level)

    # --------------------------------------------------
    # Graph construction
    # --------------------------------------------------

    def generate(
        self,
        snapshot: LearnerSnapshot,
        catalog: ContentCatalog,
        thinking_type_id: Optional[str] = None,
        target_level: int = MAX_LEVEL,
        learning_style: LearningStyle = LearningStyle.BALANCED,
        time_available: Optional[int] = None,
    ) -> GeneratedPath:
        dimensions = self.select_dimensions(snapshot, thinking_type_id)
        multi = len(dimensions) > 1

        steps: list[PathStep] = []
        levels_used: list[int] = []
        for dimension_id in dimensions:
            if multi:
                start = MIN_LEVEL
            else:
                start = self.determine_start_level(snapshot.level_progress.get(dimension_id), target_level)
            chain = self._build_chain(dimension_id, start, target_level, learning_style, catalog)
            steps.extend(chain)
            levels_used.extend(range(start, target_level + 1))

        graph = StepGraph(steps)
        graph.open_roots()

        estimated_total = graph.estimated_total_time
        summary = PathSummary(
            total_steps=len(graph),
            estimated_total_time=estimated_total,
            dimensions_covered=dimensions,
            level_min=min(levels_used) if levels_used else target_level,
            level_max=max(levels_used) if levels_used else target_level,
            learning_style=learning_style,
            estimated_days=math.ceil(estimated_total / time_available) if time_available else None,
        )
        logger.debug(
            f"Generated {summary.total_steps} steps over {dimensions} "
            f"(levels {summary.level_min}-{summary.level_max}, {learning_style.value})"
        )
        return GeneratedPath(
            graph=graph,
            summary=summary,
            target_dimensions=dimensions,
            target_level=target_level,
            learning_style=learning_style,
        )

    def _build_chain(
        self,
        dimension_id: str,
        start: int,
        target: int,
        style: LearningStyle,
        catalog: ContentCatalog,
    ) -> list[PathStep]:
        if style == LearningStyle.PRACTICE_FIRST:
            order = (ContentType.PRACTICE, ContentType.THEORY)
        else:
            order = (ContentType.THEORY, ContentType.PRACTICE)

        chain: list[PathStep] = []
        previous_level: list[PathStep] = []
        for level in range(start, target + 1):
            level_steps = [self._make_step(dimension_id, level, ct, catalog) for ct in order]
            if style == LearningStyle.BALANCED:
                for step in level_steps:
                    step.prerequisites = [p.id for p in previous_level]
            else:
                first, second = level_steps
                first.prerequisites = [previous_level[-1].id] if previous_level else []
                second.prerequisites = [first.id]
            chain.extend(level_steps)
            previous_level = level_steps
        return chain

    def _make_step(
        self,
        dimension_id: str,
        level: int,
        content_type: ContentType,
        catalog: ContentCatalog,
    ) -> PathStep:
        ref = catalog.lookup(content_type, dimension_id, level)
        dimension = get_dimension(dimension_id)
        dimension_name = dimension.name if dimension else dimension_id

        if content_type == ContentType.THEORY:
            default_time = self.settings.default_theory_minutes
            href = f"{LEARN_BASE_HREF}/{dimension_id}/theory/{level}"
            default_title = f"{dimension_name} - Level {level} theory"
        else:
            default_time = self.settings.default_practice_minutes
            href = f"{LEARN_BASE_HREF}/{dimension_id}/practice?level={level}"
            default_title = f"{dimension_name} - Level {level} practice"

        return PathStep(
            id=f"{content_type.value}_{dimension_id}_{level}",
            thinking_type_id=dimension_id,
            level=level,
            content_type=content_type,
            status=StepStatus.LOCKED,
            estimated_time=(ref.estimated_time if ref and ref.estimated_time else default_time),
            title=ref.title if ref else default_title,
            content_id=ref.id if ref else None,
            href=href,
        )
