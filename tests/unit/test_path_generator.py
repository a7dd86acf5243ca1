"""
Unit tests for PathGenerator.

The generator is pure: snapshots and catalogs are built in memory.
"""

import pytest

from thinkpath.adaptive.mastery_calculator import DimensionMasterySummary
from thinkpath.adaptive.models import (
    ContentType,
    LearningStyle,
    LevelProgress,
    LevelStats,
    ReviewUrgency,
    StepStatus,
)
from thinkpath.adaptive.path_generator import ContentCatalog, ContentRef, LearnerSnapshot, PathGenerator
from thinkpath.core.dimensions import DIMENSION_ORDER


@pytest.fixture
def generator(settings):
    return PathGenerator(settings)


def _summary(dimension, mastery, count=3):
    return DimensionMasterySummary(
        thinking_type_id=dimension,
        average_mastery=mastery,
        concept_count=count,
        weakest_concept=None,
        weakest_mastery=None,
        max_urgency=ReviewUrgency.LOW,
        max_days_since_practice=0,
        practice_count=count,
    )


def _progress(dimension, current_level=1, level_progress=0.0, questions=5):
    progress = LevelProgress(user_id="u1", thinking_type_id=dimension, current_level=current_level)
    progress.questions_completed = questions
    for n in range(1, current_level + 1):
        progress.unlocked[n] = True
    progress.levels[current_level] = LevelStats(progress=level_progress, questions_completed=questions)
    return progress


class TestNewLearner:
    def test_covers_all_dimensions(self, generator):
        path = generator.generate(LearnerSnapshot(), ContentCatalog())
        assert path.target_dimensions == list(DIMENSION_ORDER)
        assert path.summary.total_steps == 5 * 5 * 2

    def test_only_roots_available(self, generator):
        path = generator.generate(LearnerSnapshot(), ContentCatalog(), learning_style=LearningStyle.THEORY_FIRST)
        available = [s.id for s in path.graph if s.status == StepStatus.AVAILABLE]
        assert available == [f"theory_{d}_1" for d in DIMENSION_ORDER]
        assert all(s.status == StepStatus.LOCKED for s in path.graph if s.id not in available)
        assert path.graph.violations() == []

    def test_deterministic(self, generator):
        first = generator.generate(LearnerSnapshot(), ContentCatalog())
        second = generator.generate(LearnerSnapshot(), ContentCatalog())
        assert first.graph.to_records() == second.graph.to_records()


class TestLearningStyles:
    def test_theory_first_chain(self, generator):
        path = generator.generate(LearnerSnapshot(), ContentCatalog(), "causal_analysis", 2, LearningStyle.THEORY_FIRST)
        g = path.graph
        assert [s.id for s in g] == [
            "theory_causal_analysis_1",
            "practice_causal_analysis_1",
            "theory_causal_analysis_2",
            "practice_causal_analysis_2",
        ]
        assert g.get("practice_causal_analysis_1").prerequisites == ["theory_causal_analysis_1"]
        assert g.get("theory_causal_analysis_2").prerequisites == ["practice_causal_analysis_1"]

    def test_practice_first_chain(self, generator):
        path = generator.generate(LearnerSnapshot(), ContentCatalog(), "causal_analysis", 2, LearningStyle.PRACTICE_FIRST)
        g = path.graph
        assert g.steps[0].id == "practice_causal_analysis_1"
        assert g.get("theory_causal_analysis_1").prerequisites == ["practice_causal_analysis_1"]
        assert g.get("practice_causal_analysis_2").prerequisites == ["theory_causal_analysis_1"]

    def test_balanced_levels_gate_next_level(self, generator):
        path = generator.generate(LearnerSnapshot(), ContentCatalog(), "causal_analysis", 2, LearningStyle.BALANCED)
        g = path.graph
        assert g.get("theory_causal_analysis_1").status == StepStatus.AVAILABLE
        assert g.get("practice_causal_analysis_1").status == StepStatus.AVAILABLE
        assert sorted(g.get("practice_causal_analysis_2").prerequisites) == [
            "practice_causal_analysis_1",
            "theory_causal_analysis_1",
        ]


class TestTargetSelection:
    def test_explicit_dimension(self, generator):
        assert generator.select_dimensions(LearnerSnapshot(), "premise_challenge") == ["premise_challenge"]

    def test_weakest_unfinished_dimension(self, generator):
        snapshot = LearnerSnapshot(
            level_progress={"fallacy_detection": _progress("fallacy_detection")},
            mastery={
                "fallacy_detection": _summary("fallacy_detection", 0.9),
                "causal_analysis": _summary("causal_analysis", 0.7),
                "premise_challenge": _summary("premise_challenge", 0.8),
                "iterative_reflection": _summary("iterative_reflection", 0.75),
                "connection_transfer": _summary("connection_transfer", 0.95),
            },
        )
        assert generator.select_dimensions(snapshot) == ["causal_analysis"]

    def test_finished_dimension_skipped(self, generator):
        finished = _progress("fallacy_detection", current_level=5, level_progress=90.0)
        snapshot = LearnerSnapshot(
            level_progress={"fallacy_detection": finished},
            mastery={d: _summary(d, 0.9) for d in DIMENSION_ORDER} | {"fallacy_detection": _summary("fallacy_detection", 0.1)},
        )
        assert generator.select_dimensions(snapshot) == ["causal_analysis"]

    def test_start_level_follows_current_level(self, generator):
        assert generator.determine_start_level(_progress("causal_analysis", 3, 40.0), 5) == 3

    def test_start_level_advances_when_nearly_done(self, generator):
        assert generator.determine_start_level(_progress("causal_analysis", 3, 85.0), 5) == 4

    def test_start_level_clamped_to_target(self, generator):
        assert generator.determine_start_level(_progress("causal_analysis", 4, 0.0), 2) == 2

    def test_single_dimension_path_starts_at_current_level(self, generator):
        snapshot = LearnerSnapshot(level_progress={"causal_analysis": _progress("causal_analysis", 3, 10.0)})
        path = generator.generate(snapshot, ContentCatalog(), "causal_analysis", 5)
        assert path.summary.level_min == 3
        assert path.summary.total_steps == 6


class TestCatalogAndSummary:
    def test_catalog_times_and_references(self, generator):
        catalog = ContentCatalog(
            theory={("causal_analysis", 1): ContentRef("t-1", "Why correlation misleads", 15)},
            practice={("causal_analysis", 1): ContentRef("p-1", "Spot the confounder", 40)},
        )
        path = generator.generate(LearnerSnapshot(), catalog, "causal_analysis", 1)
        theory = path.graph.get("theory_causal_analysis_1")
        assert theory.content_id == "t-1"
        assert theory.estimated_time == 15
        assert theory.href == "/learn/critical-thinking/causal_analysis/theory/1"
        assert path.graph.get("practice_causal_analysis_1").estimated_time == 40

    def test_default_times_without_catalog(self, generator, settings):
        path = generator.generate(LearnerSnapshot(), ContentCatalog(), "causal_analysis", 1)
        expected = settings.default_theory_minutes + settings.default_practice_minutes
        assert path.summary.estimated_total_time == expected
        assert path.graph.estimated_time_left == expected

    def test_estimated_days(self, generator):
        path = generator.generate(LearnerSnapshot(), ContentCatalog(), "causal_analysis", 2, time_available=30)
        # 2 levels x (20 + 30) minutes = 100 minutes at 30 per day
        assert path.summary.estimated_days == 4

    def test_content_types_per_level(self, generator):
        path = generator.generate(LearnerSnapshot(), ContentCatalog(), "causal_analysis", 3)
        for level in (1, 2, 3):
            types = {s.content_type for s in path.graph if s.level == level}
            assert types == {ContentType.THEORY, ContentType.PRACTICE}
