"""
Unit tests for StepGraph: edges, the unlock cascade and the step state machine.
"""

from datetime import timedelta

import pytest

from thinkpath.adaptive.models import ContentType, PathStep, StepAction, StepStatus
from thinkpath.adaptive.step_graph import StepGraph
from thinkpath.core.errors import InvalidTransitionError, NotFoundError


def _step(step_id, prerequisites=(), status=StepStatus.LOCKED, minutes=10):
    return PathStep(
        id=step_id,
        thinking_type_id="causal_analysis",
        level=1,
        content_type=ContentType.THEORY,
        status=status,
        prerequisites=list(prerequisites),
        estimated_time=minutes,
    )


@pytest.fixture
def diamond():
    """A unlocks B and C; C also needs D."""
    graph = StepGraph([
        _step("A"),
        _step("D"),
        _step("B", ["A"]),
        _step("C", ["A", "D"]),
    ])
    graph.open_roots()
    return graph


class TestConstruction:
    def test_unlocks_are_reverse_edges(self, diamond):
        assert diamond.get("A").unlocks == ["B", "C"]
        assert diamond.get("D").unlocks == ["C"]
        assert diamond.get("B").unlocks == []

    def test_roots_open(self, diamond):
        assert diamond.get("A").status == StepStatus.AVAILABLE
        assert diamond.get("D").status == StepStatus.AVAILABLE
        assert diamond.get("B").status == StepStatus.LOCKED

    def test_unknown_prerequisite_rejected(self):
        with pytest.raises(ValueError):
            StepGraph([_step("A", ["missing"])])

    def test_duplicate_id_rejected(self):
        with pytest.raises(ValueError):
            StepGraph([_step("A"), _step("A")])

    def test_unknown_step_lookup(self, diamond):
        with pytest.raises(NotFoundError):
            diamond.get("Z")

    def test_cycle_detected(self):
        graph = StepGraph([_step("A", ["B"]), _step("B", ["A"])])
        assert "prerequisite graph contains a cycle" in graph.violations()


class TestCascade:
    def test_partial_prerequisites_keep_target_locked(self, diamond, now):
        _, opened, _ = diamond.apply_action("A", StepAction.COMPLETE, now=now)
        assert [s.id for s in opened] == ["B"]
        assert diamond.get("B").status == StepStatus.AVAILABLE
        assert diamond.get("C").status == StepStatus.LOCKED

    def test_last_prerequisite_opens_target(self, diamond, now):
        diamond.apply_action("A", StepAction.COMPLETE, now=now)
        _, opened, _ = diamond.apply_action("D", StepAction.COMPLETE, now=now)
        assert [s.id for s in opened] == ["C"]
        assert diamond.violations() == []


class TestStateMachine:
    def test_start_moves_to_in_progress(self, diamond, now):
        step, opened, changed = diamond.apply_action("A", StepAction.START, now=now)
        assert step.status == StepStatus.IN_PROGRESS
        assert step.started_at == now
        assert opened == [] and changed

    def test_start_twice_keeps_first_timestamp(self, diamond, now):
        diamond.apply_action("A", StepAction.START, now=now)
        step, _, _ = diamond.apply_action("A", StepAction.START, now=now + timedelta(hours=1))
        assert step.started_at == now

    def test_update_sets_progress_and_adds_time(self, diamond, now):
        diamond.apply_action("A", StepAction.UPDATE, progress_percent=40, time_spent=5, now=now)
        step, _, _ = diamond.apply_action("A", StepAction.UPDATE, progress_percent=60, time_spent=7, now=now)
        assert step.status == StepStatus.IN_PROGRESS
        assert step.progress_percent == 60
        assert step.time_spent == 12

    def test_complete_sets_invariant_fields(self, diamond, now):
        step, _, _ = diamond.apply_action("A", StepAction.COMPLETE, time_spent=9, now=now)
        assert step.status == StepStatus.COMPLETED
        assert step.progress_percent == 100
        assert step.completed_at == now
        assert step.time_spent == 9

    def test_locked_step_rejected(self, diamond, now):
        with pytest.raises(InvalidTransitionError):
            diamond.apply_action("C", StepAction.START, now=now)
        assert diamond.get("C").status == StepStatus.LOCKED

    @pytest.mark.parametrize("percent", [-1, 101, 250])
    def test_out_of_range_progress_rejected(self, diamond, now, percent):
        with pytest.raises(InvalidTransitionError):
            diamond.apply_action("A", StepAction.UPDATE, progress_percent=percent, now=now)
        assert diamond.get("A").status == StepStatus.AVAILABLE

    def test_repeat_complete_is_noop(self, diamond, now):
        diamond.apply_action("A", StepAction.COMPLETE, time_spent=5, now=now)
        before = diamond.get("A").to_record()
        step, opened, changed = diamond.apply_action("A", StepAction.COMPLETE, time_spent=5, now=now + timedelta(days=1))
        assert changed is False
        assert opened == []
        assert step.to_record() == before

    def test_completed_is_terminal(self, diamond, now):
        diamond.apply_action("A", StepAction.COMPLETE, now=now)
        with pytest.raises(InvalidTransitionError):
            diamond.apply_action("A", StepAction.UPDATE, progress_percent=10, now=now)


class TestTotals:
    def test_counters_follow_steps(self, diamond, now):
        assert diamond.estimated_time_left == 40
        diamond.apply_action("A", StepAction.COMPLETE, time_spent=12, now=now)
        assert diamond.completed_count == 1
        assert diamond.estimated_time_left == 30
        assert diamond.total_time_spent == 12
        assert diamond.progress_percent() == 25

    def test_next_steps_in_path_order(self, diamond, now):
        diamond.apply_action("A", StepAction.COMPLETE, now=now)
        assert [s.id for s in diamond.next_steps()] == ["D", "B"]

    def test_recently_completed_newest_first(self, diamond, now):
        diamond.apply_action("A", StepAction.COMPLETE, now=now)
        diamond.apply_action("D", StepAction.COMPLETE, now=now + timedelta(minutes=5))
        assert [s.id for s in diamond.recently_completed()] == ["D", "A"]

    def test_records_round_trip_preserves_state(self, diamond, now):
        diamond.apply_action("A", StepAction.COMPLETE, now=now)
        restored = StepGraph.from_records(diamond.to_records())
        assert restored.to_records() == diamond.to_records()
        assert restored.get("A").completed_at == now
