"""
Unit tests for LevelUnlockEvaluator.
"""

import pytest

from config import UnlockCriteria
from thinkpath.adaptive.level_unlock import LevelUnlockEvaluator, motivational_message
from thinkpath.adaptive.models import LevelProgress
from thinkpath.core.errors import InvalidTransitionError, RequestValidationError


@pytest.fixture
def evaluator(settings):
    return LevelUnlockEvaluator.from_settings(settings)


def _progress():
    return LevelProgress(user_id="u1", thinking_type_id="causal_analysis")


class TestCheckLevelUnlock:
    def test_meets_level_two_criteria(self, evaluator):
        result = evaluator.check_level_unlock(1, 10, 85.0)
        assert result.can_unlock is True
        assert result.next_level == 2

    def test_accuracy_shortfall_only(self, evaluator):
        result = evaluator.check_level_unlock(1, 10, 79.0)
        assert result.can_unlock is False
        assert result.questions_needed == 0
        assert result.accuracy_needed == pytest.approx(1.0)
        assert result.message == "Raise accuracy to 80% (current 79.0%)"
        assert "questions" not in result.message

    def test_questions_shortfall_only(self, evaluator):
        result = evaluator.check_level_unlock(2, 5, 90.0)
        assert result.can_unlock is False
        assert result.message == "Complete 3 more questions to unlock Level 3"

    def test_both_shortfalls(self, evaluator):
        result = evaluator.check_level_unlock(3, 2, 50.0)
        assert result.message == "Complete 4 more questions and raise accuracy to 70% (current 50.0%)"

    def test_message_is_deterministic(self, evaluator):
        first = evaluator.check_level_unlock(4, 3, 60.0)
        second = evaluator.check_level_unlock(4, 3, 60.0)
        assert first == second

    def test_highest_level(self, evaluator):
        result = evaluator.check_level_unlock(5, 100, 100.0)
        assert result.can_unlock is False
        assert result.next_level is None

    def test_custom_criteria_table(self):
        evaluator = LevelUnlockEvaluator({2: UnlockCriteria(2, 3, 50.0)})
        assert evaluator.check_level_unlock(1, 3, 50.0).can_unlock is True


class TestLevelProgressPercent:
    def test_half_questions_half_accuracy(self, evaluator):
        # questions 5/10 -> 50, accuracy 80/80 -> 100
        assert evaluator.level_progress_percent(5, 80.0, 2) == 75

    def test_capped_components(self, evaluator):
        assert evaluator.level_progress_percent(50, 100.0, 2) == 100

    def test_unknown_target(self, evaluator):
        assert evaluator.level_progress_percent(5, 80.0, 9) == 0


class TestRecordQuestion:
    def test_ten_questions_at_85_unlocks_level_two(self, evaluator, now):
        progress = _progress()
        event = None
        for _ in range(10):
            result, event = evaluator.record_question(progress, 1, 85.0, now=now)
        assert result.can_unlock is True
        assert event is not None and event.level == 2
        assert progress.unlocked[2] is True
        assert progress.current_level == 2
        assert progress.levels[1].questions_completed == 10
        assert progress.levels[1].average_score == pytest.approx(85.0)
        assert progress.levels[1].progress == pytest.approx(100.0)

    def test_ten_questions_at_79_stays_locked(self, evaluator, now):
        progress = _progress()
        for _ in range(10):
            result, event = evaluator.record_question(progress, 1, 79.0, now=now)
        assert event is None
        assert progress.unlocked[2] is False
        assert "accuracy" in result.message and "questions" not in result.message

    def test_running_average(self, evaluator, now):
        progress = _progress()
        evaluator.record_question(progress, 1, 100.0, now=now)
        evaluator.record_question(progress, 1, 50.0, now=now)
        assert progress.levels[1].average_score == pytest.approx(75.0)
        assert progress.average_score == pytest.approx(75.0)
        assert progress.last_practice_at == now

    def test_unlock_is_monotonic(self, evaluator, now):
        progress = _progress()
        for _ in range(10):
            evaluator.record_question(progress, 1, 90.0, now=now)
        assert progress.unlocked[2]
        for _ in range(20):
            _, event = evaluator.record_question(progress, 1, 0.0, now=now)
            assert event is None
        assert progress.unlocked[2] is True
        assert progress.current_level == 2

    def test_event_emitted_once(self, evaluator, now):
        progress = _progress()
        events = [evaluator.record_question(progress, 1, 90.0, now=now)[1] for _ in range(12)]
        assert sum(1 for e in events if e is not None) == 1

    def test_locked_level_rejected(self, evaluator, now):
        with pytest.raises(InvalidTransitionError):
            evaluator.record_question(_progress(), 3, 90.0, now=now)

    def test_out_of_range_score_rejected(self, evaluator, now):
        with pytest.raises(RequestValidationError):
            evaluator.record_question(_progress(), 1, 120.0, now=now)


def test_motivational_message_bands():
    assert "unlocked" in motivational_message(100, 3)
    assert "Almost" in motivational_message(85, 3)
    assert motivational_message(10, 3).startswith("Start")
