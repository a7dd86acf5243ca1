"""
Integration tests for PracticeService: level unlocks and concept mastery.
"""

from datetime import timedelta

import pytest

from thinkpath.adaptive.practice_service import PracticeService
from thinkpath.core.errors import InvalidTransitionError, RequestValidationError


@pytest.fixture
def service(session, settings):
    return PracticeService(session=session, settings=settings)


def _answer(service, user, score, level=1, now=None, **extra):
    payload = {"thinking_type_id": "causal_analysis", "level": level, "score": score, **extra}
    return service.record_question_result(user, payload, now=now)


class TestLevelUnlock:
    def test_ten_strong_answers_unlock_level_two(self, service, now):
        results = [_answer(service, "u1", 85, now=now) for _ in range(10)]

        assert all(r.unlocked_level is None for r in results[:9])
        assert results[-1].unlocked_level == 2
        assert results[-1].message == "Level 2 is unlocked!"

        stored = service.get_level_progress("u1", "causal_analysis")
        assert stored.unlocked[2] is True
        assert stored.current_level == 2
        assert stored.levels[1].questions_completed == 10
        assert stored.levels[1].average_score == pytest.approx(85.0)
        assert stored.questions_completed == 10

    def test_accuracy_just_below_threshold(self, service, now):
        results = [_answer(service, "u1", 79, now=now) for _ in range(10)]
        last = results[-1]
        assert last.unlocked_level is None
        assert last.unlock.can_unlock is False
        assert last.unlock.message == "Raise accuracy to 80% (current 79.0%)"
        assert service.get_level_progress("u1", "causal_analysis").unlocked[2] is False

    def test_unlock_survives_later_poor_scores(self, service, now):
        for _ in range(10):
            _answer(service, "u1", 90, now=now)
        for _ in range(20):
            _answer(service, "u1", 0, now=now)

        stored = service.get_level_progress("u1", "causal_analysis")
        assert stored.levels[1].average_score < 80
        assert stored.unlocked[2] is True

    def test_practice_at_locked_level_rejected(self, service, now):
        with pytest.raises(InvalidTransitionError):
            _answer(service, "u1", 90, level=3, now=now)

    def test_unknown_user_has_level_one_only(self, service):
        progress = service.get_level_progress("nobody", "causal_analysis")
        assert progress.unlocked[1] is True
        assert progress.highest_unlocked == 1

    def test_invalid_score(self, service, now):
        with pytest.raises(RequestValidationError):
            _answer(service, "u1", 140, now=now)


class TestConceptMastery:
    def test_explicit_concepts_updated(self, service, now):
        first = _answer(service, "u1", 80, now=now, concept_keys=["confounding_factors"])
        assert [c.concept_key for c in first.concepts_updated] == ["confounding_factors"]
        assert first.concepts_updated[0].mastery_level == pytest.approx(0.8)

        second = _answer(service, "u1", 40, now=now, concept_keys=["confounding_factors"])
        state = second.concepts_updated[0]
        assert state.mastery_level == pytest.approx(0.6)
        assert state.practice_count == 2

    def test_concepts_from_tags(self, service, now):
        result = _answer(service, "u1", 70, now=now, tags=["reverse direction"])
        assert [c.concept_key for c in result.concepts_updated] == ["reverse_causality"]

    def test_unknown_concept_rejected(self, service, now):
        with pytest.raises(RequestValidationError):
            _answer(service, "u1", 70, now=now, concept_keys=["straw_man"])

    def test_review_list_longest_idle_first(self, service, now):
        _answer(service, "u1", 50, now=now - timedelta(days=10), concept_keys=["causal_chain"])
        _answer(service, "u1", 30, now=now - timedelta(days=8), concept_keys=["reverse_causality"])
        _answer(service, "u1", 90, now=now - timedelta(days=20), concept_keys=["confounding_factors"])
        _answer(service, "u1", 20, now=now - timedelta(days=2), concept_keys=["necessity_sufficiency"])

        review = service.concepts_needing_review("u1", now=now)
        assert [c.concept_key for c in review] == ["causal_chain", "reverse_causality"]
        assert review[0].days_since_practice == 10
        assert review[0].effective_mastery < review[0].mastery_level

    def test_mastery_summary_covers_every_dimension(self, service, now):
        _answer(service, "u1", 60, now=now, concept_keys=["causal_chain"])
        summary = service.mastery_summary("u1", now=now)
        assert len(summary) == 5
        assert summary["causal_analysis"].concept_count == 1
        assert summary["causal_analysis"].average_mastery == pytest.approx(0.6)
        assert summary["fallacy_detection"].concept_count == 0
