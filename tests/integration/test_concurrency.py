"""
Concurrent writers against a file-backed SQLite database.

Each Session is its own connection, so a lost update shows up the same way it
would with two API workers.
"""

import pytest
from sqlalchemy.orm import Session

from thinkpath.adaptive.learning_path_service import LearningPathService
from thinkpath.adaptive.level_unlock import LevelUnlockEvaluator
from thinkpath.adaptive.models import StepAction
from thinkpath.adaptive.path_generator import ContentCatalog, LearnerSnapshot, PathGenerator
from thinkpath.adaptive.practice_service import PracticeService
from thinkpath.adaptive.repository import LevelProgressRepository, PathStateRepository
from thinkpath.core.errors import ConcurrencyConflictError, retry_on_conflict
from thinkpath.db import database


@pytest.fixture
def scoped_engine(file_engine, monkeypatch):
    """Route session_scope() to the file engine for services created without a session."""
    monkeypatch.setattr(database, "_engine", None)
    database.configure_engine(file_engine)
    return file_engine


def _seed_path(engine, user_id, now, settings):
    with Session(engine) as session:
        LearningPathService(session=session, settings=settings).generate_path(
            user_id,
            {"thinking_type_id": "causal_analysis", "target_level": 2, "learning_style": "theory_first"},
            now=now,
        )
        session.commit()


def test_stale_path_write_is_rejected(file_engine, settings, now):
    _seed_path(file_engine, "u1", now, settings)

    first = Session(file_engine)
    second = Session(file_engine)
    try:
        repo_a, repo_b = PathStateRepository(first), PathStateRepository(second)
        row_a, row_b = repo_a.load_active("u1"), repo_b.load_active("u1")
        graph_a, graph_b = repo_a.graph_of(row_a), repo_b.graph_of(row_b)

        graph_a.apply_action("theory_causal_analysis_1", StepAction.COMPLETE, now=now)
        repo_a.save_graph(row_a, graph_a, current_step_index=0, now=now)
        first.commit()

        graph_b.apply_action("theory_causal_analysis_1", StepAction.START, now=now)
        with pytest.raises(ConcurrencyConflictError):
            repo_b.save_graph(row_b, graph_b, current_step_index=0, now=now)
        # the owner of the session decides when to roll back
        assert second.is_active is False
        second.rollback()
        assert second.is_active is True
    finally:
        first.close()
        second.close()

    with Session(file_engine) as check:
        row = PathStateRepository(check).load_active("u1", for_update=False)
        assert row.completed_steps == 1
        assert row.version == 2


def test_stale_level_progress_write_is_rejected(file_engine, settings, now):
    with Session(file_engine) as session:
        PracticeService(session=session, settings=settings).record_question_result(
            "u4", {"thinking_type_id": "causal_analysis", "level": 1, "score": 90}, now=now
        )
        session.commit()

    evaluator = LevelUnlockEvaluator.from_settings(settings)
    first = Session(file_engine)
    second = Session(file_engine)
    try:
        repo_a, repo_b = LevelProgressRepository(first), LevelProgressRepository(second)
        progress_a = repo_a.get("u4", "causal_analysis", for_update=True)
        progress_b = repo_b.get("u4", "causal_analysis", for_update=True)

        evaluator.record_question(progress_a, 1, 90, now=now)
        repo_a.save(progress_a)
        first.commit()

        evaluator.record_question(progress_b, 1, 90, now=now)
        with pytest.raises(ConcurrencyConflictError):
            repo_b.save(progress_b)
    finally:
        first.close()
        second.close()

    with Session(file_engine) as check:
        stored = LevelProgressRepository(check).get("u4", "causal_analysis")
        assert stored.levels[1].questions_completed == 2
        assert stored.questions_completed == 2


def test_retried_question_is_counted(scoped_engine, settings, now):
    service = PracticeService(settings=settings)
    attempts = []

    def record_once_conflicted():
        attempts.append(1)
        if len(attempts) == 1:
            raise ConcurrencyConflictError("level progress of u5/causal_analysis was modified concurrently")
        return service.record_question_result(
            "u5", {"thinking_type_id": "causal_analysis", "level": 1, "score": 80}, now=now
        )

    for _ in range(2):
        attempts.clear()
        retry_on_conflict(record_once_conflicted)

    stored = service.get_level_progress("u5", "causal_analysis")
    assert stored.levels[1].questions_completed == 2
    assert stored.levels[1].average_score == pytest.approx(80.0)


def test_duplicate_path_creation_is_a_conflict(file_engine, settings, now):
    generator = PathGenerator(settings)
    first = Session(file_engine)
    second = Session(file_engine)
    try:
        repo_a, repo_b = PathStateRepository(first), PathStateRepository(second)
        assert repo_a.load("u2") is None
        assert repo_b.load("u2") is None

        graph = generator.generate(LearnerSnapshot(), ContentCatalog(), "causal_analysis", 1).graph
        repo_a.save_graph(repo_a.create("u2"), graph, now=now)
        first.commit()

        graph = generator.generate(LearnerSnapshot(), ContentCatalog(), "causal_analysis", 1).graph
        with pytest.raises(ConcurrencyConflictError):
            repo_b.save_graph(repo_b.create("u2"), graph, now=now)
    finally:
        first.close()
        second.close()


def test_retry_reloads_fresh_state(scoped_engine, settings, now):
    _seed_path(scoped_engine, "u3", now, settings)
    service = LearningPathService(settings=settings)
    attempts = []

    def complete_once_conflicted():
        attempts.append(1)
        if len(attempts) == 1:
            raise ConcurrencyConflictError("learning path of u3 was modified concurrently")
        return service.update_progress(
            "u3", {"step_id": "theory_causal_analysis_1", "action": "complete", "time_spent": 15}, now=now
        )

    result = retry_on_conflict(complete_once_conflicted)
    assert len(attempts) == 2
    assert result.path_progress.completed_steps == 1

    view = service.get_current_path("u3")
    assert view.path.total_time_spent == 15
