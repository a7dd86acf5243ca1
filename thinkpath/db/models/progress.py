"""
Learner Progress Models.

SQLAlchemy models owned by the engine:
- Learning path state (one row per user and path type, steps as JSON)
- Per-dimension level progress with unlock flags
- Per-concept mastery
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class LearningPathRow(Base):
    """
    Persisted learning path for one user.

    Steps are stored as an ordered JSON array; the version column is used for
    optimistic locking so two concurrent writers can never both win.
    """

    __tablename__ = "learning_path_state"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    path_type: Mapped[str] = mapped_column(String(32), nullable=False, default="adaptive")

    # Generation parameters
    target_dimensions: Mapped[list[str]] = mapped_column(JSON, default=list)
    learning_style: Mapped[str] = mapped_column(String(32), default="balanced")
    target_level: Mapped[int] = mapped_column(Integer, default=5)

    # Step arena
    steps: Mapped[list[dict[str, Any]]] = mapped_column(JSON, default=list)
    current_step_index: Mapped[int] = mapped_column(Integer, default=0)

    # Derived counters, recomputed on every write
    total_steps: Mapped[int] = mapped_column(Integer, default=0)
    completed_steps: Mapped[int] = mapped_column(Integer, default=0)
    total_time_spent: Mapped[int] = mapped_column(Integer, default=0)
    estimated_time_left: Mapped[int] = mapped_column(Integer, default=0)

    status: Mapped[str] = mapped_column(String(16), default="active")  # 'active', 'completed'
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        UniqueConstraint("user_id", "path_type", name="uq_learning_path_user_type"),
        Index("idx_learning_path_status", "user_id", "status"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return (
            f"<LearningPathRow user={self.user_id} status={self.status} "
            f"{self.completed_steps}/{self.total_steps} v{self.version}>"
        )

    @property
    def is_active(self) -> bool:
        return self.status == "active"


class LevelProgressRow(Base):
    """
    Level progress for one user in one thinking dimension.

    Each level keeps its own (progress %, questions, running average) tuple and
    an unlocked flag. Level 1 is always unlocked and flags never go back to False.
    Writes are checked against the version column like the learning path row.
    """

    __tablename__ = "level_progress"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    thinking_type_id: Mapped[str] = mapped_column(String(64), nullable=False)

    current_level: Mapped[int] = mapped_column(Integer, default=1)
    questions_completed: Mapped[int] = mapped_column(Integer, default=0)
    average_score: Mapped[float] = mapped_column(Float, default=0.0)
    last_practice_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    level1_progress: Mapped[float] = mapped_column(Float, default=0.0)
    level1_questions_completed: Mapped[int] = mapped_column(Integer, default=0)
    level1_average_score: Mapped[float] = mapped_column(Float, default=0.0)
    level1_unlocked: Mapped[bool] = mapped_column(Boolean, default=True)

    level2_progress: Mapped[float] = mapped_column(Float, default=0.0)
    level2_questions_completed: Mapped[int] = mapped_column(Integer, default=0)
    level2_average_score: Mapped[float] = mapped_column(Float, default=0.0)
    level2_unlocked: Mapped[bool] = mapped_column(Boolean, default=False)

    level3_progress: Mapped[float] = mapped_column(Float, default=0.0)
    level3_questions_completed: Mapped[int] = mapped_column(Integer, default=0)
    level3_average_score: Mapped[float] = mapped_column(Float, default=0.0)
    level3_unlocked: Mapped[bool] = mapped_column(Boolean, default=False)

    level4_progress: Mapped[float] = mapped_column(Float, default=0.0)
    level4_questions_completed: Mapped[int] = mapped_column(Integer, default=0)
    level4_average_score: Mapped[float] = mapped_column(Float, default=0.0)
    level4_unlocked: Mapped[bool] = mapped_column(Boolean, default=False)

    level5_progress: Mapped[float] = mapped_column(Float, default=0.0)
    level5_questions_completed: Mapped[int] = mapped_column(Integer, default=0)
    level5_average_score: Mapped[float] = mapped_column(Float, default=0.0)
    level5_unlocked: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "thinking_type_id", name="uq_level_progress_user_type"),
    )
    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<LevelProgressRow user={self.user_id} type={self.thinking_type_id} level={self.current_level}>"


class ConceptMasteryRow(Base):
    """Mastery of one concept for one user (0-1 scale). Never deleted."""

    __tablename__ = "concept_mastery"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    thinking_type_id: Mapped[str] = mapped_column(String(64), nullable=False)
    concept_key: Mapped[str] = mapped_column(String(64), nullable=False)

    mastery_level: Mapped[float] = mapped_column(Float, default=0.0)
    practice_count: Mapped[int] = mapped_column(Integer, default=0)
    last_practiced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "thinking_type_id", "concept_key", name="uq_concept_mastery"),
        Index("idx_concept_mastery_review", "user_id", "last_practiced_at"),
    )

    def __repr__(self) -> str:
        return f"<ConceptMasteryRow user={self.user_id} concept={self.concept_key} mastery={self.mastery_level:.2f}>"
