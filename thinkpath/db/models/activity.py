"""
External Activity Models.

Tables written by other parts of the platform. The engine only reads them:
content catalogs seed path steps, the session and streak logs feed the
progress aggregator.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utcnow


class TheoryContent(Base):
    """Theory lesson catalog, one lesson per dimension and level."""

    __tablename__ = "theory_content"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    thinking_type_id: Mapped[str] = mapped_column(String(64), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    estimated_time: Mapped[int | None] = mapped_column(Integer)  # minutes
    is_published: Mapped[bool] = mapped_column(Boolean, default=True)

    __table_args__ = (Index("idx_theory_content_type_level", "thinking_type_id", "level"),)


class PracticeContent(Base):
    """Practice material catalog; several items may exist per level."""

    __tablename__ = "practice_content"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    thinking_type_id: Mapped[str] = mapped_column(String(64), nullable=False)
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    estimated_time: Mapped[int | None] = mapped_column(Integer)  # minutes
    order_index: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (Index("idx_practice_content_type_level", "thinking_type_id", "level"),)


class PracticeSession(Base):
    """Raw practice session log."""

    __tablename__ = "practice_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    thinking_type_id: Mapped[str] = mapped_column(String(64), nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1)
    score: Mapped[float | None] = mapped_column(Float)
    time_spent: Mapped[int] = mapped_column(Integer, default=0)  # minutes
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    __table_args__ = (Index("idx_practice_sessions_user", "user_id", "thinking_type_id"),)


class DailyStreak(Base):
    """One row per user per day of daily theory practice."""

    __tablename__ = "daily_streaks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    practice_date: Mapped[date] = mapped_column(Date, nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)
    streak_count: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (Index("idx_daily_streaks_user_date", "user_id", "practice_date"),)
