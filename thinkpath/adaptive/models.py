"""
Adaptive Engine Data Models.

Plain dataclasses passed between the calculators, the path engine, the
aggregator and the recommender. Persistence rows live in thinkpath.db.models.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Optional


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return as_utc(value)
    return as_utc(datetime.fromisoformat(str(value)))


class StepStatus(str, Enum):
    """
    Step lifecycle.

    locked -> available -> in_progress -> completed. Completed is terminal.
    """
    LOCKED = "locked"
    AVAILABLE = "available"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class ContentType(str, Enum):
    THEORY = "theory"
    PRACTICE = "practice"


class LearningStyle(str, Enum):
    """Edge shape between the theory and practice steps of a level."""
    THEORY_FIRST = "theory_first"
    PRACTICE_FIRST = "practice_first"
    BALANCED = "balanced"


class PathStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class StepAction(str, Enum):
    START = "start"
    UPDATE = "update"
    COMPLETE = "complete"


class ReviewUrgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2}[self.value]


class Difficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @classmethod
    def for_level(cls, level: int) -> Difficulty:
        if level <= 2:
            return cls.BEGINNER
        elif level <= 4:
            return cls.INTERMEDIATE
        return cls.ADVANCED


@dataclass
class PathStep:
    """
    One theory or practice activity in a learning path.

    Attributes:
        id: Stable id, e.g. "theory_causal_analysis_2"
        prerequisites: Step ids that must be completed before this step opens
        unlocks: Reverse edges of prerequisites
        estimated_time: Minutes
        time_spent: Minutes accumulated across updates
    """
    id: str
    thinking_type_id: str
    level: int
    content_type: ContentType
    status: StepStatus = StepStatus.LOCKED
    prerequisites: list[str] = field(default_factory=list)
    unlocks: list[str] = field(default_factory=list)
    estimated_time: int = 0
    progress_percent: float = 0.0
    time_spent: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    # Descriptive
    title: str = ""
    content_id: Optional[str] = None
    href: str = ""

    @property
    def is_completed(self) -> bool:
        return self.status == StepStatus.COMPLETED

    @property
    def difficulty(self) -> Difficulty:
        return Difficulty.for_level(self.level)

    def to_record(self) -> dict[str, Any]:
        """Serialize for the JSON steps column."""
        return {
            "id": self.id,
            "thinking_type_id": self.thinking_type_id,
            "level": self.level,
            "content_type": self.content_type.value,
            "status": self.status.value,
            "prerequisites": list(self.prerequisites),
            "unlocks": list(self.unlocks),
            "estimated_time": self.estimated_time,
            "progress_percent": self.progress_percent,
            "time_spent": self.time_spent,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "title": self.title,
            "content_id": self.content_id,
            "href": self.href,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> PathStep:
        return cls(
            id=record["id"],
            thinking_type_id=record["thinking_type_id"],
            level=int(record["level"]),
            content_type=ContentType(record["content_type"]),
            status=StepStatus(record.get("status", StepStatus.LOCKED.value)),
            prerequisites=list(record.get("prerequisites") or []),
            unlocks=list(record.get("unlocks") or []),
            estimated_time=int(record.get("estimated_time") or 0),
            progress_percent=float(record.get("progress_percent") or 0),
            time_spent=int(record.get("time_spent") or 0),
            started_at=parse_timestamp(record.get("started_at")),
            completed_at=parse_timestamp(record.get("completed_at")),
            title=record.get("title") or "",
            content_id=record.get("content_id"),
            href=record.get("href") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        data = self.to_record()
        data["difficulty"] = self.difficulty.value
        return data


@dataclass
class PathSummary:
    total_steps: int
    estimated_total_time: int
    dimensions_covered: list[str]
    level_min: int
    level_max: int
    learning_style: LearningStyle
    estimated_days: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_steps": self.total_steps,
            "estimated_total_time": self.estimated_total_time,
            "dimensions_covered": list(self.dimensions_covered),
            "level_range": {"min": self.level_min, "max": self.level_max},
            "learning_style": self.learning_style.value,
            "estimated_days": self.estimated_days,
        }


@dataclass
class PathProgress:
    completed_steps: int
    total_steps: int
    progress_percent: int
    estimated_time_left: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed_steps": self.completed_steps,
            "total_steps": self.total_steps,
            "progress_percent": self.progress_percent,
            "estimated_time_left": self.estimated_time_left,
        }


@dataclass
class ConceptMasteryState:
    """Stored mastery for one concept plus its read-time decayed view."""
    thinking_type_id: str
    concept_key: str
    mastery_level: float
    practice_count: int = 0
    last_practiced_at: Optional[datetime] = None
    effective_mastery: Optional[float] = None
    days_since_practice: Optional[int] = None
    urgency: ReviewUrgency = ReviewUrgency.LOW

    def to_dict(self) -> dict[str, Any]:
        return {
            "thinking_type_id": self.thinking_type_id,
            "concept_key": self.concept_key,
            "mastery_level": round(self.mastery_level, 4),
            "effective_mastery": None if self.effective_mastery is None else round(self.effective_mastery, 4),
            "practice_count": self.practice_count,
            "last_practiced_at": self.last_practiced_at.isoformat() if self.last_practiced_at else None,
            "days_since_practice": self.days_since_practice,
            "urgency": self.urgency.value,
        }


@dataclass
class LevelStats:
    progress: float = 0.0
    questions_completed: int = 0
    average_score: float = 0.0


@dataclass
class LevelProgress:
    """In-memory view of a LevelProgressRow."""
    user_id: str
    thinking_type_id: str
    current_level: int = 1
    questions_completed: int = 0
    average_score: float = 0.0
    last_practice_at: Optional[datetime] = None
    levels: dict[int, LevelStats] = field(default_factory=lambda: {n: LevelStats() for n in range(1, 6)})
    unlocked: dict[int, bool] = field(default_factory=lambda: {n: n == 1 for n in range(1, 6)})

    @property
    def highest_unlocked(self) -> int:
        return max(n for n, flag in self.unlocked.items() if flag)

    def to_dict(self) -> dict[str, Any]:
        return {
            "thinking_type_id": self.thinking_type_id,
            "current_level": self.current_level,
            "questions_completed": self.questions_completed,
            "average_score": round(self.average_score, 2),
            "levels": {
                n: {
                    "progress": round(stats.progress, 2),
                    "questions_completed": stats.questions_completed,
                    "average_score": round(stats.average_score, 2),
                    "unlocked": self.unlocked[n],
                }
                for n, stats in sorted(self.levels.items())
            },
        }


@dataclass
class UnlockResult:
    """Outcome of checking whether the next level can open."""
    can_unlock: bool
    next_level: Optional[int]
    message: str
    questions_required: int = 0
    required_score: float = 0.0
    questions_needed: int = 0
    accuracy_needed: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "can_unlock": self.can_unlock,
            "next_level": self.next_level,
            "message": self.message,
            "questions_required": self.questions_required,
            "required_score": self.required_score,
            "questions_needed": self.questions_needed,
            "accuracy_needed": round(self.accuracy_needed, 1),
        }


@dataclass
class LevelUnlockEvent:
    user_id: str
    thinking_type_id: str
    level: int
    unlocked_at: datetime


@dataclass
class TodayTask:
    """Single recommended activity for today."""
    thinking_type_id: str
    level: int
    reason: str
    source: str  # 'path', 'mastery_decay', 'default'
    step_id: Optional[str] = None
    content_type: Optional[ContentType] = None
    content_id: Optional[str] = None
    href: Optional[str] = None
    target_concepts: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "thinking_type_id": self.thinking_type_id,
            "level": self.level,
            "reason": self.reason,
            "source": self.source,
            "step_id": self.step_id,
            "content_type": self.content_type.value if self.content_type else None,
            "content_id": self.content_id,
            "href": self.href,
            "target_concepts": list(self.target_concepts),
        }


@dataclass
class OptionalPractice:
    thinking_type_id: str
    level: int
    reason: str
    score: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "thinking_type_id": self.thinking_type_id,
            "level": self.level,
            "reason": self.reason,
            "score": round(self.score, 4),
        }


@dataclass
class Recommendation:
    today_task: TodayTask
    alternatives: list[OptionalPractice] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "today_task": self.today_task.to_dict(),
            "alternatives": [a.to_dict() for a in self.alternatives],
        }
