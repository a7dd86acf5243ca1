# SQLAlchemy models
from .activity import (
    DailyStreak,
    PracticeContent,
    PracticeSession,
    TheoryContent,
)
from .base import Base
from .progress import (
    ConceptMasteryRow,
    LearningPathRow,
    LevelProgressRow,
)

__all__ = [
    "Base",
    "ConceptMasteryRow",
    "DailyStreak",
    "LearningPathRow",
    "LevelProgressRow",
    "PracticeContent",
    "PracticeSession",
    "TheoryContent",
]
