"""
Adaptive Learning Path & Progress Engine.

Components:
- MasteryCalculator: Per-concept mastery with read-time decay
- LevelUnlockEvaluator: Level 1-5 unlock criteria per dimension
- PathGenerator / StepGraph: Dependency-ordered theory and practice steps
- ProgressAggregator: Weighted progress signals into one percentage
- Recommender: Today's task plus optional alternatives
- LearningPathService / PracticeService: Transactional entry points
"""
from thinkpath.adaptive.models import (
    ConceptMasteryState,
    ContentType,
    LearningStyle,
    LevelProgress,
    LevelUnlockEvent,
    OptionalPractice,
    PathProgress,
    PathStatus,
    PathStep,
    PathSummary,
    Recommendation,
    ReviewUrgency,
    StepAction,
    StepStatus,
    TodayTask,
    UnlockResult,
)
from thinkpath.adaptive.mastery_calculator import MasteryCalculator
from thinkpath.adaptive.level_unlock import LevelUnlockEvaluator
from thinkpath.adaptive.step_graph import StepGraph
from thinkpath.adaptive.path_generator import PathGenerator
from thinkpath.adaptive.progress_aggregator import ProgressAggregator, ProgressSignals, combine_signals
from thinkpath.adaptive.recommender import Recommender
from thinkpath.adaptive.learning_path_service import LearningPathService
from thinkpath.adaptive.practice_service import PracticeService

__all__ = [
    # Services
    "LearningPathService",
    "PracticeService",
    "ProgressAggregator",
    "Recommender",
    # Component classes
    "LevelUnlockEvaluator",
    "MasteryCalculator",
    "PathGenerator",
    "StepGraph",
    "ProgressSignals",
    "combine_signals",
    # Data models
    "ConceptMasteryState",
    "ContentType",
    "LearningStyle",
    "LevelProgress",
    "LevelUnlockEvent",
    "OptionalPractice",
    "PathProgress",
    "PathStatus",
    "PathStep",
    "PathSummary",
    "Recommendation",
    "ReviewUrgency",
    "StepAction",
    "StepStatus",
    "TodayTask",
    "UnlockResult",
]
