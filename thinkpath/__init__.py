"""thinkpath - adaptive learning path and progress engine."""

__version__ = "1.0.0"
