"""Quiz Drill: multiple-choice self-quizzing with mastery tracking."""

__version__ = "0.1.0"
