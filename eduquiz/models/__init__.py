"""
Data models for adaptive quizzes.

This module contains core data models (pure logic, no LLM calls):
- Question: Immutable multiple-choice question
- QuizSession: Forward-only quiz state machine with the adaptive checkpoint
- AnswerRecord: One submitted answer
- next_difficulty: Difficulty policy
"""

from .difficulty import DIFFICULTY_LEVELS, DifficultyLevel, next_difficulty
from .question import Question
from .quiz_session import AnswerRecord, QuizSession, SessionState, SupplementalRequest

__all__ = [
    "DIFFICULTY_LEVELS",
    "DifficultyLevel",
    "next_difficulty",
    "Question",
    "AnswerRecord",
    "QuizSession",
    "SessionState",
    "SupplementalRequest",
]
