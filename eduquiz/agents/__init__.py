"""
AI agents for quiz generation.

This module contains LangChain-based agents (LLM-powered):
- Quiz generation (multiple-choice questions from educational text)
- Personalized explanations of answers

Note: QuizSession is in eduquiz.models (pure logic, not an agent)
"""

from .quiz_generator import (
    FALLBACK_EXPLANATION,
    ExplainAnswerRequest,
    GenerateQuizRequest,
    QuestionGenerator,
    QuizGenerator,
    explain_or_fallback,
)

__all__ = [
    "FALLBACK_EXPLANATION",
    "ExplainAnswerRequest",
    "GenerateQuizRequest",
    "QuestionGenerator",
    "QuizGenerator",
    "explain_or_fallback",
]
