"""
Difficulty policy - maps running performance to the next difficulty level.

Pure logic: no session state, no generator access. Used mid-quiz by the
quiz session and by the orchestrator when restarting with adapted difficulty.
"""

from __future__ import annotations

from typing import Literal, Optional

from ..config import config
from ..exceptions import ValidationError

DifficultyLevel = Literal["easy", "medium", "hard"]

DIFFICULTY_LEVELS: tuple = ("easy", "medium", "hard")


def validate_difficulty(difficulty: str) -> DifficultyLevel:
    """Return ``difficulty`` unchanged or raise ValidationError."""
    if difficulty not in DIFFICULTY_LEVELS:
        raise ValidationError(
            f"Difficulty must be one of {', '.join(DIFFICULTY_LEVELS)}, got {difficulty!r}"
        )
    return difficulty


def validate_percent(value: float, name: str = "score_percent") -> float:
    """Return ``value`` as float if it is a number within [0, 100]."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if not (0 <= value <= 100):
        raise ValidationError(f"{name} must be between 0 and 100, got {value}")
    return float(value)


def next_difficulty(
    current: DifficultyLevel,
    score_percent: float,
    escalate_threshold: Optional[float] = None,
    deescalate_threshold: Optional[float] = None,
) -> DifficultyLevel:
    """
    Decide the difficulty that follows ``current`` for a given score.

    Args:
        current: Difficulty the learner was just assessed at
        score_percent: Score over that assessment (0-100)
        escalate_threshold: Score at or above which difficulty goes up
        deescalate_threshold: Score at or below which difficulty goes down

    Returns:
        The next difficulty level

    Example:
        >>> next_difficulty("easy", 85)
        'medium'
        >>> next_difficulty("hard", 30)
        'medium'
        >>> next_difficulty("medium", 50)
        'medium'
    """
    validate_difficulty(current)
    score = validate_percent(score_percent)

    if escalate_threshold is None:
        escalate_threshold = config.quiz.escalate_threshold
    if deescalate_threshold is None:
        deescalate_threshold = config.quiz.deescalate_threshold

    if score >= escalate_threshold:
        return "medium" if current == "easy" else "hard"
    if score <= deescalate_threshold:
        return "medium" if current == "hard" else "easy"
    return current
