"""
Question model - an immutable multiple-choice question.

Questions are created by the quiz generator and owned by the quiz session.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ..exceptions import ValidationError
from .difficulty import DifficultyLevel


@dataclass(frozen=True)
class Question:
    """
    A single multiple-choice question.

    Attributes:
        question_id: Unique identifier (``q-<uuid4>``)
        prompt: The question text
        options: Exactly four answer options, in display order
        correct_option_index: Index of the correct option (0-3)
        difficulty: Difficulty the question was requested at
        explanation: Why the correct option is right
        concept: Short label for the knowledge unit being tested
    """
    question_id: str
    prompt: str
    options: Tuple[str, ...]
    correct_option_index: int
    difficulty: DifficultyLevel
    explanation: str
    concept: str

    def __post_init__(self):
        # Lists passed by callers are frozen too
        object.__setattr__(self, "options", tuple(self.options))
        if len(self.options) != 4:
            raise ValidationError(
                f"Question {self.question_id} must have exactly 4 options, got {len(self.options)}"
            )
        index = self.correct_option_index
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValidationError(
                f"Question {self.question_id} correct_option_index must be an integer, got {index!r}"
            )
        if not (0 <= index < len(self.options)):
            raise ValidationError(
                f"Question {self.question_id} correct_option_index must be in [0, 3], "
                f"got {self.correct_option_index}"
            )

    @property
    def correct_answer_text(self) -> str:
        return self.options[self.correct_option_index]

    def option_text(self, index: int) -> str:
        return self.options[index]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary using the generator's wire names."""
        return {
            "id": self.question_id,
            "question": self.prompt,
            "options": list(self.options),
            "correctAnswer": self.correct_option_index,
            "difficulty": self.difficulty,
            "explanation": self.explanation,
            "concept": self.concept,
        }

