"""
Configuration management for EduQuiz.

This module centralizes all configuration settings following 12-factor app principles:
- Secrets loaded from environment variables
- Sensible defaults for development
- Single source of truth for quiz thresholds
- Thread-safe token tracking
"""

import os
import threading
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


@dataclass
class ModelConfig:
    """LLM model configuration with OpenAI API settings."""

    api_key: str = field(default_factory=lambda: os.getenv("OPENAI_API_KEY", ""))
    model_name: str = field(default_factory=lambda: os.getenv("OPENAI_MODEL", "gpt-4"))
    base_url: Optional[str] = field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL")
    )

    # Quiz generation
    generation_temperature: float = 0.7
    generation_max_tokens: int = 2000

    # Personalized explanations
    explanation_temperature: float = 0.8
    explanation_max_tokens: int = 200

    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT", "60.0"))
    )

    # Reproducibility
    deterministic: bool = False  # Set to True for reproducible outputs (temp=0)

    def __post_init__(self):
        """Apply deterministic mode if enabled."""
        if self.deterministic:
            self.generation_temperature = 0.0
            self.explanation_temperature = 0.0


@dataclass
class QuizConfig:
    """Quiz, adaptation and results thresholds (all percentages are 0-100)."""

    initial_difficulty: str = "medium"
    questions_per_quiz: int = 5

    # Content floor enforced before the generator is called
    min_content_length: int = 50

    # Mid-quiz checkpoint
    checkpoint_index: int = 2
    checkpoint_low_score: float = 40.0  # score < low -> easy supplemental batch
    checkpoint_high_score: float = 80.0  # score > high -> hard supplemental batch
    supplemental_batch_size: int = 3

    # Difficulty policy (inclusive thresholds)
    escalate_threshold: float = 80.0
    deescalate_threshold: float = 40.0

    # Concept buckets
    strong_concept_threshold: float = 80.0
    weak_concept_threshold: float = 70.0

    # Background generator calls
    max_workers: int = field(
        default_factory=lambda: int(os.getenv("QUIZ_MAX_WORKERS", "2"))
    )


@dataclass
class LoggingConfig:
    """Logging and metrics configuration with env-driven pricing."""

    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_tokens: bool = True

    cost_per_1k_input: float = field(
        default_factory=lambda: float(os.getenv("COST_PER_1K_INPUT", "0.03"))
    )
    cost_per_1k_output: float = field(
        default_factory=lambda: float(os.getenv("COST_PER_1K_OUTPUT", "0.06"))
    )


class Config:
    """
    Main configuration class. Singleton pattern.

    Usage:
        from eduquiz.config import config

        api_key = config.model.api_key
        batch = config.quiz.supplemental_batch_size
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance.model = ModelConfig()
            cls._instance.quiz = QuizConfig()
            cls._instance.logging = LoggingConfig()
        return cls._instance

    def validate(self) -> list[str]:
        """
        Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.model.api_key:
            errors.append("OPENAI_API_KEY not set in environment")

        for name in ("generation_temperature", "explanation_temperature"):
            value = getattr(self.model, name)
            if not (0 <= value <= 2):
                errors.append(f"{name} must be in [0, 2], got {value}")

        for name in ("generation_max_tokens", "explanation_max_tokens"):
            value = getattr(self.model, name)
            if value <= 0:
                errors.append(f"{name} must be > 0, got {value}")

        from .models.difficulty import DIFFICULTY_LEVELS

        quiz = self.quiz
        if quiz.initial_difficulty not in DIFFICULTY_LEVELS:
            errors.append(
                f"initial_difficulty must be one of {DIFFICULTY_LEVELS}, got {quiz.initial_difficulty}"
            )

        if quiz.min_content_length < 1:
            errors.append(
                f"min_content_length must be >= 1, got {quiz.min_content_length}"
            )

        if quiz.checkpoint_index < 0:
            errors.append(f"checkpoint_index must be >= 0, got {quiz.checkpoint_index}")

        if quiz.supplemental_batch_size < 1:
            errors.append(
                f"supplemental_batch_size must be >= 1, got {quiz.supplemental_batch_size}"
            )

        if quiz.max_workers < 1:
            errors.append(f"max_workers must be >= 1, got {quiz.max_workers}")

        for name in (
            "checkpoint_low_score",
            "checkpoint_high_score",
            "escalate_threshold",
            "deescalate_threshold",
            "strong_concept_threshold",
            "weak_concept_threshold",
        ):
            value = getattr(quiz, name)
            if not (0 <= value <= 100):
                errors.append(f"{name} must be in [0, 100], got {value}")

        if quiz.deescalate_threshold >= quiz.escalate_threshold:
            errors.append(
                f"deescalate_threshold ({quiz.deescalate_threshold}) must be < "
                f"escalate_threshold ({quiz.escalate_threshold})"
            )

        return errors


# Global config instance
config = Config()


class TokenTracker:
    """
    Thread-safe tracker for token usage and estimated costs.

    Usage:
        from eduquiz.config import token_tracker

        token_tracker.add_tokens(input_tokens=100, output_tokens=50)
        print(token_tracker.summary())
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.input_tokens = 0
        self.output_tokens = 0
        self.total_calls = 0

    def add_tokens(self, input_tokens: int, output_tokens: int):
        """Add tokens from an API call (thread-safe)."""
        with self._lock:
            self.input_tokens += input_tokens
            self.output_tokens += output_tokens
            self.total_calls += 1

    def total_tokens(self) -> int:
        with self._lock:
            return self.input_tokens + self.output_tokens

    def estimated_cost(self) -> float:
        """Calculate estimated cost in USD (thread-safe)."""
        with self._lock:
            return self._cost(self.input_tokens, self.output_tokens)

    def summary(self) -> str:
        """Get formatted summary of usage (thread-safe, no deadlock)."""
        stats = self.get_stats()
        return (
            "Token Usage Summary:\n"
            f"  API Calls: {stats['calls']}\n"
            f"  Input Tokens: {stats['input_tokens']:,}\n"
            f"  Output Tokens: {stats['output_tokens']:,}\n"
            f"  Total Tokens: {stats['total_tokens']:,}\n"
            f"  Estimated Cost: ${stats['estimated_cost']:.4f}"
        )

    def reset(self):
        """Reset counters (thread-safe)."""
        with self._lock:
            self.input_tokens = 0
            self.output_tokens = 0
            self.total_calls = 0

    def get_stats(self) -> dict:
        """Get current stats as dict (thread-safe)."""
        # Lock is held once; _cost must not re-acquire it
        with self._lock:
            input_tokens = self.input_tokens
            output_tokens = self.output_tokens
            total_calls = self.total_calls
            est_cost = self._cost(input_tokens, output_tokens)

        return {
            "calls": total_calls,
            "input_tokens": input_tokens,
            "output_tokens": output_tokens,
            "total_tokens": input_tokens + output_tokens,
            "estimated_cost": est_cost,
        }

    @staticmethod
    def _cost(input_tokens: int, output_tokens: int) -> float:
        input_cost = (input_tokens / 1000) * config.logging.cost_per_1k_input
        output_cost = (output_tokens / 1000) * config.logging.cost_per_1k_output
        return input_cost + output_cost


# Global token tracker instance
token_tracker = TokenTracker()
