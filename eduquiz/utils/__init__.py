"""
Utility modules for EduQuiz.

This module contains utility functions:
- validation: JSON Schema validation of generator payloads
- results: Score, timing and per-concept analytics
- logging: Logger configuration with JSON file output
"""

from .validation import (
    SchemaValidator,
    ValidationResult,
    validate_question_batch,
)
from .results import (
    ConceptStat,
    ResultsAggregator,
    concept_breakdown,
    round_half_up,
    study_tip,
)
from .logging import JsonLogFormatter, configure_logger

__all__ = [
    # Validation
    "SchemaValidator",
    "ValidationResult",
    "validate_question_batch",
    # Results analytics
    "ConceptStat",
    "ResultsAggregator",
    "concept_breakdown",
    "round_half_up",
    "study_tip",
    # Logging
    "JsonLogFormatter",
    "configure_logger",
]
