"""
Error taxonomy for the adaptive quiz engine.

- ValidationError: bad caller input, rejected before the generator is invoked
- GenerationError: generator unavailable or returned unusable data
- InvalidTransition: a quiz session operation called in the wrong state
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional


class QuizError(Exception):
    """Base class for all quiz engine errors."""


class ValidationError(QuizError, ValueError):
    """Caller supplied input that can never succeed (e.g. content too short)."""


class GenerationErrorKind(str, Enum):
    UPSTREAM_FAILURE = "upstream_failure"
    MALFORMED_RESPONSE = "malformed_response"


class GenerationError(QuizError):
    """
    The question generator failed for one request.

    Attributes:
        kind: Whether the service failed or its payload was unusable
        details: Individual validation problems found in a malformed payload
    """

    def __init__(
        self,
        message: str,
        kind: GenerationErrorKind = GenerationErrorKind.UPSTREAM_FAILURE,
        details: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.details = details or []

    @property
    def is_malformed(self) -> bool:
        return self.kind is GenerationErrorKind.MALFORMED_RESPONSE


class InvalidTransition(QuizError):
    """A session operation was invoked from a state that does not allow it."""

    def __init__(self, operation: str, state: str, reason: Optional[str] = None):
        message = f"Cannot {operation} while session is {state}"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.operation = operation
        self.state = state
