"""
Schema validation utilities for generator payloads.

Provides JSON Schema validation with clear error messages for the question
batches returned by the language model. Nothing is repaired: a payload either
matches the schema or is rejected with every problem listed.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from jsonschema import Draft7Validator, validators
from jsonschema import ValidationError as SchemaError

QUESTION_ITEM_SCHEMA: dict = {
    "type": "object",
    "required": ["question", "options", "correctAnswer", "explanation", "concept"],
    "properties": {
        "question": {"type": "string", "minLength": 1},
        "options": {
            "type": "array",
            "items": {"type": "string"},
            "minItems": 4,
            "maxItems": 4,
        },
        "correctAnswer": {"type": "integer", "minimum": 0, "maximum": 3},
        "explanation": {"type": "string"},
        "concept": {"type": "string", "minLength": 1},
        "difficulty": {"type": "string"},
    },
}

QUESTION_BATCH_SCHEMA: dict = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "array",
    "minItems": 1,
    "items": QUESTION_ITEM_SCHEMA,
}


def _is_strict_integer(checker, instance) -> bool:
    """Integers only: JSON 1.0 and booleans are not option indices."""
    return isinstance(instance, int) and not isinstance(instance, bool)


StrictDraft7Validator = validators.extend(
    Draft7Validator,
    type_checker=Draft7Validator.TYPE_CHECKER.redefine("integer", _is_strict_integer),
)


class ValidationResult:
    """
    Result of a validation attempt.

    Attributes:
        valid: Whether data passed validation
        errors: List of error messages
        data: The validated data
    """

    def __init__(self, valid: bool, errors: list[str], data: Any = None):
        self.valid = valid
        self.errors = errors
        self.data = data

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.valid

    def __str__(self) -> str:
        if self.valid:
            return "Validation passed"
        return f"Validation failed with {len(self.errors)} error(s):\n" + "\n".join(
            f"  - {error}" for error in self.errors
        )


class SchemaValidator:
    """
    JSON Schema validator collecting every error, not just the first.

    Usage:
        validator = SchemaValidator(QUESTION_BATCH_SCHEMA)
        result = validator.validate(data)
        if not result:
            print(result.errors)
    """

    def __init__(self, schema: dict):
        self.schema = schema
        self.validator = StrictDraft7Validator(self.schema)

    def validate(self, data: Any) -> ValidationResult:
        errors = [
            self._format_error(error)
            for error in sorted(self.validator.iter_errors(data), key=lambda e: list(e.path))
        ]
        if errors:
            return ValidationResult(valid=False, errors=errors, data=data)
        return ValidationResult(valid=True, errors=[], data=data)

    def _format_error(self, error: SchemaError) -> str:
        """
        Convert a jsonschema error to a human-readable message.

        Args:
            error: jsonschema ValidationError

        Returns:
            Formatted error message with the failing path and validator
        """
        path = " -> ".join(str(p) for p in error.path) if error.path else "root"
        validator_name = getattr(error, "validator", "unknown")
        return f"At '{path}': {error.message} [validator={validator_name}]"


def strip_code_fences(text: str) -> str:
    """Extract the body of a markdown code block if the model wrapped its reply in one."""
    if "```json" in text:
        return text.split("```json")[1].split("```")[0].strip()
    if "```" in text:
        return text.split("```")[1].split("```")[0].strip()
    return text.strip()


def parse_json_payload(text: Optional[str]) -> Any:
    """
    Parse model output as JSON.

    Raises:
        ValueError: If the text is empty or not valid JSON
    """
    if not text or not text.strip():
        raise ValueError("Empty response from generator")
    try:
        return json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise ValueError(f"Response is not valid JSON: {e}") from e


def unwrap_question_list(payload: Any) -> Any:
    """Accept either a bare list of questions or an object with a 'questions' list."""
    if isinstance(payload, dict) and "questions" in payload:
        return payload["questions"]
    return payload


question_batch_validator = SchemaValidator(QUESTION_BATCH_SCHEMA)


def validate_question_batch(payload: Any) -> ValidationResult:
    """
    Validate a parsed generator payload against the question batch schema.

    Example:
        >>> validate_question_batch([]).valid
        False
    """
    return question_batch_validator.validate(unwrap_question_list(payload))
