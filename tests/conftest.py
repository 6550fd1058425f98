"""
Shared pytest fixtures and helpers for EduQuiz tests.

This file is automatically discovered by pytest and provides fixtures
available to all tests, plus a deterministic stand-in for the LLM-backed
question generator.
"""

import itertools
import sys
import threading
from pathlib import Path
from typing import List, Optional

import pytest

# Make the package importable without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))

from eduquiz.exceptions import GenerationError, GenerationErrorKind
from eduquiz.models.question import Question

SAMPLE_CONTENT = (
    "Photosynthesis is the process by which plants and other organisms convert light "
    "energy into chemical energy. This process occurs in chloroplasts, specifically in "
    "structures called thylakoids. The process involves two main stages: the light "
    "reactions and the Calvin cycle."
)

_ids = itertools.count(1)


def make_question(
    concept: str = "photosynthesis",
    correct: int = 0,
    difficulty: str = "medium",
    question_id: Optional[str] = None,
) -> Question:
    """Build a valid question with predictable option text."""
    return Question(
        question_id=question_id or f"q-test-{next(_ids)}",
        prompt=f"Which statement about {concept} is true?",
        options=("Option A", "Option B", "Option C", "Option D"),
        correct_option_index=correct,
        difficulty=difficulty,
        explanation=f"Option {'ABCD'[correct]} describes {concept}.",
        concept=concept,
    )


class StubQuestionGenerator:
    """
    Deterministic QuestionGenerator for tests.

    Every generated question has option 0 correct. Concepts cycle through
    ``concepts``. Set ``fail_difficulties`` to make requests at those levels
    raise GenerationError, or ``gate`` to hold generation until the event is set.
    ``entered`` is set as soon as any generate() call has started.
    """

    def __init__(
        self,
        concepts: Optional[List[str]] = None,
        fail_difficulties: Optional[set] = None,
        gate: Optional[threading.Event] = None,
        explanation: str = "Because option A is right.",
        fail_explain: bool = False,
    ):
        self.concepts = concepts or ["photosynthesis", "calvin cycle", "light reactions"]
        self.fail_difficulties = fail_difficulties or set()
        self.gate = gate
        self.explanation = explanation
        self.fail_explain = fail_explain
        self.calls = []
        self.explain_calls = []
        self.entered = threading.Event()
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def generate(self, content, difficulty, count, previous_performance=None):
        with self._lock:
            self.calls.append(
                {
                    "content": content,
                    "difficulty": difficulty,
                    "count": count,
                    "previous_performance": previous_performance,
                }
            )
        self.entered.set()
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if difficulty in self.fail_difficulties:
            raise GenerationError(
                "stub generator unavailable", kind=GenerationErrorKind.UPSTREAM_FAILURE
            )
        questions = []
        for i in range(count):
            n = next(self._counter)
            questions.append(
                Question(
                    question_id=f"stub-{n}",
                    prompt=f"Stub question {n}?",
                    options=("A", "B", "C", "D"),
                    correct_option_index=0,
                    difficulty=difficulty,
                    explanation="A is correct.",
                    concept=self.concepts[i % len(self.concepts)],
                )
            )
        return questions

    def explain(self, question, user_answer, correct_answer, performance_percent):
        self.explain_calls.append(
            {
                "question_id": question.question_id,
                "user_answer": user_answer,
                "correct_answer": correct_answer,
                "performance": performance_percent,
            }
        )
        if self.fail_explain:
            raise GenerationError("stub explanation unavailable")
        return self.explanation


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def tick(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def sample_content():
    return SAMPLE_CONTENT


@pytest.fixture
def stub_generator():
    return StubQuestionGenerator()


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_token_tracker():
    """
    Auto-fixture to reset token tracker before each test.

    This ensures tests don't interfere with each other.
    """
    from eduquiz.config import token_tracker

    token_tracker.reset()
    yield
    token_tracker.reset()


# Pytest hooks for better test output


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        if "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
