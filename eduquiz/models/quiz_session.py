"""
Quiz Session - forward-only state machine for one attempt at a quiz.

Owns the question sequence, the provisional selection, scoring, per-question
timing and the one-off adaptive checkpoint that asks for supplemental questions.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from ..config import config
from ..exceptions import InvalidTransition, ValidationError
from .difficulty import DifficultyLevel, validate_difficulty
from .question import Question

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    LOADING = "loading"
    AWAITING_ANSWER = "awaiting_answer"
    SHOWING_EXPLANATION = "showing_explanation"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


@dataclass(frozen=True)
class AnswerRecord:
    """
    Learner's submitted answer to one question.

    Attributes:
        question_id: Question identifier
        question_text: Question text at the time it was answered
        chosen_option_index: Option the learner submitted
        correct_option_index: Option that was correct
        elapsed_millis: Time from presentation to submission
        difficulty: Question difficulty
        is_correct: Derived from the two indices
    """
    question_id: str
    question_text: str
    chosen_option_index: int
    correct_option_index: int
    elapsed_millis: int
    difficulty: DifficultyLevel
    is_correct: bool = field(init=False)

    def __post_init__(self):
        if self.elapsed_millis < 0:
            raise ValidationError(f"Elapsed time cannot be negative: {self.elapsed_millis}")
        object.__setattr__(
            self, "is_correct", self.chosen_option_index == self.correct_option_index
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "question": self.question_text,
            "userAnswer": self.chosen_option_index,
            "correctAnswer": self.correct_option_index,
            "isCorrect": self.is_correct,
            "timeTaken": self.elapsed_millis,
            "difficulty": self.difficulty,
        }


@dataclass(frozen=True)
class SupplementalRequest:
    """Ask for more questions, emitted once by the adaptive checkpoint."""

    session_id: str
    difficulty: DifficultyLevel
    count: int
    previous_performance: float


SupplementalCallback = Callable[[SupplementalRequest], None]


class QuizSession:
    """
    One pass through a quiz.

    States:
        LOADING -> AWAITING_ANSWER(0) when the first questions arrive
        AWAITING_ANSWER(i) -> SHOWING_EXPLANATION(i) on submit_answer()
        SHOWING_EXPLANATION(i) -> AWAITING_ANSWER(i+1) | COMPLETED on advance()
        any -> ABANDONED on abandon()

    Supplemental questions may be appended at any time without disturbing
    answered positions or the current index.
    """

    def __init__(
        self,
        questions: Optional[Iterable[Question]] = None,
        starting_difficulty: Optional[DifficultyLevel] = None,
        on_supplemental_request: Optional[SupplementalCallback] = None,
        session_id: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
        checkpoint_index: Optional[int] = None,
    ):
        """
        Initialize quiz session.

        Args:
            questions: Initial question batch (may be empty; session then waits in LOADING)
            starting_difficulty: Difficulty of the initial batch
            on_supplemental_request: Called when the checkpoint wants more questions
            session_id: Session ID (auto-generated if None)
            clock: Monotonic time source in seconds
            checkpoint_index: Question index whose advance triggers the checkpoint
        """
        self.session_id = session_id or f"qs-{uuid.uuid4()}"
        self.starting_difficulty = validate_difficulty(
            starting_difficulty or config.quiz.initial_difficulty
        )
        self.active_difficulty: DifficultyLevel = self.starting_difficulty
        self.on_supplemental_request = on_supplemental_request
        self.checkpoint_index = (
            config.quiz.checkpoint_index if checkpoint_index is None else checkpoint_index
        )
        self._clock = clock

        self.created_at = datetime.now(timezone.utc).isoformat()
        self.completed_at: Optional[str] = None

        self.questions: List[Question] = []
        self.answer_log: List[AnswerRecord] = []
        self.current_index = 0
        self.running_score = 0
        self.selected_option: Optional[int] = None
        self.state = SessionState.LOADING

        self.checkpoint_evaluated = False
        self.supplemental_requests: List[SupplementalRequest] = []

        self._question_started_at = 0.0

        if questions:
            self.append_questions(questions)

    # ------------------------------------------------------------------ queries

    @property
    def current_question(self) -> Optional[Question]:
        if self.state in (SessionState.LOADING, SessionState.COMPLETED):
            return None
        if self.current_index >= len(self.questions):
            return None
        return self.questions[self.current_index]

    @property
    def is_last_question(self) -> bool:
        return self.current_index == len(self.questions) - 1

    @property
    def is_completed(self) -> bool:
        return self.state is SessionState.COMPLETED

    @property
    def is_abandoned(self) -> bool:
        return self.state is SessionState.ABANDONED

    def score_percent(self) -> float:
        """Percentage of submitted answers that were correct (0 before any answer)."""
        if not self.answer_log:
            return 0.0
        return 100.0 * self.running_score / len(self.answer_log)

    def progress_percent(self) -> float:
        if not self.questions:
            return 0.0
        position = min(self.current_index + 1, len(self.questions))
        return 100.0 * position / len(self.questions)

    def question_by_id(self, question_id: str) -> Optional[Question]:
        return next((q for q in self.questions if q.question_id == question_id), None)

    # -------------------------------------------------------------- transitions

    def select_option(self, index: int) -> None:
        """Record a provisional choice for the active question, replacing any earlier one."""
        self._require(SessionState.AWAITING_ANSWER, "select an option")

        question = self.questions[self.current_index]
        if isinstance(index, bool) or not isinstance(index, int):
            raise ValidationError(f"Option index must be an integer, got {index!r}")
        if not (0 <= index < len(question.options)):
            raise ValidationError(
                f"Option index must be between 0 and {len(question.options) - 1}, got {index}"
            )

        self.selected_option = index

    def submit_answer(self) -> AnswerRecord:
        """
        Grade the provisional choice and log it.

        Returns:
            The AnswerRecord appended to the answer log

        Raises:
            InvalidTransition: If no option is selected or the answer was already submitted
        """
        self._require(SessionState.AWAITING_ANSWER, "submit an answer")
        if self.selected_option is None:
            raise InvalidTransition(
                "submit an answer", self.state.value, "no option selected"
            )

        question = self.questions[self.current_index]
        elapsed = self._clock() - self._question_started_at
        record = AnswerRecord(
            question_id=question.question_id,
            question_text=question.prompt,
            chosen_option_index=self.selected_option,
            correct_option_index=question.correct_option_index,
            elapsed_millis=max(0, int(round(elapsed * 1000))),
            difficulty=question.difficulty,
        )

        self.answer_log.append(record)
        if record.is_correct:
            self.running_score += 1

        self.state = SessionState.SHOWING_EXPLANATION
        logger.debug(
            "Session %s answered question %d (%s)",
            self.session_id,
            self.current_index,
            "correct" if record.is_correct else "incorrect",
        )
        return record

    def advance(self) -> SessionState:
        """
        Leave the explanation of the current question.

        Runs the adaptive checkpoint when leaving the checkpoint question, then
        either moves to the next question or completes the session.

        Returns:
            The new state
        """
        self._require(SessionState.SHOWING_EXPLANATION, "advance")

        # Decided before the checkpoint: a batch it triggers never extends this pass
        was_last = self.is_last_question
        self._run_checkpoint()

        if was_last:
            self.state = SessionState.COMPLETED
            self.completed_at = datetime.now(timezone.utc).isoformat()
            logger.info(
                "Session %s completed: %d/%d correct",
                self.session_id,
                self.running_score,
                len(self.answer_log),
            )
            return self.state

        self.current_index += 1
        self._present_current_question()
        return self.state

    def append_questions(
        self,
        questions: Iterable[Question],
        difficulty: Optional[DifficultyLevel] = None,
    ) -> bool:
        """
        Append questions to the tail of the sequence.

        Args:
            questions: Questions to append
            difficulty: Difficulty the batch was generated at; becomes the
                session's active difficulty

        Returns:
            False if the session was abandoned and nothing was appended
        """
        if self.is_abandoned:
            logger.info("Discarding questions for abandoned session %s", self.session_id)
            return False

        batch = list(questions)
        known_ids = {q.question_id for q in self.questions}
        for question in batch:
            if question.question_id in known_ids:
                raise ValidationError(
                    f"Question {question.question_id} is already part of session {self.session_id}"
                )
            known_ids.add(question.question_id)

        if difficulty is not None:
            self.active_difficulty = validate_difficulty(difficulty)

        if not batch:
            return True

        self.questions.extend(batch)

        if self.state is SessionState.LOADING:
            self._present_current_question()

        return True

    def abandon(self) -> None:
        """Mark the session dead; late question batches are discarded from now on."""
        self.state = SessionState.ABANDONED
        self.selected_option = None

    # ---------------------------------------------------------------- internals

    def _present_current_question(self) -> None:
        self.selected_option = None
        self.state = SessionState.AWAITING_ANSWER
        self._question_started_at = self._clock()

    def _run_checkpoint(self) -> Optional[SupplementalRequest]:
        """Evaluate performance once, when leaving the checkpoint question."""
        if self.checkpoint_evaluated or self.current_index != self.checkpoint_index:
            return None
        self.checkpoint_evaluated = True

        score = self.score_percent()
        if score < config.quiz.checkpoint_low_score:
            difficulty = "easy"
        elif score > config.quiz.checkpoint_high_score:
            difficulty = "hard"
        else:
            logger.info(
                "Checkpoint for session %s: %.0f%%, keeping current questions",
                self.session_id,
                score,
            )
            return None

        request = SupplementalRequest(
            session_id=self.session_id,
            difficulty=difficulty,
            count=config.quiz.supplemental_batch_size,
            previous_performance=score,
        )
        self.supplemental_requests.append(request)
        logger.info(
            "Checkpoint for session %s: %.0f%%, requesting %d %s question(s)",
            self.session_id,
            score,
            request.count,
            difficulty,
        )

        if self.on_supplemental_request is not None:
            try:
                self.on_supplemental_request(request)
            except Exception:
                # A failed request must not block advance()
                logger.warning(
                    "Supplemental request for session %s failed",
                    self.session_id,
                    exc_info=True,
                )
        return request

    def _require(self, expected: SessionState, operation: str) -> None:
        if self.state is not expected:
            raise InvalidTransition(operation, self.state.value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert quiz session to dictionary."""
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "created_at": self.created_at,
            "completed_at": self.completed_at,
            "starting_difficulty": self.starting_difficulty,
            "active_difficulty": self.active_difficulty,
            "current_index": self.current_index,
            "total_questions": len(self.questions),
            "running_score": self.running_score,
            "questions": [q.to_dict() for q in self.questions],
            "answers": [r.to_dict() for r in self.answer_log],
            "supplemental_requests": [
                {"difficulty": r.difficulty, "count": r.count}
                for r in self.supplemental_requests
            ],
        }
