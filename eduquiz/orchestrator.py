"""
Quiz Orchestrator

Drives the complete quiz flow for one learner:
1. Content input and initial quiz generation
2. Quiz session (select, submit, advance) with personalized explanations
3. Background generation of supplemental questions at the checkpoint
4. Results aggregation
5. Start over, retake, and restart at an adapted difficulty

Generator calls run on a worker pool. Every session mutation happens under one
lock, and a late generator response is only applied to the session that asked
for it while that session is still current and not abandoned.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .agents.quiz_generator import (
    GenerateQuizRequest,
    QuestionGenerator,
    QuizGenerator,
    explain_or_fallback,
)
from .config import config
from .exceptions import InvalidTransition, QuizError
from .models.difficulty import DifficultyLevel, next_difficulty
from .models.question import Question
from .models.quiz_session import AnswerRecord, QuizSession, SessionState, SupplementalRequest
from .utils.results import ResultsAggregator

logger = logging.getLogger(__name__)


class AppState(str, Enum):
    INPUT = "input"
    QUIZ = "quiz"
    RESULTS = "results"


class QuizOrchestrator:
    """
    Application-level controller around a QuizSession.

    Usage:
        orchestrator = QuizOrchestrator()
        session = orchestrator.start_quiz(text, difficulty="medium", question_count=5)
        orchestrator.select_option(1)
        orchestrator.submit_answer()
        orchestrator.advance()
        ...
        orchestrator.results.summary()
    """

    def __init__(
        self,
        generator: Optional[QuestionGenerator] = None,
        executor: Optional[Executor] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize orchestrator.

        Args:
            generator: Question source (LLM-backed QuizGenerator if None)
            executor: Pool for generator calls (a private thread pool if None)
            clock: Monotonic time source passed to sessions
        """
        self.generator = generator or QuizGenerator()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=config.quiz.max_workers,
            thread_name_prefix="eduquiz-generator",
        )
        self._clock = clock

        self._lock = threading.RLock()
        self._epoch = 0
        self._pending: List[Future] = []

        self.app_state = AppState.INPUT
        self.content = ""
        self.current_difficulty: DifficultyLevel = config.quiz.initial_difficulty
        self.question_count = config.quiz.questions_per_quiz
        self.session: Optional[QuizSession] = None
        self.results: Optional[ResultsAggregator] = None

    # ==================== Quiz start ====================

    def start_quiz(
        self,
        content: str,
        difficulty: Optional[DifficultyLevel] = None,
        question_count: Optional[int] = None,
    ) -> Optional[QuizSession]:
        """
        Generate the initial batch and open a new session.

        Blocks for the generator call; use start_quiz_async() to keep a UI
        thread free.

        Args:
            content: Educational text to build the quiz from
            difficulty: Starting difficulty (config default if None)
            question_count: Number of questions (config default if None)

        Returns:
            The new session, or None if the quiz was reset while generating

        Raises:
            ValidationError: If the request is invalid
            GenerationError: If the initial batch could not be generated
        """
        request = self._build_request(content, difficulty, question_count)

        with self._lock:
            epoch = self._next_epoch()

        questions = self.generator.generate(
            request.content,
            request.difficulty,
            request.question_count,
            previous_performance=request.previous_performance,
        )

        with self._lock:
            if epoch != self._epoch:
                logger.info("Discarding quiz generated for a reset orchestrator")
                return None
            return self._open_session(request, questions)

    def start_quiz_async(
        self,
        content: str,
        difficulty: Optional[DifficultyLevel] = None,
        question_count: Optional[int] = None,
    ) -> "Future[Optional[QuizSession]]":
        """
        Like start_quiz(), but generation runs on the worker pool.

        Input is validated immediately, so ValidationError is raised here
        rather than through the future.
        """
        request = self._build_request(content, difficulty, question_count)
        future = self._executor.submit(
            self.start_quiz, request.content, request.difficulty, request.question_count
        )
        self._track(future)
        return future

    def _build_request(
        self,
        content: str,
        difficulty: Optional[DifficultyLevel],
        question_count: Optional[int],
    ) -> GenerateQuizRequest:
        request = GenerateQuizRequest(
            content=content,
            difficulty=difficulty or config.quiz.initial_difficulty,
            question_count=config.quiz.questions_per_quiz if question_count is None else question_count,
        )
        request.validate()
        return request

    def _open_session(
        self, request: GenerateQuizRequest, questions: List[Question]
    ) -> QuizSession:
        self.content = request.content
        self.current_difficulty = request.difficulty
        self.question_count = request.question_count
        self.results = None
        self.session = self._new_session(questions, request.difficulty)
        self.app_state = AppState.QUIZ
        logger.info(
            "Started quiz %s with %d %s question(s)",
            self.session.session_id,
            len(questions),
            request.difficulty,
        )
        return self.session

    def _new_session(
        self, questions: List[Question], difficulty: DifficultyLevel
    ) -> QuizSession:
        return QuizSession(
            questions=questions,
            starting_difficulty=difficulty,
            on_supplemental_request=self._request_more_questions,
            clock=self._clock,
        )

    # ==================== Session transitions ====================

    def select_option(self, index: int) -> None:
        with self._lock:
            self._active_session("select an option").select_option(index)

    def submit_answer(self) -> AnswerRecord:
        with self._lock:
            return self._active_session("submit an answer").submit_answer()

    def advance(self) -> SessionState:
        """
        Move past the current explanation.

        When the session completes, its answer log is handed to a
        ResultsAggregator and the app switches to the results view.
        """
        with self._lock:
            session = self._active_session("advance")
            state = session.advance()
            if state is SessionState.COMPLETED:
                self.results = ResultsAggregator(session.answer_log, session.questions)
                self.app_state = AppState.RESULTS
            return state

    def explain_answer(self, record: Optional[AnswerRecord] = None) -> str:
        """
        Personalized explanation for a submitted answer (the latest by default).

        Never fails because of the generator; a static fallback is returned
        instead. The generator call is made outside the session lock.
        """
        with self._lock:
            if self.session is None:
                raise InvalidTransition("explain an answer", self.app_state.value)
            if record is None:
                if not self.session.answer_log:
                    raise InvalidTransition(
                        "explain an answer", self.session.state.value, "nothing answered yet"
                    )
                record = self.session.answer_log[-1]
            question = self.session.question_by_id(record.question_id)
            if question is None:
                raise InvalidTransition(
                    "explain an answer",
                    self.session.state.value,
                    f"question {record.question_id} is not part of this session",
                )
            performance = self.session.score_percent()

        return explain_or_fallback(
            self.generator,
            question,
            question.option_text(record.chosen_option_index),
            question.correct_answer_text,
            performance,
        )

    def _active_session(self, operation: str) -> QuizSession:
        if self.session is None or self.app_state is not AppState.QUIZ:
            raise InvalidTransition(operation, self.app_state.value, "no quiz in progress")
        return self.session

    # ==================== Supplemental questions ====================

    def _request_more_questions(self, request: SupplementalRequest) -> None:
        """Session callback: schedule a supplemental batch without blocking."""
        with self._lock:
            session = self.session
            content = self.content
        if session is None or session.session_id != request.session_id:
            logger.info("Ignoring supplemental request from inactive session %s", request.session_id)
            return
        try:
            future = self._executor.submit(self._generate_supplemental, session, content, request)
        except RuntimeError as e:
            # Executor shut down; the quiz carries on with the questions it has
            logger.warning(
                "Could not schedule %s questions for session %s: %s",
                request.difficulty,
                request.session_id,
                e,
            )
            return
        self._track(future)

    def _generate_supplemental(
        self, session: QuizSession, content: str, request: SupplementalRequest
    ) -> bool:
        """Worker: generate a batch and append it if the session is still wanted."""
        try:
            questions = self.generator.generate(
                content,
                request.difficulty,
                request.count,
                previous_performance=request.previous_performance,
            )
        except QuizError as e:
            logger.warning(
                "Supplemental %s questions for session %s failed: %s",
                request.difficulty,
                session.session_id,
                e,
            )
            return False

        with self._lock:
            if session is not self.session or session.is_abandoned:
                logger.info(
                    "Discarding %d late question(s) for session %s",
                    len(questions),
                    session.session_id,
                )
                return False
            appended = session.append_questions(questions, difficulty=request.difficulty)
            if appended:
                self.current_difficulty = request.difficulty
                logger.info(
                    "Appended %d %s question(s) to session %s",
                    len(questions),
                    request.difficulty,
                    session.session_id,
                )
            return appended

    def _track(self, future: Future) -> None:
        with self._lock:
            self._pending = [f for f in self._pending if not f.done()]
            self._pending.append(future)

    def wait_for_pending(self, timeout: Optional[float] = None) -> List[Any]:
        """
        Block until every scheduled generator call has finished.

        Returns:
            Results of the finished calls, in scheduling order
        """
        with self._lock:
            pending = list(self._pending)
        wait(pending, timeout=timeout)
        return [f.result() for f in pending if f.done()]

    # ==================== Resets ====================

    def start_over(self) -> None:
        """Drop the quiz and content; late generator responses are discarded."""
        with self._lock:
            self._next_epoch()
            self.session = None
            self.results = None
            self.content = ""
            self.current_difficulty = config.quiz.initial_difficulty
            self.app_state = AppState.INPUT
        logger.info("Quiz reset")

    def retake_quiz(self) -> QuizSession:
        """Replay the same question set (including appended batches) in a fresh session."""
        with self._lock:
            if self.session is None:
                raise InvalidTransition("retake the quiz", self.app_state.value, "no quiz to retake")
            questions = list(self.session.questions)
            self._next_epoch()
            self.session = self._new_session(questions, self.current_difficulty)
            self.results = None
            self.app_state = AppState.QUIZ
            logger.info("Retaking quiz as session %s", self.session.session_id)
            return self.session

    def restart_with_adapted_difficulty(self) -> Optional[QuizSession]:
        """
        Generate a new quiz from the same content at the difficulty the policy
        picks for the last result.

        Raises:
            InvalidTransition: If there is no finished quiz to adapt from
        """
        with self._lock:
            if self.results is None:
                raise InvalidTransition(
                    "restart with adapted difficulty", self.app_state.value, "no results yet"
                )
            difficulty = next_difficulty(
                self.current_difficulty, self.results.overall_score_percent()
            )
            content = self.content
            count = self.question_count
        logger.info("Restarting quiz at %s difficulty", difficulty)
        return self.start_quiz(content, difficulty=difficulty, question_count=count)

    def _next_epoch(self) -> int:
        """Abandon the current session and invalidate in-flight quiz starts."""
        self._epoch += 1
        if self.session is not None:
            self.session.abandon()
        return self._epoch

    # ==================== Lifecycle ====================

    def shutdown(self, wait_for_calls: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait_for_calls)

    def __enter__(self) -> "QuizOrchestrator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of the app state for a UI layer."""
        with self._lock:
            return {
                "app_state": self.app_state.value,
                "current_difficulty": self.current_difficulty,
                "question_count": self.question_count,
                "session": self.session.to_dict() if self.session else None,
                "results": self.results.summary() if self.results else None,
            }
