"""
Unit tests for the Quiz Orchestrator.

Uses the deterministic stub generator from conftest and the orchestrator's
own worker pool, so supplemental batches really arrive from another thread.
"""

import threading
import unittest
from concurrent.futures import ThreadPoolExecutor

from conftest import SAMPLE_CONTENT, FakeClock, StubQuestionGenerator

from eduquiz.agents.quiz_generator import FALLBACK_EXPLANATION
from eduquiz.exceptions import GenerationError, InvalidTransition, ValidationError
from eduquiz.models.quiz_session import SessionState
from eduquiz.orchestrator import AppState, QuizOrchestrator


class OrchestratorTestCase(unittest.TestCase):
    """Shared setup: stub generator, fake clock, private worker pool."""

    def setUp(self):
        self.generator = StubQuestionGenerator()
        self.orchestrator = QuizOrchestrator(generator=self.generator, clock=FakeClock())

    def tearDown(self):
        if self.generator.gate is not None:
            self.generator.gate.set()
        self.orchestrator.shutdown()

    def answer(self, option):
        self.orchestrator.select_option(option)
        self.orchestrator.submit_answer()
        return self.orchestrator.advance()

    def play(self, options):
        state = None
        for option in options:
            state = self.answer(option)
        return state


class TestStartQuiz(OrchestratorTestCase):
    """Test initial quiz generation."""

    def test_start_quiz(self):
        session = self.orchestrator.start_quiz(SAMPLE_CONTENT, difficulty="medium", question_count=5)

        self.assertIs(self.orchestrator.session, session)
        self.assertIs(self.orchestrator.app_state, AppState.QUIZ)
        self.assertEqual(len(session.questions), 5)
        self.assertIs(session.state, SessionState.AWAITING_ANSWER)
        self.assertEqual(
            self.generator.calls,
            [{"content": SAMPLE_CONTENT, "difficulty": "medium", "count": 5, "previous_performance": None}],
        )

    def test_defaults_from_config(self):
        session = self.orchestrator.start_quiz(SAMPLE_CONTENT)

        self.assertEqual(session.starting_difficulty, "medium")
        self.assertEqual(len(session.questions), 5)

    def test_invalid_content_never_reaches_generator(self):
        with self.assertRaises(ValidationError):
            self.orchestrator.start_quiz("Too short")

        self.assertEqual(self.generator.calls, [])
        self.assertIs(self.orchestrator.app_state, AppState.INPUT)

    def test_initial_generation_failure_propagates(self):
        self.generator.fail_difficulties = {"medium"}

        with self.assertRaises(GenerationError):
            self.orchestrator.start_quiz(SAMPLE_CONTENT)

        self.assertIsNone(self.orchestrator.session)
        self.assertIs(self.orchestrator.app_state, AppState.INPUT)

    def test_start_quiz_async(self):
        future = self.orchestrator.start_quiz_async(SAMPLE_CONTENT, difficulty="easy", question_count=3)
        session = future.result(timeout=5)

        self.assertIs(self.orchestrator.session, session)
        self.assertEqual(session.starting_difficulty, "easy")

    def test_start_quiz_async_validates_immediately(self):
        with self.assertRaises(ValidationError):
            self.orchestrator.start_quiz_async(SAMPLE_CONTENT, question_count=0)

    def test_reset_while_generating_discards_quiz(self):
        self.generator.gate = threading.Event()
        future = self.orchestrator.start_quiz_async(SAMPLE_CONTENT)
        self.assertTrue(self.generator.entered.wait(timeout=5))

        self.orchestrator.start_over()
        self.generator.gate.set()

        self.assertIsNone(future.result(timeout=5))
        self.assertIsNone(self.orchestrator.session)
        self.assertIs(self.orchestrator.app_state, AppState.INPUT)


class TestQuizFlow(OrchestratorTestCase):
    """Test answering, explanations and results."""

    def setUp(self):
        super().setUp()
        self.orchestrator.start_quiz(SAMPLE_CONTENT, difficulty="medium", question_count=5)

    def test_operations_require_quiz(self):
        self.orchestrator.start_over()
        with self.assertRaises(InvalidTransition):
            self.orchestrator.select_option(0)
        with self.assertRaises(InvalidTransition):
            self.orchestrator.advance()

    def test_completion_builds_results(self):
        # 2 of 3 at the checkpoint: no supplemental batch
        state = self.play([0, 0, 1, 0, 0])

        self.assertIs(state, SessionState.COMPLETED)
        self.assertIs(self.orchestrator.app_state, AppState.RESULTS)
        summary = self.orchestrator.results.summary()
        self.assertEqual(summary["score"], 80)
        self.assertEqual(summary["total"], 5)
        self.assertEqual(len(self.generator.calls), 1)

    def test_three_easy_questions_end_to_end(self):
        self.orchestrator.start_over()
        session = self.orchestrator.start_quiz(SAMPLE_CONTENT, difficulty="easy", question_count=3)

        state = self.play([0, 0, 0])
        self.orchestrator.wait_for_pending(timeout=5)

        self.assertIs(state, SessionState.COMPLETED)
        self.assertEqual(len(session.answer_log), 3)
        self.assertTrue(session.checkpoint_evaluated)
        self.assertEqual(self.orchestrator.results.overall_score_percent(), 100)
        self.assertEqual(self.orchestrator.results.total_answered, 3)

    def test_explain_latest_answer(self):
        self.orchestrator.select_option(2)
        self.orchestrator.submit_answer()

        text = self.orchestrator.explain_answer()

        self.assertEqual(text, self.generator.explanation)
        call = self.generator.explain_calls[0]
        self.assertEqual(call["user_answer"], "C")
        self.assertEqual(call["correct_answer"], "A")
        self.assertEqual(call["performance"], 0.0)

    def test_explain_falls_back(self):
        self.generator.fail_explain = True
        self.orchestrator.select_option(0)
        self.orchestrator.submit_answer()

        self.assertEqual(self.orchestrator.explain_answer(), FALLBACK_EXPLANATION)
        self.assertIs(self.orchestrator.session.state, SessionState.SHOWING_EXPLANATION)

    def test_explain_before_answering(self):
        with self.assertRaises(InvalidTransition):
            self.orchestrator.explain_answer()

    def test_to_dict(self):
        result = self.orchestrator.to_dict()
        self.assertEqual(result["app_state"], "quiz")
        self.assertEqual(result["current_difficulty"], "medium")
        self.assertIsNone(result["results"])


class TestSupplementalQuestions(OrchestratorTestCase):
    """Test the background batch triggered by the checkpoint."""

    def setUp(self):
        super().setUp()
        self.session = self.orchestrator.start_quiz(SAMPLE_CONTENT, difficulty="medium", question_count=5)

    def test_strong_start_appends_hard_batch(self):
        self.play([0, 0, 0])

        self.assertEqual(self.orchestrator.wait_for_pending(timeout=5), [True])
        self.assertEqual(len(self.session.questions), 8)
        self.assertEqual(self.session.active_difficulty, "hard")
        self.assertEqual(self.orchestrator.current_difficulty, "hard")
        self.assertEqual(self.session.current_index, 3)
        call = self.generator.calls[1]
        self.assertEqual((call["difficulty"], call["count"]), ("hard", 3))
        self.assertEqual(call["previous_performance"], 100.0)

        state = self.play([0] * 5)
        self.assertIs(state, SessionState.COMPLETED)
        self.assertEqual(self.orchestrator.results.total_answered, 8)

    def test_weak_start_appends_easy_batch(self):
        self.play([1, 1, 1])
        self.orchestrator.wait_for_pending(timeout=5)

        self.assertEqual(self.generator.calls[1]["difficulty"], "easy")
        self.assertEqual(self.session.questions[-1].difficulty, "easy")

    def test_failed_batch_is_swallowed(self):
        self.generator.fail_difficulties = {"hard"}

        self.play([0, 0, 0])

        self.assertEqual(self.orchestrator.wait_for_pending(timeout=5), [False])
        self.assertEqual(len(self.session.questions), 5)
        self.assertEqual(self.orchestrator.current_difficulty, "medium")
        self.assertIs(self.play([0, 0]), SessionState.COMPLETED)

    def test_shut_down_executor_does_not_stall_quiz(self):
        executor = ThreadPoolExecutor(max_workers=1)
        orchestrator = QuizOrchestrator(generator=self.generator, clock=FakeClock(), executor=executor)
        session = orchestrator.start_quiz(SAMPLE_CONTENT, difficulty="medium", question_count=5)
        executor.shutdown(wait=True)

        for option in (0, 0):
            orchestrator.select_option(option)
            orchestrator.submit_answer()
            orchestrator.advance()
        orchestrator.select_option(0)
        orchestrator.submit_answer()
        with self.assertLogs("eduquiz.orchestrator", level="WARNING"):
            state = orchestrator.advance()

        self.assertIs(state, SessionState.AWAITING_ANSWER)
        self.assertEqual(session.current_index, 3)
        self.assertEqual(len(session.questions), 5)
        self.assertEqual(len(self.generator.calls), 1)
        for option in (0, 0):
            orchestrator.select_option(option)
            orchestrator.submit_answer()
            state = orchestrator.advance()
        self.assertIs(state, SessionState.COMPLETED)
        self.assertIs(orchestrator.app_state, AppState.RESULTS)

    def test_late_batch_discarded_after_start_over(self):
        self.generator.gate = threading.Event()
        self.generator.entered.clear()
        self.play([0, 0, 0])
        self.assertTrue(self.generator.entered.wait(timeout=5))

        self.orchestrator.start_over()
        self.generator.gate.set()

        self.assertEqual(self.orchestrator.wait_for_pending(timeout=5), [False])
        self.assertTrue(self.session.is_abandoned)
        self.assertEqual(len(self.session.questions), 5)
        self.assertIsNone(self.orchestrator.session)
        self.assertEqual(self.orchestrator.current_difficulty, "medium")

    def test_late_batch_discarded_after_retake(self):
        self.generator.gate = threading.Event()
        self.play([0, 0, 0])

        retake = self.orchestrator.retake_quiz()
        self.generator.gate.set()
        self.orchestrator.wait_for_pending(timeout=5)

        self.assertIsNot(retake, self.session)
        self.assertEqual(len(retake.questions), 5)
        self.assertEqual(retake.answer_log, [])
        self.assertTrue(self.session.is_abandoned)


class TestResets(OrchestratorTestCase):
    """Test start over, retake and adaptive restart."""

    def finish_quiz(self, options):
        self.orchestrator.start_quiz(SAMPLE_CONTENT, difficulty="medium", question_count=5)
        self.generator.fail_difficulties = {"easy", "hard"}
        self.play(options)
        self.orchestrator.wait_for_pending(timeout=5)
        self.generator.fail_difficulties = set()

    def test_start_over_clears_everything(self):
        self.finish_quiz([0, 0, 1, 0, 0])

        self.orchestrator.start_over()

        self.assertIs(self.orchestrator.app_state, AppState.INPUT)
        self.assertIsNone(self.orchestrator.session)
        self.assertIsNone(self.orchestrator.results)
        self.assertEqual(self.orchestrator.content, "")
        self.assertEqual(self.orchestrator.current_difficulty, "medium")

    def test_retake_replays_same_questions(self):
        self.finish_quiz([0, 0, 1, 0, 0])
        previous = self.orchestrator.session

        retake = self.orchestrator.retake_quiz()

        self.assertEqual(
            [q.question_id for q in retake.questions],
            [q.question_id for q in previous.questions],
        )
        self.assertIs(self.orchestrator.app_state, AppState.QUIZ)
        self.assertIsNone(self.orchestrator.results)
        self.assertIs(retake.state, SessionState.AWAITING_ANSWER)
        self.assertEqual(len(self.generator.calls), 1)

    def test_retake_without_quiz(self):
        with self.assertRaises(InvalidTransition):
            self.orchestrator.retake_quiz()

    def test_restart_with_adapted_difficulty(self):
        self.finish_quiz([0, 0, 1, 0, 0])  # 80%

        session = self.orchestrator.restart_with_adapted_difficulty()

        self.assertEqual(session.starting_difficulty, "hard")
        self.assertEqual(self.orchestrator.current_difficulty, "hard")
        self.assertEqual(self.generator.calls[-1]["difficulty"], "hard")
        self.assertEqual(self.generator.calls[-1]["content"], SAMPLE_CONTENT)

    def test_restart_after_poor_score(self):
        self.finish_quiz([1, 1, 1, 1, 0])  # 20%

        session = self.orchestrator.restart_with_adapted_difficulty()

        self.assertEqual(session.starting_difficulty, "easy")

    def test_restart_without_results(self):
        self.orchestrator.start_quiz(SAMPLE_CONTENT)
        with self.assertRaises(InvalidTransition):
            self.orchestrator.restart_with_adapted_difficulty()


if __name__ == "__main__":
    unittest.main()
