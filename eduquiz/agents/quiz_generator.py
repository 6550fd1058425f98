"""
Quiz Generator Agent - Creates multiple-choice questions from educational text.

Wraps a chat model behind a strict contract: caller input is validated before
the model is invoked, and every returned item is validated and normalized into
an immutable Question. Malformed output is rejected, never guessed at.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, List, Optional, Protocol

from langchain_core.prompts import PromptTemplate
from langchain_openai import ChatOpenAI

from ..config import config, token_tracker
from ..exceptions import GenerationError, GenerationErrorKind, ValidationError
from ..models.difficulty import DifficultyLevel, validate_difficulty, validate_percent
from ..models.question import Question
from ..utils.validation import parse_json_payload, validate_question_batch

logger = logging.getLogger(__name__)

FALLBACK_EXPLANATION = (
    "Good try! The correct answer helps you understand this concept better."
)
EMPTY_EXPLANATION = "Great effort! Keep learning!"

DIFFICULTY_PROMPTS = {
    "easy": "basic understanding, simple recall questions",
    "medium": "application and analysis questions",
    "hard": "synthesis and evaluation level questions",
}


@dataclass
class GenerateQuizRequest:
    """Input of a quiz generation call."""

    content: str
    difficulty: DifficultyLevel
    question_count: int
    previous_performance: Optional[float] = None

    def validate(self) -> None:
        """
        Reject input that can never produce a quiz.

        Raises:
            ValidationError: If any field is missing or out of range
        """
        if not isinstance(self.content, str) or not self.content:
            raise ValidationError("Content is required to generate a quiz")

        min_length = config.quiz.min_content_length
        if len(self.content) < min_length:
            raise ValidationError(
                f"Content too short. Please provide at least {min_length} characters."
            )

        validate_difficulty(self.difficulty)

        if (
            isinstance(self.question_count, bool)
            or not isinstance(self.question_count, int)
            or self.question_count < 1
        ):
            raise ValidationError(
                f"Question count must be a positive integer, got {self.question_count!r}"
            )

        if self.previous_performance is not None:
            validate_percent(self.previous_performance, "previous_performance")


@dataclass
class ExplainAnswerRequest:
    """Input of a personalized explanation call."""

    question: Question
    user_answer: str
    correct_answer: str
    user_performance: float

    def validate(self) -> None:
        if not isinstance(self.question, Question):
            raise ValidationError("An explanation needs the question being explained")
        if not self.user_answer or not self.correct_answer:
            raise ValidationError("Both the learner's answer and the correct answer are required")
        validate_percent(self.user_performance, "user_performance")


class QuestionGenerator(Protocol):
    """What the quiz engine needs from a question source."""

    def generate(
        self,
        content: str,
        difficulty: DifficultyLevel,
        count: int,
        previous_performance: Optional[float] = None,
    ) -> List[Question]:
        ...

    def explain(
        self,
        question: Question,
        user_answer: str,
        correct_answer: str,
        performance_percent: float,
    ) -> str:
        ...


class QuizGenerator:
    """
    Generates quiz questions and personalized explanations with an LLM.

    Features:
    - Validates caller input before any model call
    - Validates model output against the question schema
    - Stamps the requested difficulty on every question
    - Tracks token usage reported by the model
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        llm: Optional[Any] = None,
        explanation_llm: Optional[Any] = None,
    ):
        """
        Initialize quiz generator.

        Args:
            model_name: LLM model name (defaults to config)
            llm: Chat model for question generation (built from config if None)
            explanation_llm: Chat model for explanations (built from config if None)
        """
        self.model_name = model_name or config.model.model_name

        self.llm = llm or ChatOpenAI(
            model=self.model_name,
            temperature=config.model.generation_temperature,
            max_tokens=config.model.generation_max_tokens,
            timeout=config.model.request_timeout,
            api_key=config.model.api_key,
            base_url=config.model.base_url,
        )
        self.explanation_llm = explanation_llm or ChatOpenAI(
            model=self.model_name,
            temperature=config.model.explanation_temperature,
            max_tokens=config.model.explanation_max_tokens,
            timeout=config.model.request_timeout,
            api_key=config.model.api_key,
            base_url=config.model.base_url,
        )

        self.quiz_prompt = PromptTemplate(
            input_variables=["count", "level", "content", "performance_note"],
            template="""Based on the following educational content, generate exactly {count} multiple choice questions at {level} level.

Content: "{content}"
{performance_note}
Requirements:
- Each question should have exactly 4 options (A, B, C, D)
- Questions should test different concepts from the content
- Include a brief explanation for the correct answer
- Identify the main concept being tested

Return ONLY a valid JSON array in this exact format:
[
  {{
    "question": "Question text here?",
    "options": ["Option A", "Option B", "Option C", "Option D"],
    "correctAnswer": 0,
    "explanation": "Brief explanation of why this is correct",
    "concept": "Main concept being tested"
  }}
]""",
        )

        self.explanation_prompt = PromptTemplate(
            input_variables=["user_answer", "correct_answer", "question", "performance", "support_level"],
            template="""The student answered: "{user_answer}"
The correct answer was: "{correct_answer}"
Question: "{question}"
Student's overall performance: {performance}%

Provide a {support_level} explanation that:
1. Explains why the correct answer is right
2. Helps the student understand the concept better
3. Gives a learning tip for similar questions
4. Keep it under 100 words

Be encouraging and educational.""",
        )

    def generate(
        self,
        content: str,
        difficulty: DifficultyLevel,
        count: int,
        previous_performance: Optional[float] = None,
    ) -> List[Question]:
        """
        Generate a batch of multiple-choice questions from ``content``.

        Args:
            content: Educational text (at least 50 characters)
            difficulty: Difficulty stamped on every returned question
            count: Number of questions to request
            previous_performance: Learner's score so far (0-100), if known

        Returns:
            List of Question objects, at most ``count`` long

        Raises:
            ValidationError: If the request is invalid (model is not called)
            GenerationError: If the model fails or returns unusable data
        """
        request = GenerateQuizRequest(
            content=content,
            difficulty=difficulty,
            question_count=count,
            previous_performance=previous_performance,
        )
        request.validate()
        return self.generate_quiz(request)

    def generate_quiz(self, request: GenerateQuizRequest) -> List[Question]:
        """Generate questions for an already validated request."""
        performance_note = ""
        if request.previous_performance is not None:
            performance_note = (
                f"The learner has scored {round(request.previous_performance)}% so far.\n"
            )

        prompt = self.quiz_prompt.format(
            count=request.question_count,
            level=DIFFICULTY_PROMPTS[request.difficulty],
            content=request.content,
            performance_note=performance_note,
        )

        text = self._invoke(self.llm, prompt, purpose="quiz generation")
        questions = self._parse_questions(text, request.difficulty)

        if len(questions) > request.question_count:
            questions = questions[: request.question_count]
        elif len(questions) < request.question_count:
            logger.warning(
                "Generator returned %d of %d requested questions",
                len(questions),
                request.question_count,
            )

        logger.info(
            "Generated %d %s question(s)", len(questions), request.difficulty
        )
        return questions

    def explain(
        self,
        question: Question,
        user_answer: str,
        correct_answer: str,
        performance_percent: float,
    ) -> str:
        """
        Produce a personalized explanation of the correct answer.

        Raises:
            ValidationError: If the request is invalid
            GenerationError: If the model call fails
        """
        request = ExplainAnswerRequest(
            question=question,
            user_answer=user_answer,
            correct_answer=correct_answer,
            user_performance=performance_percent,
        )
        request.validate()

        prompt = self.explanation_prompt.format(
            user_answer=request.user_answer,
            correct_answer=request.correct_answer,
            question=request.question.prompt,
            performance=round(request.user_performance),
            support_level=self._support_level(request.user_performance),
        )

        text = self._invoke(self.explanation_llm, prompt, purpose="explanation")
        return text.strip() or EMPTY_EXPLANATION

    def _invoke(self, llm: Any, prompt: str, purpose: str) -> str:
        """Call the model and return its text, mapping failures to GenerationError."""
        try:
            response = llm.invoke(prompt)
        except Exception as e:
            logger.error("Generator call for %s failed: %s", purpose, e)
            raise GenerationError(
                f"Failed to reach generator for {purpose}",
                kind=GenerationErrorKind.UPSTREAM_FAILURE,
            ) from e

        self._record_usage(response)

        content = getattr(response, "content", None)
        if content is None:
            raise GenerationError(
                f"No content received from generator for {purpose}",
                kind=GenerationErrorKind.MALFORMED_RESPONSE,
            )
        if not isinstance(content, str):
            raise GenerationError(
                f"Generator returned non-text content for {purpose}",
                kind=GenerationErrorKind.MALFORMED_RESPONSE,
            )
        return content

    def _parse_questions(self, text: str, difficulty: DifficultyLevel) -> List[Question]:
        """Validate raw model text and build Question objects from it."""
        try:
            payload = parse_json_payload(text)
        except ValueError as e:
            raise GenerationError(
                str(e), kind=GenerationErrorKind.MALFORMED_RESPONSE
            ) from e

        result = validate_question_batch(payload)
        if not result:
            logger.error("Rejected generator payload: %s", "; ".join(result.errors))
            raise GenerationError(
                "Generator returned malformed questions",
                kind=GenerationErrorKind.MALFORMED_RESPONSE,
                details=result.errors,
            )

        # Generator difficulty labels are ignored; the requested level wins
        try:
            return [
                Question(
                    question_id=f"q-{uuid.uuid4()}",
                    prompt=item["question"],
                    options=tuple(item["options"]),
                    correct_option_index=item["correctAnswer"],
                    difficulty=difficulty,
                    explanation=item["explanation"],
                    concept=item["concept"],
                )
                for item in result.data
            ]
        except ValidationError as e:
            logger.error("Rejected generator question: %s", e)
            raise GenerationError(
                "Generator returned malformed questions",
                kind=GenerationErrorKind.MALFORMED_RESPONSE,
                details=[str(e)],
            ) from e

    def _record_usage(self, response: Any) -> None:
        if not config.logging.log_tokens:
            return
        usage = getattr(response, "usage_metadata", None)
        if isinstance(usage, dict):
            token_tracker.add_tokens(
                int(usage.get("input_tokens", 0)),
                int(usage.get("output_tokens", 0)),
            )

    @staticmethod
    def _support_level(performance: float) -> str:
        """Pick the explanation tone from the learner's performance."""
        if performance < 60:
            return "very encouraging and detailed"
        if performance < 80:
            return "supportive with helpful tips"
        return "brief but positive"


def explain_or_fallback(
    generator: QuestionGenerator,
    question: Question,
    user_answer: str,
    correct_answer: str,
    performance_percent: float,
) -> str:
    """
    Personalized explanation that never fails.

    Any GenerationError degrades to FALLBACK_EXPLANATION so explanations can
    never block quiz progression.
    """
    try:
        return generator.explain(question, user_answer, correct_answer, performance_percent)
    except GenerationError as e:
        logger.warning("Explanation unavailable, using fallback: %s", e)
        return FALLBACK_EXPLANATION
