"""
Results analytics for a finished quiz.

Provides:
- Overall score and average answer time
- Per-concept accuracy breakdown with strong/weak buckets
- Deterministic study tips and score messages
- Per-question review entries for results screens

Everything here is a pure function of the answer log and the question set.
An empty answer log yields 0 for every percentage and average.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from ..config import config
from ..models.question import Question
from ..models.quiz_session import AnswerRecord

GENERIC_TIP = (
    "Great job! You can challenge yourself with more advanced topics in this subject."
)


def round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves away from zero for positive values.

    Example:
        >>> round_half_up(62.5)
        63
        >>> round(62.5)
        62
    """
    return int(math.floor(value + 0.5))


def percent(part: int, whole: int) -> int:
    """Whole-number percentage of ``part`` in ``whole``; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return round_half_up(100 * part / whole)


@dataclass(frozen=True)
class ConceptStat:
    """Accuracy of the learner on one concept label."""

    concept: str
    correct_count: int
    total_count: int

    @property
    def accuracy_percent(self) -> int:
        return percent(self.correct_count, self.total_count)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "concept": self.concept,
            "accuracy": self.accuracy_percent,
            "correct": self.correct_count,
            "total": self.total_count,
        }


def concept_breakdown(
    answer_log: Iterable[AnswerRecord], questions: Iterable[Question]
) -> List[ConceptStat]:
    """
    Group answers by the concept of the question they answered.

    Concept labels are compared exactly (no case or whitespace folding).
    Answers whose question is unknown are skipped.

    Args:
        answer_log: Submitted answers, in order
        questions: Every question the answers may refer to

    Returns:
        One ConceptStat per concept, in order of first appearance

    Example:
        >>> stats = concept_breakdown(log, questions)
        >>> [(s.concept, s.accuracy_percent) for s in stats]
        [('photosynthesis', 50)]
    """
    concept_by_id = {q.question_id: q.concept for q in questions}

    counts: Dict[str, List[int]] = {}
    for record in answer_log:
        concept = concept_by_id.get(record.question_id)
        if concept is None:
            continue
        correct_total = counts.setdefault(concept, [0, 0])
        correct_total[1] += 1
        if record.is_correct:
            correct_total[0] += 1

    return [
        ConceptStat(concept=concept, correct_count=correct, total_count=total)
        for concept, (correct, total) in counts.items()
    ]


def study_tip(weak: List[ConceptStat]) -> str:
    """Deterministic recommendation naming the weak concepts, if any."""
    if weak:
        weak_areas = ", ".join(stat.concept for stat in weak)
        return f"Focus on: {weak_areas}. Consider reviewing these concepts with additional practice."
    return GENERIC_TIP


def score_message(score: int) -> str:
    if score >= 90:
        return "Outstanding! You've mastered this content!"
    if score >= 80:
        return "Excellent work! You have a strong understanding!"
    if score >= 70:
        return "Good job! You're on the right track!"
    if score >= 60:
        return "Not bad! Keep practicing to improve!"
    return "Keep learning! Practice makes perfect!"


class ResultsAggregator:
    """
    Summary statistics over a completed answer log.

    Usage:
        results = ResultsAggregator(session.answer_log, session.questions)
        results.overall_score_percent()
        results.weak_concepts()
    """

    def __init__(
        self,
        answer_log: Iterable[AnswerRecord],
        questions: Iterable[Question],
        strong_threshold: Optional[float] = None,
        weak_threshold: Optional[float] = None,
    ):
        # Snapshots, so later appends to a live session do not leak in
        self.answer_log: List[AnswerRecord] = list(answer_log)
        self.questions: List[Question] = list(questions)
        self.strong_threshold = (
            config.quiz.strong_concept_threshold if strong_threshold is None else strong_threshold
        )
        self.weak_threshold = (
            config.quiz.weak_concept_threshold if weak_threshold is None else weak_threshold
        )
        self._questions_by_id = {q.question_id: q for q in self.questions}

    @property
    def total_answered(self) -> int:
        return len(self.answer_log)

    def correct_count(self) -> int:
        return sum(1 for record in self.answer_log if record.is_correct)

    def overall_score_percent(self) -> int:
        """round(100 * correct / answered); 0 for an empty log."""
        return percent(self.correct_count(), self.total_answered)

    def average_time_seconds(self) -> int:
        """Mean answer time in whole seconds; 0 for an empty log."""
        if not self.answer_log:
            return 0
        total_millis = sum(record.elapsed_millis for record in self.answer_log)
        return round_half_up(total_millis / len(self.answer_log) / 1000)

    def concept_breakdown(self) -> List[ConceptStat]:
        return concept_breakdown(self.answer_log, self.questions)

    def strong_concepts(self) -> List[ConceptStat]:
        return [
            stat for stat in self.concept_breakdown()
            if stat.accuracy_percent >= self.strong_threshold
        ]

    def weak_concepts(self) -> List[ConceptStat]:
        return [
            stat for stat in self.concept_breakdown()
            if stat.accuracy_percent < self.weak_threshold
        ]

    def study_tip(self) -> str:
        return study_tip(self.weak_concepts())

    def score_message(self) -> str:
        return score_message(self.overall_score_percent())

    def question_review(self) -> List[Dict[str, Any]]:
        """
        Per-answer review entries in answer order.

        Option text and explanation come from the question set; they are None
        when the answered question is no longer known.
        """
        review = []
        for number, record in enumerate(self.answer_log, start=1):
            question = self._questions_by_id.get(record.question_id)
            review.append(
                {
                    "number": number,
                    "question_id": record.question_id,
                    "question": record.question_text,
                    "is_correct": record.is_correct,
                    "your_answer": question.option_text(record.chosen_option_index) if question else None,
                    "correct_answer": question.correct_answer_text if question else None,
                    "explanation": question.explanation if question else None,
                    "concept": question.concept if question else None,
                    "difficulty": record.difficulty,
                    "time_seconds": round_half_up(record.elapsed_millis / 1000),
                }
            )
        return review

    def summary(self) -> Dict[str, Any]:
        """All headline numbers in one dictionary."""
        breakdown = self.concept_breakdown()
        weak = [s for s in breakdown if s.accuracy_percent < self.weak_threshold]
        strong = [s for s in breakdown if s.accuracy_percent >= self.strong_threshold]
        score = self.overall_score_percent()
        return {
            "score": score,
            "correct": self.correct_count(),
            "total": self.total_answered,
            "average_time_seconds": self.average_time_seconds(),
            "message": score_message(score),
            "concepts": [s.to_dict() for s in breakdown],
            "strong_concepts": [s.concept for s in strong],
            "weak_concepts": [s.concept for s in weak],
            "tip": study_tip(weak),
        }
