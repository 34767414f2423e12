"""
Grader - exact-match grading of quiz submissions.

A question is correct only when the selected options are exactly the
correct option set: same size, same members. There is no partial credit
for multiple-answer questions.
"""

import math
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Sequence, Tuple

from pydantic import BaseModel

from learnpath.kernel.models.quiz import QuizQuestion


class QuestionGrade(BaseModel):
    """Graded answer to one question."""

    question_id: uuid.UUID
    selected_options: List[int]
    is_correct: bool
    points_earned: int


class GradedSubmission(BaseModel):
    answers: List[QuestionGrade]
    points_earned: int
    points_total: int
    score: float  # stored precision, 2 decimals
    correct_count: int
    total_questions: int


def grade_question(
    selected: Sequence[int],
    correct: Iterable[int],
    points: int,
) -> Tuple[bool, int]:
    """
    Returns (is_correct, points_earned).

    The length check matters: a selection repeating an index is not the
    same answer as the set it collapses to.
    """
    correct_set = set(correct)
    is_correct = len(selected) == len(correct_set) and set(selected) == correct_set
    return is_correct, points if is_correct else 0


def score_percentage(earned: int, total: int) -> float:
    """Earned points as a percentage of all points; 0 when nothing is at stake."""
    if total <= 0:
        return 0.0
    return earned / total * 100


def storage_score(score: float) -> float:
    """Two-decimal precision, halves rounded up."""
    return float(Decimal(repr(score)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def display_score(score: float) -> int:
    """Nearest integer, halves rounded up."""
    return math.floor(score + 0.5)


def is_passing(score: float, passing_score: int) -> bool:
    """Inclusive: a score equal to the passing score passes."""
    return score >= passing_score


class QuizGrader:
    """Grades a full submission against a quiz's questions."""

    @classmethod
    def grade(
        cls,
        questions: Sequence[QuizQuestion],
        answers: Dict[uuid.UUID, List[int]],
    ) -> GradedSubmission:
        """
        Grade every question of the quiz.

        Args:
            questions: the quiz questions, in display order
            answers: selected option indices keyed by question id. Ids that
                are not questions of this quiz are ignored; unanswered
                questions count as an empty selection.
        """
        grades: List[QuestionGrade] = []
        earned = 0
        total = 0
        for question in questions:
            selected = list(answers.get(question.id, []))
            is_correct, points = grade_question(selected, question.correct_options, question.points)
            total += question.points
            earned += points
            grades.append(
                QuestionGrade(
                    question_id=question.id,
                    selected_options=selected,
                    is_correct=is_correct,
                    points_earned=points,
                )
            )

        return GradedSubmission(
            answers=grades,
            points_earned=earned,
            points_total=total,
            score=storage_score(score_percentage(earned, total)),
            correct_count=sum(1 for g in grades if g.is_correct),
            total_questions=len(grades),
        )

