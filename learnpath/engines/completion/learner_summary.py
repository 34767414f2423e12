"""
Learner Summary - one learner's progress across every enrolled course and
their full quiz attempt history, for admin dashboards.

Read-only: ``Enrollment.completed_at`` is reported as stored. It is stamped
by ``CompletionEvaluator.completion_status`` when the learner's own client
asks for the verdict.
"""

import math
import uuid
from datetime import datetime
from typing import List, Optional, Sequence

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.engines.completion.evaluator import CompletionEvaluator, CourseProgress
from learnpath.kernel.errors import NotFoundError
from learnpath.kernel.identity.identity_service import IdentityService
from learnpath.kernel.models.base import as_utc
from learnpath.kernel.models.course import Course, Enrollment
from learnpath.kernel.models.quiz import AttemptStatus, Quiz, QuizAttempt, QuizQuestion
from learnpath.kernel.models.user import UserRole
from learnpath.logging_config import get_logger

logger = get_logger(__name__)


class EnrollmentProgress(CourseProgress):
    course_title: str
    enrolled_at: datetime
    completed_at: Optional[datetime] = None


class AttemptHistoryItem(BaseModel):
    attempt_id: uuid.UUID
    quiz_id: uuid.UUID
    quiz_title: str
    course_id: uuid.UUID
    course_title: str
    status: AttemptStatus
    started_at: datetime
    submitted_at: Optional[datetime] = None
    score: Optional[float] = None
    passed: Optional[bool] = None
    passing_score: int
    time_spent_seconds: Optional[int] = None
    auto_submitted: bool
    total_questions: int


class LearnerTotals(BaseModel):
    courses_enrolled: int
    courses_completed: int
    courses_in_progress: int
    overall_progress_percent: int
    validated_progress_percent: int
    total_learning_time_seconds: int
    quizzes_taken: int
    quizzes_passed: int
    average_quiz_score: Optional[int] = None


class LearnerSummary(BaseModel):
    user_id: uuid.UUID
    email: str
    name: Optional[str] = None
    role: str
    is_active: bool
    last_login_at: Optional[datetime] = None
    courses: List[EnrollmentProgress]
    attempts: List[AttemptHistoryItem]
    totals: LearnerTotals


def _rounded_mean(values: Sequence[float]) -> Optional[int]:
    """Mean rounded half up, None for an empty sequence."""
    if not values:
        return None
    return math.floor(sum(values) / len(values) + 0.5)


class LearnerSummaryService:
    """Aggregates a learner's enrollments and attempts."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.evaluator = CompletionEvaluator(session)

    async def summarize(self, user_id: uuid.UUID) -> LearnerSummary:
        """
        Build the summary for one learner.

        Raises:
            NotFoundError: unknown user
        """
        user = await IdentityService(self.session).get_user_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", user_id=user_id)

        courses = await self._enrollment_progress(user_id)
        attempts = await self._attempt_history(user_id)
        totals = self._totals(courses, attempts)

        logger.info(
            "Learner summary built",
            extra={
                "learner_id": str(user_id),
                "courses": totals.courses_enrolled,
                "attempts": len(attempts),
            },
        )
        return LearnerSummary(
            user_id=user.id,
            email=user.email,
            name=user.name,
            role=UserRole(user.role).value,
            is_active=user.is_active,
            last_login_at=as_utc(user.last_login_at),
            courses=courses,
            attempts=attempts,
            totals=totals,
        )

    async def _enrollment_progress(self, user_id: uuid.UUID) -> List[EnrollmentProgress]:
        rows = (
            await self.session.execute(
                select(Enrollment, Course.title)
                .join(Course, Course.id == Enrollment.course_id)
                .where(Enrollment.user_id == user_id)
                .order_by(Enrollment.enrolled_at.desc())
            )
        ).all()

        courses = []
        for enrollment, title in rows:
            progress = await self.evaluator.course_progress(user_id, enrollment.course_id)
            courses.append(
                EnrollmentProgress(
                    **progress.model_dump(),
                    course_title=title,
                    enrolled_at=as_utc(enrollment.enrolled_at),
                    completed_at=as_utc(enrollment.completed_at),
                )
            )
        return courses

    async def _attempt_history(self, user_id: uuid.UUID) -> List[AttemptHistoryItem]:
        question_counts = (
            select(QuizQuestion.quiz_id, func.count(QuizQuestion.id).label("total"))
            .group_by(QuizQuestion.quiz_id)
            .subquery()
        )
        rows = (
            await self.session.execute(
                select(
                    QuizAttempt,
                    Quiz.title,
                    Quiz.passing_score,
                    Course.id,
                    Course.title,
                    func.coalesce(question_counts.c.total, 0),
                )
                .join(Quiz, Quiz.id == QuizAttempt.quiz_id)
                .join(Course, Course.id == Quiz.course_id)
                .outerjoin(question_counts, question_counts.c.quiz_id == Quiz.id)
                .where(QuizAttempt.user_id == user_id)
                .order_by(QuizAttempt.started_at.desc())
            )
        ).all()

        return [
            AttemptHistoryItem(
                attempt_id=attempt.id,
                quiz_id=attempt.quiz_id,
                quiz_title=quiz_title,
                course_id=course_id,
                course_title=course_title,
                status=attempt.status,
                started_at=as_utc(attempt.started_at),
                submitted_at=as_utc(attempt.submitted_at),
                score=attempt.score,
                passed=attempt.passed,
                passing_score=passing_score,
                time_spent_seconds=attempt.time_spent_seconds,
                auto_submitted=attempt.auto_submitted,
                total_questions=total_questions,
            )
            for attempt, quiz_title, passing_score, course_id, course_title, total_questions in rows
        ]

    @staticmethod
    def _totals(
        courses: Sequence[EnrollmentProgress],
        attempts: Sequence[AttemptHistoryItem],
    ) -> LearnerTotals:
        scores = [a.score for a in attempts if a.score is not None]
        return LearnerTotals(
            courses_enrolled=len(courses),
            courses_completed=sum(1 for c in courses if c.completed_at is not None),
            courses_in_progress=sum(
                1 for c in courses if c.completed_at is None and c.completed_lessons > 0
            ),
            overall_progress_percent=_rounded_mean([c.progress_percent for c in courses]) or 0,
            validated_progress_percent=_rounded_mean(
                [c.validated_progress_percent for c in courses]
            ) or 0,
            total_learning_time_seconds=sum(c.total_time_spent_seconds for c in courses),
            quizzes_taken=sum(1 for a in attempts if a.status == AttemptStatus.COMPLETED),
            quizzes_passed=sum(1 for a in attempts if a.passed),
            average_quiz_score=_rounded_mean(scores),
        )
