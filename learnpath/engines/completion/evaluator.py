"""
Completion Evaluator - course-level completed/not-completed verdicts.

A course is complete for a user when every lesson has status ``completed``
and the course either has no active quiz or the user holds a passed,
completed attempt on it. The verdict is recomputed from current state on
every call; nothing is cached.

Lesson completion uses the raw status reported by the viewer. Time
validation (see ``time_validation``) is reported alongside as
``validated_progress_percent`` but does not gate the verdict.
"""

import math
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy import and_, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.engines.completion.time_validation import (
    is_time_validated,
    min_required_seconds,
)
from learnpath.kernel.errors import NotFoundError
from learnpath.kernel.events.event_store import EventStore
from learnpath.kernel.events.event_types import CourseCompletedEvent
from learnpath.kernel.models.base import as_utc, utcnow
from learnpath.kernel.models.course import Course, Enrollment, Lesson, LessonProgress, LessonStatus
from learnpath.kernel.models.event_log import EventType
from learnpath.kernel.models.quiz import AttemptStatus, Quiz, QuizAttempt
from learnpath.logging_config import get_logger

logger = get_logger(__name__)


class CourseCompletion(BaseModel):
    """Completion verdict of one course for one user."""

    course_id: uuid.UUID
    lessons_completed: int
    total_lessons: int
    all_lessons_done: bool
    quiz_exists: bool
    quiz_passed: bool
    is_completed: bool
    completed_at: Optional[datetime] = None


class LessonProgressReport(BaseModel):
    lesson_id: uuid.UUID
    title: str
    content_type: str
    duration_minutes: int
    sort_order: int
    status: LessonStatus
    time_spent_seconds: int
    min_required_seconds: int
    is_time_validated: bool
    completed_at: Optional[datetime] = None


class CourseProgress(BaseModel):
    """Per-lesson engagement report for one course."""

    course_id: uuid.UUID
    total_lessons: int
    completed_lessons: int
    validated_completed_lessons: int
    progress_percent: int
    validated_progress_percent: int
    total_time_spent_seconds: int
    lessons: List[LessonProgressReport]


def _rounded_percent(part: int, total: int) -> int:
    """Whole percentage, halves rounded up; 0 when there is nothing to count."""
    if total <= 0:
        return 0
    return math.floor(part / total * 100 + 0.5)


class CompletionEvaluator:
    """Derives course completion and progress for a user from stored state."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _require_course(self, course_id: uuid.UUID) -> None:
        if await self.session.get(Course, course_id) is None:
            raise NotFoundError("Course not found", course_id=course_id)

    async def course_completion(self, user_id: uuid.UUID, course_id: uuid.UUID) -> CourseCompletion:
        total_lessons = await self.session.scalar(
            select(func.count(Lesson.id)).where(Lesson.course_id == course_id)
        ) or 0

        lessons_completed = await self.session.scalar(
            select(func.count(LessonProgress.id))
            .join(Lesson, Lesson.id == LessonProgress.lesson_id)
            .where(
                LessonProgress.user_id == user_id,
                Lesson.course_id == course_id,
                LessonProgress.status == LessonStatus.COMPLETED.value,
            )
        ) or 0

        # A course without lessons has nothing to complete
        all_lessons_done = total_lessons > 0 and lessons_completed >= total_lessons

        quiz_id = await self.session.scalar(
            select(Quiz.id).where(Quiz.course_id == course_id, Quiz.is_active.is_(True))
        )
        quiz_exists = quiz_id is not None
        quiz_passed = False
        if quiz_exists:
            passed_attempt = await self.session.scalar(
                select(QuizAttempt.id)
                .where(
                    QuizAttempt.quiz_id == quiz_id,
                    QuizAttempt.user_id == user_id,
                    QuizAttempt.status == AttemptStatus.COMPLETED.value,
                    QuizAttempt.passed.is_(True),
                )
                .limit(1)
            )
            quiz_passed = passed_attempt is not None

        return CourseCompletion(
            course_id=course_id,
            lessons_completed=lessons_completed,
            total_lessons=total_lessons,
            all_lessons_done=all_lessons_done,
            quiz_exists=quiz_exists,
            quiz_passed=quiz_passed,
            is_completed=all_lessons_done and (not quiz_exists or quiz_passed),
        )

    async def is_course_complete(self, user_id: uuid.UUID, course_id: uuid.UUID) -> bool:
        completion = await self.course_completion(user_id, course_id)
        return completion.is_completed

    async def completion_status(self, user_id: uuid.UUID, course_id: uuid.UUID) -> CourseCompletion:
        """
        Completion verdict plus the enrollment's ``completed_at`` stamp.

        The first time the verdict is complete, ``Enrollment.completed_at`` is
        set through a guarded UPDATE so concurrent readers stamp it only once.
        """
        await self._require_course(course_id)
        completion = await self.course_completion(user_id, course_id)

        enrollment = (
            await self.session.execute(
                select(Enrollment).where(
                    Enrollment.user_id == user_id,
                    Enrollment.course_id == course_id,
                )
            )
        ).scalar_one_or_none()
        if enrollment is None:
            return completion

        if completion.is_completed and enrollment.completed_at is None:
            now = utcnow()
            result = await self.session.execute(
                update(Enrollment)
                .where(
                    and_(
                        Enrollment.id == enrollment.id,
                        Enrollment.completed_at.is_(None),
                    )
                )
                .values(completed_at=now)
                .execution_options(synchronize_session=False)
            )
            await self.session.refresh(enrollment, ["completed_at"])
            if result.rowcount == 1:
                await EventStore(self.session).log_from_model(
                    event_type=EventType.COURSE_COMPLETED,
                    entity_type="enrollment",
                    entity_id=enrollment.id,
                    user_id=user_id,
                    payload_model=CourseCompletedEvent(
                        course_id=course_id,
                        lessons_completed=completion.lessons_completed,
                        quiz_passed=completion.quiz_passed,
                    ),
                )
                logger.info(
                    "Course completed",
                    extra={"course_id": str(course_id), "enrollment_id": str(enrollment.id)},
                )

        completion.completed_at = as_utc(enrollment.completed_at)
        return completion

    async def course_progress(self, user_id: uuid.UUID, course_id: uuid.UUID) -> CourseProgress:
        """Lesson-by-lesson time validation for the validated-progress metric."""
        await self._require_course(course_id)
        rows = (
            await self.session.execute(
                select(Lesson, LessonProgress)
                .outerjoin(
                    LessonProgress,
                    and_(
                        LessonProgress.lesson_id == Lesson.id,
                        LessonProgress.user_id == user_id,
                    ),
                )
                .where(Lesson.course_id == course_id)
                .order_by(Lesson.sort_order, Lesson.created_at)
            )
        ).all()

        reports: List[LessonProgressReport] = []
        for lesson, progress in rows:
            required = min_required_seconds(
                lesson.content_type, lesson.duration_minutes, lesson.text_content
            )
            spent = progress.time_spent_seconds if progress else 0
            reports.append(
                LessonProgressReport(
                    lesson_id=lesson.id,
                    title=lesson.title,
                    content_type=lesson.content_type,
                    duration_minutes=lesson.duration_minutes,
                    sort_order=lesson.sort_order,
                    status=progress.status if progress else LessonStatus.NOT_STARTED,
                    time_spent_seconds=spent,
                    min_required_seconds=required,
                    is_time_validated=is_time_validated(spent, required),
                    completed_at=progress.completed_at if progress else None,
                )
            )

        total = len(reports)
        completed = sum(1 for r in reports if r.status == LessonStatus.COMPLETED)
        validated = sum(
            1 for r in reports if r.status == LessonStatus.COMPLETED and r.is_time_validated
        )
        return CourseProgress(
            course_id=course_id,
            total_lessons=total,
            completed_lessons=completed,
            validated_completed_lessons=validated,
            progress_percent=_rounded_percent(completed, total),
            validated_progress_percent=_rounded_percent(validated, total),
            total_time_spent_seconds=sum(r.time_spent_seconds for r in reports),
            lessons=reports,
        )

