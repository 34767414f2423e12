"""
Lesson Progress Service - records the viewer's heartbeat per (user, lesson).
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.database import insert_for
from learnpath.engines.completion.enrollment import EnrollmentService
from learnpath.kernel.errors import NotEnrolledError, NotFoundError, ValidationError
from learnpath.kernel.events.event_store import EventStore
from learnpath.kernel.events.event_types import LessonCompletedEvent
from learnpath.kernel.models.base import generate_uuid, utcnow
from learnpath.kernel.models.course import Lesson, LessonProgress, LessonStatus
from learnpath.kernel.models.event_log import EventType
from learnpath.logging_config import get_logger

logger = get_logger(__name__)

# Status only moves forward
_STATUS_RANK = {
    LessonStatus.NOT_STARTED: 0,
    LessonStatus.IN_PROGRESS: 1,
    LessonStatus.COMPLETED: 2,
}


class LessonProgressService:
    """
    Upserts lesson progress.

    - ``time_spent_seconds`` is the cumulative total reported by the client;
      the stored value only ever grows.
    - ``progress_percent`` only ever grows.
    - status only moves forward, so ``completed`` is sticky.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def record(
        self,
        user_id: uuid.UUID,
        lesson_id: uuid.UUID,
        status: Optional[LessonStatus] = None,
        time_spent_seconds: Optional[int] = None,
        progress_percent: Optional[int] = None,
    ) -> LessonProgress:
        if time_spent_seconds is not None and time_spent_seconds < 0:
            raise ValidationError("time_spent_seconds cannot be negative")
        if progress_percent is not None and not 0 <= progress_percent <= 100:
            raise ValidationError("progress_percent must be between 0 and 100")

        lesson = await self.session.get(Lesson, lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson not found", lesson_id=lesson_id)

        if not await EnrollmentService(self.session).is_enrolled(user_id, lesson.course_id):
            raise NotEnrolledError()

        await self.session.execute(
            insert_for(self.session, LessonProgress)
            .values(
                id=generate_uuid(),
                user_id=user_id,
                lesson_id=lesson_id,
                course_id=lesson.course_id,
                status=LessonStatus.NOT_STARTED.value,
                progress_percent=0,
                time_spent_seconds=0,
            )
            .on_conflict_do_nothing(index_elements=["user_id", "lesson_id"])
        )

        progress = (
            await self.session.execute(
                select(LessonProgress)
                .where(
                    LessonProgress.user_id == user_id,
                    LessonProgress.lesson_id == lesson_id,
                )
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one()

        now = utcnow()
        current = LessonStatus(progress.status)

        if time_spent_seconds is not None:
            progress.time_spent_seconds = max(progress.time_spent_seconds, time_spent_seconds)
        if progress_percent is not None:
            progress.progress_percent = max(progress.progress_percent, progress_percent)

        target = LessonStatus(status) if status is not None else LessonStatus.IN_PROGRESS
        if _STATUS_RANK[target] > _STATUS_RANK[current]:
            progress.status = target.value
            if target == LessonStatus.COMPLETED:
                progress.completed_at = now
                progress.progress_percent = 100

        progress.last_accessed_at = now
        await self.session.flush()

        if current != LessonStatus.COMPLETED and target == LessonStatus.COMPLETED:
            await self.event_store.log_from_model(
                event_type=EventType.LESSON_COMPLETED,
                entity_type="lesson",
                entity_id=lesson_id,
                user_id=user_id,
                payload_model=LessonCompletedEvent(
                    course_id=lesson.course_id,
                    lesson_id=lesson_id,
                    time_spent_seconds=progress.time_spent_seconds,
                ),
            )
            logger.info(
                "Lesson completed",
                extra={"lesson_id": str(lesson_id), "course_id": str(lesson.course_id)},
            )

        return progress
