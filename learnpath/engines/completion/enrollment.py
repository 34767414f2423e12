"""
Enrollment Service - course entry gate and enrollment bookkeeping.

Entering a course asks the prerequisite graph whether every immediate
prerequisite is complete; the first successful entry creates the
enrollment row.
"""

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.database import insert_for
from learnpath.kernel.errors import CourseLockedError, NotFoundError
from learnpath.kernel.events.event_store import EventStore
from learnpath.kernel.events.event_types import EnrollmentEvent
from learnpath.kernel.models.base import generate_uuid
from learnpath.kernel.models.course import Course, Enrollment
from learnpath.kernel.models.event_log import EventType
from learnpath.logging_config import get_logger

logger = get_logger(__name__)


class EnrollmentService:
    """Enrollment lookups and the auto-enrolling course entry."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)

    async def get_enrollment(self, user_id: uuid.UUID, course_id: uuid.UUID) -> Optional[Enrollment]:
        result = await self.session.execute(
            select(Enrollment).where(
                Enrollment.user_id == user_id,
                Enrollment.course_id == course_id,
            )
        )
        return result.scalar_one_or_none()

    async def is_enrolled(self, user_id: uuid.UUID, course_id: uuid.UUID) -> bool:
        return await self.get_enrollment(user_id, course_id) is not None

    async def enter_course(
        self,
        user_id: uuid.UUID,
        course_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> Enrollment:
        """
        Gate and enroll.

        Raises:
            NotFoundError: unknown course
            CourseLockedError: at least one immediate prerequisite is incomplete;
                carries the status of every prerequisite for the locked view
        """
        # Imported here: the graph decorates edges with completion verdicts
        # from this package, so a module-level import would be circular.
        from learnpath.engines.prerequisites.graph import PrerequisiteGraph

        course = await self.session.get(Course, course_id)
        if course is None:
            raise NotFoundError("Course not found", course_id=course_id)

        all_met, prerequisites = await PrerequisiteGraph(self.session).check_prerequisites(
            user_id, course_id
        )
        if not all_met:
            logger.info(
                "Course entry blocked by prerequisites",
                extra={"course_id": str(course_id)},
            )
            raise CourseLockedError([p.model_dump(mode="json") for p in prerequisites])

        existing = await self.get_enrollment(user_id, course_id)
        if existing is not None:
            return existing

        # Two first visits can race; the unique (user_id, course_id) key keeps one row
        stmt = (
            insert_for(self.session, Enrollment)
            .values(id=generate_uuid(), user_id=user_id, course_id=course_id)
            .on_conflict_do_nothing(index_elements=["user_id", "course_id"])
            .returning(Enrollment.id)
        )
        inserted_id = (await self.session.execute(stmt)).scalar_one_or_none()

        enrollment = await self.get_enrollment(user_id, course_id)
        if inserted_id is not None:
            await self.event_store.log_from_model(
                event_type=EventType.ENROLLMENT_CREATED,
                entity_type="enrollment",
                entity_id=inserted_id,
                user_id=user_id,
                payload_model=EnrollmentEvent(course_id=course_id),
                ip_address=ip_address,
            )
            logger.info("Enrollment created", extra={"course_id": str(course_id)})
        return enrollment
