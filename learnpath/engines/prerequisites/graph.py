"""
Prerequisite Graph - cycle-checked edges between courses and unlock checks.

Edges point from a course to a course it requires. The edge set must stay
acyclic; every insertion goes through ``add_edge``, which checks the whole
graph and inserts inside the caller's transaction while holding a
graph-wide write lock.
"""

import uuid
from typing import Dict, List, Optional, Set, Tuple

from pydantic import BaseModel
from sqlalchemy import delete, false, select, text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.database import dialect_name
from learnpath.engines.completion.evaluator import CompletionEvaluator
from learnpath.engines.prerequisites.cycles import build_adjacency, would_create_cycle
from learnpath.kernel.errors import (
    CycleError,
    DuplicateEdgeError,
    GraphBusyError,
    NotFoundError,
    SelfReferenceError,
)
from learnpath.kernel.events.event_store import EventStore
from learnpath.kernel.events.event_types import PrerequisiteEvent
from learnpath.kernel.models.course import Course, CoursePrerequisite
from learnpath.kernel.models.event_log import EventType
from learnpath.logging_config import get_logger

logger = get_logger(__name__)


class PrerequisiteStatus(BaseModel):
    """
    A course at the other end of an edge. Completion fields are filled only
    when the listing is evaluated for a user.
    """

    course_id: uuid.UUID
    title: str
    slug: str
    is_completed: Optional[bool] = None
    lessons_completed: Optional[int] = None
    total_lessons: Optional[int] = None
    quiz_exists: Optional[bool] = None
    quiz_passed: Optional[bool] = None


class PrerequisiteGraph:
    """
    Course prerequisite graph backed by ``course_prerequisites``.

    Unlocking only looks at immediate prerequisites: a deep chain unlocks
    level by level as the learner completes each course.
    """

    # Key of the transaction-scoped advisory lock serializing edge inserts (PostgreSQL)
    ADVISORY_LOCK_KEY = 7_310_512_001

    def __init__(self, session: AsyncSession):
        self.session = session
        self.event_store = EventStore(session)
        self.evaluator = CompletionEvaluator(session)

    async def load_adjacency(self) -> Dict[uuid.UUID, Set[uuid.UUID]]:
        """Whole edge set as ``{course_id: {required_course_id, ...}}``."""
        result = await self.session.execute(
            select(CoursePrerequisite.course_id, CoursePrerequisite.prerequisite_course_id)
        )
        return build_adjacency(result.all())

    async def _lock_graph(self) -> None:
        """
        Serialize writers for the rest of the transaction.

        PostgreSQL: advisory lock released at commit/rollback.
        SQLite: a no-op write takes the database write lock up front. A
        competing writer that cannot get it surfaces as ``GraphBusyError``
        and the client retries.
        """
        try:
            if dialect_name(self.session) == "postgresql":
                await self.session.execute(
                    text("SELECT pg_advisory_xact_lock(:key)"),
                    {"key": self.ADVISORY_LOCK_KEY},
                )
            else:
                await self.session.execute(
                    delete(CoursePrerequisite)
                    .where(false())
                    .execution_options(synchronize_session=False)
                )
        except OperationalError as exc:
            logger.warning("Prerequisite graph lock not acquired: %s", exc.orig)
            raise GraphBusyError() from exc

    async def _require_courses(self, *course_ids: uuid.UUID) -> None:
        found = set(
            (
                await self.session.execute(select(Course.id).where(Course.id.in_(course_ids)))
            ).scalars()
        )
        for course_id in course_ids:
            if course_id not in found:
                raise NotFoundError("Course not found", course_id=course_id)

    async def add_edge(
        self,
        course_id: uuid.UUID,
        required_course_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> CoursePrerequisite:
        """
        Make ``required_course_id`` a prerequisite of ``course_id``.

        Raises:
            NotFoundError: either course does not exist
            SelfReferenceError: both ids are the same course
            CycleError: the required course already depends on ``course_id``
            DuplicateEdgeError: the edge already exists
        """
        await self._lock_graph()
        await self._require_courses(course_id, required_course_id)

        if course_id == required_course_id:
            raise SelfReferenceError()

        adjacency = await self.load_adjacency()
        if would_create_cycle(adjacency, course_id, required_course_id):
            logger.warning(
                "Prerequisite rejected: would create a cycle",
                extra={"course_id": str(course_id), "required_course_id": str(required_course_id)},
            )
            raise CycleError()

        if required_course_id in adjacency.get(course_id, ()):
            raise DuplicateEdgeError()

        edge = CoursePrerequisite(
            course_id=course_id,
            prerequisite_course_id=required_course_id,
        )
        self.session.add(edge)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise DuplicateEdgeError() from exc
        await self.session.refresh(edge)

        await self.event_store.log_from_model(
            event_type=EventType.PREREQUISITE_ADDED,
            entity_type="course",
            entity_id=course_id,
            user_id=actor_id,
            payload_model=PrerequisiteEvent(
                course_id=course_id,
                prerequisite_course_id=required_course_id,
            ),
        )
        logger.info(
            "Prerequisite added",
            extra={"course_id": str(course_id), "required_course_id": str(required_course_id)},
        )
        return edge

    async def remove_edge(
        self,
        course_id: uuid.UUID,
        required_course_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Delete an edge. Removal can never introduce a cycle."""
        edge = (
            await self.session.execute(
                select(CoursePrerequisite).where(
                    CoursePrerequisite.course_id == course_id,
                    CoursePrerequisite.prerequisite_course_id == required_course_id,
                )
            )
        ).scalar_one_or_none()
        if edge is None:
            raise NotFoundError("Prerequisite not found")

        await self.session.delete(edge)
        await self.session.flush()

        await self.event_store.log_from_model(
            event_type=EventType.PREREQUISITE_REMOVED,
            entity_type="course",
            entity_id=course_id,
            user_id=actor_id,
            payload_model=PrerequisiteEvent(
                course_id=course_id,
                prerequisite_course_id=required_course_id,
            ),
        )
        logger.info(
            "Prerequisite removed",
            extra={"course_id": str(course_id), "required_course_id": str(required_course_id)},
        )

    async def _decorate(
        self,
        rows: List[Tuple[uuid.UUID, str, str]],
        user_id: Optional[uuid.UUID],
    ) -> List[PrerequisiteStatus]:
        statuses = []
        for other_id, title, slug in rows:
            status = PrerequisiteStatus(course_id=other_id, title=title, slug=slug)
            if user_id is not None:
                completion = await self.evaluator.course_completion(user_id, other_id)
                status.is_completed = completion.is_completed
                status.lessons_completed = completion.lessons_completed
                status.total_lessons = completion.total_lessons
                status.quiz_exists = completion.quiz_exists
                status.quiz_passed = completion.quiz_passed
            statuses.append(status)
        return statuses

    async def prerequisites_of(
        self,
        course_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
    ) -> List[PrerequisiteStatus]:
        """Immediate prerequisites of a course, ordered by title."""
        await self._require_courses(course_id)
        result = await self.session.execute(
            select(Course.id, Course.title, Course.slug)
            .join(CoursePrerequisite, CoursePrerequisite.prerequisite_course_id == Course.id)
            .where(CoursePrerequisite.course_id == course_id)
            .order_by(Course.title)
        )
        return await self._decorate([tuple(r) for r in result.all()], user_id)

    async def dependents_of(
        self,
        course_id: uuid.UUID,
        user_id: Optional[uuid.UUID] = None,
    ) -> List[PrerequisiteStatus]:
        """Courses that list this course as an immediate prerequisite."""
        await self._require_courses(course_id)
        result = await self.session.execute(
            select(Course.id, Course.title, Course.slug)
            .join(CoursePrerequisite, CoursePrerequisite.course_id == Course.id)
            .where(CoursePrerequisite.prerequisite_course_id == course_id)
            .order_by(Course.title)
        )
        return await self._decorate([tuple(r) for r in result.all()], user_id)

    async def check_prerequisites(
        self,
        user_id: uuid.UUID,
        course_id: uuid.UUID,
    ) -> Tuple[bool, List[PrerequisiteStatus]]:
        """Whether every immediate prerequisite is complete, with per-course detail."""
        statuses = await self.prerequisites_of(course_id, user_id)
        return all(s.is_completed for s in statuses), statuses

    async def is_unlocked(self, user_id: uuid.UUID, course_id: uuid.UUID) -> bool:
        all_met, _ = await self.check_prerequisites(user_id, course_id)
        return all_met
