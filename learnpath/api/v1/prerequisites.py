"""
Prerequisite endpoints - read a course's graph neighbours, admins edit edges.
"""

import uuid

from fastapi import APIRouter, status

from learnpath.api.deps import AdminUser, CurrentUser, DbSession
from learnpath.engines.prerequisites import PrerequisiteGraph
from learnpath.schemas.common import ErrorResponse
from learnpath.schemas.prerequisites import (
    PrerequisiteCreate,
    PrerequisiteEdgeResponse,
    PrerequisiteListResponse,
)

router = APIRouter()


@router.get("/courses/{course_id}/prerequisites", response_model=PrerequisiteListResponse)
async def get_prerequisites(
    course_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    """Immediate prerequisites (with the caller's completion) and dependents of a course."""
    graph = PrerequisiteGraph(db)
    all_met, prerequisites = await graph.check_prerequisites(user.id, course_id)
    dependents = await graph.dependents_of(course_id)
    return PrerequisiteListResponse(
        course_id=course_id,
        prerequisites=prerequisites,
        dependents=dependents,
        all_met=all_met,
    )


@router.post(
    "/courses/{course_id}/prerequisites",
    response_model=PrerequisiteEdgeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def add_prerequisite(
    course_id: uuid.UUID,
    data: PrerequisiteCreate,
    admin: AdminUser,
    db: DbSession,
):
    """Require ``required_course_id`` before ``course_id``. Rejects cycles."""
    edge = await PrerequisiteGraph(db).add_edge(course_id, data.required_course_id, actor_id=admin.id)
    return PrerequisiteEdgeResponse.model_validate(edge)


@router.delete(
    "/courses/{course_id}/prerequisites/{required_course_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_prerequisite(
    course_id: uuid.UUID,
    required_course_id: uuid.UUID,
    admin: AdminUser,
    db: DbSession,
):
    await PrerequisiteGraph(db).remove_edge(course_id, required_course_id, actor_id=admin.id)
