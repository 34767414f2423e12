"""
Progress endpoints - course entry, completion verdicts, lesson heartbeats.
"""

import uuid

from fastapi import APIRouter

from learnpath.api.deps import ClientIp, CurrentUser, DbSession
from learnpath.engines.completion import (
    CompletionEvaluator,
    CourseCompletion,
    CourseProgress,
    EnrollmentService,
    LessonProgressService,
)
from learnpath.schemas.common import ErrorResponse
from learnpath.schemas.progress import (
    EnrollmentResponse,
    LessonHeartbeatResponse,
    LessonProgressResponse,
    LessonProgressUpdate,
)

router = APIRouter()


@router.post(
    "/courses/{course_id}/enter",
    response_model=EnrollmentResponse,
    responses={403: {"model": ErrorResponse}},
)
async def enter_course(
    course_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    ip_address: ClientIp,
):
    """
    Open a course. Enrolls on first entry; 403 ``course_locked`` with the
    prerequisite statuses while any prerequisite is incomplete.
    """
    enrollment = await EnrollmentService(db).enter_course(user.id, course_id, ip_address=ip_address)
    return EnrollmentResponse.model_validate(enrollment)


@router.get("/courses/{course_id}/completion", response_model=CourseCompletion)
async def get_completion_status(
    course_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    """Whether the caller has completed the course: every lesson done and the quiz passed."""
    return await CompletionEvaluator(db).completion_status(user.id, course_id)


@router.get("/courses/{course_id}/progress", response_model=CourseProgress)
async def get_course_progress(
    course_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    """Per-lesson time validation. Reporting only; it does not gate completion."""
    return await CompletionEvaluator(db).course_progress(user.id, course_id)


@router.post("/lessons/{lesson_id}/progress", response_model=LessonHeartbeatResponse)
async def record_lesson_progress(
    lesson_id: uuid.UUID,
    data: LessonProgressUpdate,
    user: CurrentUser,
    db: DbSession,
):
    progress = await LessonProgressService(db).record(
        user.id,
        lesson_id,
        status=data.status,
        time_spent_seconds=data.time_spent_seconds,
        progress_percent=data.progress_percent,
    )
    completion = await CompletionEvaluator(db).completion_status(user.id, progress.course_id)
    return LessonHeartbeatResponse(
        progress=LessonProgressResponse.model_validate(progress),
        completion=completion,
    )
