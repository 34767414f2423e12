"""
Quiz endpoints - the learner side of the attempt lifecycle.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, status

from learnpath.api.deps import ClientIp, CurrentUser, DbSession
from learnpath.engines.assessment import (
    AttemptState,
    CompletedAttempt,
    IntegrityWarningResult,
    QuizAttemptService,
    QuizOverview,
    StartedAttempt,
    SubmissionResult,
)
from learnpath.schemas.common import ErrorResponse
from learnpath.schemas.quiz import AttemptSubmitRequest, IntegrityEventRequest

router = APIRouter()


@router.get("/quizzes/{quiz_id}", response_model=QuizOverview)
async def get_quiz_overview(
    quiz_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    """Quiz info, the attempt to resume (if any) and the caller's best result."""
    return await QuizAttemptService(db).quiz_overview(user.id, quiz_id)


@router.post(
    "/quizzes/{quiz_id}/attempts",
    response_model=StartedAttempt,
    status_code=status.HTTP_201_CREATED,
    responses={403: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def start_attempt(
    quiz_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
    ip_address: ClientIp,
):
    """
    Start an attempt. Questions are returned without their answer keys.
    409 ``attempt_already_active`` carries the ``attempt_id`` to resume.
    """
    return await QuizAttemptService(db).start(user.id, quiz_id, ip_address=ip_address)


@router.get("/quizzes/{quiz_id}/best-attempt", response_model=Optional[CompletedAttempt])
async def get_best_attempt(
    quiz_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    return await QuizAttemptService(db).get_best_attempt(user.id, quiz_id)


@router.get("/attempts/{attempt_id}", response_model=AttemptState)
async def get_attempt(
    attempt_id: uuid.UUID,
    user: CurrentUser,
    db: DbSession,
):
    return await QuizAttemptService(db).get_attempt(user.id, attempt_id)


@router.post("/attempts/{attempt_id}/integrity", response_model=IntegrityWarningResult)
async def report_integrity_event(
    attempt_id: uuid.UUID,
    data: IntegrityEventRequest,
    user: CurrentUser,
    db: DbSession,
):
    """Loss of focus on the quiz page. The second event auto-submits."""
    return await QuizAttemptService(db).record_integrity_warning(
        user.id,
        attempt_id,
        data.type,
        answers=data.answers,
    )


@router.post(
    "/attempts/{attempt_id}/submit",
    response_model=SubmissionResult,
    responses={409: {"model": ErrorResponse}},
)
async def submit_attempt(
    attempt_id: uuid.UUID,
    data: AttemptSubmitRequest,
    user: CurrentUser,
    db: DbSession,
):
    """Grade and close the attempt. A second submit is 409 ``already_submitted``."""
    return await QuizAttemptService(db).submit(user.id, attempt_id, data.answers)
