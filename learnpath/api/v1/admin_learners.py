"""
Admin learner analytics endpoints.
"""

import uuid

from fastapi import APIRouter

from learnpath.api.deps import AdminUser, DbSession
from learnpath.engines.completion import LearnerSummary, LearnerSummaryService
from learnpath.schemas.common import ErrorResponse

router = APIRouter()


@router.get(
    "/{user_id}/summary",
    response_model=LearnerSummary,
    responses={404: {"model": ErrorResponse}},
)
async def get_learner_summary(user_id: uuid.UUID, admin: AdminUser, db: DbSession):
    """Progress in every enrolled course plus the learner's quiz attempt history."""
    return await LearnerSummaryService(db).summarize(user_id)
