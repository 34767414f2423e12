"""
Attempt lifecycle as a closed set of states.

    NONE -> IN_PROGRESS -> COMPLETED (terminal)

A completed attempt always carries its grading outcome, so consumers never
see a "completed" attempt without a score.
"""

import uuid
from datetime import datetime
from typing import Annotated, Any, Dict, List, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from learnpath.kernel.models.base import as_utc
from learnpath.kernel.models.quiz import AttemptStatus, QuizAttempt


class IntegrityFlag(BaseModel):
    type: str
    timestamp: datetime


class _AttemptBase(BaseModel):
    id: uuid.UUID
    quiz_id: uuid.UUID
    user_id: uuid.UUID
    started_at: datetime
    integrity_warnings: int = 0
    integrity_flags: List[IntegrityFlag] = Field(default_factory=list)


class InProgressAttempt(_AttemptBase):
    status: Literal[AttemptStatus.IN_PROGRESS] = AttemptStatus.IN_PROGRESS


class CompletedAttempt(_AttemptBase):
    status: Literal[AttemptStatus.COMPLETED] = AttemptStatus.COMPLETED
    submitted_at: datetime
    score: float
    passed: bool
    time_spent_seconds: int
    auto_submitted: bool = False


AttemptState = Annotated[
    Union[InProgressAttempt, CompletedAttempt],
    Field(discriminator="status"),
]

_attempt_adapter: TypeAdapter = TypeAdapter(AttemptState)


def attempt_state(row: QuizAttempt) -> Union[InProgressAttempt, CompletedAttempt]:
    """Convert an attempt row to its lifecycle state."""
    data: Dict[str, Any] = {
        "id": row.id,
        "quiz_id": row.quiz_id,
        "user_id": row.user_id,
        "status": AttemptStatus(row.status),
        "started_at": as_utc(row.started_at),
        "integrity_warnings": row.integrity_warnings or 0,
        "integrity_flags": list(row.integrity_flags or []),
    }
    if data["status"] == AttemptStatus.COMPLETED:
        data.update(
            submitted_at=as_utc(row.submitted_at),
            score=row.score,
            passed=row.passed,
            time_spent_seconds=row.time_spent_seconds,
            auto_submitted=row.auto_submitted,
        )
    return _attempt_adapter.validate_python(data)
