"""Unit tests for the attempt lifecycle union and the error taxonomy."""

import uuid
from datetime import datetime, timezone

import pytest
from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from learnpath.engines.assessment.attempt_state import (
    AttemptState,
    CompletedAttempt,
    InProgressAttempt,
    attempt_state,
)
from learnpath.kernel.errors import (
    AttemptAlreadyActiveError,
    CourseLockedError,
    CycleError,
    NotEnrolledError,
    ProgressionError,
)
from learnpath.kernel.models.quiz import AttemptStatus, QuizAttempt

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
adapter = TypeAdapter(AttemptState)


def _base() -> dict:
    return {
        "id": uuid.uuid4(),
        "quiz_id": uuid.uuid4(),
        "user_id": uuid.uuid4(),
        "started_at": NOW,
    }


class TestAttemptState:
    def test_in_progress(self):
        state = adapter.validate_python({**_base(), "status": AttemptStatus.IN_PROGRESS})
        assert isinstance(state, InProgressAttempt)

    def test_completed_requires_outcome(self):
        with pytest.raises(PydanticValidationError):
            adapter.validate_python({**_base(), "status": AttemptStatus.COMPLETED})

    def test_completed(self):
        state = adapter.validate_python(
            {
                **_base(),
                "status": AttemptStatus.COMPLETED,
                "submitted_at": NOW,
                "score": 70.0,
                "passed": True,
                "time_spent_seconds": 120,
            }
        )
        assert isinstance(state, CompletedAttempt)
        assert state.auto_submitted is False

    def test_from_naive_sqlite_row(self):
        row = QuizAttempt(
            **_base(),
            status=AttemptStatus.IN_PROGRESS.value,
            integrity_warnings=1,
            integrity_flags=[{"type": "tab_hidden", "timestamp": NOW.isoformat()}],
        )
        row.started_at = NOW.replace(tzinfo=None)
        state = attempt_state(row)
        assert state.started_at.tzinfo is not None
        assert state.integrity_flags[0].type == "tab_hidden"


class TestErrorTaxonomy:
    def test_body_has_code_and_message(self):
        assert CycleError().to_dict() == {
            "detail": "Adding this prerequisite would create a circular dependency",
            "code": "cycle",
        }
        assert CycleError.status_code == 409

    def test_attempt_already_active_carries_id(self):
        attempt_id = uuid.uuid4()
        body = AttemptAlreadyActiveError(attempt_id).to_dict()
        assert body["attempt_id"] == str(attempt_id)
        assert body["code"] == "attempt_already_active"

    def test_authorization_errors(self):
        assert NotEnrolledError.status_code == 403
        body = CourseLockedError([{"course_id": "x", "is_completed": False}]).to_dict()
        assert body["prerequisites"][0]["course_id"] == "x"

    def test_custom_message(self):
        err = ProgressionError("Something specific", field="title")
        assert str(err) == "Something specific"
        assert err.to_dict()["field"] == "title"
