"""
Domain error taxonomy.

Engines raise these; the API layer maps each to a status code and a stable
machine-readable ``code`` (see ``learnpath.main``). Messages are user-facing.
"""

import uuid
from typing import Any, Dict, List, Optional


class ProgressionError(Exception):
    """Base class for every error raised by the progression/assessment core."""

    code: str = "error"
    status_code: int = 400
    default_message: str = "Request could not be completed"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        self.message = message or self.default_message
        self.extra: Dict[str, Any] = extra
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        for key, value in self.extra.items():
            body[key] = str(value) if isinstance(value, uuid.UUID) else value
        return body


# Validation

class ValidationError(ProgressionError):
    """Malformed input: missing fields, non-positive points, bad indices."""

    code = "validation_error"
    status_code = 400
    default_message = "Invalid input"


# Conflicts

class ConflictError(ProgressionError):
    code = "conflict"
    status_code = 409
    default_message = "The request conflicts with the current state"


class SelfReferenceError(ConflictError):
    code = "self_reference"
    default_message = "A course cannot be a prerequisite of itself"


class CycleError(ConflictError):
    code = "cycle"
    default_message = "Adding this prerequisite would create a circular dependency"


class DuplicateEdgeError(ConflictError):
    code = "duplicate_prerequisite"
    default_message = "This prerequisite already exists"


class GraphBusyError(ConflictError):
    code = "graph_busy"
    default_message = "The prerequisite graph is being modified, please retry"


class AttemptAlreadyActiveError(ConflictError):
    code = "attempt_already_active"
    default_message = "You already have an in-progress attempt"

    def __init__(self, attempt_id: uuid.UUID, message: Optional[str] = None):
        self.attempt_id = attempt_id
        super().__init__(message, attempt_id=attempt_id)


class AlreadySubmittedError(ConflictError):
    code = "already_submitted"
    default_message = "Quiz already submitted"


class QuizAlreadyExistsError(ConflictError):
    code = "quiz_exists"
    default_message = "A quiz already exists for this course"


class QuizHasAttemptsError(ConflictError):
    code = "quiz_has_attempts"
    default_message = "Cannot delete a quiz that has attempts. Deactivate it instead."


# Not found

class NotFoundError(ProgressionError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


# Authorization

class AuthorizationError(ProgressionError):
    code = "forbidden"
    status_code = 403
    default_message = "Access denied"


class NotEnrolledError(AuthorizationError):
    code = "not_enrolled"
    default_message = "You must be enrolled in this course"


class QuizInactiveError(AuthorizationError):
    code = "quiz_inactive"
    default_message = "Quiz is not available"


class CourseLockedError(AuthorizationError):
    code = "course_locked"
    default_message = "Complete the prerequisite courses first"

    def __init__(self, prerequisites: List[Dict[str, Any]], message: Optional[str] = None):
        self.prerequisites = prerequisites
        super().__init__(message, prerequisites=prerequisites)
