"""
Pydantic schemas for API request/response validation.
"""

from learnpath.schemas.common import ErrorResponse, HealthResponse
from learnpath.schemas.prerequisites import (
    PrerequisiteCreate,
    PrerequisiteEdgeResponse,
    PrerequisiteListResponse,
)
from learnpath.schemas.progress import (
    EnrollmentResponse,
    LessonHeartbeatResponse,
    LessonProgressResponse,
    LessonProgressUpdate,
)
from learnpath.schemas.quiz import (
    AttemptSubmitRequest,
    IntegrityEventRequest,
    QuestionAdminResponse,
    QuestionCreate,
    QuestionUpdate,
    QuizAdminResponse,
    QuizCreate,
    QuizUpdate,
)

__all__ = [
    # Common
    "ErrorResponse",
    "HealthResponse",
    # Prerequisites
    "PrerequisiteCreate",
    "PrerequisiteEdgeResponse",
    "PrerequisiteListResponse",
    # Progress
    "EnrollmentResponse",
    "LessonHeartbeatResponse",
    "LessonProgressResponse",
    "LessonProgressUpdate",
    # Quizzes
    "AttemptSubmitRequest",
    "IntegrityEventRequest",
    "QuestionAdminResponse",
    "QuestionCreate",
    "QuestionUpdate",
    "QuizAdminResponse",
    "QuizCreate",
    "QuizUpdate",
]
