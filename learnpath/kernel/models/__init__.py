"""
Kernel Data Models

SQLAlchemy models for the course catalog, progression state, quizzes and
the audit log.
"""

from learnpath.kernel.models.base import Base, TimestampMixin, generate_uuid, utcnow, as_utc
from learnpath.kernel.models.user import User, UserRole, ADMIN_ROLES
from learnpath.kernel.models.course import (
    Course,
    CoursePrerequisite,
    ContentType,
    Enrollment,
    Lesson,
    LessonProgress,
    LessonStatus,
)
from learnpath.kernel.models.quiz import (
    AttemptStatus,
    QuestionType,
    Quiz,
    QuizAnswer,
    QuizAttempt,
    QuizQuestion,
)
from learnpath.kernel.models.event_log import EventLog, EventType

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "generate_uuid",
    "utcnow",
    "as_utc",
    # User
    "User",
    "UserRole",
    "ADMIN_ROLES",
    # Catalog & progress
    "Course",
    "CoursePrerequisite",
    "ContentType",
    "Enrollment",
    "Lesson",
    "LessonProgress",
    "LessonStatus",
    # Quizzes
    "AttemptStatus",
    "QuestionType",
    "Quiz",
    "QuizAnswer",
    "QuizAttempt",
    "QuizQuestion",
    # Event Log
    "EventLog",
    "EventType",
]
