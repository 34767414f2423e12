"""
Stable Kernel Layer

Foundational components the engines build on:
- Models (catalog, progress, quizzes, event log)
- Immutable Event Log (every state change is logged in the same transaction)
- Identity Core (bearer token verification, user lookup)
- Error taxonomy mapped to HTTP responses at the API edge
"""

from learnpath.kernel.models import (
    User,
    UserRole,
    Course,
    Lesson,
    CoursePrerequisite,
    Enrollment,
    LessonProgress,
    Quiz,
    QuizQuestion,
    QuizAttempt,
    QuizAnswer,
    EventLog,
    EventType,
)

__all__ = [
    # Identity
    "User",
    "UserRole",
    # Catalog
    "Course",
    "Lesson",
    "CoursePrerequisite",
    # Progress
    "Enrollment",
    "LessonProgress",
    # Quizzes
    "Quiz",
    "QuizQuestion",
    "QuizAttempt",
    "QuizAnswer",
    # Event Log
    "EventLog",
    "EventType",
]
