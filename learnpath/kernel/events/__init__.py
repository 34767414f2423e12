"""
Event sourcing infrastructure.

Provides append-only audit logging with immutable events.
"""

from learnpath.kernel.events.event_store import EventStore
from learnpath.kernel.events.event_types import (
    BaseEvent,
    PrerequisiteEvent,
    EnrollmentEvent,
    LessonCompletedEvent,
    CourseCompletedEvent,
    AttemptStartedEvent,
    IntegrityWarningEvent,
    AttemptSubmittedEvent,
    QuizEvent,
    QuestionEvent,
)

__all__ = [
    "EventStore",
    "BaseEvent",
    "PrerequisiteEvent",
    "EnrollmentEvent",
    "LessonCompletedEvent",
    "CourseCompletedEvent",
    "AttemptStartedEvent",
    "IntegrityWarningEvent",
    "AttemptSubmittedEvent",
    "QuizEvent",
    "QuestionEvent",
]
