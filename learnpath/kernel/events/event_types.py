"""
Event payload definitions using Pydantic for validation.

These are the payload schemas for events logged to the audit trail.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from learnpath.kernel.models.base import utcnow


class BaseEvent(BaseModel):
    """Base event payload structure."""

    model_config = ConfigDict(extra="allow")

    timestamp: datetime = Field(default_factory=utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)


# Prerequisite graph

class PrerequisiteEvent(BaseEvent):
    """Edge added or removed."""

    course_id: uuid.UUID
    prerequisite_course_id: uuid.UUID


# Enrollment / progress

class EnrollmentEvent(BaseEvent):
    course_id: uuid.UUID


class LessonCompletedEvent(BaseEvent):
    course_id: uuid.UUID
    lesson_id: uuid.UUID
    time_spent_seconds: int


class CourseCompletedEvent(BaseEvent):
    course_id: uuid.UUID
    lessons_completed: int
    quiz_passed: bool


# Quiz attempts

class AttemptStartedEvent(BaseEvent):
    quiz_id: uuid.UUID
    time_limit_minutes: int


class IntegrityWarningEvent(BaseEvent):
    """A page-leave style violation reported by the client."""

    quiz_id: uuid.UUID
    kind: str
    warnings: int
    escalated: bool = False


class AttemptSubmittedEvent(BaseEvent):
    quiz_id: uuid.UUID
    score: float
    passed: bool
    correct_count: int
    total_questions: int
    time_spent_seconds: int
    auto_submitted: bool = False


# Quiz administration

class QuizEvent(BaseEvent):
    course_id: uuid.UUID
    title: Optional[str] = None
    changed_fields: List[str] = Field(default_factory=list)


class QuestionEvent(BaseEvent):
    quiz_id: uuid.UUID
    question_type: Optional[str] = None
    points: Optional[int] = None
