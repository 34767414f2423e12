"""
Enrollment and lesson progress schemas.
"""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from learnpath.engines.completion import CourseCompletion
from learnpath.kernel.models.course import LessonStatus


class LessonProgressUpdate(BaseModel):
    """Heartbeat from the lesson player. Omitted fields are left unchanged."""

    status: Optional[LessonStatus] = None
    time_spent_seconds: Optional[int] = Field(None, ge=0)
    progress_percent: Optional[int] = Field(None, ge=0, le=100)


class LessonProgressResponse(BaseModel):
    """Stored progress of one lesson."""

    model_config = ConfigDict(from_attributes=True)

    lesson_id: uuid.UUID
    course_id: uuid.UUID
    status: LessonStatus
    progress_percent: int
    time_spent_seconds: int
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None


class LessonHeartbeatResponse(BaseModel):
    """Lesson progress plus the course verdict it may have changed."""

    progress: LessonProgressResponse
    completion: CourseCompletion


class EnrollmentResponse(BaseModel):
    """Enrollment of the current user in a course."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    course_id: uuid.UUID
    enrolled_at: datetime
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
