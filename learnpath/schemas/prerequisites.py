"""
Prerequisite graph schemas.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from learnpath.engines.prerequisites import PrerequisiteStatus


class PrerequisiteCreate(BaseModel):
    """Make ``required_course_id`` a prerequisite of the course in the path."""

    required_course_id: uuid.UUID


class PrerequisiteEdgeResponse(BaseModel):
    """A stored prerequisite edge."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    course_id: uuid.UUID
    prerequisite_course_id: uuid.UUID
    created_at: datetime


class PrerequisiteListResponse(BaseModel):
    """
    Immediate neighbours of a course in the prerequisite graph.

    ``all_met`` is the caller's unlock verdict for the course.
    """

    course_id: uuid.UUID
    prerequisites: List[PrerequisiteStatus]
    dependents: List[PrerequisiteStatus]
    all_met: Optional[bool] = None
