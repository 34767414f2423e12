"""
Quiz schemas: learner-facing requests and admin authoring.
"""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from learnpath.kernel.models.quiz import QuestionType


# Learner requests

class AttemptSubmitRequest(BaseModel):
    """
    Selected option indices keyed by question id.

    Unanswered questions may be omitted; they are graded as wrong.
    """

    answers: Dict[str, List[int]] = Field(default_factory=dict)


class IntegrityEventRequest(BaseModel):
    """A loss-of-focus event reported by the quiz page."""

    type: str = Field(..., min_length=1, max_length=50)
    # Current answers, used if this event auto-submits the attempt
    answers: Optional[Dict[str, List[int]]] = None


# Admin authoring

class QuizCreate(BaseModel):
    """Create a quiz for a course; it starts inactive."""

    course_id: uuid.UUID
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = Field(None, gt=0)
    passing_score: Optional[int] = Field(None, ge=0, le=100)


class QuizUpdate(BaseModel):
    """Partial quiz update."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    time_limit_minutes: Optional[int] = Field(None, gt=0)
    passing_score: Optional[int] = Field(None, ge=0, le=100)
    is_active: Optional[bool] = None


class QuestionCreate(BaseModel):
    question: str = Field(..., min_length=1)
    question_type: QuestionType = QuestionType.SINGLE
    options: List[str]
    correct_options: List[int]
    points: Optional[int] = None


class QuestionUpdate(BaseModel):
    question: Optional[str] = None
    question_type: Optional[QuestionType] = None
    options: Optional[List[str]] = None
    correct_options: Optional[List[int]] = None
    points: Optional[int] = None
    sort_order: Optional[int] = None


class QuestionAdminResponse(BaseModel):
    """Question with its answer key, for admins only."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    quiz_id: uuid.UUID
    question: str
    question_type: QuestionType
    options: List[str]
    correct_options: List[int]
    points: int
    sort_order: int


class QuizAdminResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    course_id: uuid.UUID
    title: str
    description: Optional[str] = None
    time_limit_minutes: int
    passing_score: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
    questions: List[QuestionAdminResponse] = Field(default_factory=list)
