"""
Immutable event log for audit trail.

Every state change made by the progression core is appended here inside the
same transaction as the change itself.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, String, Text, func, Index, JSON, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from learnpath.kernel.models.base import Base, generate_uuid


class EventType(str, Enum):
    """All event types for the audit log."""

    # Prerequisite graph
    PREREQUISITE_ADDED = "prerequisite.added"
    PREREQUISITE_REMOVED = "prerequisite.removed"

    # Enrollment and progress
    ENROLLMENT_CREATED = "enrollment.created"
    COURSE_COMPLETED = "enrollment.course_completed"
    LESSON_COMPLETED = "progress.lesson_completed"

    # Quiz attempts
    ATTEMPT_STARTED = "quiz.attempt_started"
    INTEGRITY_WARNING = "quiz.integrity_warning"
    ATTEMPT_SUBMITTED = "quiz.attempt_submitted"
    ATTEMPT_AUTO_SUBMITTED = "quiz.attempt_auto_submitted"

    # Quiz administration
    QUIZ_CREATED = "quiz.created"
    QUIZ_UPDATED = "quiz.updated"
    QUIZ_ACTIVATED = "quiz.activated"
    QUIZ_DEACTIVATED = "quiz.deactivated"
    QUIZ_DELETED = "quiz.deleted"
    QUESTION_ADDED = "quiz.question_added"
    QUESTION_UPDATED = "quiz.question_updated"
    QUESTION_DELETED = "quiz.question_deleted"


class EventLog(Base):
    """
    Immutable audit event log.

    This table is append-only - no updates or deletes allowed.
    """

    __tablename__ = "event_logs"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        primary_key=True,
        default=generate_uuid,
    )

    event_type: Mapped[EventType] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )

    # Entity reference
    entity_type: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    entity_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        nullable=False,
        index=True,
    )

    # Actor
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        nullable=True,  # System events may not have a user
        index=True,
    )

    payload: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    ip_address: Mapped[Optional[str]] = mapped_column(
        String(45),  # IPv6 max length
        nullable=True,
    )
    user_agent: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        index=True,
    )

    __table_args__ = (
        Index("ix_event_logs_entity", "entity_type", "entity_id"),
        Index("ix_event_logs_user_time", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<EventLog {self.event_type} {self.entity_type}:{self.entity_id}>"
