"""
Quiz models - one quiz per course, its questions, attempts and graded answers.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from learnpath.kernel.models.base import Base, TimestampMixin, generate_uuid


class QuestionType(str, Enum):
    SINGLE = "single"
    MULTIPLE = "multiple"


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


# Predicate of the partial unique index that allows one open attempt per (quiz, user)
IN_PROGRESS_PREDICATE = text("status = 'in_progress'")


class Quiz(Base, TimestampMixin):
    """
    Final assessment of a course.

    Invariants enforced by QuizAdminService: cannot be activated without
    questions, questions are frozen while active, cannot be deleted once
    attempted.
    """

    __tablename__ = "quizzes"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    course_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    time_limit_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=45)
    passing_score: Mapped[int] = mapped_column(Integer, nullable=False, default=70)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    questions: Mapped[List["QuizQuestion"]] = relationship(
        "QuizQuestion",
        back_populates="quiz",
        order_by="QuizQuestion.sort_order",
        cascade="all, delete-orphan",
    )


class QuizQuestion(Base):
    """A question with ordered options and a set of correct option indices."""

    __tablename__ = "quiz_questions"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question: Mapped[str] = mapped_column(Text, nullable=False)
    question_type: Mapped[QuestionType] = mapped_column(
        String(20),
        nullable=False,
        default=QuestionType.SINGLE,
    )
    options: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    # Stored sorted and de-duplicated
    correct_options: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=5)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    quiz: Mapped["Quiz"] = relationship("Quiz", back_populates="questions")


class QuizAttempt(Base):
    """
    One sitting of a quiz by one user.

    Row-level representation; engines convert it to the ``AttemptState``
    union (see ``learnpath.engines.assessment.attempt_state``).
    """

    __tablename__ = "quiz_attempts"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    quiz_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quizzes.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    status: Mapped[AttemptStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AttemptStatus.IN_PROGRESS,
    )
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    passed: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    time_spent_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    auto_submitted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    integrity_warnings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    integrity_flags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    answers: Mapped[List["QuizAnswer"]] = relationship(
        "QuizAnswer",
        back_populates="attempt",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index(
            "uq_quiz_attempts_one_in_progress",
            "quiz_id",
            "user_id",
            unique=True,
            postgresql_where=IN_PROGRESS_PREDICATE,
            sqlite_where=IN_PROGRESS_PREDICATE,
        ),
        Index("ix_quiz_attempts_quiz_user_status", "quiz_id", "user_id", "status"),
    )


class QuizAnswer(Base):
    """Graded answer, written once at submission and never updated."""

    __tablename__ = "quiz_answers"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=generate_uuid)
    attempt_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quiz_attempts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    question_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("quiz_questions.id", ondelete="CASCADE"),
        nullable=False,
    )
    selected_options: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    attempt: Mapped["QuizAttempt"] = relationship("QuizAttempt", back_populates="answers")

    __table_args__ = (UniqueConstraint("attempt_id", "question_id", name="uq_quiz_answers_attempt_question"),)
