"""
Quiz Admin Service - authoring rules for quizzes and their questions.

Rules:
- At most one quiz per course; new quizzes start inactive.
- A quiz cannot be activated without questions.
- Questions are frozen while the quiz is active.
- A quiz that has attempts cannot be deleted, only deactivated.
"""

import uuid
from typing import List, Optional, Sequence

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from learnpath.config import Settings, get_settings
from learnpath.kernel.errors import (
    NotFoundError,
    QuizAlreadyExistsError,
    QuizHasAttemptsError,
    ValidationError,
)
from learnpath.kernel.events.event_store import EventStore
from learnpath.kernel.events.event_types import QuestionEvent, QuizEvent
from learnpath.kernel.models.course import Course
from learnpath.kernel.models.event_log import EventType
from learnpath.kernel.models.quiz import AttemptStatus, QuestionType, Quiz, QuizAttempt, QuizQuestion
from learnpath.logging_config import get_logger

logger = get_logger(__name__)


class QuizStats(BaseModel):
    quiz_id: uuid.UUID
    total_attempts: int
    completed_attempts: int
    passed_attempts: int
    pass_rate: float
    average_score: Optional[float] = None


class QuizAdminService:
    """Create, edit, publish and delete quizzes."""

    MIN_OPTIONS = 2

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()
        self.event_store = EventStore(session)

    # Validation

    @classmethod
    def validate_question(
        cls,
        question_type: QuestionType,
        options: Sequence[str],
        correct_options: Sequence[int],
        points: int,
    ) -> List[int]:
        """
        Check a question definition and return its correct options sorted
        and de-duplicated.

        Raises:
            ValidationError: non-positive points, fewer than two options,
                empty or out-of-range correct indices, or more than one
                correct option on a single-answer question
        """
        if points is None or points <= 0:
            raise ValidationError("Points must be greater than zero")
        if len(options) < cls.MIN_OPTIONS:
            raise ValidationError("A question needs at least two options")
        if any(not str(o).strip() for o in options):
            raise ValidationError("Options cannot be empty")

        correct = sorted(set(correct_options))
        if not correct:
            raise ValidationError("At least one correct option is required")
        if any(i < 0 or i >= len(options) for i in correct):
            raise ValidationError("Correct option index out of range")
        if QuestionType(question_type) == QuestionType.SINGLE and len(correct) != 1:
            raise ValidationError("Single-answer questions need exactly one correct option")
        return correct

    @staticmethod
    def _validate_quiz_fields(
        time_limit_minutes: Optional[int],
        passing_score: Optional[int],
    ) -> None:
        if time_limit_minutes is not None and time_limit_minutes <= 0:
            raise ValidationError("Time limit must be greater than zero")
        if passing_score is not None and not 0 <= passing_score <= 100:
            raise ValidationError("Passing score must be between 0 and 100")

    # Loading

    async def _load_quiz(self, quiz_id: uuid.UUID, with_questions: bool = False) -> Quiz:
        query = select(Quiz).where(Quiz.id == quiz_id)
        if with_questions:
            # Refresh a quiz already in the session so its question list is current
            query = query.options(selectinload(Quiz.questions)).execution_options(populate_existing=True)
        quiz = (await self.session.execute(query)).scalar_one_or_none()
        if quiz is None:
            raise NotFoundError("Quiz not found", quiz_id=quiz_id)
        return quiz

    async def _load_question(self, quiz_id: uuid.UUID, question_id: uuid.UUID) -> QuizQuestion:
        question = await self.session.get(QuizQuestion, question_id)
        if question is None or question.quiz_id != quiz_id:
            raise NotFoundError("Question not found", question_id=question_id)
        return question

    @staticmethod
    def _require_editable(quiz: Quiz) -> None:
        if quiz.is_active:
            raise ValidationError("Cannot modify questions of an active quiz. Deactivate first.")

    async def _question_count(self, quiz_id: uuid.UUID) -> int:
        return await self.session.scalar(
            select(func.count(QuizQuestion.id)).where(QuizQuestion.quiz_id == quiz_id)
        ) or 0

    async def get_quiz(self, quiz_id: uuid.UUID) -> Quiz:
        """Quiz with its questions (including correct answers)."""
        return await self._load_quiz(quiz_id, with_questions=True)

    async def list_quizzes(self) -> List[Quiz]:
        result = await self.session.execute(
            select(Quiz).options(selectinload(Quiz.questions)).order_by(Quiz.created_at.desc())
        )
        return list(result.scalars().all())

    # Quizzes

    async def create_quiz(
        self,
        course_id: uuid.UUID,
        title: str,
        description: Optional[str] = None,
        time_limit_minutes: Optional[int] = None,
        passing_score: Optional[int] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Quiz:
        if not title or not title.strip():
            raise ValidationError("Course and title are required")
        self._validate_quiz_fields(time_limit_minutes, passing_score)

        if await self.session.get(Course, course_id) is None:
            raise NotFoundError("Course not found", course_id=course_id)

        existing = await self.session.scalar(select(Quiz.id).where(Quiz.course_id == course_id))
        if existing is not None:
            raise QuizAlreadyExistsError(quiz_id=existing)

        quiz = Quiz(
            course_id=course_id,
            title=title.strip(),
            description=description,
            time_limit_minutes=time_limit_minutes or self.settings.default_quiz_time_limit_minutes,
            passing_score=(
                passing_score if passing_score is not None else self.settings.default_quiz_passing_score
            ),
            is_active=False,
        )
        self.session.add(quiz)
        await self.session.flush()
        await self.session.refresh(quiz)

        await self.event_store.log_from_model(
            event_type=EventType.QUIZ_CREATED,
            entity_type="quiz",
            entity_id=quiz.id,
            user_id=actor_id,
            payload_model=QuizEvent(course_id=course_id, title=quiz.title),
        )
        logger.info("Quiz created", extra={"quiz_id": str(quiz.id), "course_id": str(course_id)})
        return quiz

    async def update_quiz(
        self,
        quiz_id: uuid.UUID,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        time_limit_minutes: Optional[int] = None,
        passing_score: Optional[int] = None,
        is_active: Optional[bool] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> Quiz:
        """Partial update; ``None`` leaves a field unchanged."""
        self._validate_quiz_fields(time_limit_minutes, passing_score)
        quiz = await self._load_quiz(quiz_id)

        if is_active and await self._question_count(quiz_id) == 0:
            raise ValidationError("Cannot publish quiz without questions. Add questions first.")

        changed: List[str] = []
        if title is not None:
            if not title.strip():
                raise ValidationError("Title cannot be empty")
            quiz.title = title.strip()
            changed.append("title")
        if description is not None:
            quiz.description = description
            changed.append("description")
        if time_limit_minutes is not None:
            quiz.time_limit_minutes = time_limit_minutes
            changed.append("time_limit_minutes")
        if passing_score is not None:
            quiz.passing_score = passing_score
            changed.append("passing_score")

        activation_event = None
        if is_active is not None and is_active != quiz.is_active:
            quiz.is_active = is_active
            changed.append("is_active")
            activation_event = EventType.QUIZ_ACTIVATED if is_active else EventType.QUIZ_DEACTIVATED

        await self.session.flush()
        await self.session.refresh(quiz)

        await self.event_store.log_from_model(
            event_type=activation_event or EventType.QUIZ_UPDATED,
            entity_type="quiz",
            entity_id=quiz.id,
            user_id=actor_id,
            payload_model=QuizEvent(course_id=quiz.course_id, title=quiz.title, changed_fields=changed),
        )
        return quiz

    async def delete_quiz(self, quiz_id: uuid.UUID, actor_id: Optional[uuid.UUID] = None) -> None:
        quiz = await self._load_quiz(quiz_id, with_questions=True)

        attempts = await self.session.scalar(
            select(func.count(QuizAttempt.id)).where(QuizAttempt.quiz_id == quiz_id)
        ) or 0
        if attempts:
            raise QuizHasAttemptsError(
                f"Cannot delete quiz with {attempts} attempt(s). Deactivate instead.",
                attempts=attempts,
            )

        course_id = quiz.course_id
        await self.session.delete(quiz)
        await self.session.flush()

        await self.event_store.log_from_model(
            event_type=EventType.QUIZ_DELETED,
            entity_type="quiz",
            entity_id=quiz_id,
            user_id=actor_id,
            payload_model=QuizEvent(course_id=course_id),
        )
        logger.info("Quiz deleted", extra={"quiz_id": str(quiz_id)})

    # Questions

    async def add_question(
        self,
        quiz_id: uuid.UUID,
        question: str,
        options: Sequence[str],
        correct_options: Sequence[int],
        question_type: QuestionType = QuestionType.SINGLE,
        points: Optional[int] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> QuizQuestion:
        quiz = await self._load_quiz(quiz_id)
        self._require_editable(quiz)

        if not question or not question.strip():
            raise ValidationError("Question, options, and correct answer are required")
        points = points if points is not None else self.settings.default_question_points
        correct = self.validate_question(question_type, options, correct_options, points)

        max_order = await self.session.scalar(
            select(func.max(QuizQuestion.sort_order)).where(QuizQuestion.quiz_id == quiz_id)
        )
        row = QuizQuestion(
            quiz_id=quiz_id,
            question=question.strip(),
            question_type=QuestionType(question_type).value,
            options=[str(o) for o in options],
            correct_options=correct,
            points=points,
            sort_order=(max_order + 1) if max_order is not None else 0,
        )
        self.session.add(row)
        await self.session.flush()
        await self.session.refresh(row)

        await self.event_store.log_from_model(
            event_type=EventType.QUESTION_ADDED,
            entity_type="quiz_question",
            entity_id=row.id,
            user_id=actor_id,
            payload_model=QuestionEvent(quiz_id=quiz_id, question_type=row.question_type, points=points),
        )
        return row

    async def update_question(
        self,
        quiz_id: uuid.UUID,
        question_id: uuid.UUID,
        *,
        question: Optional[str] = None,
        question_type: Optional[QuestionType] = None,
        options: Optional[Sequence[str]] = None,
        correct_options: Optional[Sequence[int]] = None,
        points: Optional[int] = None,
        sort_order: Optional[int] = None,
        actor_id: Optional[uuid.UUID] = None,
    ) -> QuizQuestion:
        """Partial update; the merged question must still be valid."""
        quiz = await self._load_quiz(quiz_id)
        self._require_editable(quiz)
        row = await self._load_question(quiz_id, question_id)

        merged_type = QuestionType(question_type if question_type is not None else row.question_type)
        merged_options = list(options) if options is not None else list(row.options)
        merged_correct = list(correct_options) if correct_options is not None else list(row.correct_options)
        merged_points = points if points is not None else row.points
        correct = self.validate_question(merged_type, merged_options, merged_correct, merged_points)

        if question is not None:
            if not question.strip():
                raise ValidationError("Question text cannot be empty")
            row.question = question.strip()
        row.question_type = merged_type.value
        row.options = [str(o) for o in merged_options]
        row.correct_options = correct
        row.points = merged_points
        if sort_order is not None:
            row.sort_order = sort_order

        await self.session.flush()
        await self.session.refresh(row)

        await self.event_store.log_from_model(
            event_type=EventType.QUESTION_UPDATED,
            entity_type="quiz_question",
            entity_id=row.id,
            user_id=actor_id,
            payload_model=QuestionEvent(quiz_id=quiz_id, question_type=row.question_type, points=row.points),
        )
        return row

    async def delete_question(
        self,
        quiz_id: uuid.UUID,
        question_id: uuid.UUID,
        actor_id: Optional[uuid.UUID] = None,
    ) -> None:
        quiz = await self._load_quiz(quiz_id)
        self._require_editable(quiz)
        row = await self._load_question(quiz_id, question_id)

        await self.session.delete(row)
        await self.session.flush()

        await self.event_store.log_from_model(
            event_type=EventType.QUESTION_DELETED,
            entity_type="quiz_question",
            entity_id=question_id,
            user_id=actor_id,
            payload_model=QuestionEvent(quiz_id=quiz_id),
        )

    # Reporting

    async def quiz_stats(self, quiz_id: uuid.UUID) -> QuizStats:
        await self._load_quiz(quiz_id)

        total = await self.session.scalar(
            select(func.count(QuizAttempt.id)).where(QuizAttempt.quiz_id == quiz_id)
        ) or 0
        completed_q = select(
            func.count(QuizAttempt.id),
            func.count(QuizAttempt.id).filter(QuizAttempt.passed.is_(True)),
            func.avg(QuizAttempt.score),
        ).where(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.status == AttemptStatus.COMPLETED.value,
        )
        completed, passed, average = (await self.session.execute(completed_q)).one()

        return QuizStats(
            quiz_id=quiz_id,
            total_attempts=total,
            completed_attempts=completed or 0,
            passed_attempts=passed or 0,
            pass_rate=round((passed or 0) / completed * 100, 2) if completed else 0.0,
            average_score=round(float(average), 2) if average is not None else None,
        )
