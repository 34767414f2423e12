"""
Quiz Attempt Service - the attempt state machine.

    start -> (integrity warnings) -> submit

Concurrency guards:
- start: INSERT ... ON CONFLICT DO NOTHING against the partial unique index
  on (quiz_id, user_id) WHERE status = 'in_progress', so two racing starts
  produce one row and the loser is told which attempt to resume.
- submit: UPDATE ... WHERE status = 'in_progress'. The loser of a race sees
  zero rows and gets AlreadySubmittedError; answers are written only by the
  winner, inside the same transaction.
- integrity warnings: the counter is bumped by a guarded UPDATE, which takes
  the row (PostgreSQL) or database (SQLite) write lock before the flag log
  is read and appended.

The countdown shown to the learner is advisory: time spent is the elapsed
wall-clock time and is not capped at the time limit.
"""

import math
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.database import insert_for
from learnpath.engines.assessment.attempt_state import (
    CompletedAttempt,
    InProgressAttempt,
    attempt_state,
)
from learnpath.engines.assessment.grading import QuizGrader, display_score, is_passing
from learnpath.engines.completion.enrollment import EnrollmentService
from learnpath.kernel.errors import (
    AlreadySubmittedError,
    AttemptAlreadyActiveError,
    ConflictError,
    NotEnrolledError,
    NotFoundError,
    QuizInactiveError,
    ValidationError,
)
from learnpath.kernel.events.event_store import EventStore
from learnpath.kernel.events.event_types import (
    AttemptStartedEvent,
    AttemptSubmittedEvent,
    IntegrityWarningEvent,
)
from learnpath.kernel.models.base import as_utc, generate_uuid, utcnow
from learnpath.kernel.models.course import Course
from learnpath.kernel.models.event_log import EventType
from learnpath.kernel.models.quiz import (
    IN_PROGRESS_PREDICATE,
    AttemptStatus,
    Quiz,
    QuizAnswer,
    QuizAttempt,
    QuizQuestion,
)
from learnpath.logging_config import get_logger

logger = get_logger(__name__)

Clock = Callable[[], datetime]


class QuestionView(BaseModel):
    """A question as shown to the learner: no correct-answer data."""

    id: uuid.UUID
    question: str
    question_type: str
    options: List[str]
    points: int
    sort_order: int


class StartedAttempt(BaseModel):
    attempt: InProgressAttempt
    questions: List[QuestionView]
    time_limit_minutes: int


class SubmissionResult(BaseModel):
    attempt_id: uuid.UUID
    score: float
    display_score: int
    passed: bool
    passing_score: int
    correct_count: int
    total_questions: int
    time_spent_seconds: int
    auto_submitted: bool


class IntegrityWarningResult(BaseModel):
    attempt_id: uuid.UUID
    warnings: int
    message: str
    auto_submitted: bool
    result: Optional[SubmissionResult] = None


class QuizInfo(BaseModel):
    id: uuid.UUID
    title: str
    description: Optional[str] = None
    time_limit_minutes: int
    passing_score: int
    course_id: uuid.UUID
    course_title: str
    course_slug: str
    question_count: int


class QuizOverview(BaseModel):
    """What the quiz landing page needs: the quiz, a resumable attempt, the best result."""

    quiz: QuizInfo
    active_attempt: Optional[InProgressAttempt] = None
    best_attempt: Optional[CompletedAttempt] = None


class QuizAttemptService:
    """
    Runs quiz attempts for learners.

    ``clock`` returns the current aware datetime; tests inject a fixed or
    advancing clock to control ``started_at`` and ``time_spent_seconds``.
    """

    MAX_INTEGRITY_WARNINGS = 2
    WARNING_MESSAGE = (
        "Warning: Leaving the quiz page is not allowed. "
        "One more violation will auto-submit your quiz."
    )
    AUTO_SUBMIT_MESSAGE = "Quiz submitted due to integrity violation."

    def __init__(self, session: AsyncSession, clock: Clock = utcnow):
        self.session = session
        self.clock = clock
        self.event_store = EventStore(session)

    # Loading and access checks

    async def _load_quiz(self, quiz_id: uuid.UUID) -> Quiz:
        quiz = await self.session.get(Quiz, quiz_id)
        if quiz is None:
            raise NotFoundError("Quiz not found", quiz_id=quiz_id)
        return quiz

    async def _require_access(self, user_id: uuid.UUID, quiz: Quiz) -> None:
        if not quiz.is_active:
            raise QuizInactiveError()
        if not await EnrollmentService(self.session).is_enrolled(user_id, quiz.course_id):
            raise NotEnrolledError()

    async def _load_attempt(self, user_id: uuid.UUID, attempt_id: uuid.UUID) -> QuizAttempt:
        """Attempts of other users are reported as missing, not forbidden."""
        row = (
            await self.session.execute(
                select(QuizAttempt)
                .where(QuizAttempt.id == attempt_id)
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()
        if row is None or row.user_id != user_id:
            raise NotFoundError("Attempt not found", attempt_id=attempt_id)
        return row

    async def _questions(self, quiz_id: uuid.UUID) -> List[QuizQuestion]:
        result = await self.session.execute(
            select(QuizQuestion)
            .where(QuizQuestion.quiz_id == quiz_id)
            .order_by(QuizQuestion.sort_order, QuizQuestion.created_at)
        )
        return list(result.scalars().all())

    async def _active_attempt_row(self, user_id: uuid.UUID, quiz_id: uuid.UUID) -> Optional[QuizAttempt]:
        result = await self.session.execute(
            select(QuizAttempt)
            .where(
                QuizAttempt.quiz_id == quiz_id,
                QuizAttempt.user_id == user_id,
                QuizAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .order_by(QuizAttempt.started_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    # Lifecycle

    async def start(
        self,
        user_id: uuid.UUID,
        quiz_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> StartedAttempt:
        """
        Open a new attempt.

        Raises:
            NotFoundError: unknown quiz
            QuizInactiveError: quiz is not published
            NotEnrolledError: user is not enrolled in the quiz's course
            AttemptAlreadyActiveError: an attempt is already in progress;
                carries its id so the client can resume it
        """
        quiz = await self._load_quiz(quiz_id)
        await self._require_access(user_id, quiz)

        existing = await self._active_attempt_row(user_id, quiz_id)
        if existing is not None:
            raise AttemptAlreadyActiveError(existing.id)

        now = self.clock()
        stmt = (
            insert_for(self.session, QuizAttempt)
            .values(
                id=generate_uuid(),
                quiz_id=quiz_id,
                user_id=user_id,
                status=AttemptStatus.IN_PROGRESS.value,
                started_at=now,
                integrity_warnings=0,
                integrity_flags=[],
                auto_submitted=False,
            )
            .on_conflict_do_nothing(
                index_elements=["quiz_id", "user_id"],
                index_where=IN_PROGRESS_PREDICATE,
            )
            .returning(QuizAttempt.id)
        )
        attempt_id = (await self.session.execute(stmt)).scalar_one_or_none()

        if attempt_id is None:
            # Lost the race to a concurrent start
            winner = await self._active_attempt_row(user_id, quiz_id)
            if winner is None:
                raise ConflictError("Could not start the quiz, please retry")
            raise AttemptAlreadyActiveError(winner.id)

        row = await self.session.get(QuizAttempt, attempt_id)
        questions = await self._questions(quiz_id)

        await self.event_store.log_from_model(
            event_type=EventType.ATTEMPT_STARTED,
            entity_type="quiz_attempt",
            entity_id=attempt_id,
            user_id=user_id,
            payload_model=AttemptStartedEvent(
                quiz_id=quiz_id,
                time_limit_minutes=quiz.time_limit_minutes,
            ),
            ip_address=ip_address,
        )
        logger.info(
            "Quiz attempt started",
            extra={"quiz_id": str(quiz_id), "attempt_id": str(attempt_id)},
        )

        return StartedAttempt(
            attempt=attempt_state(row),
            questions=[
                QuestionView(
                    id=q.id,
                    question=q.question,
                    question_type=q.question_type,
                    options=list(q.options or []),
                    points=q.points,
                    sort_order=q.sort_order,
                )
                for q in questions
            ],
            time_limit_minutes=quiz.time_limit_minutes,
        )

    async def record_integrity_warning(
        self,
        user_id: uuid.UUID,
        attempt_id: uuid.UUID,
        kind: str,
        answers: Optional[Mapping[Any, Sequence[int]]] = None,
    ) -> IntegrityWarningResult:
        """
        Record a loss-of-focus event (tab hidden, window blur, ...).

        The first warning is soft. Reaching MAX_INTEGRITY_WARNINGS submits
        the attempt with the answers supplied so far and marks it
        auto-submitted.
        """
        if not kind or not kind.strip():
            raise ValidationError("Integrity event type is required")

        row = await self._load_attempt(user_id, attempt_id)
        if AttemptStatus(row.status) == AttemptStatus.COMPLETED:
            raise AlreadySubmittedError()

        warnings = (
            await self.session.execute(
                update(QuizAttempt)
                .where(
                    QuizAttempt.id == attempt_id,
                    QuizAttempt.status == AttemptStatus.IN_PROGRESS.value,
                )
                .values(integrity_warnings=QuizAttempt.integrity_warnings + 1)
                .returning(QuizAttempt.integrity_warnings)
                .execution_options(synchronize_session=False)
            )
        ).scalar_one_or_none()
        if warnings is None:
            raise AlreadySubmittedError()

        # Write lock held from here on; the flag log read below is current
        row = await self._load_attempt(user_id, attempt_id)
        now = self.clock()
        row.integrity_flags = list(row.integrity_flags or []) + [
            {"type": kind.strip(), "timestamp": now.isoformat()}
        ]
        await self.session.flush()

        escalated = warnings >= self.MAX_INTEGRITY_WARNINGS
        await self.event_store.log_from_model(
            event_type=EventType.INTEGRITY_WARNING,
            entity_type="quiz_attempt",
            entity_id=attempt_id,
            user_id=user_id,
            payload_model=IntegrityWarningEvent(
                quiz_id=row.quiz_id,
                kind=kind.strip(),
                warnings=warnings,
                escalated=escalated,
            ),
        )
        logger.warning(
            "Quiz integrity warning",
            extra={"attempt_id": str(attempt_id), "kind": kind, "warnings": warnings},
        )

        if not escalated:
            return IntegrityWarningResult(
                attempt_id=attempt_id,
                warnings=warnings,
                message=self.WARNING_MESSAGE,
                auto_submitted=False,
            )

        result = await self._submit_row(row, answers or {}, auto_submitted=True)
        return IntegrityWarningResult(
            attempt_id=attempt_id,
            warnings=warnings,
            message=self.AUTO_SUBMIT_MESSAGE,
            auto_submitted=True,
            result=result,
        )

    async def submit(
        self,
        user_id: uuid.UUID,
        attempt_id: uuid.UUID,
        answers: Mapping[Any, Sequence[int]],
        auto_submitted: bool = False,
    ) -> SubmissionResult:
        """
        Grade and close an attempt. Manual submit and the client's countdown
        both land here; only the first call grades.

        Raises:
            NotFoundError: unknown attempt or attempt of another user
            AlreadySubmittedError: attempt is already completed
        """
        row = await self._load_attempt(user_id, attempt_id)
        if AttemptStatus(row.status) == AttemptStatus.COMPLETED:
            raise AlreadySubmittedError()
        return await self._submit_row(row, answers, auto_submitted)

    @staticmethod
    def _normalize_answers(answers: Mapping[Any, Sequence[int]]) -> Dict[uuid.UUID, List[int]]:
        """Key answers by question UUID, dropping keys that are not UUIDs."""
        normalized: Dict[uuid.UUID, List[int]] = {}
        for key, selected in answers.items():
            try:
                question_id = key if isinstance(key, uuid.UUID) else uuid.UUID(str(key))
            except ValueError:
                continue
            try:
                normalized[question_id] = [int(i) for i in (selected or [])]
            except (TypeError, ValueError) as exc:
                raise ValidationError("Selected options must be option indices") from exc
        return normalized

    async def _submit_row(
        self,
        row: QuizAttempt,
        answers: Mapping[Any, Sequence[int]],
        auto_submitted: bool,
    ) -> SubmissionResult:
        quiz = await self._load_quiz(row.quiz_id)
        questions = await self._questions(quiz.id)
        graded = QuizGrader.grade(questions, self._normalize_answers(answers))

        now = self.clock()
        time_spent = math.floor((now - as_utc(row.started_at)).total_seconds())
        passed = is_passing(graded.score, quiz.passing_score)

        result = await self.session.execute(
            update(QuizAttempt)
            .where(
                QuizAttempt.id == row.id,
                QuizAttempt.status == AttemptStatus.IN_PROGRESS.value,
            )
            .values(
                status=AttemptStatus.COMPLETED.value,
                submitted_at=now,
                score=graded.score,
                passed=passed,
                time_spent_seconds=time_spent,
                auto_submitted=auto_submitted,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning("Duplicate quiz submission rejected", extra={"attempt_id": str(row.id)})
            raise AlreadySubmittedError()

        self.session.add_all(
            [
                QuizAnswer(
                    attempt_id=row.id,
                    question_id=g.question_id,
                    selected_options=g.selected_options,
                    is_correct=g.is_correct,
                    points_earned=g.points_earned,
                )
                for g in graded.answers
            ]
        )
        await self.session.flush()
        await self.session.refresh(row)

        await self.event_store.log_from_model(
            event_type=EventType.ATTEMPT_AUTO_SUBMITTED if auto_submitted else EventType.ATTEMPT_SUBMITTED,
            entity_type="quiz_attempt",
            entity_id=row.id,
            user_id=row.user_id,
            payload_model=AttemptSubmittedEvent(
                quiz_id=quiz.id,
                score=graded.score,
                passed=passed,
                correct_count=graded.correct_count,
                total_questions=graded.total_questions,
                time_spent_seconds=time_spent,
                auto_submitted=auto_submitted,
            ),
        )
        logger.info(
            "Quiz attempt submitted",
            extra={
                "attempt_id": str(row.id),
                "score": graded.score,
                "passed": passed,
                "auto_submitted": auto_submitted,
            },
        )

        return SubmissionResult(
            attempt_id=row.id,
            score=graded.score,
            display_score=display_score(graded.score),
            passed=passed,
            passing_score=quiz.passing_score,
            correct_count=graded.correct_count,
            total_questions=graded.total_questions,
            time_spent_seconds=time_spent,
            auto_submitted=auto_submitted,
        )

    # Queries

    async def get_attempt(
        self,
        user_id: uuid.UUID,
        attempt_id: uuid.UUID,
    ) -> Union[InProgressAttempt, CompletedAttempt]:
        return attempt_state(await self._load_attempt(user_id, attempt_id))

    async def get_active_attempt(self, user_id: uuid.UUID, quiz_id: uuid.UUID) -> Optional[InProgressAttempt]:
        row = await self._active_attempt_row(user_id, quiz_id)
        return attempt_state(row) if row is not None else None

    async def get_best_attempt(self, user_id: uuid.UUID, quiz_id: uuid.UUID) -> Optional[CompletedAttempt]:
        """Highest-scoring completed attempt; the earliest one wins ties."""
        await self._load_quiz(quiz_id)
        row = (
            await self.session.execute(
                select(QuizAttempt)
                .where(
                    QuizAttempt.quiz_id == quiz_id,
                    QuizAttempt.user_id == user_id,
                    QuizAttempt.status == AttemptStatus.COMPLETED.value,
                )
                .order_by(QuizAttempt.score.desc(), QuizAttempt.submitted_at.asc())
                .limit(1)
            )
        ).scalar_one_or_none()
        return attempt_state(row) if row is not None else None

    async def quiz_overview(self, user_id: uuid.UUID, quiz_id: uuid.UUID) -> QuizOverview:
        quiz = await self._load_quiz(quiz_id)
        await self._require_access(user_id, quiz)

        course = await self.session.get(Course, quiz.course_id)
        question_count = await self.session.scalar(
            select(func.count(QuizQuestion.id)).where(QuizQuestion.quiz_id == quiz_id)
        ) or 0

        return QuizOverview(
            quiz=QuizInfo(
                id=quiz.id,
                title=quiz.title,
                description=quiz.description,
                time_limit_minutes=quiz.time_limit_minutes,
                passing_score=quiz.passing_score,
                course_id=quiz.course_id,
                course_title=course.title,
                course_slug=course.slug,
                question_count=question_count,
            ),
            active_attempt=await self.get_active_attempt(user_id, quiz_id),
            best_attempt=await self.get_best_attempt(user_id, quiz_id),
        )
