"""Integration tests for the quiz attempt state machine."""

import uuid

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from learnpath.engines.assessment import CompletedAttempt, InProgressAttempt, QuizAttemptService
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
from learnpath.kernel.models import AttemptStatus, EventType, QuizAnswer, QuizAttempt

QUESTIONS = [
    {"options": ["2", "3", "4"], "correct": [2], "points": 7},
    {"options": ["red", "green", "blue", "black"], "correct": [0, 2], "points": 3},
]


@pytest.fixture
def service(db_session, clock):
    return QuizAttemptService(db_session, clock=clock)


@pytest_asyncio.fixture
async def enrolled_quiz(factory, learner):
    course = await factory.course(lessons=1)
    quiz = await factory.quiz(course, questions=QUESTIONS, passing_score=70)
    await factory.enroll(learner, course)
    return quiz


async def _in_progress_count(session, quiz_id, user_id) -> int:
    return await session.scalar(
        select(func.count(QuizAttempt.id)).where(
            QuizAttempt.quiz_id == quiz_id,
            QuizAttempt.user_id == user_id,
            QuizAttempt.status == AttemptStatus.IN_PROGRESS.value,
        )
    )


class TestStart:
    @pytest.mark.asyncio
    async def test_returns_questions_without_answer_keys(self, service, enrolled_quiz, learner, clock):
        started = await service.start(learner.id, enrolled_quiz.id)

        assert isinstance(started.attempt, InProgressAttempt)
        assert started.attempt.started_at == clock.now
        assert started.attempt.integrity_warnings == 0
        assert started.time_limit_minutes == 45
        assert [q.points for q in started.questions] == [7, 3]
        for question in started.questions:
            payload = question.model_dump()
            assert "correct_options" not in payload

    @pytest.mark.asyncio
    async def test_second_start_reports_the_active_attempt(self, db_session, service, enrolled_quiz, learner):
        first = await service.start(learner.id, enrolled_quiz.id)
        await db_session.commit()

        with pytest.raises(AttemptAlreadyActiveError) as exc_info:
            await service.start(learner.id, enrolled_quiz.id)
        assert exc_info.value.to_dict()["attempt_id"] == str(first.attempt.id)
        assert await _in_progress_count(db_session, enrolled_quiz.id, learner.id) == 1

    @pytest.mark.asyncio
    async def test_concurrent_start_reports_the_winner(
        self, db_session, other_session, service, enrolled_quiz, learner, clock, monkeypatch
    ):
        """A start whose pre-check ran before the winner committed still yields one attempt."""
        late = QuizAttemptService(other_session, clock=clock)
        real_lookup = late._active_attempt_row
        lookups = []

        async def lookup_before_winner_commits(user_id, quiz_id):
            lookups.append(quiz_id)
            if len(lookups) == 1:
                return None
            return await real_lookup(user_id, quiz_id)

        monkeypatch.setattr(late, "_active_attempt_row", lookup_before_winner_commits)

        first = await service.start(learner.id, enrolled_quiz.id)
        await db_session.commit()

        with pytest.raises(AttemptAlreadyActiveError) as exc_info:
            await late.start(learner.id, enrolled_quiz.id)
        assert exc_info.value.to_dict()["attempt_id"] == str(first.attempt.id)
        assert len(lookups) == 2
        assert await _in_progress_count(db_session, enrolled_quiz.id, learner.id) == 1

    @pytest.mark.asyncio
    async def test_conflict_without_visible_winner_asks_for_retry(
        self, db_session, other_session, service, enrolled_quiz, learner, clock, monkeypatch
    ):
        """The insert conflicted but the winning row is gone by the time it is looked up."""
        await service.start(learner.id, enrolled_quiz.id)
        await db_session.commit()

        late = QuizAttemptService(other_session, clock=clock)

        async def no_active_attempt(user_id, quiz_id):
            return None

        monkeypatch.setattr(late, "_active_attempt_row", no_active_attempt)

        with pytest.raises(ConflictError) as exc_info:
            await late.start(learner.id, enrolled_quiz.id)
        assert not isinstance(exc_info.value, AttemptAlreadyActiveError)
        assert exc_info.value.status_code == 409

    @pytest.mark.asyncio
    async def test_new_attempt_after_submit(self, db_session, service, enrolled_quiz, learner):
        first = await service.start(learner.id, enrolled_quiz.id)
        await service.submit(learner.id, first.attempt.id, {})
        second = await service.start(learner.id, enrolled_quiz.id)
        await db_session.commit()

        assert second.attempt.id != first.attempt.id
        assert await _in_progress_count(db_session, enrolled_quiz.id, learner.id) == 1

    @pytest.mark.asyncio
    async def test_access_checks(self, db_session, service, factory, learner):
        course = await factory.course(lessons=1)
        inactive = await factory.quiz(course, questions=QUESTIONS, is_active=False)
        with pytest.raises(QuizInactiveError):
            await service.start(learner.id, inactive.id)

        other_course = await factory.course(lessons=1)
        active = await factory.quiz(other_course, questions=QUESTIONS)
        with pytest.raises(NotEnrolledError):
            await service.start(learner.id, active.id)

        with pytest.raises(NotFoundError):
            await service.start(learner.id, uuid.uuid4())


class TestSubmit:
    @pytest.mark.asyncio
    async def test_grades_and_records_answers(self, db_session, service, enrolled_quiz, learner, factory, clock):
        q1, q2 = await factory.questions(enrolled_quiz)
        started = await service.start(learner.id, enrolled_quiz.id)
        clock.advance(minutes=7, seconds=30)

        result = await service.submit(
            learner.id,
            started.attempt.id,
            {str(q1.id): [2], str(q2.id): [2, 0], "not-a-uuid": [1]},
        )
        await db_session.commit()

        assert result.score == 100.0
        assert result.display_score == 100
        assert result.passed is True
        assert result.correct_count == 2
        assert result.total_questions == 2
        assert result.time_spent_seconds == 450
        assert result.auto_submitted is False

        answers = (
            await db_session.execute(
                select(QuizAnswer).where(QuizAnswer.attempt_id == started.attempt.id)
            )
        ).scalars().all()
        assert {a.question_id: a.is_correct for a in answers} == {q1.id: True, q2.id: True}

        state = await service.get_attempt(learner.id, started.attempt.id)
        assert isinstance(state, CompletedAttempt)
        assert state.score == 100.0
        assert state.time_spent_seconds == 450

    @pytest.mark.asyncio
    async def test_no_partial_credit(self, service, enrolled_quiz, learner, factory):
        q1, q2 = await factory.questions(enrolled_quiz)
        for selection in ([0], [0, 1, 2], [0, 0], []):
            started = await service.start(learner.id, enrolled_quiz.id)
            result = await service.submit(learner.id, started.attempt.id, {str(q2.id): selection})
            assert result.correct_count == 0
            assert result.score == 0.0

    @pytest.mark.asyncio
    async def test_score_equal_to_passing_score_passes(self, service, enrolled_quiz, learner, factory):
        q1, _ = await factory.questions(enrolled_quiz)
        started = await service.start(learner.id, enrolled_quiz.id)
        result = await service.submit(learner.id, started.attempt.id, {q1.id: [2]})
        assert result.score == 70.0
        assert result.passing_score == 70
        assert result.passed is True

    @pytest.mark.asyncio
    async def test_second_submit_rejected_and_result_unchanged(
        self, db_session, service, enrolled_quiz, learner, factory
    ):
        q1, _ = await factory.questions(enrolled_quiz)
        started = await service.start(learner.id, enrolled_quiz.id)
        first = await service.submit(learner.id, started.attempt.id, {str(q1.id): [2]})
        await db_session.commit()

        with pytest.raises(AlreadySubmittedError):
            await service.submit(learner.id, started.attempt.id, {str(q1.id): [0]})

        state = await service.get_attempt(learner.id, started.attempt.id)
        assert state.score == first.score
        answers = (
            await db_session.execute(
                select(QuizAnswer).where(QuizAnswer.attempt_id == started.attempt.id)
            )
        ).scalars().all()
        assert len(answers) == 2
        assert {a.question_id: a.selected_options for a in answers}[q1.id] == [2]

    @pytest.mark.asyncio
    async def test_stale_submit_loses_the_race(
        self, db_session, other_session, service, enrolled_quiz, learner, clock
    ):
        """A submit working from a row read before another submit committed changes nothing."""
        started = await service.start(learner.id, enrolled_quiz.id)
        await db_session.commit()

        late = QuizAttemptService(other_session, clock=clock)
        stale_row = await late._load_attempt(learner.id, started.attempt.id)
        assert AttemptStatus(stale_row.status) == AttemptStatus.IN_PROGRESS

        await service.submit(learner.id, started.attempt.id, {})
        await db_session.commit()

        with pytest.raises(AlreadySubmittedError):
            await late._submit_row(stale_row, {}, auto_submitted=False)
        assert await EventStore(db_session).count_events(
            entity_id=started.attempt.id, event_type=EventType.ATTEMPT_SUBMITTED
        ) == 1

    @pytest.mark.asyncio
    async def test_cannot_touch_another_users_attempt(self, service, enrolled_quiz, learner, factory):
        started = await service.start(learner.id, enrolled_quiz.id)
        stranger = await factory.user()
        with pytest.raises(NotFoundError):
            await service.submit(stranger.id, started.attempt.id, {})
        with pytest.raises(NotFoundError):
            await service.get_attempt(stranger.id, started.attempt.id)

    @pytest.mark.asyncio
    async def test_non_integer_selection_rejected(self, service, enrolled_quiz, learner, factory):
        q1, _ = await factory.questions(enrolled_quiz)
        started = await service.start(learner.id, enrolled_quiz.id)
        with pytest.raises(ValidationError):
            await service.submit(learner.id, started.attempt.id, {str(q1.id): ["first"]})


class TestIntegrityWarnings:
    @pytest.mark.asyncio
    async def test_second_warning_auto_submits(self, db_session, service, enrolled_quiz, learner, factory, clock):
        q1, _ = await factory.questions(enrolled_quiz)
        started = await service.start(learner.id, enrolled_quiz.id)

        clock.advance(minutes=1)
        first = await service.record_integrity_warning(learner.id, started.attempt.id, "tab_hidden")
        assert first.warnings == 1
        assert first.auto_submitted is False
        assert first.message == QuizAttemptService.WARNING_MESSAGE
        assert first.result is None
        state = await service.get_attempt(learner.id, started.attempt.id)
        assert isinstance(state, InProgressAttempt)
        assert [flag.type for flag in state.integrity_flags] == ["tab_hidden"]

        clock.advance(minutes=1)
        second = await service.record_integrity_warning(
            learner.id, started.attempt.id, "window_blur", answers={str(q1.id): [2]}
        )
        await db_session.commit()
        assert second.warnings == 2
        assert second.auto_submitted is True
        assert second.message == QuizAttemptService.AUTO_SUBMIT_MESSAGE
        assert second.result.score == 70.0
        assert second.result.time_spent_seconds == 120
        assert second.result.auto_submitted is True

        state = await service.get_attempt(learner.id, started.attempt.id)
        assert isinstance(state, CompletedAttempt)
        assert state.auto_submitted is True
        assert state.integrity_warnings == 2
        assert [flag.type for flag in state.integrity_flags] == ["tab_hidden", "window_blur"]
        assert await EventStore(db_session).count_events(
            entity_id=started.attempt.id, event_type=EventType.ATTEMPT_AUTO_SUBMITTED
        ) == 1

        with pytest.raises(AlreadySubmittedError):
            await service.record_integrity_warning(learner.id, started.attempt.id, "tab_hidden")

    @pytest.mark.asyncio
    async def test_blank_kind_rejected(self, service, enrolled_quiz, learner):
        started = await service.start(learner.id, enrolled_quiz.id)
        with pytest.raises(ValidationError):
            await service.record_integrity_warning(learner.id, started.attempt.id, "  ")


class TestQueries:
    @pytest.mark.asyncio
    async def test_best_attempt_prefers_score_then_earliest(
        self, service, enrolled_quiz, learner, factory, clock
    ):
        q1, q2 = await factory.questions(enrolled_quiz)
        assert await service.get_best_attempt(learner.id, enrolled_quiz.id) is None

        ids = []
        for answers in ({str(q2.id): [0, 2]}, {str(q1.id): [2]}, {str(q1.id): [2]}):
            started = await service.start(learner.id, enrolled_quiz.id)
            clock.advance(minutes=2)
            await service.submit(learner.id, started.attempt.id, answers)
            ids.append(started.attempt.id)

        best = await service.get_best_attempt(learner.id, enrolled_quiz.id)
        assert best.id == ids[1]
        assert best.score == 70.0

    @pytest.mark.asyncio
    async def test_overview(self, service, enrolled_quiz, learner):
        overview = await service.quiz_overview(learner.id, enrolled_quiz.id)
        assert overview.quiz.question_count == 2
        assert overview.quiz.passing_score == 70
        assert overview.active_attempt is None
        assert overview.best_attempt is None

        started = await service.start(learner.id, enrolled_quiz.id)
        overview = await service.quiz_overview(learner.id, enrolled_quiz.id)
        assert overview.active_attempt.id == started.attempt.id
