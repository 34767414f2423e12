"""
Pytest fixtures for learnpath tests.

Tests run against a file-based SQLite database (in-memory SQLite is
per-connection) through the application's own engine, so services under test
and the ASGI app share one store.
"""

import os
import tempfile
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Dict, List, Optional, Sequence

_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
TEST_DB_PATH = _tmp.name
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-0123456789"
os.environ["ENVIRONMENT"] = "test"

# Settings are cached; drop anything read before the overrides above
from learnpath.config import get_settings

get_settings.cache_clear()

import pytest
import pytest_asyncio
from jose import jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from learnpath.database import async_session_maker, engine
from learnpath.engines.completion import EnrollmentService, LessonProgressService
from learnpath.kernel.models import (
    Base,
    ContentType,
    Course,
    Enrollment,
    Lesson,
    LessonStatus,
    QuestionType,
    Quiz,
    QuizQuestion,
    User,
    UserRole,
)


def pytest_sessionfinish(session, exitstatus):
    """Clean up temp DB files after test run."""
    for suffix in ("", "-wal", "-shm"):
        path = TEST_DB_PATH + suffix
        if os.path.exists(path):
            os.unlink(path)


class FakeClock:
    """Deterministic clock for attempt timing; advance it between calls."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class Factory:
    """Builds catalog rows that admin services own outside this core."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def user(self, role: UserRole = UserRole.LEARNER, email: Optional[str] = None) -> User:
        user = User(
            email=email or f"user-{uuid.uuid4().hex[:8]}@example.com",
            name="Test User",
            role=role.value,
        )
        self.session.add(user)
        await self.session.commit()
        return user

    async def course(
        self,
        title: Optional[str] = None,
        lessons: int = 0,
        content_type: ContentType = ContentType.VIDEO,
        duration_minutes: int = 10,
    ) -> Course:
        title = title or f"Course {uuid.uuid4().hex[:6]}"
        course = Course(title=title, slug=f"{title.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}")
        self.session.add(course)
        await self.session.flush()
        for i in range(lessons):
            self.session.add(
                Lesson(
                    course_id=course.id,
                    title=f"{title} lesson {i + 1}",
                    content_type=content_type.value,
                    duration_minutes=duration_minutes,
                    sort_order=i,
                )
            )
        await self.session.commit()
        return course

    async def lessons(self, course: Course) -> List[Lesson]:
        result = await self.session.execute(
            select(Lesson).where(Lesson.course_id == course.id).order_by(Lesson.sort_order)
        )
        return list(result.scalars().all())

    async def enroll(self, user: User, course: Course) -> Enrollment:
        enrollment = Enrollment(user_id=user.id, course_id=course.id)
        self.session.add(enrollment)
        await self.session.commit()
        return enrollment

    async def complete_lessons(self, user: User, course: Course, time_spent_seconds: int = 0) -> None:
        service = LessonProgressService(self.session)
        for lesson in await self.lessons(course):
            await service.record(
                user.id,
                lesson.id,
                status=LessonStatus.COMPLETED,
                time_spent_seconds=time_spent_seconds,
            )
        await self.session.commit()

    async def complete_course(self, user: User, course: Course) -> None:
        """Enter (enrolls) and finish every lesson of a quiz-less course."""
        await EnrollmentService(self.session).enter_course(user.id, course.id)
        await self.session.commit()
        await self.complete_lessons(user, course)

    async def quiz(
        self,
        course: Course,
        questions: Sequence[Dict] = (),
        passing_score: int = 70,
        time_limit_minutes: int = 45,
        is_active: bool = True,
    ) -> Quiz:
        """
        Each question dict: ``options``, ``correct`` and optionally ``type``
        and ``points``.
        """
        quiz = Quiz(
            course_id=course.id,
            title=f"{course.title} quiz",
            passing_score=passing_score,
            time_limit_minutes=time_limit_minutes,
            is_active=is_active,
        )
        self.session.add(quiz)
        await self.session.flush()
        for i, q in enumerate(questions):
            correct = sorted(set(q["correct"]))
            self.session.add(
                QuizQuestion(
                    quiz_id=quiz.id,
                    question=q.get("question", f"Question {i + 1}"),
                    question_type=q.get(
                        "type",
                        QuestionType.MULTIPLE if len(correct) > 1 else QuestionType.SINGLE,
                    ).value,
                    options=list(q["options"]),
                    correct_options=correct,
                    points=q.get("points", 5),
                    sort_order=i,
                )
            )
        await self.session.commit()
        return quiz

    async def questions(self, quiz: Quiz) -> List[QuizQuestion]:
        result = await self.session.execute(
            select(QuizQuestion).where(QuizQuestion.quiz_id == quiz.id).order_by(QuizQuestion.sort_order)
        )
        return list(result.scalars().all())


@pytest_asyncio.fixture
async def db_engine():
    """Fresh schema for every test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield engine


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def other_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """A second, independent session for interleaving tests."""
    async with async_session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def factory(db_session: AsyncSession) -> Factory:
    return Factory(db_session)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def learner(factory: Factory) -> User:
    return await factory.user()


@pytest_asyncio.fixture
async def admin(factory: Factory) -> User:
    return await factory.user(role=UserRole.ADMIN)


def _mint_token(
    user_id: uuid.UUID,
    email: str = "user@example.com",
    role: str = "learner",
    expires_in: timedelta = timedelta(minutes=30),
    secret_key: Optional[str] = None,
    token_type: str = "access",
) -> str:
    """Sign a token the way the upstream identity service does."""
    now = datetime.now(timezone.utc)
    settings = get_settings()
    claims = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "exp": now + expires_in,
        "iat": now,
        "jti": str(uuid.uuid4()),
        "type": token_type,
    }
    return jwt.encode(claims, secret_key or settings.secret_key, algorithm=settings.algorithm)


@pytest.fixture
def mint_token():
    """Token signer standing in for the upstream identity service."""
    return _mint_token


@pytest.fixture
def make_headers():
    def _make(user: User) -> dict:
        token = _mint_token(user.id, email=user.email, role=UserRole(user.role).value)
        return {"Authorization": f"Bearer {token}"}

    return _make
