"""
Admin quiz authoring endpoints.
"""

import uuid
from typing import List

from fastapi import APIRouter, status

from learnpath.api.deps import AdminUser, DbSession
from learnpath.engines.assessment import QuizAdminService, QuizStats
from learnpath.schemas.quiz import (
    QuestionAdminResponse,
    QuestionCreate,
    QuestionUpdate,
    QuizAdminResponse,
    QuizCreate,
    QuizUpdate,
)

router = APIRouter()


@router.get("", response_model=List[QuizAdminResponse])
async def list_quizzes(admin: AdminUser, db: DbSession):
    quizzes = await QuizAdminService(db).list_quizzes()
    return [QuizAdminResponse.model_validate(q) for q in quizzes]


@router.post("", response_model=QuizAdminResponse, status_code=status.HTTP_201_CREATED)
async def create_quiz(data: QuizCreate, admin: AdminUser, db: DbSession):
    """Create the course's quiz. It starts inactive, with no questions."""
    service = QuizAdminService(db)
    quiz = await service.create_quiz(
        data.course_id,
        data.title,
        description=data.description,
        time_limit_minutes=data.time_limit_minutes,
        passing_score=data.passing_score,
        actor_id=admin.id,
    )
    return QuizAdminResponse.model_validate(await service.get_quiz(quiz.id))


@router.get("/{quiz_id}", response_model=QuizAdminResponse)
async def get_quiz(quiz_id: uuid.UUID, admin: AdminUser, db: DbSession):
    return QuizAdminResponse.model_validate(await QuizAdminService(db).get_quiz(quiz_id))


@router.patch("/{quiz_id}", response_model=QuizAdminResponse)
async def update_quiz(quiz_id: uuid.UUID, data: QuizUpdate, admin: AdminUser, db: DbSession):
    """Edit settings or toggle ``is_active``. Activating an empty quiz is rejected."""
    service = QuizAdminService(db)
    await service.update_quiz(
        quiz_id,
        title=data.title,
        description=data.description,
        time_limit_minutes=data.time_limit_minutes,
        passing_score=data.passing_score,
        is_active=data.is_active,
        actor_id=admin.id,
    )
    return QuizAdminResponse.model_validate(await service.get_quiz(quiz_id))


@router.delete("/{quiz_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_quiz(quiz_id: uuid.UUID, admin: AdminUser, db: DbSession):
    await QuizAdminService(db).delete_quiz(quiz_id, actor_id=admin.id)


@router.get("/{quiz_id}/stats", response_model=QuizStats)
async def get_quiz_stats(quiz_id: uuid.UUID, admin: AdminUser, db: DbSession):
    return await QuizAdminService(db).quiz_stats(quiz_id)


@router.post(
    "/{quiz_id}/questions",
    response_model=QuestionAdminResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_question(quiz_id: uuid.UUID, data: QuestionCreate, admin: AdminUser, db: DbSession):
    question = await QuizAdminService(db).add_question(
        quiz_id,
        data.question,
        data.options,
        data.correct_options,
        question_type=data.question_type,
        points=data.points,
        actor_id=admin.id,
    )
    return QuestionAdminResponse.model_validate(question)


@router.patch("/{quiz_id}/questions/{question_id}", response_model=QuestionAdminResponse)
async def update_question(
    quiz_id: uuid.UUID,
    question_id: uuid.UUID,
    data: QuestionUpdate,
    admin: AdminUser,
    db: DbSession,
):
    question = await QuizAdminService(db).update_question(
        quiz_id,
        question_id,
        question=data.question,
        question_type=data.question_type,
        options=data.options,
        correct_options=data.correct_options,
        points=data.points,
        sort_order=data.sort_order,
        actor_id=admin.id,
    )
    return QuestionAdminResponse.model_validate(question)


@router.delete("/{quiz_id}/questions/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_question(
    quiz_id: uuid.UUID,
    question_id: uuid.UUID,
    admin: AdminUser,
    db: DbSession,
):
    await QuizAdminService(db).delete_question(quiz_id, question_id, actor_id=admin.id)
