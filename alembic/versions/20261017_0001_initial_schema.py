"""Initial schema - catalog, progression, quizzes, audit log

Revision ID: 0001
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table (mirror of the identity service's accounts)
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('role', sa.String(50), nullable=False, default='learner'),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=True),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Courses table
    op.create_table(
        'courses',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('slug', sa.String(500), unique=True, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_published', sa.Boolean(), nullable=False, default=False),
        sa.Column('is_mandatory', sa.Boolean(), nullable=False, default=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Prerequisite edges: course_id requires prerequisite_course_id
    op.create_table(
        'course_prerequisites',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('prerequisite_course_id', sa.Uuid(), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('course_id', 'prerequisite_course_id', name='uq_course_prerequisites_edge'),
        sa.CheckConstraint('course_id <> prerequisite_course_id', name='ck_course_prerequisites_no_self'),
    )

    # Lessons table
    op.create_table(
        'lessons',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('content_type', sa.String(20), nullable=False, default='video'),
        sa.Column('duration_minutes', sa.Integer(), nullable=False, default=0),
        sa.Column('text_content', sa.Text(), nullable=True),
        sa.Column('video_url', sa.Text(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, default=0),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Enrollments table
    op.create_table(
        'enrollments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('enrolled_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('user_id', 'course_id', name='uq_enrollments_user_course'),
    )

    # Lesson progress table
    op.create_table(
        'lesson_progress',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('lesson_id', sa.Uuid(), sa.ForeignKey('lessons.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, default='not_started'),
        sa.Column('progress_percent', sa.Integer(), nullable=False, default=0),
        sa.Column('time_spent_seconds', sa.Integer(), nullable=False, default=0),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_accessed_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'lesson_id', name='uq_lesson_progress_user_lesson'),
    )
    op.create_index('ix_lesson_progress_user_course', 'lesson_progress', ['user_id', 'course_id'])

    # Quizzes table (one per course)
    op.create_table(
        'quizzes',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('course_id', sa.Uuid(), sa.ForeignKey('courses.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('time_limit_minutes', sa.Integer(), nullable=False, default=45),
        sa.Column('passing_score', sa.Integer(), nullable=False, default=70),
        sa.Column('is_active', sa.Boolean(), nullable=False, default=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Quiz questions table
    op.create_table(
        'quiz_questions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('quiz_id', sa.Uuid(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('question_type', sa.String(20), nullable=False, default='single'),
        sa.Column('options', sa.JSON(), nullable=False, default=[]),
        sa.Column('correct_options', sa.JSON(), nullable=False, default=[]),
        sa.Column('points', sa.Integer(), nullable=False, default=5),
        sa.Column('sort_order', sa.Integer(), nullable=False, default=0),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    # Quiz attempts table
    op.create_table(
        'quiz_attempts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('quiz_id', sa.Uuid(), sa.ForeignKey('quizzes.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('status', sa.String(20), nullable=False, default='in_progress'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('passed', sa.Boolean(), nullable=True),
        sa.Column('time_spent_seconds', sa.Integer(), nullable=True),
        sa.Column('auto_submitted', sa.Boolean(), nullable=False, default=False),
        sa.Column('integrity_warnings', sa.Integer(), nullable=False, default=0),
        sa.Column('integrity_flags', sa.JSON(), nullable=False, default=[]),
    )
    # At most one open attempt per (quiz, user)
    op.create_index(
        'uq_quiz_attempts_one_in_progress',
        'quiz_attempts',
        ['quiz_id', 'user_id'],
        unique=True,
        postgresql_where=sa.text("status = 'in_progress'"),
        sqlite_where=sa.text("status = 'in_progress'"),
    )
    op.create_index('ix_quiz_attempts_quiz_user_status', 'quiz_attempts', ['quiz_id', 'user_id', 'status'])

    # Quiz answers table (written once, at submission)
    op.create_table(
        'quiz_answers',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('attempt_id', sa.Uuid(), sa.ForeignKey('quiz_attempts.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('question_id', sa.Uuid(), sa.ForeignKey('quiz_questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('selected_options', sa.JSON(), nullable=False, default=[]),
        sa.Column('is_correct', sa.Boolean(), nullable=False),
        sa.Column('points_earned', sa.Integer(), nullable=False, default=0),
        sa.UniqueConstraint('attempt_id', 'question_id', name='uq_quiz_answers_attempt_question'),
    )

    # Event log table (append-only)
    op.create_table(
        'event_logs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False, index=True),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', sa.Uuid(), nullable=False, index=True),
        sa.Column('user_id', sa.Uuid(), nullable=True, index=True),
        sa.Column('payload', sa.JSON(), nullable=False, default={}),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, index=True),
    )
    op.create_index('ix_event_logs_entity', 'event_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_event_logs_user_time', 'event_logs', ['user_id', 'created_at'])


def downgrade() -> None:
    op.drop_table('event_logs')
    op.drop_table('quiz_answers')
    op.drop_index('uq_quiz_attempts_one_in_progress', table_name='quiz_attempts')
    op.drop_table('quiz_attempts')
    op.drop_table('quiz_questions')
    op.drop_table('quizzes')
    op.drop_table('lesson_progress')
    op.drop_table('enrollments')
    op.drop_table('lessons')
    op.drop_table('course_prerequisites')
    op.drop_table('courses')
    op.drop_table('users')
