"""
Assessment Engine - course quizzes.

- Attempt lifecycle: NONE -> IN_PROGRESS -> COMPLETED (terminal)
- Exact-match grading, no partial credit; pass is score >= passing score
- Integrity monitoring: second loss-of-focus auto-submits the attempt
- Authoring rules for quizzes and questions
"""

from learnpath.engines.assessment.grading import (
    QuizGrader,
    GradedSubmission,
    QuestionGrade,
    grade_question,
    score_percentage,
    storage_score,
    display_score,
    is_passing,
)
from learnpath.engines.assessment.attempt_state import (
    AttemptState,
    InProgressAttempt,
    CompletedAttempt,
    IntegrityFlag,
    attempt_state,
)
from learnpath.engines.assessment.attempt_service import (
    QuizAttemptService,
    StartedAttempt,
    SubmissionResult,
    IntegrityWarningResult,
    QuestionView,
    QuizInfo,
    QuizOverview,
)
from learnpath.engines.assessment.quiz_admin import QuizAdminService, QuizStats

__all__ = [
    "QuizGrader",
    "GradedSubmission",
    "QuestionGrade",
    "grade_question",
    "score_percentage",
    "storage_score",
    "display_score",
    "is_passing",
    "AttemptState",
    "InProgressAttempt",
    "CompletedAttempt",
    "IntegrityFlag",
    "attempt_state",
    "QuizAttemptService",
    "StartedAttempt",
    "SubmissionResult",
    "IntegrityWarningResult",
    "QuestionView",
    "QuizInfo",
    "QuizOverview",
    "QuizAdminService",
    "QuizStats",
]
