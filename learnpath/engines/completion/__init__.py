"""
Completion Engine - lesson time validation and course completion verdicts.

- Time validation: minimum engagement per lesson (80% of video duration,
  150 wpm reading time with a 3 minute floor)
- Course completion: all lessons completed and the active quiz passed
- Enrollment: auto-created on first entry, gated by prerequisites
- Learner summary: per-learner progress and attempt history for admins
"""

from learnpath.engines.completion.time_validation import (
    count_words,
    min_required_seconds,
    is_time_validated,
)
from learnpath.engines.completion.evaluator import (
    CompletionEvaluator,
    CourseCompletion,
    CourseProgress,
    LessonProgressReport,
)
from learnpath.engines.completion.enrollment import EnrollmentService
from learnpath.engines.completion.lesson_progress import LessonProgressService
from learnpath.engines.completion.learner_summary import (
    AttemptHistoryItem,
    EnrollmentProgress,
    LearnerSummary,
    LearnerSummaryService,
    LearnerTotals,
)

__all__ = [
    "count_words",
    "min_required_seconds",
    "is_time_validated",
    "CompletionEvaluator",
    "CourseCompletion",
    "CourseProgress",
    "LessonProgressReport",
    "EnrollmentService",
    "LessonProgressService",
    "AttemptHistoryItem",
    "EnrollmentProgress",
    "LearnerSummary",
    "LearnerSummaryService",
    "LearnerTotals",
]
