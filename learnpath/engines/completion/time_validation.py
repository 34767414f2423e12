"""
Time Validation - minimum engagement time per lesson.

A lesson is "time-validated" when the learner spent at least the minimum
required time on it. The flag is derived on every read and never stored;
it feeds the validated-progress metric and does not gate completion.
"""

import math
from typing import Optional

from learnpath.kernel.models.course import ContentType

# Share of the stated video duration that must be watched
VIDEO_WATCH_RATIO_NUM = 4
VIDEO_WATCH_RATIO_DEN = 5  # 80%

READING_WORDS_PER_MINUTE = 150
MIN_TEXT_SECONDS = 180
DEFAULT_MIN_SECONDS = 180


def count_words(text: Optional[str]) -> int:
    """Number of whitespace-delimited, non-empty tokens."""
    if not text:
        return 0
    return len(text.split())


def min_required_seconds(
    content_type: str,
    duration_minutes: Optional[int],
    text_content: Optional[str],
) -> int:
    """
    Minimum seconds a learner must spend on a lesson.

    - video / mixed: 80% of the stated duration, floored
    - text / mixed with text: reading time at 150 wpm, ceiled, at least 180 s
    - nothing to measure: 180 s
    """
    kind = ContentType(content_type)
    total = 0

    if kind in (ContentType.VIDEO, ContentType.MIXED):
        # Integer arithmetic keeps floor(duration * 60 * 0.8) exact
        total += (duration_minutes or 0) * 60 * VIDEO_WATCH_RATIO_NUM // VIDEO_WATCH_RATIO_DEN

    if kind in (ContentType.TEXT, ContentType.MIXED) and text_content:
        words = count_words(text_content)
        reading_seconds = math.ceil(words * 60 / READING_WORDS_PER_MINUTE)
        total += max(reading_seconds, MIN_TEXT_SECONDS)

    return total or DEFAULT_MIN_SECONDS


def is_time_validated(time_spent_seconds: Optional[int], required_seconds: int) -> bool:
    return (time_spent_seconds or 0) >= required_seconds
