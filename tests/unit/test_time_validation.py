"""Unit tests for lesson time validation."""

import pytest

from learnpath.engines.completion.time_validation import (
    DEFAULT_MIN_SECONDS,
    count_words,
    is_time_validated,
    min_required_seconds,
)


def _words(n: int) -> str:
    return " ".join(["word"] * n)


class TestMinRequiredSeconds:
    def test_text_450_words_hits_floor(self):
        """450 words read at 150 wpm is exactly 180 s."""
        assert min_required_seconds("text", 0, _words(450)) == 180

    def test_video_is_80_percent_of_duration(self):
        assert min_required_seconds("video", 10, None) == 480

    def test_text_without_content_gets_default(self):
        assert min_required_seconds("text", 0, None) == DEFAULT_MIN_SECONDS == 180

    def test_short_text_is_raised_to_floor(self):
        assert min_required_seconds("text", 0, _words(20)) == 180

    def test_long_text_reading_time_rounds_up(self):
        # 451 words -> 180.4 s -> 181
        assert min_required_seconds("text", 0, _words(451)) == 181
        # 1000 words -> 400 s
        assert min_required_seconds("text", 0, _words(1000)) == 400

    def test_video_duration_floors(self):
        # 7 min -> 336 s exactly; 1 min -> 48 s
        assert min_required_seconds("video", 7, None) == 336
        assert min_required_seconds("video", 1, None) == 48

    def test_video_without_duration_gets_default(self):
        assert min_required_seconds("video", 0, None) == 180

    def test_video_ignores_text(self):
        assert min_required_seconds("video", 10, _words(1000)) == 480

    def test_mixed_adds_both_parts(self):
        assert min_required_seconds("mixed", 10, _words(1000)) == 480 + 400

    def test_mixed_short_text_adds_floor(self):
        assert min_required_seconds("mixed", 5, _words(10)) == 240 + 180

    def test_mixed_without_text_is_video_only(self):
        assert min_required_seconds("mixed", 5, "") == 240

    def test_unknown_content_type_rejected(self):
        with pytest.raises(ValueError):
            min_required_seconds("podcast", 5, None)


class TestCountWords:
    def test_whitespace_runs_are_single_separators(self):
        assert count_words("  one\ttwo\n\nthree   ") == 3

    def test_empty(self):
        assert count_words("") == 0
        assert count_words(None) == 0
        assert count_words("   \n ") == 0


class TestIsTimeValidated:
    def test_boundary_is_inclusive(self):
        assert is_time_validated(480, 480) is True
        assert is_time_validated(479, 480) is False

    def test_missing_time_counts_as_zero(self):
        assert is_time_validated(None, 180) is False
