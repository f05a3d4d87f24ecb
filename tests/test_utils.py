"""
Tests for gastronomique/utils.py
"""

import pytest

from gastronomique.utils import format_time, slugify, total_time, truncate


class TestSlugify:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Tom Yum Goong", "tom-yum-goong"),
            ("  Pad   Thai  ", "pad-thai"),
            ("Green Curry (Gaeng Keow Wan)!", "green-curry-gaeng-keow-wan"),
            ("already-a-slug", "already-a-slug"),
            ("snake_case_name", "snake-case-name"),
            ("--edge--", "edge"),
        ],
    )
    def test_basic(self, text, expected):
        assert slugify(text) == expected

    def test_thai_only_title_gives_empty_slug(self):
        assert slugify("ต้มยำกุ้ง") == ""

    def test_mixed_script_keeps_ascii_part(self):
        assert slugify("ต้มยำ Tom Yum") == "tom-yum"


class TestFormatTime:
    def test_minutes(self):
        assert format_time(45) == "45 นาที"

    def test_whole_hours(self):
        assert format_time(120) == "2 ชั่วโมง"

    def test_hours_and_minutes(self):
        assert format_time(90) == "1 ชั่วโมง 30 นาที"


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("short", 10) == "short"

    def test_exact_length_unchanged(self):
        assert truncate("12345", 5) == "12345"

    def test_long_text_cut(self):
        assert truncate("abcdefghij", 4) == "abcd..."


class TestTotalTime:
    def test_sum(self):
        assert total_time(10, 25) == 35

    def test_missing_values_count_as_zero(self):
        assert total_time(None, 25) == 25
        assert total_time(None, None) == 0
