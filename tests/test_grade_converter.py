"""
Tests for German grade notation.
"""

import pytest

from gradeai.ocr.grade_converter import convert_german_grade, format_german_grade, grade_description


@pytest.mark.parametrize("grade, expected", [
    ("2", 2.0),
    ("2+", 1.7),
    ("2-", 2.3),
    (" 3 - ", 3.3),
    ("2,5", 2.5),
    ("4.3", 4.3),
    ("1+", 1.0),
    ("6-", 6.0),
])
def test_convert(grade, expected):
    assert convert_german_grade(grade) == pytest.approx(expected)


@pytest.mark.parametrize("grade", [None, "", "  ", "7", "0+", "sehr gut", "0,5", "unknown"])
def test_convert_invalid(grade):
    assert convert_german_grade(grade) is None


@pytest.mark.parametrize("value, expected", [(2.0, "2"), (1.7, "2+"), (2.3, "2-"), (2.5, "2.5"), (5.7, "6+")])
def test_format(value, expected):
    assert format_german_grade(value) == expected


def test_format_rejects_out_of_range():
    assert format_german_grade(0.5) is None
    assert format_german_grade(None) is None
    assert format_german_grade(float("nan")) is None


@pytest.mark.parametrize("value, expected", [
    (1.0, "sehr gut"),
    (1.7, "gut"),
    (2.5, "befriedigend"),
    (3.7, "ausreichend"),
    (5.0, "mangelhaft"),
    (6.0, "ungenügend"),
])
def test_description(value, expected):
    assert grade_description(value) == expected
