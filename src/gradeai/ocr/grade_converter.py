"""
German school grade notation.

Scale: 1 (sehr gut) to 6 (ungenügend). "+" improves a grade by 0.3,
"-" worsens it by 0.3, and decimal grades may use a comma ("2,5").
"""

import re
from typing import Optional

GRADE_MODIFIER = 0.3
MIN_GRADE = 1.0
MAX_GRADE = 6.0

_BASE_WITH_MODIFIER = re.compile(r"^\s*(\d)\s*([+-])\s*$")

GRADE_DESCRIPTIONS = (
    (1.5, "sehr gut"),
    (2.5, "gut"),
    (3.5, "befriedigend"),
    (4.5, "ausreichend"),
    (5.5, "mangelhaft"),
    (6.0, "ungenügend"),
)


def convert_german_grade(grade: Optional[str]) -> Optional[float]:
    """
    Convert grade notation to a number.

    Examples:
        "2+" -> 1.7, "2-" -> 2.3, "2,5" -> 2.5, "7" -> None
    """
    if not grade or not grade.strip():
        return None

    match = _BASE_WITH_MODIFIER.match(grade)
    if match:
        base = int(match.group(1))
        if not MIN_GRADE <= base <= MAX_GRADE:
            return None
        if match.group(2) == "+":
            return round(max(MIN_GRADE, base - GRADE_MODIFIER), 1)
        return round(min(MAX_GRADE, base + GRADE_MODIFIER), 1)

    try:
        value = float(grade.strip().replace(",", "."))
    except ValueError:
        return None

    if not MIN_GRADE <= value <= MAX_GRADE:
        return None
    return value


def format_german_grade(value: Optional[float]) -> Optional[str]:
    """Inverse of convert_german_grade: 1.7 -> "2+", 2.3 -> "2-"."""
    if value is None or value != value or not MIN_GRADE <= value <= MAX_GRADE:
        return None

    if float(value).is_integer():
        return str(int(value))

    base = int(value)
    fraction = value - base
    if abs(fraction - GRADE_MODIFIER) < 0.01:
        return f"{base}-"
    if abs(fraction - (1 - GRADE_MODIFIER)) < 0.01:
        return f"{base + 1}+"
    return f"{value:.1f}"


def grade_description(value: Optional[float]) -> Optional[str]:
    """German wording for a numeric grade."""
    if value is None or value != value or not MIN_GRADE <= value <= MAX_GRADE:
        return None
    for upper, description in GRADE_DESCRIPTIONS:
        if value < upper or upper == MAX_GRADE:
            return description
    return None
