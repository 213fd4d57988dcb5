"""
Plausibility checks on recognized text.

The checks flag uploads that do not look like a graded school test
(source code screenshots, blank worksheets, instructions). They are
recorded as warnings in the analysis metadata and never block analysis.
"""

import re
from typing import Any, Dict, List

TECHNICAL_KEYWORDS = (
    'database', 'frontend', 'backend', 'api', 'postgresql', 'prisma', 'schema',
    'react', 'typescript', 'javascript', 'node.js', 'express', 'mongodb',
    'mysql', 'redis', 'docker', 'kubernetes', 'aws', 'azure', 'gcp',
    'github', 'gitlab', 'ci/cd', 'deployment', 'server', 'client',
    'html', 'css', 'sass', 'webpack', 'babel', 'eslint',
    'json', 'xml', 'yaml', 'toml', 'dockerfile', 'docker-compose',
    'helm', 'terraform', 'ansible', 'jenkins',
)

SCHOOL_KEYWORDS = (
    'klassenarbeit', 'test', 'klasse', 'aufgabe', 'punkte', 'note', 'fach',
    'schule', 'mathematik', 'deutsch', 'englisch', 'französisch', 'biologie',
    'chemie', 'physik', 'geschichte', 'geographie', 'musik', 'kunst', 'sport',
    'religion', 'ethik', 'informatik', 'lehrer', 'lehrerin', 'schüler', 'schülerin',
    'unterricht', 'thema', 'lernziel', 'bewertung', 'leistung', 'hausaufgabe',
    'übung', 'wiederholung', 'kontrolle', 'klausur', 'prüfung', 'examen',
    'zeugnis', 'noten', 'zensuren', 'punktzahl', 'prozent', '%',
)

INSTRUCTION_MARKERS = ('instructions', 'anweisungen', 'aufgabenstellung')

TECHNICAL_MIN_MATCHES = 3
SCHOOL_MIN_MATCHES = 2

GRADE_INDICATORS = [
    re.compile(r'note:\s*[1-6]'),
    re.compile(r'punkte:\s*\d+'),
    re.compile(r'sehr gut|gut|befriedigend|ausreichend|mangelhaft|ungenügend'),
    re.compile(r'\b[1-6][+-]?(?![\w])'),
    re.compile(r'[1-6][,.]\d+'),
]


def keyword_matches(text: str, keywords) -> List[str]:
    lowered = text.lower()
    return sorted({keyword for keyword in keywords if keyword in lowered})


def contains_technical_content(text: str) -> bool:
    """Three or more software/infrastructure terms."""
    return len(keyword_matches(text, TECHNICAL_KEYWORDS)) >= TECHNICAL_MIN_MATCHES


def is_likely_school_test(text: str) -> bool:
    return len(keyword_matches(text, SCHOOL_KEYWORDS)) >= SCHOOL_MIN_MATCHES


def has_grade_indicator(text: str) -> bool:
    lowered = text.lower()
    return any(pattern.search(lowered) for pattern in GRADE_INDICATORS)


def is_actual_graded_test(text: str) -> bool:
    """Has a grade marker and is not just a sheet of instructions."""
    lowered = text.lower()
    has_grade = has_grade_indicator(lowered)
    is_instructions = (
        any(marker in lowered for marker in INSTRUCTION_MARKERS)
        or (not has_grade and ('read the' in lowered or 'bearbeiten sie' in lowered))
    )
    return has_grade and not is_instructions


def run_document_checks(text: str) -> Dict[str, Any]:
    """
    Run all checks and collect human-readable warnings.

    Returns:
        Dict with one boolean per check plus a "warnings" list
    """
    technical = contains_technical_content(text)
    school = is_likely_school_test(text)
    graded = is_actual_graded_test(text)

    warnings = []
    if technical:
        warnings.append("Text looks like technical content rather than a school test")
    if not school:
        warnings.append("Few school-test keywords found")
    if not graded:
        warnings.append("No grade marker found; the test may be ungraded")

    return {
        "technical_content": technical,
        "likely_school_test": school,
        "graded_test": graded,
        "warnings": warnings,
    }
