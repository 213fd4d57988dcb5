"""
Tests for document plausibility checks.
"""

from gradeai.pipeline.content_checks import (
    contains_technical_content,
    has_grade_indicator,
    is_actual_graded_test,
    is_likely_school_test,
    run_document_checks,
)

GRADED_TEST = "Klassenarbeit Mathematik Klasse 6\nAufgabe 1 ... Aufgabe 4\nNote: 2-"
CODE_SCREENSHOT = "docker-compose up starts the backend server, the frontend talks to the api via json"


def test_graded_school_test():
    checks = run_document_checks(GRADED_TEST)

    assert checks == {
        "technical_content": False,
        "likely_school_test": True,
        "graded_test": True,
        "warnings": [],
    }


def test_technical_content_is_flagged():
    assert contains_technical_content(CODE_SCREENSHOT)

    checks = run_document_checks(CODE_SCREENSHOT)

    assert checks["technical_content"] is True
    assert "Text looks like technical content rather than a school test" in checks["warnings"]


def test_school_keywords_need_two_matches():
    assert not is_likely_school_test("Biologie")
    assert is_likely_school_test("Biologie Hausaufgabe")


def test_grade_indicators():
    assert has_grade_indicator("Note: 3")
    assert has_grade_indicator("insgesamt befriedigend")
    assert has_grade_indicator("Ergebnis 2,5")
    assert not has_grade_indicator("Aufgabe eins bis zehn")


def test_instruction_sheet_is_not_graded():
    assert not is_actual_graded_test("Aufgabenstellung: Note 1 erreicht, wer alles löst")
    assert not is_actual_graded_test("Bearbeiten Sie alle Aufgaben sorgfältig")


def test_warnings_never_raise_on_empty_text():
    checks = run_document_checks("")

    assert checks["graded_test"] is False
    assert len(checks["warnings"]) == 2
