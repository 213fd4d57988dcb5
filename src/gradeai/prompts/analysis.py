"""
Prompts for text-based test analysis.

The model reasons in English; user-facing strings come back in the
requested output language.
"""

from typing import Optional

from gradeai.core.models import StudentProfile, VisualEvidence

ANALYSIS_SYSTEM_PROMPT = (
    "You are an expert educational assessment analyst specializing in German school tests. "
    "Your analysis must be thorough, accurate, and actionable for parents. "
    "Reason in English for accuracy, but return all user-facing JSON string fields "
    "in the requested output language. Return ONLY valid JSON, nothing else."
)

LANGUAGE_NAMES = {
    "en": "English",
    "de": "German",
    "fr": "French",
    "es": "Spanish",
    "it": "Italian",
    "tr": "Turkish",
    "pl": "Polish",
    "ar": "Arabic",
    "ru": "Russian",
    "uk": "Ukrainian",
}


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get((code or "en").lower()[:2], code or "English")


def format_evidence_block(evidence: Optional[VisualEvidence]) -> str:
    """Plain-text rendering of visual evidence for the model."""
    evidence = evidence or VisualEvidence.empty()
    grade = evidence.grade_detected if evidence.grade_detected is not None else "unknown"
    return (
        "[Visual Evidence]\n"
        f"GradeDetected: {grade}\n"
        f"Points: {evidence.points or 'unknown'}\n"
        f"Marks: {', '.join(evidence.marks) or 'none'}\n"
        f"CorrectionDensity: {evidence.correction_density}\n"
        f"TeacherComment: {evidence.teacher_comment or 'none'}\n"
        f"AnswerRegions: {len(evidence.answer_regions)} region(s) detected\n"
        f"Confidence: {evidence.confidence}\n"
    )


def build_combined_text(evidence: Optional[VisualEvidence], ocr_text: str) -> str:
    """Evidence block followed by the recognized document text."""
    return format_evidence_block(evidence) + "\n\n[OCR Text]\n" + ocr_text


def build_analysis_prompt(
    text: str,
    profile: StudentProfile,
    language: str = "en",
) -> str:
    """
    Build the analysis prompt.

    Args:
        text: Document text, usually with the evidence block prepended
        profile: Student name and grade level
        language: Output language code

    Returns:
        Prompt asking for the summary/performance JSON shape
    """
    grade_level = profile.grade_level or "unknown"
    output_language = language_name(language)

    return f"""Analyze this German school test (Klassenarbeit) and write a report for the parents.

STUDENT: {profile.name}
GRADE LEVEL: {grade_level}
OUTPUT LANGUAGE: {output_language} (all user-facing strings)

RULES:
1. NEVER invent a grade. If no grade is clearly written, use "Unable to determine".
2. German grades run from 1 (best) to 6 (worst) and may carry + or -.
3. The [Visual Evidence] block was measured from the image pixels: treat it as a hint, the text wins.
4. Base every strength, weakness and recommendation on something visible in the test.
5. Recommendations must be concrete actions a parent can start this week.

Return JSON with exactly this structure:
{{
  "summary": {{
    "overallGrade": "2-",
    "overallScore": 34,
    "maxScore": 40,
    "percentage": 85,
    "subject": "Mathematik",
    "topic": "Bruchrechnung",
    "childName": "{profile.name}",
    "testDate": null,
    "executiveSummary": "two sentences",
    "confidence": 0.9
  }},
  "performance": {{
    "bySection": [{{"name": "Aufgabe 1", "pointsAchieved": 8, "pointsPossible": 10, "percentage": 80, "notes": ""}}],
    "trends": []
  }},
  "teacherFeedback": {{"evaluationMethodology": "", "written": "", "corrections": [], "praise": []}},
  "strengths": [],
  "weaknesses": [],
  "recommendations": [
    {{"priority": 1, "category": "", "action": "", "timeframe": "", "rationale": "", "resources": []}}
  ],
  "timeManagement": {{"assessment": "", "suggestions": []}},
  "languageEnhancement": {{"applicable": false, "notes": "", "grammarIssues": [], "vocabularyTips": []}},
  "longTermDevelopment": {{"semesterPrediction": "", "improvementAreas": [], "goalSetting": ""}}
}}

TEST CONTENT:
{text}
"""
