"""
Text recognition: OCR engines, cascading resolution and visual evidence.

Engine modules pull in their SDKs, so import them directly:
    from gradeai.ocr.google_vision import GoogleVisionOcr
    from gradeai.ocr.tesseract import TesseractOcr
"""

from gradeai.ocr.base import OcrEngine
from gradeai.ocr.cascade import CascadingTextResolver, select_best_result
from gradeai.ocr.grade_converter import convert_german_grade, format_german_grade, grade_description
from gradeai.ocr.visual_evidence import VisualEvidenceExtractor

__all__ = [
    "OcrEngine",
    "CascadingTextResolver",
    "select_best_result",
    "convert_german_grade",
    "format_german_grade",
    "grade_description",
    "VisualEvidenceExtractor",
]
