"""
gradeai - multi-provider analysis of photographed school tests.

Resolves document text with a cascading OCR strategy, extracts ink-color
evidence from the page, fans the analysis out to several AI providers and
merges their answers into one report.
"""

__version__ = "0.3.0"
