"""
Upload analysis pipeline and document checks.
"""

from gradeai.pipeline.analyzer import UploadAnalysisPipeline, run_with_deadline
from gradeai.pipeline.content_checks import run_document_checks

__all__ = [
    "UploadAnalysisPipeline",
    "run_with_deadline",
    "run_document_checks",
]
