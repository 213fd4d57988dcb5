"""
Storage module for uploads and analysis results.
"""

from gradeai.storage.upload_store import JsonUploadStore, UploadRepository

__all__ = [
    'JsonUploadStore',
    'UploadRepository',
]
