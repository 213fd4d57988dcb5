"""
Interface shared by text recognition engines.
"""

from typing import Protocol, runtime_checkable

from gradeai.core.models import OcrReading


@runtime_checkable
class OcrEngine(Protocol):
    """
    A text recognition engine.

    extract() returns text with a 0-1 confidence and raises OCRError (or
    any exception) on failure.
    """

    name: str

    async def extract(self, image_bytes: bytes) -> OcrReading:
        ...
