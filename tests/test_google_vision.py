"""
Tests for the Google Vision engine with a stand-in client.
"""

import asyncio
from types import SimpleNamespace

import pytest

from gradeai.core.exceptions import ConfigurationError, OCRError
from gradeai.ocr.google_vision import GoogleVisionOcr


class StubClient:
    def __init__(self, text="", page_confidences=(), error=""):
        self.response = SimpleNamespace(
            error=SimpleNamespace(message=error),
            full_text_annotation=SimpleNamespace(
                text=text,
                pages=[SimpleNamespace(confidence=c) for c in page_confidences],
            ),
        )
        self.requests = []

    def document_text_detection(self, image, image_context):
        self.requests.append(list(image_context.language_hints))
        return self.response


def test_text_and_average_page_confidence():
    client = StubClient("Klassenarbeit\nNote: 2", page_confidences=(0.9, 0.8, 0.0))

    reading = asyncio.run(GoogleVisionOcr(client=client).extract(b"png"))

    assert reading.text == "Klassenarbeit\nNote: 2"
    assert reading.confidence == pytest.approx(0.85)
    assert client.requests == [["de", "en"]]


def test_no_pages_means_zero_confidence():
    reading = GoogleVisionOcr(client=StubClient("")).extract_sync(b"png")

    assert reading.text == ""
    assert reading.confidence == 0.0


def test_api_error_raises():
    with pytest.raises(OCRError, match="quota"):
        GoogleVisionOcr(client=StubClient(error="quota exceeded")).extract_sync(b"png")


def test_invalid_credentials_json():
    with pytest.raises(ConfigurationError):
        GoogleVisionOcr(credentials_json="{not json")
