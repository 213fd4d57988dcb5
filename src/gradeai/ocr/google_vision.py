"""
Google Cloud Vision text recognition (primary engine).

Credentials come from GRADEAI_GOOGLE_CREDENTIALS_JSON (service-account
JSON content) or the standard GOOGLE_APPLICATION_CREDENTIALS file path.
"""

import asyncio
import json
from typing import Optional

from google.cloud import vision
from google.oauth2 import service_account
from loguru import logger

from gradeai.core.exceptions import ConfigurationError, OCRError
from gradeai.core.models import OcrReading

LANGUAGE_HINTS = ["de", "en"]


class GoogleVisionOcr:
    """Document text detection through the Vision API."""

    name = "google-vision"

    def __init__(self, credentials_json: Optional[str] = None, client: Optional[vision.ImageAnnotatorClient] = None):
        """
        Args:
            credentials_json: Service-account JSON content (optional)
            client: Pre-built client, mainly for tests
        """
        if client is not None:
            self.client = client
            return

        try:
            if credentials_json:
                credentials = service_account.Credentials.from_service_account_info(json.loads(credentials_json))
                self.client = vision.ImageAnnotatorClient(credentials=credentials)
            else:
                self.client = vision.ImageAnnotatorClient()
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"GRADEAI_GOOGLE_CREDENTIALS_JSON is not valid JSON: {e}") from e
        except Exception as e:
            raise ConfigurationError(
                f"Failed to initialize Google Cloud Vision client: {e}. "
                "Set GRADEAI_GOOGLE_CREDENTIALS_JSON or GOOGLE_APPLICATION_CREDENTIALS."
            ) from e

    def extract_sync(self, image_bytes: bytes) -> OcrReading:
        """Blocking recognition call."""
        image = vision.Image(content=image_bytes)
        response = self.client.document_text_detection(
            image=image,
            image_context=vision.ImageContext(language_hints=LANGUAGE_HINTS),
        )

        if response.error.message:
            raise OCRError(f"Google Vision error: {response.error.message}")

        annotation = response.full_text_annotation
        text = annotation.text if annotation else ""

        # Page confidence is 0-1; average over pages that report one
        confidences = [page.confidence for page in (annotation.pages if annotation else []) if page.confidence]
        confidence = sum(confidences) / len(confidences) if confidences else 0.0

        logger.debug(f"Google Vision: {len(text)} chars, confidence {confidence:.2f}")
        return OcrReading(text=text, confidence=confidence)

    async def extract(self, image_bytes: bytes) -> OcrReading:
        return await asyncio.to_thread(self.extract_sync, image_bytes)
