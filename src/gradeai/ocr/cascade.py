"""
Cascading text resolution: a primary engine with a local fallback.

The fallback runs only when the primary result is empty or below the
confidence threshold. When both produce text, select_best_result picks
the winner.
"""

import time
from typing import List, Optional

from loguru import logger

from gradeai.core.exceptions import AllOCREnginesFailedError
from gradeai.core.models import OcrAttempt, TextResolution
from gradeai.ocr.base import OcrEngine


def select_best_result(
    attempts: List[OcrAttempt],
    high_confidence: float = 0.90,
    similarity_margin: float = 0.10,
) -> OcrAttempt:
    """
    Pick the best OCR attempt.

    1. A single attempt wins outright.
    2. The most confident attempt wins if it reaches high_confidence.
    3. If the top two confidences are within similarity_margin, the longer
       text wins (more recovered text usually means fewer dropped words).
    4. Otherwise the most confident attempt wins.
    """
    if not attempts:
        raise ValueError("No OCR attempts to choose from")
    if len(attempts) == 1:
        return attempts[0]

    ranked = sorted(attempts, key=lambda a: (-a.confidence, a.provider))
    best, runner_up = ranked[0], ranked[1]

    if best.confidence >= high_confidence:
        return best

    if best.confidence - runner_up.confidence < similarity_margin:
        # Ties on length keep the more confident attempt
        return runner_up if len(runner_up.text) > len(best.text) else best

    return best


class CascadingTextResolver:
    """
    Extract text from a page image, trying engines in order.

    Usage:
        resolver = CascadingTextResolver(GoogleVisionOcr(), TesseractOcr())
        resolution = await resolver.resolve(image_bytes)
    """

    def __init__(
        self,
        primary: OcrEngine,
        fallback: Optional[OcrEngine] = None,
        threshold: float = 0.85,
        high_confidence: float = 0.90,
        similarity_margin: float = 0.10,
        skip_fallback: bool = False,
    ):
        """
        Args:
            primary: Engine tried first
            fallback: Engine tried when the primary is weak or fails
            threshold: Minimum primary confidence to skip the fallback
            high_confidence: Confidence that wins selection outright
            similarity_margin: Confidence gap below which length decides
            skip_fallback: Never run the fallback engine
        """
        self.primary = primary
        self.fallback = fallback
        self.threshold = threshold
        self.high_confidence = high_confidence
        self.similarity_margin = similarity_margin
        self.skip_fallback = skip_fallback

    @classmethod
    def from_settings(cls, primary: OcrEngine, fallback: Optional[OcrEngine], settings) -> "CascadingTextResolver":
        return cls(
            primary,
            fallback,
            threshold=settings.ocr_confidence_threshold,
            high_confidence=settings.ocr_high_confidence,
            similarity_margin=settings.ocr_similarity_margin,
            skip_fallback=settings.skip_ocr_fallback,
        )

    async def _attempt(self, engine: OcrEngine, image_bytes: bytes) -> OcrAttempt:
        start = time.monotonic()
        reading = await engine.extract(image_bytes)
        attempt = OcrAttempt(
            provider=engine.name,
            text=reading.text,
            confidence=reading.confidence,
            processing_ms=(time.monotonic() - start) * 1000,
        )
        logger.info(
            f"{engine.name}: {len(attempt.text)} chars, "
            f"confidence {attempt.confidence:.2f} in {attempt.processing_ms:.0f}ms"
        )
        return attempt

    async def resolve(self, image_bytes: bytes) -> TextResolution:
        """
        Resolve the text of one image.

        Raises:
            AllOCREnginesFailedError: no engine produced a result
        """
        attempts: List[OcrAttempt] = []
        failures = {}

        try:
            primary = await self._attempt(self.primary, image_bytes)
            attempts.append(primary)
            if primary.text.strip() and primary.confidence >= self.threshold:
                return TextResolution(
                    text=primary.text,
                    confidence=primary.confidence,
                    provider=primary.provider,
                    fallback_used=False,
                    attempts=attempts,
                )
            logger.info(
                f"{primary.provider} confidence {primary.confidence:.2f} below "
                f"{self.threshold:.2f} or empty text, trying fallback"
            )
        except Exception as e:
            logger.warning(f"{self.primary.name} failed: {e}")
            failures[self.primary.name] = str(e) or type(e).__name__

        fallback_used = False
        if self.fallback is not None and not self.skip_fallback:
            fallback_used = True
            try:
                attempts.append(await self._attempt(self.fallback, image_bytes))
            except Exception as e:
                logger.warning(f"{self.fallback.name} failed: {e}")
                failures[self.fallback.name] = str(e) or type(e).__name__

        if not attempts:
            raise AllOCREnginesFailedError(failures)

        # An attempt with text always beats an empty one
        candidates = [a for a in attempts if a.text.strip()] or attempts
        best = select_best_result(candidates, self.high_confidence, self.similarity_margin)
        logger.info(f"Selected {best.provider} text ({len(best.text)} chars, confidence {best.confidence:.2f})")
        return TextResolution(
            text=best.text,
            confidence=best.confidence,
            provider=best.provider,
            fallback_used=fallback_used,
            attempts=attempts,
        )
