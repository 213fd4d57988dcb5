"""
Visual evidence extraction from a photographed or scanned test page.

Pixel analysis (Pillow + numpy) finds teacher correction ink; small OCR
passes over fixed page regions look for a grade, a points score and a
closing comment. The result is a hint for the analysis prompt, so nothing
here raises: any failure degrades to empty evidence.
"""

import asyncio
import io
import re
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from loguru import logger
from PIL import Image

from gradeai.config.constants import (
    BLUE_MIN,
    BLUE_OVER_GREEN,
    BLUE_OVER_RED,
    EVIDENCE_BASE_CONFIDENCE,
    EVIDENCE_BLUE_MARK_RATIO,
    EVIDENCE_CELL_THRESHOLD,
    EVIDENCE_DENSITY_WEIGHT,
    EVIDENCE_GRID_COLS,
    EVIDENCE_GRID_ROWS,
    EVIDENCE_MAX_BOOST,
    EVIDENCE_MAX_CONFIDENCE,
    EVIDENCE_MIN_COMMENT_LENGTH,
    EVIDENCE_RED_MARK_RATIO,
    MARK_CORRECT,
    MARK_WRONG,
    RED_DOMINANCE,
    RED_MIN,
)
from gradeai.core.models import AnswerRegion, VisualEvidence
from gradeai.ocr.base import OcrEngine

GRADE_LABEL_PATTERN = re.compile(r"(?:Note|Grade|Punkte)\s*[:\-]?\s*(\d{1,2})(?:\s*/\s*(\d{1,2}))?", re.IGNORECASE)
BARE_GRADE_PATTERN = re.compile(r"(?:^|\s)([1-6])(?:\s|$)")
POINTS_PATTERN = re.compile(r"(\d{1,2})\s*/\s*(\d{1,2})")


@dataclass
class Rect:
    x: int
    y: int
    width: int
    height: int


# ==================== PIXEL ANALYSIS ====================

def load_rgb(image_bytes: bytes, max_width: int = 1400) -> np.ndarray:
    """Decode to an RGB array, downscaled to max_width (never enlarged)."""
    with Image.open(io.BytesIO(image_bytes)) as img:
        img = img.convert("RGB")
        if img.width > max_width:
            height = max(1, round(img.height * max_width / img.width))
            img = img.resize((max_width, height), Image.LANCZOS)
        return np.asarray(img, dtype=np.int16)


def red_mask(pixels: np.ndarray) -> np.ndarray:
    """Red correction ink, allowing for scanned desaturation."""
    r, g, b = pixels[..., 0], pixels[..., 1], pixels[..., 2]
    return (r > RED_MIN) & (r > g + RED_DOMINANCE) & (r > b + RED_DOMINANCE)


def blue_mask(pixels: np.ndarray) -> np.ndarray:
    """Blue pen ink."""
    r, g, b = pixels[..., 0], pixels[..., 1], pixels[..., 2]
    return (b > BLUE_MIN) & (b > r + BLUE_OVER_RED) & (b > g + BLUE_OVER_GREEN)


def detect_answer_regions(
    ink: np.ndarray,
    cols: int = EVIDENCE_GRID_COLS,
    rows: int = EVIDENCE_GRID_ROWS,
    threshold: float = EVIDENCE_CELL_THRESHOLD,
) -> List[AnswerRegion]:
    """
    Flag grid cells dense with ink and merge adjacent ones.

    Args:
        ink: Boolean mask of red or blue pixels
    """
    height, width = ink.shape
    cell_w, cell_h = width // cols, height // rows
    if cell_w == 0 or cell_h == 0:
        return []

    cells = []
    for row in range(rows):
        for col in range(cols):
            x, y = col * cell_w, row * cell_h
            score = float(ink[y:y + cell_h, x:x + cell_w].mean())
            if score > threshold:
                cells.append({"x": x, "y": y, "width": cell_w, "height": cell_h, "score": score})

    # Single pass in reading order: extend the last region when the next cell touches it
    cells.sort(key=lambda c: (c["y"], c["x"]))
    merged: List[dict] = []
    for cell in cells:
        last = merged[-1] if merged else None
        if last and cell["y"] <= last["y"] + last["height"] and cell["x"] <= last["x"] + last["width"] + cell["width"]:
            last["width"] = max(last["width"], cell["x"] + cell["width"] - last["x"])
            last["height"] = max(last["height"], cell["y"] + cell["height"] - last["y"])
            last["score"] = max(last["score"], cell["score"])
        else:
            merged.append(dict(cell))

    return [AnswerRegion(**{**m, "score": round(m["score"], 3)}) for m in merged]


def crop_png(pixels: np.ndarray, rect: Rect) -> bytes:
    region = pixels[rect.y:rect.y + rect.height, rect.x:rect.x + rect.width]
    buffer = io.BytesIO()
    Image.fromarray(region.astype(np.uint8), "RGB").save(buffer, format="PNG")
    return buffer.getvalue()


def grade_rects(width: int, height: int) -> List[Rect]:
    """Grades usually sit in a top corner: right first, then left."""
    corner_w, corner_h = int(width * 0.35), int(height * 0.25)
    return [
        Rect(int(width * 0.65), 0, corner_w, corner_h),
        Rect(0, 0, corner_w, corner_h),
    ]


def points_rect(width: int, height: int) -> Rect:
    return Rect(int(width * 0.5), 0, int(width * 0.5), int(height * 0.3))


def comment_rect(width: int, height: int) -> Rect:
    return Rect(0, int(height * 0.75), width, int(height * 0.25))


# ==================== TEXT PARSING ====================

def parse_grade(text: str) -> Optional[int]:
    """A labelled grade ("Note: 2") or a lone digit 1-6."""
    match = GRADE_LABEL_PATTERN.search(text)
    if match:
        return int(match.group(1))
    match = BARE_GRADE_PATTERN.search(text)
    if match:
        return int(match.group(1))
    return None


def parse_points(text: str) -> Optional[str]:
    match = POINTS_PATTERN.search(text)
    return f"{match.group(1)}/{match.group(2)}" if match else None


def parse_comment(text: str) -> Optional[str]:
    collapsed = " ".join(text.split())
    return collapsed if len(collapsed) >= EVIDENCE_MIN_COMMENT_LENGTH else None


def evidence_confidence(correction_density: float) -> float:
    boost = min(EVIDENCE_MAX_BOOST, correction_density * EVIDENCE_DENSITY_WEIGHT)
    return min(EVIDENCE_MAX_CONFIDENCE, EVIDENCE_BASE_CONFIDENCE + boost)


# ==================== EXTRACTOR ====================

class VisualEvidenceExtractor:
    """
    Build a VisualEvidence package for one page image.

    Usage:
        extractor = VisualEvidenceExtractor(GoogleVisionOcr(), crop_timeout=6)
        evidence = await extractor.extract(image_bytes)
    """

    def __init__(self, ocr_engine: Optional[OcrEngine] = None, max_width: int = 1400, crop_timeout: float = 6.0):
        """
        Args:
            ocr_engine: Engine for region OCR; None skips grade/points/comment
            max_width: Downscale width for pixel analysis
            crop_timeout: Per-region OCR timeout in seconds
        """
        self.ocr_engine = ocr_engine
        self.max_width = max_width
        self.crop_timeout = crop_timeout

    async def _crop_text(self, pixels: np.ndarray, rect: Rect) -> str:
        """OCR one region; timeouts and errors give empty text."""
        if self.ocr_engine is None or rect.width <= 0 or rect.height <= 0:
            return ""
        try:
            png = await asyncio.to_thread(crop_png, pixels, rect)
            reading = await asyncio.wait_for(self.ocr_engine.extract(png), timeout=self.crop_timeout)
            return reading.text
        except asyncio.TimeoutError:
            logger.warning(f"Region OCR timed out after {self.crop_timeout}s")
            return ""
        except Exception as e:
            logger.warning(f"Region OCR failed: {e}")
            return ""

    async def _detect_grade(self, pixels: np.ndarray) -> Optional[int]:
        height, width = pixels.shape[:2]
        for rect in grade_rects(width, height):
            grade = parse_grade(await self._crop_text(pixels, rect))
            if grade is not None:
                return grade
        return None

    async def _detect_points(self, pixels: np.ndarray) -> Optional[str]:
        height, width = pixels.shape[:2]
        return parse_points(await self._crop_text(pixels, points_rect(width, height)))

    async def _detect_comment(self, pixels: np.ndarray) -> Optional[str]:
        height, width = pixels.shape[:2]
        return parse_comment(await self._crop_text(pixels, comment_rect(width, height)))

    async def extract(self, image_bytes: bytes) -> VisualEvidence:
        """Extract evidence; returns VisualEvidence.empty() on any failure."""
        try:
            pixels = await asyncio.to_thread(load_rgb, image_bytes, self.max_width)
            red = await asyncio.to_thread(red_mask, pixels)
            blue = await asyncio.to_thread(blue_mask, pixels)

            red_ratio = float(red.mean())
            blue_ratio = float(blue.mean())
            density = min(1.0, red_ratio + blue_ratio)

            grade, points, comment = await asyncio.gather(
                self._detect_grade(pixels),
                self._detect_points(pixels),
                self._detect_comment(pixels),
            )
            regions = await asyncio.to_thread(detect_answer_regions, red | blue)
        except Exception as e:
            logger.warning(f"Visual evidence extraction failed: {e}")
            return VisualEvidence.empty()

        marks = []
        if red_ratio > EVIDENCE_RED_MARK_RATIO:
            marks.append(MARK_WRONG)
        if blue_ratio > EVIDENCE_BLUE_MARK_RATIO:
            marks.append(MARK_CORRECT)

        evidence = VisualEvidence(
            grade_detected=grade,
            marks=marks,
            points=points,
            teacher_comment=comment,
            correction_density=round(density, 3),
            answer_regions=regions,
            confidence=evidence_confidence(density),
        )
        logger.debug(
            f"Visual evidence: grade={grade}, points={points}, density={evidence.correction_density}, "
            f"regions={len(regions)}"
        )
        return evidence
