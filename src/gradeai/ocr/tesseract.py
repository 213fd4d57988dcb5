"""
Local Tesseract recognition (fallback engine).

Each run owns a single-thread worker acquired with a startup timeout and
always released, bounded by a shorter termination timeout, whether the
run succeeds, fails or times out.
"""

import asyncio
import functools
import io
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Tuple

import pytesseract
from loguru import logger
from PIL import Image

from gradeai.core.exceptions import OCRError
from gradeai.core.models import OcrReading


async def _release_worker(executor: ThreadPoolExecutor, terminate_timeout: float) -> None:
    """Shut the worker down, abandoning it if it does not stop in time."""
    try:
        await asyncio.wait_for(asyncio.to_thread(executor.shutdown, wait=True), timeout=terminate_timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Tesseract worker did not stop within {terminate_timeout}s, abandoning it")
        executor.shutdown(wait=False, cancel_futures=True)
    except BaseException:
        executor.shutdown(wait=False, cancel_futures=True)
        raise


@asynccontextmanager
async def tesseract_worker(startup_timeout: float, terminate_timeout: float) -> AsyncIterator[ThreadPoolExecutor]:
    """
    Scoped Tesseract worker.

    Acquisition checks the tesseract binary responds within startup_timeout.
    """
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tesseract")
    loop = asyncio.get_running_loop()
    try:
        try:
            await asyncio.wait_for(
                loop.run_in_executor(executor, pytesseract.get_tesseract_version),
                timeout=startup_timeout,
            )
        except asyncio.TimeoutError as e:
            raise OCRError(f"Tesseract worker creation timed out after {startup_timeout}s") from e
        except pytesseract.TesseractNotFoundError as e:
            raise OCRError("Tesseract is not installed or not on PATH") from e
        yield executor
    finally:
        await _release_worker(executor, terminate_timeout)


def _lines_from_data(data: Dict[str, List]) -> Tuple[str, float]:
    """Rebuild text line by line and average the positive word confidences."""
    lines: Dict[Tuple[int, int, int], List[str]] = {}
    confidences = []
    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        if not word:
            continue
        key = (data["block_num"][i], data["par_num"][i], data["line_num"][i])
        lines.setdefault(key, []).append(word)
        try:
            conf = float(data["conf"][i])
        except (TypeError, ValueError):
            continue
        if conf > 0:
            confidences.append(conf)

    text = "\n".join(" ".join(words) for _, words in sorted(lines.items()))
    avg_confidence = sum(confidences) / len(confidences) if confidences else 0.0
    return text, avg_confidence / 100


def recognize_image(image_bytes: bytes, languages: str, timeout: float) -> OcrReading:
    """
    Blocking recognition of one image.

    pytesseract kills the tesseract process once timeout expires.
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            data = pytesseract.image_to_data(
                img.convert("RGB"),
                lang=languages,
                output_type=pytesseract.Output.DICT,
                timeout=timeout,
            )
    except pytesseract.TesseractError as e:
        raise OCRError(f"Tesseract recognition failed: {e}") from e
    except RuntimeError as e:
        # pytesseract signals its own timeout with a plain RuntimeError
        raise OCRError(f"Tesseract recognition timed out: {e}") from e
    except OSError as e:
        raise OCRError(f"Tesseract could not read image: {e}") from e

    text, confidence = _lines_from_data(data)
    return OcrReading(text=text, confidence=confidence)


async def run_tesseract(
    image_bytes: bytes,
    languages: str = "deu+eng",
    timeout: float = 20.0,
    terminate_timeout: float = 5.0,
) -> OcrReading:
    """
    Recognize text with a scoped Tesseract worker.

    Raises:
        OCRError: on startup failure, recognition failure or timeout
    """
    async with tesseract_worker(timeout, terminate_timeout) as executor:
        loop = asyncio.get_running_loop()
        job = functools.partial(recognize_image, image_bytes, languages, timeout)
        try:
            return await asyncio.wait_for(loop.run_in_executor(executor, job), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise OCRError(f"Tesseract recognition timed out after {timeout}s") from e


class TesseractOcr:
    """Fallback engine wrapping run_tesseract."""

    name = "tesseract"

    def __init__(self, languages: str = "deu+eng", timeout: float = 20.0, terminate_timeout: float = 5.0):
        self.languages = languages
        self.timeout = timeout
        self.terminate_timeout = terminate_timeout

    @classmethod
    def from_settings(cls, settings) -> "TesseractOcr":
        return cls(
            languages=settings.tesseract_languages,
            timeout=settings.tesseract_timeout_seconds,
            terminate_timeout=settings.tesseract_terminate_timeout_seconds,
        )

    async def extract(self, image_bytes: bytes) -> OcrReading:
        return await run_tesseract(image_bytes, self.languages, self.timeout, self.terminate_timeout)
