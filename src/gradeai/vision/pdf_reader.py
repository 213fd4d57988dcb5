"""
Page rendering for uploads.

Uses PyMuPDF (fitz) to rasterize PDFs and Pillow to fit pages into the
size vision providers accept.
"""

import io
from pathlib import Path
from typing import List

import fitz  # PyMuPDF
from loguru import logger
from PIL import Image

from gradeai.config.constants import PAGE_MAX_HEIGHT, PAGE_MAX_WIDTH, PDF_DPI, PDF_MAX_PAGES, SUPPORTED_IMAGE_FORMATS
from gradeai.core.exceptions import PDFReadError
from gradeai.core.models import PageImage


def fit_page(img: Image.Image, max_width: int = PAGE_MAX_WIDTH, max_height: int = PAGE_MAX_HEIGHT) -> Image.Image:
    """Shrink to fit inside max_width x max_height, keeping aspect ratio."""
    if img.width <= max_width and img.height <= max_height:
        return img
    fitted = img.copy()
    fitted.thumbnail((max_width, max_height), Image.LANCZOS)
    return fitted


def to_png_bytes(img: Image.Image) -> bytes:
    buffer = io.BytesIO()
    img.save(buffer, format="PNG", optimize=True)
    return buffer.getvalue()


class PDFReader:
    """
    PDF reader producing page images.

    Usage:
        with PDFReader(pdf_bytes) as reader:
            pages = reader.render_pages()
    """

    def __init__(self, pdf_bytes: bytes):
        """
        Raises:
            PDFReadError: If the bytes are not a readable PDF
        """
        self.doc = None
        self.page_count = 0

        try:
            self.doc = fitz.open(stream=pdf_bytes, filetype="pdf")
            self.page_count = len(self.doc)
        except Exception as e:
            raise PDFReadError(f"Failed to open PDF: {e}") from e

        if self.page_count == 0:
            raise PDFReadError("PDF has no pages")

    def get_page_image(self, page_num: int, dpi: int = PDF_DPI) -> Image.Image:
        """
        Convert a PDF page to a PIL Image.

        Args:
            page_num: Page number (0-indexed)
            dpi: Resolution for rendering
        """
        if page_num >= self.page_count:
            raise IndexError(f"Page {page_num} out of range (0-{self.page_count-1})")

        zoom = dpi / 72
        pix = self.doc[page_num].get_pixmap(matrix=fitz.Matrix(zoom, zoom))
        return Image.open(io.BytesIO(pix.tobytes("png")))

    def render_pages(self, dpi: int = PDF_DPI, max_pages: int = PDF_MAX_PAGES) -> List[PageImage]:
        """Render up to max_pages pages as size-limited PNG page images."""
        if self.page_count > max_pages:
            logger.warning(f"PDF has {self.page_count} pages, rendering the first {max_pages}")

        pages = []
        for page_num in range(min(self.page_count, max_pages)):
            img = fit_page(self.get_page_image(page_num, dpi))
            pages.append(PageImage(page_number=page_num + 1, data=to_png_bytes(img)))
        return pages

    def close(self):
        """Close the PDF document."""
        if self.doc is not None:
            self.doc.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def render_pdf_pages(pdf_bytes: bytes, dpi: int = PDF_DPI, max_pages: int = PDF_MAX_PAGES) -> List[PageImage]:
    """Render a PDF to page images."""
    with PDFReader(pdf_bytes) as reader:
        pages = reader.render_pages(dpi=dpi, max_pages=max_pages)
    logger.info(f"Rendered {len(pages)} PDF page(s), {sum(p.size_kb for p in pages):.0f} KB")
    return pages


def image_to_page(image_bytes: bytes, page_number: int = 1) -> PageImage:
    """Normalize an uploaded photo or scan into a PNG page image."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as img:
            img = fit_page(img.convert("RGB"))
            return PageImage(page_number=page_number, data=to_png_bytes(img))
    except OSError as e:
        raise PDFReadError(f"Unreadable image: {e}") from e


def load_page_images(path) -> List[PageImage]:
    """
    Load a PDF or image file from disk as page images.

    Raises:
        FileNotFoundError: path does not exist
        PDFReadError: unsupported or unreadable file
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()
    data = path.read_bytes()
    if suffix == ".pdf":
        return render_pdf_pages(data)
    if suffix in SUPPORTED_IMAGE_FORMATS:
        return [image_to_page(data)]
    raise PDFReadError(
        f"Unsupported file type: {suffix or '(none)'}. Use .pdf or one of {', '.join(SUPPORTED_IMAGE_FORMATS)}"
    )
