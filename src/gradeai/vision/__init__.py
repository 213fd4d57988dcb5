"""
Vision module for PDF and image page handling.

Provides page rendering and loading for vision-capable providers.
"""

from gradeai.vision.pdf_reader import (
    PDFReader,
    image_to_page,
    load_page_images,
    render_pdf_pages,
)

__all__ = [
    'PDFReader',
    'image_to_page',
    'load_page_images',
    'render_pdf_pages',
]
