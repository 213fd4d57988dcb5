"""
Tests for page rendering.
"""

import io

import fitz
import pytest
from PIL import Image

from gradeai.core.exceptions import PDFReadError
from gradeai.vision.pdf_reader import PDFReader, fit_page, image_to_page, load_page_images, render_pdf_pages

from conftest import png_bytes


def make_pdf(pages=2) -> bytes:
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=595, height=842)
        page.insert_text((72, 72), f"Aufgabe {i + 1}")
    data = doc.tobytes()
    doc.close()
    return data


def test_render_pages():
    pages = render_pdf_pages(make_pdf(2), dpi=72)

    assert [p.page_number for p in pages] == [1, 2]
    assert pages[0].data.startswith(b"\x89PNG")


def test_render_respects_max_pages():
    assert len(render_pdf_pages(make_pdf(3), dpi=72, max_pages=2)) == 2


def test_pages_are_fitted():
    pages = render_pdf_pages(make_pdf(1), dpi=300)

    with Image.open(io.BytesIO(pages[0].data)) as img:
        assert img.width <= 1600 and img.height <= 2200


def test_reader_rejects_garbage():
    with pytest.raises(PDFReadError):
        PDFReader(b"definitely not a pdf")


def test_page_out_of_range():
    with PDFReader(make_pdf(1)) as reader:
        with pytest.raises(IndexError):
            reader.get_page_image(1)


def test_fit_page_keeps_small_images():
    img = Image.new("RGB", (800, 600))

    assert fit_page(img) is img
    assert fit_page(Image.new("RGB", (3200, 1000))).size == (1600, 500)


def test_image_to_page():
    page = image_to_page(png_bytes(400, 300), page_number=3)

    assert page.page_number == 3
    assert page.mime_type == "image/png"


def test_image_to_page_rejects_garbage():
    with pytest.raises(PDFReadError):
        image_to_page(b"garbage")


def test_load_page_images(tmp_path):
    pdf_path = tmp_path / "test.pdf"
    pdf_path.write_bytes(make_pdf(2))
    image_path = tmp_path / "photo.PNG"
    image_path.write_bytes(png_bytes())

    assert len(load_page_images(pdf_path)) == 2
    assert len(load_page_images(image_path)) == 1


def test_load_page_images_errors(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_page_images(tmp_path / "missing.pdf")

    text_path = tmp_path / "notes.txt"
    text_path.write_text("hello")
    with pytest.raises(PDFReadError):
        load_page_images(text_path)
