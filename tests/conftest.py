import io
import os
import tempfile

# before anything reads the settings
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("STORAGE_ROOT", tempfile.mkdtemp(prefix="signlink-test-"))
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("RETRY_BACKOFF_SECONDS", "0")
os.environ.setdefault("SEED_DEMO_USER", "false")

import pytest
from PIL import Image
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas


def _make_pdf(pages=1, pagesize=letter, rotate=0, text="PDF para test"):
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=pagesize)
    for i in range(pages):
        if rotate:
            c.setPageRotation(rotate)
        c.drawString(50, pagesize[1] - 50, f"{text} - page {i + 1}")
        c.showPage()
    c.save()
    return buf.getvalue()


def _make_image(color=(255, 0, 0), size=(40, 20), fmt="PNG", mode="RGB"):
    buf = io.BytesIO()
    Image.new(mode, size, color).save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def make_pdf():
    return _make_pdf


@pytest.fixture
def make_image():
    return _make_image


@pytest.fixture
def pdf_bytes():
    return _make_pdf()


@pytest.fixture
def red_png():
    return _make_image()
