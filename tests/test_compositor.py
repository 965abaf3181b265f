import io
from dataclasses import astuple

import pypdfium2 as pdfium
import pytest
from PyPDF2 import PdfReader

from modules.common.errors import CompositingError
from modules.editor.models.geometry import Size, SignatureField
from modules.signing.models.signature_asset import CaptureMode, SignatureAsset
from modules.signing.services.compositor import SignatureCompositor, field_to_pdf_rect
from modules.signing.services.pdf_document import PdfDocumentModel, resolve_image_codec

RED = (255, 0, 0)
WHITE = (255, 255, 255)


def render(pdf, page_index=0):
    """Page at 72 dpi, so one pixel is one point, top-left origin"""
    doc = pdfium.PdfDocument(pdf)
    try:
        return doc[page_index].render(scale=1).to_pil().convert("RGB")
    finally:
        doc.close()


def is_red(pixel):
    r, g, b = pixel
    return r > 200 and g < 60 and b < 60


def test_flip_formula_matches_reference_page():
    f = SignatureField(id="f", page=0, x=0.1, y=0.1, width=0.2, height=0.05)
    rect = field_to_pdf_rect(f, Size(612, 792))
    assert astuple(rect) == pytest.approx((61.2, 673.2, 122.4, 39.6))


def test_signature_lands_in_field_rect(pdf_bytes, red_png):
    f = SignatureField(id="f", page=0, x=0.1, y=0.1, width=0.2, height=0.05)
    signed = SignatureCompositor().composite(pdf_bytes, SignatureAsset(red_png, CaptureMode.UPLOADED), [f])

    image = render(signed)
    assert image.size == (612, 792)
    # field spans x 61.2..183.6, y 79.2..118.8 in top-left page coordinates
    assert is_red(image.getpixel((122, 99)))
    assert is_red(image.getpixel((65, 82)))
    assert is_red(image.getpixel((180, 116)))
    assert image.getpixel((122, 125)) == WHITE
    assert image.getpixel((190, 99)) == WHITE
    assert image.getpixel((122, 700)) == WHITE


def test_one_asset_stamps_fields_on_several_pages(make_pdf, red_png):
    pdf = make_pdf(pages=3)
    fields = [
        SignatureField(id="a", page=0, x=0.5, y=0.5, width=0.15, height=0.05),
        SignatureField(id="b", page=2, x=0.0, y=0.9, width=0.3, height=0.1),
        SignatureField(id="c", page=2, x=0.7, y=0.0, width=0.3, height=0.1),
    ]
    signed = SignatureCompositor().composite(pdf, SignatureAsset(red_png, CaptureMode.DRAWN), fields)

    assert len(PdfReader(io.BytesIO(signed)).pages) == 3
    assert is_red(render(signed, 0).getpixel((352, 415)))
    assert render(signed, 1).getpixel((352, 415)) == WHITE
    third = render(signed, 2)
    assert is_red(third.getpixel((90, 770)))
    assert is_red(third.getpixel((520, 40)))


def test_jpeg_signature_is_accepted(pdf_bytes, make_image):
    jpeg = make_image(color=RED, fmt="JPEG")
    f = SignatureField(id="f", page=0, x=0.1, y=0.1, width=0.2, height=0.05)
    signed = SignatureCompositor().composite(pdf_bytes, SignatureAsset(jpeg, CaptureMode.UPLOADED), [f])
    assert is_red(render(signed).getpixel((122, 99)))


def test_codec_resolution_prefers_png_then_jpeg(red_png, make_image):
    assert resolve_image_codec(red_png).format == "PNG"
    assert resolve_image_codec(make_image(fmt="JPEG")).format == "JPEG"


def test_unsupported_codec_fails_closed(pdf_bytes, make_image):
    gif = make_image(fmt="GIF", mode="P", color=1)
    f = SignatureField(id="f", page=0, x=0.1, y=0.1, width=0.2, height=0.05)
    with pytest.raises(CompositingError):
        SignatureCompositor().composite(pdf_bytes, SignatureAsset(gif, CaptureMode.UPLOADED), [f])
    with pytest.raises(CompositingError):
        SignatureCompositor().composite(pdf_bytes, SignatureAsset(b"not an image", CaptureMode.UPLOADED), [f])


def test_field_on_missing_page_aborts(pdf_bytes, red_png):
    f = SignatureField(id="f", page=4, x=0.1, y=0.1, width=0.2, height=0.05)
    with pytest.raises(CompositingError, match="page 4"):
        SignatureCompositor().composite(pdf_bytes, SignatureAsset(red_png, CaptureMode.DRAWN), [f])


def test_no_fields_aborts(pdf_bytes, red_png):
    with pytest.raises(CompositingError):
        SignatureCompositor().composite(pdf_bytes, SignatureAsset(red_png, CaptureMode.DRAWN), [])


def test_unreadable_document_aborts(red_png):
    f = SignatureField(id="f", page=0, x=0.1, y=0.1, width=0.2, height=0.05)
    with pytest.raises(CompositingError):
        SignatureCompositor().composite(b"%PDF-broken", SignatureAsset(red_png, CaptureMode.DRAWN), [f])


def test_original_bytes_are_untouched(pdf_bytes, red_png):
    original = bytes(pdf_bytes)
    f = SignatureField(id="f", page=0, x=0.1, y=0.1, width=0.2, height=0.05)
    signed = SignatureCompositor().composite(pdf_bytes, SignatureAsset(red_png, CaptureMode.DRAWN), [f])
    assert pdf_bytes == original
    assert signed != original
    assert render(pdf_bytes).getpixel((122, 99)) == WHITE


def test_image_is_embedded_once(pdf_bytes, red_png):
    model = PdfDocumentModel.load(pdf_bytes)
    ref = model.embed_image(red_png)
    size = model.page_size(0)
    for y in (0.1, 0.3, 0.5):
        f = SignatureField(id=str(y), page=0, x=0.1, y=y, width=0.2, height=0.05)
        model.draw_image(0, ref, field_to_pdf_rect(f, size))
    assert model.embedded_images == [ref]

    page = PdfReader(io.BytesIO(model.save())).pages[0]
    xobjects = page["/Resources"]["/XObject"]
    images = [name for name in xobjects if xobjects[name].get_object().get("/Subtype") == "/Image"]
    assert len(images) == 1
