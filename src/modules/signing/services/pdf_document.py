"""
PDF document model used by the compositor and the render pipeline.

PyPDF2 reads and writes the document; images are drawn through a single
reportlab overlay document (one overlay page per target page) that is merged
onto the original pages on save(). Coordinates handed to draw_image() are PDF
user space points, origin bottom-left.
"""
import io
import logging
from dataclasses import dataclass
from typing import Dict, List

from PIL import Image, UnidentifiedImageError
from PyPDF2 import PdfReader, PdfWriter
from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from modules.common.errors import CompositingError
from modules.editor.models.geometry import Rect, Size

logger = logging.getLogger(__name__)

# order matters: PNG is tried first, then JPEG
SUPPORTED_CODECS = ("PNG", "JPEG")


@dataclass(frozen=True)
class ImageRef:
    """Handle to an image embedded once and drawn any number of times"""
    key: int
    codec: str
    width_px: int
    height_px: int


@dataclass(frozen=True)
class _DrawOp:
    ref: ImageRef
    rect: Rect


def resolve_image_codec(data: bytes) -> Image.Image:
    """Opens raster bytes as PNG, then JPEG; anything else fails closed."""
    for codec in SUPPORTED_CODECS:
        try:
            image = Image.open(io.BytesIO(data), formats=[codec])
            image.load()
        except (UnidentifiedImageError, OSError, SyntaxError):
            continue
        logger.debug("Signature image decoded as %s (%sx%s)", codec, *image.size)
        return image
    raise CompositingError("Signature image is neither PNG nor JPEG")


class PdfDocumentModel:
    def __init__(self, reader: PdfReader):
        self._reader = reader
        self._images: Dict[int, ImageReader] = {}
        self._refs: List[ImageRef] = []
        self._ops: Dict[int, List[_DrawOp]] = {}

    @classmethod
    def load(cls, data: bytes) -> "PdfDocumentModel":
        # own copy: the caller's bytes are never touched
        return cls(PdfReader(io.BytesIO(bytes(data))))

    @property
    def page_count(self) -> int:
        return len(self._reader.pages)

    def _page(self, index: int):
        if not 0 <= index < self.page_count:
            raise IndexError(f"Page {index} out of range (document has {self.page_count} pages)")
        return self._reader.pages[index]

    def page_size(self, index: int) -> Size:
        """Unrotated media box size in points"""
        box = self._page(index).mediabox
        return Size(float(box.width), float(box.height))

    def page_rotation(self, index: int) -> int:
        return int(self._page(index).rotation or 0) % 360

    def embed_image(self, data: bytes) -> ImageRef:
        image = resolve_image_codec(data)
        codec = image.format
        if image.mode not in ("RGB", "RGBA", "L"):
            image = image.convert("RGBA")
        ref = ImageRef(key=len(self._refs), codec=codec, width_px=image.width, height_px=image.height)
        self._images[ref.key] = ImageReader(image)
        self._refs.append(ref)
        return ref

    @property
    def embedded_images(self) -> List[ImageRef]:
        return list(self._refs)

    def draw_image(self, page_index: int, ref: ImageRef, rect: Rect) -> None:
        self._page(page_index)
        if ref.key not in self._images:
            raise ValueError("Image reference does not belong to this document")
        if rect.width <= 0 or rect.height <= 0:
            raise ValueError(f"Cannot draw an image into an empty rect {rect}")
        self._ops.setdefault(page_index, []).append(_DrawOp(ref=ref, rect=rect))

    def _build_overlay(self, pages: List[int]) -> PdfReader:
        buf = io.BytesIO()
        c = canvas.Canvas(buf)
        for page_index in pages:
            box = self._page(page_index).mediabox
            left, bottom = float(box.left), float(box.bottom)
            c.setPageSize((left + float(box.width), bottom + float(box.height)))
            for op in self._ops[page_index]:
                # same ImageReader every time, reportlab keeps a single XObject for it
                c.drawImage(
                    self._images[op.ref.key],
                    left + op.rect.x,
                    bottom + op.rect.y,
                    width=op.rect.width,
                    height=op.rect.height,
                    mask="auto",
                )
            c.showPage()
        c.save()
        buf.seek(0)
        return PdfReader(buf)

    def save(self) -> bytes:
        """Serializes the document with every drawn image to new bytes"""
        pages = sorted(self._ops)
        overlay = self._build_overlay(pages) if pages else None

        writer = PdfWriter()
        for index, page in enumerate(self._reader.pages):
            if overlay is not None and index in self._ops:
                page.merge_page(overlay.pages[pages.index(index)])
            writer.add_page(page)

        out = io.BytesIO()
        writer.write(out)
        return out.getvalue()
