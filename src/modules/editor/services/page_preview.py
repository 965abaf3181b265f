"""
Server side page preview: one render through the pipeline controller with
the signature fields outlined on top, encoded as PNG.
"""
import io
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from PIL import Image, ImageDraw

from modules.common.errors import TransientIOError
from modules.editor.models.geometry import SignatureField, Size
from modules.editor.services.coordinates import rotate_fraction_rect, to_pixel
from modules.editor.services.render_pipeline import (
    PageRasterizer,
    PdfiumRasterizer,
    RenderPipelineController,
    RenderState,
    RenderTrigger,
)

logger = logging.getLogger(__name__)

FIELD_OUTLINE = (37, 99, 235, 255)
FIELD_FILL = (37, 99, 235, 48)


@dataclass(frozen=True)
class PagePreview:
    png: bytes
    width: int
    height: int
    placeholder: bool


def draw_fields(image: Image.Image, fields: Iterable[SignatureField], rotation: int = 0) -> Image.Image:
    """Outlines the fields on a rendered page; fields are in unrotated page fractions."""
    canvas = Size(*image.size)
    overlay = Image.new("RGBA", image.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)
    for field in fields:
        px = to_pixel(rotate_fraction_rect(field.rect, rotation), canvas)
        draw.rectangle(
            (px.x, px.y, px.right - 1, px.bottom - 1),
            outline=FIELD_OUTLINE,
            fill=FIELD_FILL,
            width=2,
        )
    return Image.alpha_composite(image.convert("RGBA"), overlay).convert("RGB")


async def render_page_preview(
    data: bytes,
    page_index: int,
    fields: Iterable[SignatureField] = (),
    *,
    container: Size = Size(800, 1000),
    device_pixel_ratio: float = 1.0,
    rasterizer: Optional[PageRasterizer] = None,
) -> PagePreview:
    controller = RenderPipelineController.for_document(
        data,
        rasterizer or PdfiumRasterizer(),
        container=container,
        device_pixel_ratio=device_pixel_ratio,
    )
    task = controller.request_render(RenderTrigger.INITIAL_LOAD, page_index=page_index)
    state = await task.wait()
    frame = controller.frame
    if state not in (RenderState.COMPLETED, RenderState.FAILED) or frame is None:
        raise TransientIOError(f"Render of page {page_index + 1} ended {state.value}")

    page_fields = [f for f in fields if f.page == page_index]
    image = draw_fields(frame.image, page_fields, frame.viewport.rotation)
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return PagePreview(buf.getvalue(), image.width, image.height, frame.placeholder)
