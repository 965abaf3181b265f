"""
Render pipeline controller.

One controller drives one canvas. Every trigger (initial load, page change,
container resize) cancels the in-flight render before issuing a new one, and
each render carries the generation it was issued under: a completion whose
generation is no longer current never paints, even when it resolves after a
newer render started.

Outcomes:
    COMPLETED  the rasterizer produced the page
    CANCELLED  superseded or cancelled before painting
    FAILED     the rasterizer was missing or raised; a placeholder was painted
"""
import asyncio
import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Coroutine, List, Optional, Protocol

import pypdfium2 as pdfium
from PIL import Image, ImageDraw, ImageFont

from modules.editor.models.geometry import Size
from modules.editor.services.coordinates import normalize_rotation
from modules.signing.services.pdf_document import PdfDocumentModel

logger = logging.getLogger(__name__)

PLACEHOLDER_BACKGROUND = (255, 255, 255)
PLACEHOLDER_BORDER = (221, 221, 221)
PLACEHOLDER_TEXT = (0, 0, 0)


class RenderState(str, Enum):
    IDLE = "idle"
    RENDERING = "rendering"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


class RenderTrigger(str, Enum):
    INITIAL_LOAD = "initial_load"
    PAGE_CHANGE = "page_change"
    RESIZE = "resize"


class PageRasterizer(Protocol):
    async def render(self, data: bytes, page_index: int, scale: float) -> Image.Image: ...


@dataclass(frozen=True)
class PageGeometry:
    width: float
    height: float
    rotation: int = 0


@dataclass(frozen=True)
class Viewport:
    scale: float
    width: int
    height: int
    rotation: int


def compute_viewport(page: PageGeometry, container: Size, device_pixel_ratio: float = 1.0) -> Viewport:
    """Fits the (rotated) page inside the container, scaled by the pixel density."""
    if container.width <= 0 or container.height <= 0:
        raise ValueError("Container must have a positive size")
    if device_pixel_ratio <= 0:
        raise ValueError("Device pixel ratio must be positive")
    rotation = normalize_rotation(page.rotation)
    page_w, page_h = page.width, page.height
    if rotation in (90, 270):
        page_w, page_h = page_h, page_w
    scale = min(container.width / page_w, container.height / page_h) * device_pixel_ratio
    return Viewport(
        scale=scale,
        width=max(1, round(page_w * scale)),
        height=max(1, round(page_h * scale)),
        rotation=rotation,
    )


def render_placeholder(viewport: Viewport, page_index: int, page_count: int) -> Image.Image:
    """Flat page with its label, painted when the rasterizer cannot deliver"""
    image = Image.new("RGB", (viewport.width, viewport.height), PLACEHOLDER_BACKGROUND)
    draw = ImageDraw.Draw(image)
    draw.rectangle((0, 0, viewport.width - 1, viewport.height - 1), outline=PLACEHOLDER_BORDER)
    label = f"Page {page_index + 1} of {page_count}"
    font = ImageFont.load_default()
    left, top, right, bottom = draw.textbbox((0, 0), label, font=font)
    draw.text(((viewport.width - (right - left)) / 2, 30), label, fill=PLACEHOLDER_TEXT, font=font)
    return image


class PdfiumRasterizer:
    """pypdfium2 backed rasterizer; blocking work runs in a worker thread."""

    # pdfium is not thread safe and a cancelled render keeps its thread
    _lock = threading.Lock()

    async def render(self, data: bytes, page_index: int, scale: float) -> Image.Image:
        return await asyncio.to_thread(self._render_sync, data, page_index, scale)

    @classmethod
    def _render_sync(cls, data: bytes, page_index: int, scale: float) -> Image.Image:
        with cls._lock:
            pdf = pdfium.PdfDocument(data)
            try:
                page = pdf[page_index]
                bitmap = page.render(scale=scale)
                return bitmap.to_pil().convert("RGB")
            finally:
                pdf.close()


@dataclass
class RenderTask:
    generation: int
    page_index: int
    viewport: Viewport
    trigger: RenderTrigger
    state: RenderState = RenderState.RENDERING
    _handle: Optional[asyncio.Task] = field(default=None, repr=False)

    def start(self, loop: asyncio.AbstractEventLoop, coro: Coroutine[Any, Any, None]) -> None:
        if self._handle is not None:
            raise RuntimeError(f"Render generation {self.generation} already started")
        self._handle = loop.create_task(coro)

    def cancel(self) -> None:
        if self._handle is not None and not self._handle.done():
            self._handle.cancel()
        if self.state == RenderState.RENDERING:
            self.state = RenderState.CANCELLED

    async def wait(self) -> RenderState:
        """Waits for the task to settle; never raises for a cancelled render."""
        if self._handle is not None:
            await asyncio.wait({self._handle})
        return self.state


@dataclass
class RenderSession:
    page_index: int = 0
    scale: Optional[float] = None
    task: Optional[RenderTask] = None


@dataclass(frozen=True)
class Frame:
    """What was last painted on the canvas"""
    image: Image.Image
    page_index: int
    viewport: Viewport
    generation: int
    placeholder: bool


class RenderPipelineController:
    def __init__(
        self,
        data: bytes,
        pages: List[PageGeometry],
        rasterizer: Optional[PageRasterizer] = None,
        *,
        container: Size = Size(800, 600),
        device_pixel_ratio: float = 1.0,
        on_paint: Optional[Callable[[Frame], None]] = None,
    ):
        if not pages:
            raise ValueError("Document has no pages")
        self._data = data
        self._pages = list(pages)
        self._rasterizer = rasterizer
        self._container = container
        self._dpr = device_pixel_ratio
        self._on_paint = on_paint
        self._generation = 0
        self.session = RenderSession()
        self.state = RenderState.IDLE
        self.frame: Optional[Frame] = None

    @classmethod
    def for_document(cls, data: bytes, rasterizer: Optional[PageRasterizer] = None, **kwargs) -> "RenderPipelineController":
        model = PdfDocumentModel.load(data)
        pages = []
        for i in range(model.page_count):
            size = model.page_size(i)
            pages.append(PageGeometry(size.width, size.height, model.page_rotation(i)))
        return cls(data, pages, rasterizer, **kwargs)

    @property
    def page_count(self) -> int:
        return len(self._pages)

    @property
    def generation(self) -> int:
        return self._generation

    def page_geometry(self, page_index: int) -> PageGeometry:
        return self._pages[page_index]

    def cancel(self) -> None:
        task = self.session.task
        if task is not None:
            task.cancel()
            self.session.task = None
            logger.debug("Cancelled render generation %d (page %d)", task.generation, task.page_index)
        self.state = RenderState.IDLE

    def request_render(
        self,
        trigger: RenderTrigger,
        *,
        page_index: Optional[int] = None,
        container: Optional[Size] = None,
        device_pixel_ratio: Optional[float] = None,
    ) -> RenderTask:
        """
        Issues a new render, superseding the current one. Must be called from
        inside a running event loop.
        """
        if page_index is not None:
            if not 0 <= page_index < self.page_count:
                raise IndexError(f"Page {page_index} out of range (document has {self.page_count} pages)")
            self.session.page_index = page_index
        if container is not None:
            self._container = container
        if device_pixel_ratio is not None:
            self._dpr = device_pixel_ratio

        loop = asyncio.get_running_loop()
        self.cancel()
        self._generation += 1

        viewport = compute_viewport(self._pages[self.session.page_index], self._container, self._dpr)
        self.session.scale = viewport.scale
        task = RenderTask(
            generation=self._generation,
            page_index=self.session.page_index,
            viewport=viewport,
            trigger=trigger,
        )
        task.start(loop, self._run(task))
        self.session.task = task
        self.state = RenderState.RENDERING
        logger.debug(
            "Render generation %d issued (%s, page %d, scale %.3f)",
            task.generation, trigger.value, task.page_index, viewport.scale,
        )
        return task

    async def _rasterize(self, task: RenderTask) -> Image.Image:
        if self._rasterizer is None:
            raise RuntimeError("No rasterizer available")
        image = await self._rasterizer.render(self._data, task.page_index, task.viewport.scale)
        if image.size != (task.viewport.width, task.viewport.height):
            image = image.resize((task.viewport.width, task.viewport.height))
        return image

    async def _run(self, task: RenderTask) -> None:
        try:
            placeholder = False
            try:
                image = await self._rasterize(task)
            except asyncio.CancelledError:
                task.state = RenderState.CANCELLED
                raise
            except Exception as exc:
                logger.warning("Render of page %d failed, painting placeholder: %s", task.page_index, exc)
                image = render_placeholder(task.viewport, task.page_index, self.page_count)
                placeholder = True

            if task.generation != self._generation:
                # superseded while the rasterizer was busy
                task.state = RenderState.CANCELLED
                return

            self._paint(Frame(image, task.page_index, task.viewport, task.generation, placeholder))
            task.state = RenderState.FAILED if placeholder else RenderState.COMPLETED
        finally:
            if self.session.task is task:
                self.session.task = None
                self.state = RenderState.IDLE

    def _paint(self, frame: Frame) -> None:
        self.frame = frame
        if self._on_paint is not None:
            self._on_paint(frame)
