"""
Signature capture.

Drawn, typed and uploaded signatures are mutually exclusive; whichever mode
is active when to_asset() is called produces the single SignatureAsset handed
to the compositor. Drawn and typed signatures are rendered onto the same
fixed-size white surface.
"""
import io
import logging
from typing import List, Optional, Sequence, Tuple

from PIL import Image, ImageChops, ImageDraw, ImageFont

from config import get_settings
from modules.common.errors import DocumentValidationError
from modules.editor.models.geometry import Point
from modules.signing.models.signature_asset import CaptureMode, SignatureAsset

logger = logging.getLogger(__name__)

SURFACE_SIZE: Tuple[int, int] = (400, 150)
BACKGROUND = (255, 255, 255)
INK = (0, 0, 0)

Stroke = List[Tuple[float, float]]


def _blank_surface() -> Image.Image:
    return Image.new("RGB", SURFACE_SIZE, BACKGROUND)


def _to_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def is_blank(image: Image.Image) -> bool:
    """True when no pixel differs from the blank background"""
    blank = Image.new("RGB", image.size, BACKGROUND)
    return ImageChops.difference(image.convert("RGB"), blank).getbbox() is None


def load_script_font(path: Optional[str], size: int) -> ImageFont.ImageFont:
    if path:
        try:
            return ImageFont.truetype(path, size)
        except OSError as exc:
            logger.warning("Cannot load signature font %s, using the default face: %s", path, exc)
    return ImageFont.load_default(size=size)


def render_strokes(strokes: Sequence[Stroke], stroke_width: int = 2) -> Image.Image:
    """Freehand strokes (surface pixel coordinates) on a blank surface"""
    image = _blank_surface()
    draw = ImageDraw.Draw(image)
    radius = max(1, stroke_width) / 2
    for stroke in strokes:
        if not stroke:
            continue
        if len(stroke) >= 2:
            draw.line(stroke, fill=INK, width=stroke_width, joint="curve")
        # round caps, and a single tap still leaves a dot
        for x, y in (stroke[0], stroke[-1]):
            draw.ellipse((x - radius, y - radius, x + radius, y + radius), fill=INK)
    return image


def render_text(text: str, font: ImageFont.ImageFont) -> Image.Image:
    """Typed signature, centered on a blank surface"""
    image = _blank_surface()
    draw = ImageDraw.Draw(image)
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    x = (SURFACE_SIZE[0] - (right - left)) / 2 - left
    y = (SURFACE_SIZE[1] - (bottom - top)) / 2 - top
    draw.text((x, y), text, fill=INK, font=font)
    return image


class SignatureCapture:
    """Holds whatever the signer produced in the active mode"""

    def __init__(
        self,
        mode: CaptureMode = CaptureMode.DRAWN,
        *,
        stroke_width: int = 2,
        font_path: Optional[str] = None,
        font_size: Optional[int] = None,
    ):
        settings = get_settings()
        self.stroke_width = stroke_width
        self._font_path = font_path if font_path is not None else settings.signature_font_path
        self._font_size = font_size or settings.signature_font_size
        self._mode = CaptureMode(mode)
        self._strokes: List[Stroke] = []
        self._current: Optional[Stroke] = None
        self._text = ""
        self._upload: Optional[bytes] = None
        self._upload_name: Optional[str] = None

    @property
    def mode(self) -> CaptureMode:
        return self._mode

    def switch_mode(self, mode: CaptureMode) -> None:
        """Changes mode; whatever the previous mode captured is discarded."""
        mode = CaptureMode(mode)
        if mode != self._mode:
            self._reset()
            self._mode = mode

    def clear(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self._strokes = []
        self._current = None
        self._text = ""
        self._upload = None
        self._upload_name = None

    def _require(self, mode: CaptureMode) -> None:
        if self._mode != mode:
            raise ValueError(f"Capture is in '{self._mode.value}' mode, not '{mode.value}'")

    # ---------- drawn --------------------------------------------------------
    @property
    def strokes(self) -> List[Stroke]:
        return [list(s) for s in self._strokes]

    def begin_stroke(self, point: Point) -> None:
        self._require(CaptureMode.DRAWN)
        self._current = [(point.x, point.y)]

    def extend_stroke(self, point: Point) -> None:
        if self._current is not None:
            self._current.append((point.x, point.y))

    def end_stroke(self) -> None:
        if self._current:
            self._strokes.append(self._current)
        self._current = None

    def add_stroke(self, points: Sequence[Tuple[float, float]]) -> None:
        self._require(CaptureMode.DRAWN)
        if points:
            self._strokes.append([(float(x), float(y)) for x, y in points])

    # ---------- typed --------------------------------------------------------
    @property
    def text(self) -> str:
        return self._text

    def set_text(self, text: str) -> None:
        self._require(CaptureMode.TYPED)
        self._text = text or ""

    # ---------- uploaded -----------------------------------------------------
    def choose_file(self, data: bytes, filename: Optional[str] = None) -> None:
        self._require(CaptureMode.UPLOADED)
        self._upload = data or None
        self._upload_name = filename

    @property
    def uploaded_filename(self) -> Optional[str]:
        return self._upload_name

    # ---------- output -------------------------------------------------------
    def render_surface(self) -> Image.Image:
        if self._mode == CaptureMode.DRAWN:
            strokes = self._strokes + ([self._current] if self._current else [])
            return render_strokes(strokes, self.stroke_width)
        if self._mode == CaptureMode.TYPED:
            text = self._text.strip()
            if not text:
                return _blank_surface()
            return render_text(text, load_script_font(self._font_path, self._font_size))
        raise ValueError("Uploaded signatures have no drawing surface")

    def is_valid(self) -> bool:
        if self._mode == CaptureMode.DRAWN:
            return bool(self._strokes) and not is_blank(self.render_surface())
        if self._mode == CaptureMode.TYPED:
            return bool(self._text.strip())
        return self._upload is not None

    def to_asset(self) -> SignatureAsset:
        if not self.is_valid():
            raise DocumentValidationError("Please create a signature first")
        if self._mode == CaptureMode.UPLOADED:
            return SignatureAsset(data=self._upload, mode=self._mode)
        return SignatureAsset(data=_to_png(self.render_surface()), mode=self._mode)
