"""
Coordinate normalizer.

Fields are stored as fractions of the unrotated page (top-left origin, y
down) so they survive any render scale. Everything that converts between
canvas pixels and fractions goes through here.
"""
from modules.editor.models.geometry import Point, Rect, Size

_VALID_ROTATIONS = (0, 90, 180, 270)


def _check_canvas(canvas: Size) -> None:
    if canvas.width <= 0 or canvas.height <= 0:
        raise ValueError(f"Canvas size must be positive, got {canvas.width}x{canvas.height}")


def to_fraction(point: Point, canvas: Size) -> Point:
    """Pixel position on the canvas -> fractional position on the page"""
    _check_canvas(canvas)
    return Point(point.x / canvas.width, point.y / canvas.height)


def to_pixel(rect: Rect, canvas: Size) -> Rect:
    """Fractional rect -> pixel rect on a canvas of the given size"""
    _check_canvas(canvas)
    return Rect(
        x=rect.x * canvas.width,
        y=rect.y * canvas.height,
        width=rect.width * canvas.width,
        height=rect.height * canvas.height,
    )


def _clamp_axis(origin: float, extent: float) -> tuple[float, float]:
    # size first, so the origin never has to go negative to make room
    extent = min(max(extent, 0.0), 1.0)
    origin = min(max(origin, 0.0), 1.0 - extent)
    return origin, extent


def clamp(rect: Rect) -> Rect:
    """
    Forces a fractional rect inside the page:
    0 <= x, 0 <= y, x + width <= 1, y + height <= 1.
    """
    x, width = _clamp_axis(rect.x, rect.width)
    y, height = _clamp_axis(rect.y, rect.height)
    return Rect(x, y, width, height)


def normalize_rotation(rotation: int) -> int:
    rotation = int(rotation) % 360
    if rotation not in _VALID_ROTATIONS:
        raise ValueError(f"Page rotation must be a multiple of 90, got {rotation}")
    return rotation


def rotate_fraction_point(point: Point, rotation: int) -> Point:
    """Unrotated page fraction -> fraction on the page as displayed (clockwise /Rotate)"""
    rotation = normalize_rotation(rotation)
    if rotation == 90:
        return Point(1.0 - point.y, point.x)
    if rotation == 180:
        return Point(1.0 - point.x, 1.0 - point.y)
    if rotation == 270:
        return Point(point.y, 1.0 - point.x)
    return point


def unrotate_fraction_point(point: Point, rotation: int) -> Point:
    """Displayed fraction -> unrotated page fraction"""
    return rotate_fraction_point(point, (360 - normalize_rotation(rotation)) % 360)


def rotate_fraction_rect(rect: Rect, rotation: int) -> Rect:
    """Maps a stored field rect onto a page displayed with the given rotation"""
    a = rotate_fraction_point(Point(rect.x, rect.y), rotation)
    b = rotate_fraction_point(Point(rect.right, rect.bottom), rotation)
    return Rect(
        x=min(a.x, b.x),
        y=min(a.y, b.y),
        width=abs(b.x - a.x),
        height=abs(b.y - a.y),
    )


def unrotate_fraction_rect(rect: Rect, rotation: int) -> Rect:
    """Rect drawn on the displayed page -> stored (unrotated) field rect"""
    return rotate_fraction_rect(rect, (360 - normalize_rotation(rotation)) % 360)
