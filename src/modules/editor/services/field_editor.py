"""
Interactive field editor.

Two cooperating state machines over the field list of one document:

* placement arm: IDLE <-> ARMED. While armed, the next pointer-down on the
  canvas creates a default sized field at the click and disarms.
* gesture: IDLE -> DRAGGING | RESIZING(handle) -> IDLE. Gestures listen to
  the window-level pointer stream (PointerEventSource) only between
  pointer-down and pointer-up/leave. The source accepts a single listener, so
  editors sharing a source can never run two gestures at once.

All geometry is fractional (see coordinates.py); pointer positions arrive in
canvas pixels. The canvas shows the page as displayed, so on a page with a
/Rotate entry placement and gestures work on the displayed rect and only the
stored field is kept in unrotated page fractions.
"""
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional, Protocol

from modules.editor.models.geometry import Point, Rect, SignatureField, Size
from modules.editor.services.coordinates import (
    clamp,
    normalize_rotation,
    rotate_fraction_rect,
    to_fraction,
    unrotate_fraction_rect,
)

logger = logging.getLogger(__name__)

DEFAULT_FIELD_SIZE = Size(0.15, 0.05)
MIN_FIELD_SIZE = 0.02


class PlacementState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"


class GestureState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"
    RESIZING = "resizing"


class PlacementAnchor(str, Enum):
    TOP_LEFT = "top_left"
    CENTER = "center"


class Handle(str, Enum):
    TOP_LEFT = "nw"
    TOP_RIGHT = "ne"
    BOTTOM_LEFT = "sw"
    BOTTOM_RIGHT = "se"

    @property
    def moves_left(self) -> bool:
        return self in (Handle.TOP_LEFT, Handle.BOTTOM_LEFT)

    @property
    def moves_top(self) -> bool:
        return self in (Handle.TOP_LEFT, Handle.TOP_RIGHT)


class GestureListener(Protocol):
    def on_move(self, point: Point) -> None: ...
    def on_release(self) -> None: ...


class PointerEventSource:
    """Window-level pointer stream with room for exactly one gesture listener"""

    def __init__(self) -> None:
        self._listener: Optional[GestureListener] = None

    @property
    def busy(self) -> bool:
        return self._listener is not None

    @property
    def listener_count(self) -> int:
        return 0 if self._listener is None else 1

    def attach(self, listener: GestureListener) -> bool:
        if self._listener is not None:
            return False
        self._listener = listener
        return True

    def detach(self, listener: GestureListener) -> None:
        if self._listener is listener:
            self._listener = None

    def move(self, point: Point) -> None:
        if self._listener is not None:
            self._listener.on_move(point)

    def up(self) -> None:
        if self._listener is not None:
            self._listener.on_release()

    def leave(self) -> None:
        self.up()


def drag_rect(initial: Rect, delta: Point) -> Rect:
    """Moves the rect by a fractional delta, keeping its size, clamped to the page"""
    x = min(max(initial.x + delta.x, 0.0), 1.0 - initial.width)
    y = min(max(initial.y + delta.y, 0.0), 1.0 - initial.height)
    return clamp(Rect(x, y, initial.width, initial.height))


def resize_rect(initial: Rect, handle: Handle, delta: Point, min_size: float = MIN_FIELD_SIZE) -> Rect:
    """
    Moves one corner by a fractional delta. The opposite edges stay fixed, no
    edge can cross 0/1 (the field shrinks instead) and neither side drops
    below min_size.
    """
    left, top, right, bottom = initial.x, initial.y, initial.right, initial.bottom

    if handle.moves_left:
        left = min(max(left + delta.x, 0.0), right - min_size)
    else:
        right = max(min(right + delta.x, 1.0), left + min_size)

    if handle.moves_top:
        top = min(max(top + delta.y, 0.0), bottom - min_size)
    else:
        bottom = max(min(bottom + delta.y, 1.0), top + min_size)

    return clamp(Rect(left, top, right - left, bottom - top))


class _Gesture:
    # initial and every rect handed back to the editor are displayed fractions

    def __init__(self, editor: "FieldEditor", field_id: str, start: Point, initial: Rect):
        self.editor = editor
        self.field_id = field_id
        self.start = start
        self.initial = initial

    def _delta(self, point: Point) -> Point:
        canvas = self.editor.canvas_size
        return Point((point.x - self.start.x) / canvas.width, (point.y - self.start.y) / canvas.height)

    def on_release(self) -> None:
        self.editor._end_gesture(self)


class _DragGesture(_Gesture):
    state = GestureState.DRAGGING

    def on_move(self, point: Point) -> None:
        self.editor._update_field(self.field_id, drag_rect(self.initial, self._delta(point)))


class _ResizeGesture(_Gesture):
    state = GestureState.RESIZING

    def __init__(self, editor: "FieldEditor", field_id: str, start: Point, initial: Rect, handle: Handle):
        super().__init__(editor, field_id, start, initial)
        self.handle = handle

    def on_move(self, point: Point) -> None:
        rect = resize_rect(self.initial, self.handle, self._delta(point), self.editor.min_field_size)
        self.editor._update_field(self.field_id, rect)


def new_field_id() -> str:
    return uuid.uuid4().hex


class FieldEditor:
    """Field placement, drag, resize and removal for one document."""

    def __init__(
        self,
        canvas_size: Size,
        *,
        page_index: int = 0,
        rotation: int = 0,
        fields: Iterable[SignatureField] = (),
        events: Optional[PointerEventSource] = None,
        default_size: Size = DEFAULT_FIELD_SIZE,
        min_field_size: float = MIN_FIELD_SIZE,
        anchor: PlacementAnchor = PlacementAnchor.TOP_LEFT,
        id_factory: Callable[[], str] = new_field_id,
    ):
        self.canvas_size = canvas_size
        self.page_index = page_index
        self.rotation = normalize_rotation(rotation)
        self.events = events or PointerEventSource()
        self.default_size = default_size
        self.min_field_size = min_field_size
        self.anchor = anchor
        self._id_factory = id_factory
        self._fields: List[SignatureField] = [f.with_rect(clamp(f.rect)) for f in fields]
        self._confirmed: List[SignatureField] = list(self._fields)
        self._issued_ids = {f.id for f in self._fields}
        self.placement = PlacementState.IDLE
        self._gesture: Optional[_Gesture] = None

    # ---------- field list ---------------------------------------------------
    @property
    def fields(self) -> List[SignatureField]:
        return list(self._fields)

    def fields_on_page(self, page_index: int) -> List[SignatureField]:
        return [f for f in self._fields if f.page == page_index]

    def get_field(self, field_id: str) -> Optional[SignatureField]:
        return next((f for f in self._fields if f.id == field_id), None)

    def remove_field(self, field_id: str) -> bool:
        if self._gesture is not None and self._gesture.field_id == field_id:
            self._end_gesture(self._gesture)
        before = len(self._fields)
        self._fields = [f for f in self._fields if f.id != field_id]
        return len(self._fields) != before

    # ---------- pending vs confirmed ----------------------------------------
    @property
    def confirmed_fields(self) -> List[SignatureField]:
        return list(self._confirmed)

    @property
    def has_pending_changes(self) -> bool:
        return self._fields != self._confirmed

    def confirm(self, persisted: Optional[Iterable[SignatureField]] = None) -> None:
        """Call once the store accepted the field list."""
        if persisted is not None:
            self._fields = list(persisted)
            self._issued_ids.update(f.id for f in self._fields)
        self._confirmed = list(self._fields)

    def discard_pending(self) -> None:
        self._fields = list(self._confirmed)

    # ---------- canvas / page ------------------------------------------------
    def set_canvas_size(self, canvas_size: Size) -> None:
        if canvas_size.width <= 0 or canvas_size.height <= 0:
            raise ValueError("Canvas size must be positive")
        self.canvas_size = canvas_size

    def set_page(self, page_index: int, rotation: int = 0) -> None:
        """rotation is the page's /Rotate, as reported by the render viewport"""
        self.page_index = page_index
        self.rotation = normalize_rotation(rotation)

    def display_rect(self, field: SignatureField) -> Rect:
        """Where a stored field appears on the canvas, in displayed fractions"""
        if not self.rotation:
            return field.rect
        return rotate_fraction_rect(field.rect, self.rotation)

    def _stored_rect(self, displayed: Rect) -> Rect:
        displayed = clamp(displayed)
        if not self.rotation:
            return displayed
        return clamp(unrotate_fraction_rect(displayed, self.rotation))

    # ---------- placement arm -----------------------------------------------
    @property
    def armed(self) -> bool:
        return self.placement == PlacementState.ARMED

    def arm(self) -> None:
        self.placement = PlacementState.ARMED

    def disarm(self) -> None:
        self.placement = PlacementState.IDLE

    def canvas_pointer_down(self, point: Point) -> Optional[SignatureField]:
        """
        Creates a field at the click when armed; otherwise does nothing. The
        default size applies to the field as the user sees it.
        """
        if not self.armed or self.gesture_state != GestureState.IDLE:
            return None
        at = to_fraction(point, self.canvas_size)
        w, h = self.default_size.width, self.default_size.height
        if self.anchor == PlacementAnchor.CENTER:
            rect = Rect(at.x - w / 2, at.y - h / 2, w, h)
        else:
            rect = Rect(at.x, at.y, w, h)
        field = SignatureField(id=self._next_id(), page=self.page_index, x=0, y=0, width=0, height=0)
        field = field.with_rect(self._stored_rect(rect))
        self._fields.append(field)
        self.disarm()
        logger.debug("Placed field %s on page %d at %s", field.id, field.page, field.rect)
        return field

    def _next_id(self) -> str:
        field_id = self._id_factory()
        while field_id in self._issued_ids:
            field_id = self._id_factory()
        self._issued_ids.add(field_id)
        return field_id

    # ---------- gestures -----------------------------------------------------
    @property
    def gesture_state(self) -> GestureState:
        return self._gesture.state if self._gesture is not None else GestureState.IDLE

    @property
    def active_field_id(self) -> Optional[str]:
        return self._gesture.field_id if self._gesture is not None else None

    def begin_drag(self, field_id: str, point: Point) -> bool:
        field = self.get_field(field_id)
        if field is None:
            return False
        return self._begin(_DragGesture(self, field_id, point, self.display_rect(field)))

    def begin_resize(self, field_id: str, handle: Handle, point: Point) -> bool:
        field = self.get_field(field_id)
        if field is None:
            return False
        return self._begin(_ResizeGesture(self, field_id, point, self.display_rect(field), Handle(handle)))

    def _begin(self, gesture: _Gesture) -> bool:
        if self._gesture is not None or not self.events.attach(gesture):
            logger.debug("Ignoring %s on %s: another gesture is active", gesture.state.value, gesture.field_id)
            return False
        self._gesture = gesture
        return True

    def _end_gesture(self, gesture: _Gesture) -> None:
        self.events.detach(gesture)
        if self._gesture is gesture:
            self._gesture = None

    def _update_field(self, field_id: str, rect: Rect) -> None:
        for i, f in enumerate(self._fields):
            if f.id == field_id:
                self._fields[i] = f.with_rect(self._stored_rect(rect))
                return
