from dataclasses import dataclass, replace
from typing import Any, Dict


@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class Size:
    width: float
    height: float


@dataclass(frozen=True)
class Rect:
    """Axis aligned rectangle, top-left origin, y grows downward."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


@dataclass(frozen=True)
class SignatureField:
    """
    A fractional rectangle on one page that receives the signature image.

    Frozen so the id can never change; geometry updates go through with_rect().
    """
    id: str
    page: int
    x: float
    y: float
    width: float
    height: float

    @property
    def rect(self) -> Rect:
        return Rect(self.x, self.y, self.width, self.height)

    def with_rect(self, rect: Rect) -> "SignatureField":
        return replace(self, x=rect.x, y=rect.y, width=rect.width, height=rect.height)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "page": self.page,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignatureField":
        return cls(
            id=str(data["id"]),
            page=int(data["page"]),
            x=float(data["x"]),
            y=float(data["y"]),
            width=float(data["width"]),
            height=float(data["height"]),
        )
