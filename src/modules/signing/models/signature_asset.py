from dataclasses import dataclass
from enum import Enum


class CaptureMode(str, Enum):
    DRAWN = "drawn"
    TYPED = "typed"
    UPLOADED = "uploaded"


@dataclass(frozen=True)
class SignatureAsset:
    """Raster signature (PNG or JPEG bytes) ready to be stamped into fields"""
    data: bytes
    mode: CaptureMode

    def __post_init__(self):
        if not self.data:
            raise ValueError("Signature asset cannot be empty")
