"""
Data models shared by the editing core and the host window.

Everything here is immutable: an operation never edits an ``ImageDescriptor``
or ``CropRect`` in place, it produces a new one.  The enums carry the small
amount of behaviour the pipeline needs (transparency support, file
extensions) so no caller has to switch on format names.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from snapedit.config import QUALITY_DEFAULT
from snapedit.errors import InvalidDimension


# =============================================================================
# Enums
# =============================================================================
class ImageFormat(Enum):
    """Raster encodings; values are the Pillow format names."""
    RASTER_LOSSY = "JPEG"
    RASTER_LOSSLESS = "PNG"

    @property
    def supports_transparency(self) -> bool:
        return self is ImageFormat.RASTER_LOSSLESS

    @property
    def extension(self) -> str:
        return ".jpg" if self is ImageFormat.RASTER_LOSSY else ".png"

    @property
    def label(self) -> str:
        return self.value


class OperationKind(Enum):
    ORIGINAL = "original"
    RESIZE = "resize"
    CROP = "crop"
    CONVERT = "convert"

    @property
    def label(self) -> str:
        """Past-tense tag used in export names and the recent-files list."""
        return _OPERATION_LABELS[self]


_OPERATION_LABELS = {
    OperationKind.ORIGINAL: "original",
    OperationKind.RESIZE: "resized",
    OperationKind.CROP: "cropped",
    OperationKind.CONVERT: "converted",
}


class ResizeMode(Enum):
    PIXELS = "pixels"
    PERCENT = "percent"


class ShapeMask(Enum):
    RECTANGLE = "rectangle"
    ELLIPSE = "ellipse"


# =============================================================================
# Geometry values
# =============================================================================
@dataclass(frozen=True)
class Size:
    width: int
    height: int


@dataclass(frozen=True)
class CropRect:
    """Crop rectangle in image coordinates."""
    x: int = 0
    y: int = 0
    w: int = 0
    h: int = 0

    @property
    def right(self) -> int:
        return self.x + self.w

    @property
    def bottom(self) -> int:
        return self.y + self.h


# =============================================================================
# Image and history
# =============================================================================
@dataclass(frozen=True)
class ImageDescriptor:
    """Snapshot of one image state.

    ``reference`` is an opaque handle owned by the pixel backend; the core
    passes it back to the backend but never looks inside it.
    """
    reference: Any
    width: int
    height: int
    format: ImageFormat

    def __post_init__(self):
        for name in ("width", "height"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidDimension(f"{name} must be a positive integer, got {value!r}")

    @property
    def size(self) -> Size:
        return Size(self.width, self.height)


def _new_entry_id() -> str:
    return uuid4().hex


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HistoryEntry:
    """One committed operation result; the unit of undo/redo."""
    kind: OperationKind
    image: ImageDescriptor
    id: str = field(default_factory=_new_entry_id)
    committed_at: datetime = field(default_factory=_utc_now)


@dataclass(frozen=True)
class EditSessionState:
    """History plus cursor.

    ``aspect_ratio`` is the ORIGINAL image's width/height, captured once when
    the session starts so repeated locked resizes never drift.
    """
    history: tuple[HistoryEntry, ...]
    cursor: int
    aspect_ratio: float


# =============================================================================
# Operation requests
# =============================================================================
@dataclass(frozen=True)
class ResizeRequest:
    mode: ResizeMode = ResizeMode.PIXELS
    target_width: int | str | None = None
    target_height: int | str | None = None
    percent: int | float | None = None
    aspect_locked: bool = True
    quality: int = QUALITY_DEFAULT
    output_format: ImageFormat | None = None  # None keeps the current format
    matte_color: str | None = None


@dataclass(frozen=True)
class CropRequest:
    x: int
    y: int
    width: int
    height: int
    ratio: float | None = None
    shape: ShapeMask = ShapeMask.RECTANGLE
    quality: int = QUALITY_DEFAULT
    output_format: ImageFormat | None = None
    matte_color: str | None = None

    @property
    def rect(self) -> CropRect:
        return CropRect(self.x, self.y, self.width, self.height)


@dataclass(frozen=True)
class ConvertRequest:
    target_format: ImageFormat
    quality: int = QUALITY_DEFAULT
    matte_color: str | None = None
