"""
Pixel backend: executes resize / crop / convert on behalf of the pipeline.

``PixelBackend`` is the contract the editing core depends on.
``PillowBackend`` implements it over an in-memory registry of Pillow images
keyed by opaque string references; descriptors handed to the core carry only
those references.  The backend owns the pixel data and is the only place a
reference is ever freed.

Qt-free: ``execute`` is called from the editor's worker thread while the GUI
thread reads images for display, so the registry is guarded by a lock.
"""

import io
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from uuid import uuid4

from PIL import Image, ImageChops, ImageColor, ImageDraw

from snapedit.config import DEFAULT_MATTE_COLOR, JPEG_SUBSAMPLING, PNG_COMPRESS_LEVEL, QUALITY_DEFAULT
from snapedit.image_io import detect_format, open_image
from snapedit.models import ImageDescriptor, ImageFormat, OperationKind, ShapeMask

logger = logging.getLogger(__name__)


class PixelBackend(Protocol):
    def execute(self, operation: OperationKind, source_ref, params: dict) -> ImageDescriptor:
        """Run *operation* on *source_ref* and return the authoritative result."""
        ...


@dataclass(frozen=True)
class _Stored:
    image: Image.Image
    format: ImageFormat
    encoded: bytes | None = None  # exact JPEG bytes for lossy results


# =============================================================================
# Pillow helpers
# =============================================================================
def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def _normalize_mode(img: Image.Image) -> Image.Image:
    """RGBA when the image carries transparency, RGB otherwise."""
    return img.convert("RGBA") if _has_alpha(img) else img.convert("RGB")


def _flatten(img: Image.Image, matte_color: str) -> Image.Image:
    """Composite *img* onto a solid background, dropping the alpha channel."""
    if img.mode != "RGBA":
        return img.convert("RGB")
    background = Image.new("RGB", img.size, ImageColor.getrgb(matte_color))
    background.paste(img, mask=img.getchannel("A"))
    return background


def _encode_jpeg(img: Image.Image, quality: int) -> bytes:
    buf = io.BytesIO()
    img.save(buf, "JPEG", quality=quality, optimize=True, subsampling=JPEG_SUBSAMPLING)
    return buf.getvalue()


def _ellipse_mask(img: Image.Image) -> Image.Image:
    """Return *img* with everything outside the inscribed ellipse transparent."""
    rgba = img.convert("RGBA")
    mask = Image.new("L", rgba.size, 0)
    ImageDraw.Draw(mask).ellipse((0, 0, rgba.width - 1, rgba.height - 1), fill=255)
    rgba.putalpha(ImageChops.multiply(rgba.getchannel("A"), mask))
    return rgba


# =============================================================================
# Backend
# =============================================================================
class PillowBackend:
    """In-memory Pillow implementation of ``PixelBackend``."""

    def __init__(self):
        self._images: dict[str, _Stored] = {}
        self._lock = threading.Lock()

    # --- registry ---

    def _register(self, stored: _Stored) -> ImageDescriptor:
        ref = uuid4().hex
        with self._lock:
            self._images[ref] = stored
        return ImageDescriptor(ref, stored.image.width, stored.image.height, stored.format)

    def _get(self, ref) -> _Stored:
        with self._lock:
            try:
                return self._images[ref]
            except KeyError:
                raise KeyError(f"Unknown image reference: {ref!r}") from None

    def load(self, path: Path) -> ImageDescriptor:
        """Open a source file and register it.  File I/O happens only here."""
        path = Path(path)
        img = open_image(path)
        img.load()
        descriptor = self._register(_Stored(_normalize_mode(img), detect_format(path)))
        logger.info("Loaded %s (%d×%d %s)", path.name, descriptor.width, descriptor.height, descriptor.format.label)
        return descriptor

    def add_image(self, img: Image.Image, fmt: ImageFormat) -> ImageDescriptor:
        """Register an already-decoded image (pasted or generated)."""
        return self._register(_Stored(_normalize_mode(img), fmt))

    def image(self, ref) -> Image.Image:
        """Pixels behind *ref*, for display.  Callers must not mutate it."""
        return self._get(ref).image

    def format_of(self, ref) -> ImageFormat:
        return self._get(ref).format

    def encoded_bytes(self, ref) -> bytes:
        """Encoded file contents of *ref* in its own format."""
        stored = self._get(ref)
        if stored.format is ImageFormat.RASTER_LOSSY:
            if stored.encoded is not None:
                return stored.encoded
            return _encode_jpeg(_flatten(stored.image, DEFAULT_MATTE_COLOR), QUALITY_DEFAULT)
        buf = io.BytesIO()
        stored.image.save(buf, "PNG", compress_level=PNG_COMPRESS_LEVEL)
        return buf.getvalue()

    def release(self, ref) -> None:
        with self._lock:
            self._images.pop(ref, None)

    def release_all(self) -> None:
        with self._lock:
            self._images.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._images)

    # --- operations ---

    def execute(self, operation: OperationKind, source_ref, params: dict) -> ImageDescriptor:
        source = self._get(source_ref)

        if operation is OperationKind.RESIZE:
            result = source.image.resize(
                (params["target_width"], params["target_height"]),
                Image.Resampling.LANCZOS,
            )
            return self._finish(result, params["output_format"], params["quality"], params.get("matte_color"))

        if operation is OperationKind.CROP:
            x, y = params["x"], params["y"]
            result = source.image.crop((x, y, x + params["width"], y + params["height"]))
            if params["shape"] is ShapeMask.ELLIPSE:
                result = _ellipse_mask(result)
            return self._finish(result, params["output_format"], params["quality"], params.get("matte_color"))

        if operation is OperationKind.CONVERT:
            return self._finish(
                source.image, params["target_format"], params["quality"], params.get("matte_color"),
            )

        raise ValueError(f"Unsupported operation: {operation!r}")

    def _finish(self, img: Image.Image, fmt: ImageFormat, quality: int, matte_color: str | None) -> ImageDescriptor:
        """Encode *img* into *fmt* and register the result."""
        if fmt is ImageFormat.RASTER_LOSSY:
            encoded = _encode_jpeg(_flatten(img, matte_color or DEFAULT_MATTE_COLOR), quality)
            with Image.open(io.BytesIO(encoded)) as decoded:
                result = decoded.convert("RGB")
            return self._register(_Stored(result, fmt, encoded))
        return self._register(_Stored(_normalize_mode(img), fmt))
