"""
Image I/O edge: opening source files and writing exports.

Provides helpers to open images (including PSD), detect their encoding,
generate unique file paths, and the folder export sink the
editor uses to deliver the current image.  Qt-free and safe to import from
worker threads.
"""

import logging
from pathlib import Path

from PIL import Image
from psd_tools import PSDImage

from snapedit.models import ImageFormat, OperationKind

logger = logging.getLogger(__name__)

# Allow very large images (Pillow's default limit is ~178MP)
Image.MAX_IMAGE_PIXELS = None

_LOSSY_EXTENSIONS = {".jpg", ".jpeg"}


def open_image(path: Path) -> Image.Image:
    """Open an image file, using psd-tools for PSD and Pillow for the rest."""
    if path.suffix.lower() == ".psd":
        psd = PSDImage.open(str(path))
        return psd.composite()
    return Image.open(path)


def detect_format(path: Path) -> ImageFormat:
    """JPEG sources are lossy; everything else is treated as lossless."""
    if path.suffix.lower() in _LOSSY_EXTENSIONS:
        return ImageFormat.RASTER_LOSSY
    return ImageFormat.RASTER_LOSSLESS


def unique_path(out_path: Path) -> Path:
    """Return a unique path by appending -01, -02, etc. if file already exists."""
    if not out_path.exists():
        return out_path
    stem = out_path.stem
    suffix = out_path.suffix
    parent = out_path.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}-{counter:02d}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1


def default_export_name(operation: OperationKind, timestamp_ms: int) -> str:
    """``image_<operation>_<epoch ms>``, e.g. ``image_cropped_1760881234567``."""
    return f"image_{operation.label}_{timestamp_ms}"


class FolderExportSink:
    """Media export sink that writes backend images into one folder.

    The backend supplies the encoded bytes and the format, so a lossy image
    is written exactly as it was encoded (no second JPEG pass).
    """

    def __init__(self, backend, folder: Path):
        self._backend = backend
        self._folder = Path(folder)

    def persist(self, image_ref, desired_name: str) -> Path:
        """Write *image_ref* as ``desired_name`` + format extension.

        Returns the path written.  Raises ``OSError`` if the file cannot be
        written and ``KeyError`` for an unknown reference.
        """
        fmt = self._backend.format_of(image_ref)
        data = self._backend.encoded_bytes(image_ref)
        self._folder.mkdir(parents=True, exist_ok=True)
        out_path = unique_path(self._folder / f"{desired_name}{fmt.extension}")
        out_path.write_bytes(data)
        logger.info("Exported %s (%d bytes)", out_path, len(data))
        return out_path
