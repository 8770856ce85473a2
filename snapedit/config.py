"""
Application constants and configuration.

Numeric bounds here are shared by the geometry engine, the operation
pipeline and the editor window, so the sliders and the validators can
never disagree.

The ``config_dir()`` helper returns the platform-appropriate config
directory and is shared by all persistence modules (recent files).
"""

import os
import sys
from pathlib import Path

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "snapedit"

# Log level override, e.g. SNAPEDIT_LOG_LEVEL=debug
LOG_LEVEL_ENV = "SNAPEDIT_LOG_LEVEL"


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


# =============================================================================
# RESIZE / CONVERT BOUNDS
# =============================================================================
# Percentage scaling (slider range)
PERCENT_MIN = 10
PERCENT_MAX = 500
PERCENT_DEFAULT = 100

# Lossy encoder quality
QUALITY_MIN = 1
QUALITY_MAX = 100
QUALITY_DEFAULT = 95

# PNG compression level (0-9, 9 = maximum compression)
PNG_COMPRESS_LEVEL = 9

# JPEG chroma subsampling passed to Pillow (0 = 4:4:4)
JPEG_SUBSAMPLING = 0

# Matte used for lossy re-encodes when the caller has nothing better (e.g. an
# ellipse crop written as JPEG)
DEFAULT_MATTE_COLOR = "#FFFFFF"

# =============================================================================
# RECENT FILES
# =============================================================================
RECENT_FILES_MAX = 5

# Supported source extensions (PSD goes through psd-tools)
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".tiff", ".tif", ".webp", ".psd"}

# =============================================================================
# CROP EDITOR
# =============================================================================
# Nudge amounts (pixels in image coordinates)
NUDGE_SMALL = 1
NUDGE_LARGE = 10

# Minimum crop size (pixels) while dragging handles
MIN_CROP_SIZE = 1

# Handle size for resize corners (pixels in screen coordinates)
HANDLE_SIZE = 10
