"""
Preset catalog: named target sizes, crop ratios and matte colours.

Pure data plus lookup.  The tables are tuples of frozen dataclasses so the
catalog is read-only for the lifetime of the process; the geometry engine
consumes the values, the editor window renders them as buttons.
"""

from dataclasses import dataclass

from snapedit.geometry import aspect_key


@dataclass(frozen=True)
class Preset:
    """Named target dimensions."""
    name: str
    width: int
    height: int

    @property
    def label(self) -> str:
        return f"{self.name} ({self.width}×{self.height})"


@dataclass(frozen=True)
class CropRatio:
    """Named crop aspect ratio.  ``ratio_w``/``ratio_h`` of 0 means free-form."""
    name: str
    ratio_w: int = 0
    ratio_h: int = 0

    @property
    def ratio(self) -> float | None:
        if self.ratio_w <= 0 or self.ratio_h <= 0:
            return None
        return self.ratio_w / self.ratio_h

    @property
    def key(self) -> str:
        """Normalized ``"w:h"`` key, or ``"free"``."""
        if self.ratio is None:
            return "free"
        return aspect_key(self.ratio_w, self.ratio_h)


# =============================================================================
# Tables
# =============================================================================
SOCIAL_PRESETS: tuple[Preset, ...] = (
    Preset("Instagram Square", 1080, 1080),
    Preset("Instagram Story", 1080, 1920),
    Preset("Facebook Cover", 1200, 630),
    Preset("YouTube Thumbnail", 1280, 720),
    Preset("LinkedIn Post", 1200, 627),
    Preset("Twitter Header", 1500, 500),
)

COMMON_RESOLUTIONS: tuple[Preset, ...] = (
    Preset("HD", 1920, 1080),
    Preset("4K", 3840, 2160),
    Preset("Square HD", 1080, 1080),
    Preset("Portrait HD", 1080, 1920),
)

CROP_RATIOS: tuple[CropRatio, ...] = (
    CropRatio("Free"),
    CropRatio("1:1", 1, 1),
    CropRatio("4:3", 4, 3),
    CropRatio("16:9", 16, 9),
    CropRatio("3:2", 3, 2),
    CropRatio("9:16", 9, 16),
)

# Background colours offered when flattening transparency
MATTE_COLORS: tuple[str, ...] = ("#FFFFFF", "#000000", "#FF0000", "#00FF00", "#0000FF")


# =============================================================================
# Lookup
# =============================================================================
def all_presets() -> tuple[Preset, ...]:
    """Social presets followed by common resolutions."""
    return SOCIAL_PRESETS + COMMON_RESOLUTIONS


def get_preset(name: str) -> Preset:
    """Return the preset called *name*.

    Raises:
        KeyError: If no preset has that name.
    """
    for preset in all_presets():
        if preset.name == name:
            return preset
    raise KeyError(f"Unknown preset: {name!r}. Available: {[p.name for p in all_presets()]}")


def get_crop_ratio(name: str) -> CropRatio:
    """Return the crop ratio called *name* (e.g. ``"16:9"`` or ``"Free"``)."""
    for ratio in CROP_RATIOS:
        if ratio.name == name:
            return ratio
    raise KeyError(f"Unknown crop ratio: {name!r}. Available: {[r.name for r in CROP_RATIOS]}")
