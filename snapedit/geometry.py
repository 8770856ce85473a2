"""
Geometry engine: pure functions that keep resize and crop parameters
mutually consistent.  Nothing here touches pixels or holds state.

All rounding is half-up (``floor(x + 0.5)``) rather than Python's
round-half-to-even, so ``2.5`` px always becomes ``3`` px no matter which
side of the calculation it lands on.

The aspect ratio used for locked resizes is always passed in explicitly;
callers thread ``EditSessionState.aspect_ratio`` (captured when the session
started) through every call.
"""

import math
from math import gcd
from numbers import Real

from snapedit.config import PERCENT_MAX, PERCENT_MIN
from snapedit.errors import EmptyRegion, InvalidDimension, OutOfRange
from snapedit.models import CropRect, Size


# =============================================================================
# Number helpers
# =============================================================================
def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _to_number(value, name: str) -> float:
    """Parse *value* (int, float or numeric string) into a finite float."""
    if isinstance(value, bool) or value is None:
        raise InvalidDimension(f"{name} must be numeric, got {value!r}")
    if isinstance(value, str):
        text = value.strip()
        try:
            number = float(text)
        except ValueError:
            raise InvalidDimension(f"{name} must be numeric, got {value!r}") from None
    elif isinstance(value, Real):
        number = float(value)
    else:
        raise InvalidDimension(f"{name} must be numeric, got {value!r}")
    if not math.isfinite(number):
        raise InvalidDimension(f"{name} must be finite, got {value!r}")
    return number


def coerce_dimension(value, name: str = "dimension") -> int:
    """Return *value* as a positive pixel count.

    Accepts ints, floats and numeric strings (as typed into a text field).
    Raises ``InvalidDimension`` for anything non-numeric, non-positive, or
    rounding to zero.
    """
    number = _to_number(value, name)
    if number <= 0:
        raise InvalidDimension(f"{name} must be positive, got {value!r}")
    pixels = round_half_up(number)
    if pixels <= 0:
        raise InvalidDimension(f"{name} rounds to zero: {value!r}")
    return pixels


def _check_ratio(aspect_ratio) -> float:
    if isinstance(aspect_ratio, bool) or not isinstance(aspect_ratio, Real):
        raise InvalidDimension(f"aspect ratio must be numeric, got {aspect_ratio!r}")
    ratio = float(aspect_ratio)
    if not math.isfinite(ratio) or ratio <= 0:
        raise InvalidDimension(f"aspect ratio must be a positive number, got {aspect_ratio!r}")
    return ratio


# =============================================================================
# Aspect-ratio helpers
# =============================================================================
def aspect_ratio_of(width: int, height: int) -> float:
    """width / height of a pair of positive dimensions."""
    return coerce_dimension(width, "width") / coerce_dimension(height, "height")


def normalize_ratio(w: int, h: int) -> tuple[int, int]:
    """Reduce ratio to simplest form via GCD. (21, 9) → (7, 3)"""
    g = gcd(w, h)
    return w // g, h // g


def aspect_key(w: int, h: int) -> str:
    """Normalized string key for a ratio. (1920, 1080) → '16:9'"""
    nw, nh = normalize_ratio(w, h)
    return f"{nw}:{nh}"


# =============================================================================
# Resize geometry
# =============================================================================
def locked_dimension(known_value, known_is_width: bool, aspect_ratio: float) -> int:
    """Derive the other dimension of an aspect-locked resize.

    If the width is known, the height is ``round(width / aspect_ratio)``;
    otherwise the width is ``round(height * aspect_ratio)``.
    """
    known = coerce_dimension(known_value, "width" if known_is_width else "height")
    ratio = _check_ratio(aspect_ratio)
    derived = round_half_up(known / ratio if known_is_width else known * ratio)
    if derived <= 0:
        raise InvalidDimension(
            f"locked dimension for {known} at ratio {ratio:.4f} rounds to zero"
        )
    return derived


def resolve_preset(preset) -> Size:
    """Return the target size of a named preset or freeform ``Size``.

    Identity passthrough; it gives presets and typed-in sizes a single call
    path into the pipeline.
    """
    return Size(
        coerce_dimension(preset.width, "width"),
        coerce_dimension(preset.height, "height"),
    )


def resolve_percent_scale(source_width: int, source_height: int, percent) -> Size:
    """Scale both axes of the source by *percent* (10..500)."""
    if isinstance(percent, bool) or not isinstance(percent, Real) or not math.isfinite(percent):
        raise OutOfRange(f"percent must be a number in [{PERCENT_MIN}, {PERCENT_MAX}], got {percent!r}")
    if not PERCENT_MIN <= percent <= PERCENT_MAX:
        raise OutOfRange(f"percent must be in [{PERCENT_MIN}, {PERCENT_MAX}], got {percent!r}")
    sw = coerce_dimension(source_width, "source width")
    sh = coerce_dimension(source_height, "source height")
    width = round_half_up(sw * percent / 100)
    height = round_half_up(sh * percent / 100)
    if width <= 0 or height <= 0:
        raise InvalidDimension(f"{percent}% of {sw}×{sh} rounds to zero")
    return Size(width, height)


# =============================================================================
# Crop geometry
# =============================================================================
def fit_crop_to_ratio(source_width: int, source_height: int, ratio: float | None) -> CropRect:
    """Largest centered rectangle of the given ratio inside the source.

    ``None`` means free-form and returns the full source.  The result is
    always derived from the full source, so switching ratios re-centers and
    discards any manual pan.
    """
    sw = coerce_dimension(source_width, "source width")
    sh = coerce_dimension(source_height, "source height")
    if ratio is None:
        return CropRect(0, 0, sw, sh)

    ratio = _check_ratio(ratio)
    if sw / sh > ratio:
        crop_h = sh
        crop_w = round_half_up(crop_h * ratio)
    else:
        crop_w = sw
        crop_h = round_half_up(crop_w / ratio)
    if crop_w <= 0 or crop_h <= 0:
        raise EmptyRegion(f"ratio {ratio:.4f} leaves no area inside {sw}×{sh}")

    x = round_half_up((sw - crop_w) / 2)
    y = round_half_up((sh - crop_h) / 2)
    return CropRect(x, y, crop_w, crop_h)


def clamp_crop_rect(rect: CropRect, source_width: int, source_height: int) -> CropRect:
    """Clip *rect* so it lies entirely within the source bounds.

    Raises ``EmptyRegion`` if nothing of the rectangle is left.
    """
    sw = coerce_dimension(source_width, "source width")
    sh = coerce_dimension(source_height, "source height")
    x = round_half_up(_to_number(rect.x, "x"))
    y = round_half_up(_to_number(rect.y, "y"))
    w = round_half_up(_to_number(rect.w, "width"))
    h = round_half_up(_to_number(rect.h, "height"))

    left = max(0, x)
    top = max(0, y)
    right = min(sw, x + w)
    bottom = min(sh, y + h)
    if right - left <= 0 or bottom - top <= 0:
        raise EmptyRegion(f"crop {x},{y} {w}×{h} has no area inside {sw}×{sh}")
    return CropRect(left, top, right - left, bottom - top)


def matches_ratio(width: int, height: int, ratio: float) -> bool:
    """True if width/height equals *ratio* to within one pixel of rounding."""
    ratio = _check_ratio(ratio)
    return (
        abs(round_half_up(height * ratio) - width) <= 1
        or abs(round_half_up(width / ratio) - height) <= 1
    )


def constrain_crop_to_ratio(rect: CropRect, ratio: float | None) -> CropRect:
    """Shrink *rect* to *ratio* around its own center.

    Rectangles already on the ratio (within rounding) and free-form
    requests (``None``) come back unchanged.  Used after clamping, which
    can cut a ratio-locked rectangle to a different shape at the edges.
    """
    if ratio is None or matches_ratio(rect.w, rect.h, ratio):
        return rect
    inner = fit_crop_to_ratio(rect.w, rect.h, ratio)
    return CropRect(rect.x + inner.x, rect.y + inner.y, inner.w, inner.h)


# =============================================================================
# Interactive crop editing
# =============================================================================
def move_crop_rect(rect: CropRect, dx: float, dy: float, source_width: int, source_height: int) -> CropRect:
    """Translate *rect* by (dx, dy), stopping at the source edges."""
    x = min(max(rect.x + round_half_up(dx), 0), source_width - rect.w)
    y = min(max(rect.y + round_half_up(dy), 0), source_height - rect.h)
    return CropRect(max(0, x), max(0, y), rect.w, rect.h)


def resize_crop_from_corner(
    anchor: tuple[float, float],
    point: tuple[float, float],
    source_width: int,
    source_height: int,
    ratio: float | None = None,
    min_size: int = 1,
) -> CropRect:
    """Rectangle spanned between a fixed *anchor* corner and a dragged *point*.

    The point may cross the anchor (the rectangle flips).  Both sides stop at
    the source edges; with a *ratio*, the side that overshoots it is shrunk.
    """
    sw = coerce_dimension(source_width, "source width")
    sh = coerce_dimension(source_height, "source height")
    ax, ay = anchor
    px = min(max(point[0], 0), sw)
    py = min(max(point[1], 0), sh)

    sx = 1 if px > ax else -1
    room_w = sw - ax if sx > 0 else ax
    if room_w < min_size:
        sx, room_w = -sx, sw - room_w
    sy = 1 if py > ay else -1
    room_h = sh - ay if sy > 0 else ay
    if room_h < min_size:
        sy, room_h = -sy, sh - room_h

    w = min(max(abs(px - ax), min_size), room_w)
    h = min(max(abs(py - ay), min_size), room_h)
    if ratio is not None:
        ratio = _check_ratio(ratio)
        if w / h > ratio:
            w = h * ratio
        else:
            h = w / ratio
    w = max(min_size, int(w))
    h = max(min_size, int(h))

    x = ax if sx > 0 else ax - w
    y = ay if sy > 0 else ay - h
    return clamp_crop_rect(CropRect(x, y, w, h), sw, sh)
