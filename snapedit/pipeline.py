"""
Operation pipeline: validate a request, dispatch it to the pixel backend,
commit the result.

Every check runs before the backend is called, so known-invalid parameters
never leave this module.  Whatever the backend raises is wrapped in
``BackendFailure`` and the caller's state is returned to it untouched; on
success the backend's descriptor is committed as-is (its reported
dimensions win over our own predictions).

Each ``apply_*`` takes the state it should extend and returns
``(new_state, result_image)``.  Installing the new state is the caller's
job (see ``EditSession.finish_operation``).
"""

import logging

from PIL import ImageColor

from snapedit import session
from snapedit.config import QUALITY_MAX, QUALITY_MIN
from snapedit.errors import BackendFailure, InvalidColor, InvalidDimension, MissingMatteColor, OutOfRange
from snapedit.geometry import (
    clamp_crop_rect, coerce_dimension, constrain_crop_to_ratio, locked_dimension, resolve_percent_scale,
)
from snapedit.models import (
    ConvertRequest, CropRequest, EditSessionState, ImageDescriptor, ImageFormat, OperationKind,
    ResizeMode, ResizeRequest, Size,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Validation helpers
# =============================================================================
def _check_quality(quality) -> int:
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise OutOfRange(f"quality must be an integer in [{QUALITY_MIN}, {QUALITY_MAX}], got {quality!r}")
    if not QUALITY_MIN <= quality <= QUALITY_MAX:
        raise OutOfRange(f"quality must be in [{QUALITY_MIN}, {QUALITY_MAX}], got {quality}")
    return quality


def _resolve_output(current_image: ImageDescriptor, output_format: ImageFormat | None, matte_color: str | None):
    """Pick the encoding to write and the matte needed to get there.

    ``output_format`` of ``None`` keeps the current image's format.  Dropping
    transparency needs an explicit ``matte_color``; it is never defaulted
    here.  The matte is only passed on when alpha is actually lost.
    """
    fmt = output_format or current_image.format
    loses_alpha = current_image.format.supports_transparency and not fmt.supports_transparency
    if loses_alpha and not matte_color:
        raise MissingMatteColor(
            f"writing {current_image.format.label} as {fmt.label} needs a background colour"
        )
    if matte_color:
        try:
            ImageColor.getrgb(matte_color)
        except ValueError:
            raise InvalidColor(f"unrecognised colour: {matte_color!r}") from None
    return fmt, (matte_color if loses_alpha else None)


def _optional_dimension(value, name: str) -> int | None:
    """Coerce a target dimension; ``None`` or blank text means not given."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return coerce_dimension(value, name)


def resolve_resize_target(request: ResizeRequest, current_image: ImageDescriptor, aspect_ratio: float) -> Size:
    """Work out the final width/height a resize request asks for.

    PERCENT scales the current image.  PIXELS uses the given targets: with
    the aspect lock on, a single given dimension derives the other from
    *aspect_ratio*; with it off, the missing one keeps the current size.
    Two given dimensions are used as-is (that is how presets arrive).
    """
    if request.mode is ResizeMode.PERCENT:
        return resolve_percent_scale(current_image.width, current_image.height, request.percent)

    width = _optional_dimension(request.target_width, "target width")
    height = _optional_dimension(request.target_height, "target height")
    if width is None and height is None:
        raise InvalidDimension("resize needs a positive target width or height")

    if width is not None and height is not None:
        return Size(width, height)
    if request.aspect_locked:
        if width is not None:
            return Size(width, locked_dimension(width, True, aspect_ratio))
        return Size(locked_dimension(height, False, aspect_ratio), height)
    if width is not None:
        return Size(width, current_image.height)
    return Size(current_image.width, height)


def _dispatch(
    state: EditSessionState,
    kind: OperationKind,
    current_image: ImageDescriptor,
    backend,
    params: dict,
) -> tuple[EditSessionState, ImageDescriptor]:
    """Invoke the backend and commit on success."""
    logger.debug("Dispatching %s on %r with %s", kind.name, current_image.reference, params)
    try:
        result = backend.execute(kind, current_image.reference, params)
    except Exception as exc:
        logger.warning("Backend failed %s: %s", kind.name, exc)
        raise BackendFailure(f"{kind.name.lower()} failed: {exc}") from exc
    if not isinstance(result, ImageDescriptor):
        raise BackendFailure(f"{kind.name.lower()} returned {type(result).__name__}, not an image")
    return session.commit(state, kind, result), result


# =============================================================================
# Operations
# =============================================================================
def apply_resize(
    state: EditSessionState,
    request: ResizeRequest,
    current_image: ImageDescriptor,
    backend,
) -> tuple[EditSessionState, ImageDescriptor]:
    """Resize the current image; commits a RESIZE entry.

    The result is written in ``request.output_format`` (current format when
    unset), so a resize can also change the encoding.
    """
    target = resolve_resize_target(request, current_image, state.aspect_ratio)
    fmt, matte = _resolve_output(current_image, request.output_format, request.matte_color)
    params = {
        "target_width": target.width,
        "target_height": target.height,
        "output_format": fmt,
        "quality": _check_quality(request.quality),
        "matte_color": matte,
    }
    return _dispatch(state, OperationKind.RESIZE, current_image, backend, params)


def apply_crop(
    state: EditSessionState,
    request: CropRequest,
    current_image: ImageDescriptor,
    backend,
) -> tuple[EditSessionState, ImageDescriptor]:
    """Crop the current image to the clamped request rectangle; commits a CROP entry.

    With a ``ratio`` set, a rectangle that clamping cut to another shape is
    shrunk back onto the ratio around its center.
    """
    rect = clamp_crop_rect(request.rect, current_image.width, current_image.height)
    rect = constrain_crop_to_ratio(rect, request.ratio)
    fmt, matte = _resolve_output(current_image, request.output_format, request.matte_color)
    params = {
        "x": rect.x,
        "y": rect.y,
        "width": rect.w,
        "height": rect.h,
        "shape": request.shape,
        "output_format": fmt,
        "quality": _check_quality(request.quality),
        "matte_color": matte,
    }
    return _dispatch(state, OperationKind.CROP, current_image, backend, params)


def apply_convert(
    state: EditSessionState,
    request: ConvertRequest,
    current_image: ImageDescriptor,
    backend,
) -> tuple[EditSessionState, ImageDescriptor]:
    """Re-encode the current image; commits a CONVERT entry."""
    quality = _check_quality(request.quality)
    fmt, matte = _resolve_output(current_image, request.target_format, request.matte_color)
    params = {
        "target_format": fmt,
        "quality": quality,
        "matte_color": matte,
    }
    return _dispatch(state, OperationKind.CONVERT, current_image, backend, params)
