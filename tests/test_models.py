"""Tests for the shared data models."""

import pytest

from snapedit.models import ImageFormat, OperationKind


def test_operation_labels_are_past_tense():
    assert [k.label for k in OperationKind] == ["original", "resized", "cropped", "converted"]


def test_operation_label_independent_of_value():
    assert OperationKind.CROP.value == "crop"
    assert OperationKind("crop") is OperationKind.CROP
    with pytest.raises(ValueError):
        OperationKind("cropped")


@pytest.mark.parametrize("fmt, alpha, ext", [
    (ImageFormat.RASTER_LOSSY, False, ".jpg"),
    (ImageFormat.RASTER_LOSSLESS, True, ".png"),
])
def test_image_format_properties(fmt, alpha, ext):
    assert fmt.supports_transparency is alpha
    assert fmt.extension == ext
