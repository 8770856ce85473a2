"""Shared fixtures: descriptors and a recording fake backend."""

import pytest

from snapedit.models import ImageDescriptor, ImageFormat


class FakeBackend:
    """Records every call and returns a descriptor sized from the params."""

    def __init__(self, fail_with: Exception | None = None):
        self.calls = []
        self.fail_with = fail_with
        self._counter = 0

    def execute(self, operation, source_ref, params):
        self.calls.append((operation, source_ref, dict(params)))
        if self.fail_with is not None:
            raise self.fail_with
        self._counter += 1
        ref = f"{operation.value}-{self._counter}"
        if "target_width" in params:
            return ImageDescriptor(ref, params["target_width"], params["target_height"], params["output_format"])
        if "width" in params:
            return ImageDescriptor(ref, params["width"], params["height"], params["output_format"])
        return ImageDescriptor(ref, 100, 100, params["target_format"])


@pytest.fixture
def png_image():
    return ImageDescriptor("orig", 1200, 800, ImageFormat.RASTER_LOSSLESS)


@pytest.fixture
def jpeg_image():
    return ImageDescriptor("orig", 1920, 1080, ImageFormat.RASTER_LOSSY)


@pytest.fixture
def fake_backend():
    return FakeBackend()
