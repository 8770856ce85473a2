"""Tests for the Pillow backend and the folder export sink (real pixels, no Qt)."""

import io

import pytest
from PIL import Image

from snapedit import pipeline, session
from snapedit.backend import PillowBackend
from snapedit.errors import BackendFailure
from snapedit.image_io import FolderExportSink, default_export_name, detect_format, unique_path
from snapedit.models import (
    ConvertRequest, CropRequest, ImageFormat, OperationKind, ResizeRequest, ShapeMask,
)


@pytest.fixture
def backend():
    return PillowBackend()


@pytest.fixture
def transparent_png(backend):
    img = Image.new("RGBA", (40, 20), (255, 0, 0, 255))
    img.paste((0, 0, 0, 0), (0, 0, 20, 20))  # left half fully transparent
    return backend.add_image(img, ImageFormat.RASTER_LOSSLESS)


@pytest.fixture
def opaque_jpeg(backend):
    return backend.add_image(Image.new("RGB", (64, 48), (0, 128, 255)), ImageFormat.RASTER_LOSSY)


class TestExecute:
    def test_resize(self, backend, transparent_png):
        params = {"target_width": 20, "target_height": 10,
                  "output_format": ImageFormat.RASTER_LOSSLESS, "quality": 95}
        result = backend.execute(OperationKind.RESIZE, transparent_png.reference, params)
        assert (result.width, result.height) == (20, 10)
        assert result.format is ImageFormat.RASTER_LOSSLESS
        assert backend.image(result.reference).mode == "RGBA"

    def test_source_untouched(self, backend, transparent_png):
        params = {"target_width": 10, "target_height": 5,
                  "output_format": ImageFormat.RASTER_LOSSLESS, "quality": 95}
        backend.execute(OperationKind.RESIZE, transparent_png.reference, params)
        assert backend.image(transparent_png.reference).size == (40, 20)
        assert len(backend) == 2

    def test_rectangle_crop(self, backend, opaque_jpeg):
        params = {"x": 10, "y": 5, "width": 30, "height": 20, "shape": ShapeMask.RECTANGLE,
                  "output_format": ImageFormat.RASTER_LOSSY, "quality": 90}
        result = backend.execute(OperationKind.CROP, opaque_jpeg.reference, params)
        assert (result.width, result.height) == (30, 20)
        assert backend.encoded_bytes(result.reference)[:2] == b"\xff\xd8"

    def test_ellipse_crop_masks_corners(self, backend):
        src = backend.add_image(Image.new("RGB", (50, 50), (10, 200, 10)), ImageFormat.RASTER_LOSSLESS)
        params = {"x": 0, "y": 0, "width": 50, "height": 50, "shape": ShapeMask.ELLIPSE,
                  "output_format": ImageFormat.RASTER_LOSSLESS, "quality": 95}
        result = backend.image(backend.execute(OperationKind.CROP, src.reference, params).reference)
        assert result.mode == "RGBA"
        assert result.getpixel((0, 0))[3] == 0
        assert result.getpixel((25, 25))[3] == 255

    def test_convert_flattens_onto_matte(self, backend, transparent_png):
        params = {"target_format": ImageFormat.RASTER_LOSSY, "quality": 100, "matte_color": "#000000"}
        result = backend.execute(OperationKind.CONVERT, transparent_png.reference, params)
        img = backend.image(result.reference)
        assert img.mode == "RGB"
        left = img.getpixel((5, 10))
        right = img.getpixel((35, 10))
        assert max(left) < 30          # transparent half became black
        assert right[0] > 200          # opaque half stayed red

    def test_lossy_export_bytes_are_the_encoded_result(self, backend, opaque_jpeg):
        params = {"target_format": ImageFormat.RASTER_LOSSY, "quality": 40, "matte_color": None}
        result = backend.execute(OperationKind.CONVERT, opaque_jpeg.reference, params)
        assert backend.encoded_bytes(result.reference) is backend.encoded_bytes(result.reference)

    def test_unknown_reference(self, backend):
        with pytest.raises(KeyError):
            backend.execute(OperationKind.CONVERT, "missing", {"target_format": ImageFormat.RASTER_LOSSLESS,
                                                               "quality": 95})

    def test_original_is_not_an_operation(self, backend, opaque_jpeg):
        with pytest.raises(ValueError):
            backend.execute(OperationKind.ORIGINAL, opaque_jpeg.reference, {})

    def test_release(self, backend, opaque_jpeg, transparent_png):
        backend.release(opaque_jpeg.reference)
        assert len(backend) == 1
        backend.release_all()
        assert len(backend) == 0


class TestLoad:
    def test_load_png(self, backend, tmp_path):
        path = tmp_path / "shot.png"
        Image.new("RGBA", (12, 34), (1, 2, 3, 128)).save(path)
        descriptor = backend.load(path)
        assert (descriptor.width, descriptor.height) == (12, 34)
        assert descriptor.format is ImageFormat.RASTER_LOSSLESS

    def test_load_jpeg(self, backend, tmp_path):
        path = tmp_path / "photo.JPG"
        Image.new("RGB", (16, 8)).save(path, "JPEG")
        assert backend.load(path).format is ImageFormat.RASTER_LOSSY

    def test_detect_format(self, tmp_path):
        assert detect_format(tmp_path / "a.jpeg") is ImageFormat.RASTER_LOSSY
        assert detect_format(tmp_path / "a.webp") is ImageFormat.RASTER_LOSSLESS


class TestPipelineWithPillow:
    def test_full_source_crop_round_trip(self, backend, opaque_jpeg):
        state = session.start(opaque_jpeg)
        request = CropRequest(0, 0, opaque_jpeg.width, opaque_jpeg.height)
        _, result = pipeline.apply_crop(state, request, opaque_jpeg, backend)
        assert (result.width, result.height) == (opaque_jpeg.width, opaque_jpeg.height)
        assert result.format is ImageFormat.RASTER_LOSSY

    def test_resize_keeps_format(self, backend, transparent_png):
        state = session.start(transparent_png)
        _, result = pipeline.apply_resize(state, ResizeRequest(target_width=80), transparent_png, backend)
        assert (result.width, result.height, result.format) == (80, 40, ImageFormat.RASTER_LOSSLESS)

    def test_released_source_is_backend_failure(self, backend, transparent_png):
        state = session.start(transparent_png)
        backend.release(transparent_png.reference)
        with pytest.raises(BackendFailure):
            pipeline.apply_convert(state, ConvertRequest(ImageFormat.RASTER_LOSSLESS), transparent_png, backend)


class TestExportSink:
    def test_persist_png(self, backend, transparent_png, tmp_path):
        sink = FolderExportSink(backend, tmp_path / "out")
        path = sink.persist(transparent_png.reference, "image_original_1")
        assert path == tmp_path / "out" / "image_original_1.png"
        with Image.open(path) as img:
            assert img.size == (40, 20)
            assert img.mode == "RGBA"

    def test_persist_jpeg_writes_encoded_bytes(self, backend, opaque_jpeg, tmp_path):
        params = {"target_format": ImageFormat.RASTER_LOSSY, "quality": 70, "matte_color": None}
        result = backend.execute(OperationKind.CONVERT, opaque_jpeg.reference, params)
        path = FolderExportSink(backend, tmp_path).persist(result.reference, "image_converted_1")
        assert path.suffix == ".jpg"
        assert path.read_bytes() == backend.encoded_bytes(result.reference)
        with Image.open(io.BytesIO(path.read_bytes())) as img:
            assert img.format == "JPEG"

    def test_persist_never_overwrites(self, backend, opaque_jpeg, tmp_path):
        sink = FolderExportSink(backend, tmp_path)
        first = sink.persist(opaque_jpeg.reference, "same")
        second = sink.persist(opaque_jpeg.reference, "same")
        assert first.name == "same.jpg"
        assert second.name == "same-01.jpg"

    def test_unique_path_free(self, tmp_path):
        assert unique_path(tmp_path / "x.png") == tmp_path / "x.png"

    def test_default_export_name(self):
        assert default_export_name(OperationKind.CROP, 1760881234567) == "image_cropped_1760881234567"


def test_resize_to_lossy_uses_matte(backend, transparent_png):
    state = session.start(transparent_png)
    request = ResizeRequest(target_width=40, output_format=ImageFormat.RASTER_LOSSY,
                            quality=100, matte_color="#0000FF")
    _, result = pipeline.apply_resize(state, request, transparent_png, backend)
    img = backend.image(result.reference)
    assert result.format is ImageFormat.RASTER_LOSSY
    blue = img.getpixel((5, 10))
    assert blue[2] > 200 and blue[0] < 40
