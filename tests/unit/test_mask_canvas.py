"""Unit tests for the raster mask painter."""

import pytest
from PIL import Image, ImageChops

from sdpanel.core.mask_canvas import (
    DEFAULT_BRUSH_COLOR,
    MAX_BRUSH_SIZE,
    MIN_BRUSH_SIZE,
    MaskCanvas,
    image_from_data_url,
    image_to_data_url,
)

WHITE = DEFAULT_BRUSH_COLOR


@pytest.fixture
def canvas(source_image) -> MaskCanvas:
    reports: list[str] = []
    canvas = MaskCanvas(on_change=reports.append, brush_size=6)
    canvas.load_source(source_image)
    canvas.reports = reports
    return canvas


def _stroke(canvas, points, display_size=None):
    canvas.pointer_down(*points[0], display_size=display_size)
    for point in points[1:]:
        canvas.pointer_move(*point, display_size=display_size)
    return canvas.pointer_up()


class TestLoading:
    """Tests for source image loading."""

    def test_surface_matches_native_size(self, canvas, source_image):
        assert canvas.loaded
        assert canvas.size == source_image.size

    def test_fresh_canvas_has_no_paint(self, canvas, source_image):
        assert canvas.has_paint is False
        assert canvas.composite().tobytes() == source_image.tobytes()

    def test_reload_resets_paint(self, canvas, source_image):
        _stroke(canvas, [(10, 10), (30, 10)])
        canvas.load_source(source_image)
        assert canvas.has_paint is False

    def test_operations_before_load_are_noops(self):
        """Drawing and clearing do nothing until an image is loaded."""
        reports = []
        canvas = MaskCanvas(on_change=reports.append)

        canvas.pointer_down(5, 5)
        canvas.pointer_move(10, 10)
        assert canvas.pointer_up() is None
        assert canvas.clear() is None
        assert canvas.is_drawing is False
        assert reports == []

    def test_composite_before_load_raises(self):
        with pytest.raises(RuntimeError):
            MaskCanvas().composite()


class TestBrushSettings:
    """Tests for tool and brush size settings."""

    def test_brush_size_clamped(self):
        canvas = MaskCanvas()
        canvas.set_brush_size(500)
        assert canvas.brush_size == MAX_BRUSH_SIZE
        canvas.set_brush_size(0)
        assert canvas.brush_size == MIN_BRUSH_SIZE

    def test_unknown_tool_rejected(self):
        with pytest.raises(ValueError):
            MaskCanvas().set_tool("spray")


class TestStrokes:
    """Tests for pointer-driven painting."""

    def test_stroke_paints_and_reports(self, canvas):
        """A completed stroke exports once and marks the stroke's pixels."""
        data_url = _stroke(canvas, [(10, 10), (40, 10)])

        assert data_url.startswith("data:image/png;base64,")
        assert canvas.reports == [data_url]
        assert canvas.last_export == data_url

        region = canvas.painted_region()
        assert region.getpixel((25, 10)) == 255
        assert region.getpixel((25, 40)) == 0
        assert canvas.composite().getpixel((25, 10)) == WHITE

    def test_export_is_composite_at_native_size(self, canvas, source_image):
        data_url = _stroke(canvas, [(10, 10)])
        exported = image_from_data_url(data_url)

        assert exported.size == source_image.size
        assert exported.getpixel((10, 10)) == WHITE
        assert exported.getpixel((60, 45)) == source_image.getpixel((60, 45))

    def test_moves_without_down_do_nothing(self, canvas):
        canvas.pointer_move(10, 10)
        assert canvas.pointer_up() is None
        assert canvas.has_paint is False
        assert canvas.reports == []

    def test_pointer_leave_finishes_stroke(self, canvas):
        """Leaving the surface while drawing ends the stroke and reports."""
        canvas.pointer_down(10, 10)
        assert canvas.pointer_leave() is not None
        assert canvas.is_drawing is False
        assert len(canvas.reports) == 1

    def test_pointer_leave_when_idle_does_not_report(self, canvas):
        assert canvas.pointer_leave() is None
        assert canvas.reports == []

    def test_display_coordinates_rescaled(self, canvas):
        """A point at the display centre lands at the backing centre."""
        _stroke(canvas, [(64, 48)], display_size=(128, 96))

        region = canvas.painted_region()
        assert region.getpixel((32, 24)) == 255
        assert region.getpixel((60, 45)) == 0

    def test_eraser_restores_source(self, canvas, source_image):
        """Erasing over paint reveals the source again."""
        _stroke(canvas, [(10, 10), (40, 10)])
        canvas.set_tool("eraser")
        canvas.set_brush_size(MAX_BRUSH_SIZE)
        _stroke(canvas, [(25, 10)])

        assert canvas.has_paint is False
        assert canvas.composite().tobytes() == source_image.tobytes()


class TestClear:
    """Tests for clearing the mask."""

    def test_clear_restores_source(self, canvas, source_image):
        _stroke(canvas, [(10, 10), (40, 30)])
        data_url = canvas.clear()

        assert canvas.has_paint is False
        assert image_from_data_url(data_url).tobytes() == source_image.tobytes()

    def test_clear_is_idempotent(self, canvas):
        """Clearing twice gives the same export and reports each time."""
        _stroke(canvas, [(10, 10)])
        first = canvas.clear()
        second = canvas.clear()

        assert first == second
        assert len(canvas.reports) == 3


class TestUploadMask:
    """Tests for compositing external masks."""

    def test_round_trip_reproduces_painted_region(self, canvas, source_image):
        """Re-uploading an export onto a fresh canvas gives the same region."""
        data_url = _stroke(canvas, [(5, 5), (50, 30)])
        expected = canvas.painted_region()

        other = MaskCanvas()
        other.load_source(source_image)
        other.upload_mask(image_from_data_url(data_url))

        assert ImageChops.difference(other.painted_region(), expected).getbbox() is None

    def test_round_trip_over_semi_transparent_source(self):
        """Half-transparent source pixels outside the stroke stay unpainted."""
        source = Image.new("RGBA", (16, 16), (200, 100, 50, 128))
        canvas = MaskCanvas(brush_size=4)
        canvas.load_source(source)
        data_url = _stroke(canvas, [(8, 8)])
        expected = canvas.painted_region()

        other = MaskCanvas()
        other.load_source(source)
        other.upload_mask(image_from_data_url(data_url))

        painted = other.painted_region()
        assert painted.getpixel((0, 0)) == 0
        assert painted.getpixel((8, 8)) == 255
        assert ImageChops.difference(painted, expected).getbbox() is None

    def test_upload_matching_source_paints_nothing(self, canvas, source_image):
        canvas.upload_mask(source_image)
        assert canvas.has_paint is False

    def test_transparent_upload_paints_nothing(self, canvas):
        canvas.upload_mask(Image.new("RGBA", (64, 48), (0, 0, 0, 0)))
        assert canvas.has_paint is False
        assert len(canvas.reports) == 1

    def test_smaller_upload_placed_top_left(self, canvas):
        """Uploads are pasted at the origin without scaling."""
        canvas.upload_mask(Image.new("RGBA", (10, 10), WHITE))

        region = canvas.painted_region()
        assert region.getpixel((0, 0)) == 255
        assert region.getpixel((9, 9)) == 255
        assert region.getpixel((20, 20)) == 0

    def test_upload_before_load_is_noop(self):
        assert MaskCanvas().upload_mask(Image.new("RGBA", (4, 4), WHITE)) is None


class TestBinaryMask:
    def test_white_on_black(self, canvas):
        _stroke(canvas, [(10, 10)])
        mask = canvas.binary_mask()

        assert mask.mode == "RGB"
        assert mask.getpixel((10, 10)) == (255, 255, 255)
        assert mask.getpixel((60, 45)) == (0, 0, 0)


class TestDataUrls:
    def test_data_url_helpers(self, source_image):
        data_url = image_to_data_url(source_image)
        decoded = image_from_data_url(data_url)

        assert data_url.startswith("data:image/png;base64,")
        assert decoded.tobytes() == source_image.tobytes()
