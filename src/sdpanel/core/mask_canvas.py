"""Raster mask painter for inpainting.

:class:`MaskCanvas` keeps two RGBA layers the size of the loaded source
image's native pixels:

- the **source** layer, the unmodified image;
- the **paint** layer, transparent except where the user painted.

Brush strokes write opaque pixels into the paint layer; eraser strokes
make paint-layer pixels transparent again so the source shows through.
The exported image is always the paint layer composited over the source.

Pointer coordinates arrive in display space (the size the image is shown
at) and are rescaled to backing pixels before drawing.  Every completed
stroke, :meth:`MaskCanvas.clear` and :meth:`MaskCanvas.upload_mask` export
the composite as a PNG data URL and hand it to the ``on_change`` callback.

Usage
-----
::

    canvas = MaskCanvas(on_change=lambda url: print(len(url)))
    canvas.load_source(Image.open("photo.png"))
    canvas.pointer_down(10, 10, display_size=(256, 256))
    canvas.pointer_move(120, 40, display_size=(256, 256))
    canvas.pointer_up()          # exports and reports
"""

from __future__ import annotations

import base64
import io
import logging
from collections.abc import Callable
from typing import Literal

from PIL import Image, ImageChops, ImageDraw

from sdpanel.core.image_store import strip_data_url_prefix

logger = logging.getLogger(__name__)

Tool = Literal["brush", "eraser"]

MIN_BRUSH_SIZE = 1
MAX_BRUSH_SIZE = 100
DEFAULT_BRUSH_SIZE = 20
DEFAULT_BRUSH_COLOR = (255, 255, 255, 255)

_TRANSPARENT = (0, 0, 0, 0)


def image_to_data_url(image: Image.Image) -> str:
    """Encode *image* as a ``data:image/png;base64,...`` URL."""
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


def image_from_data_url(data_url: str) -> Image.Image:
    """Decode a PNG/JPEG data URL (or bare base64 string) into an image."""
    raw = base64.b64decode(strip_data_url_prefix(data_url))
    image = Image.open(io.BytesIO(raw))
    image.load()
    return image


def clamp_brush_size(size: float) -> int:
    """Clamp a brush diameter to the supported range."""
    return int(min(max(size, MIN_BRUSH_SIZE), MAX_BRUSH_SIZE))


def _changed_pixels(a: Image.Image, b: Image.Image) -> Image.Image:
    """Return an ``L`` mask that is 255 wherever two RGBA images differ."""
    diff = ImageChops.difference(a, b)
    r, g, bl, alpha = diff.split()
    combined = ImageChops.lighter(ImageChops.lighter(r, g), ImageChops.lighter(bl, alpha))
    return combined.point(lambda v: 255 if v else 0)


class MaskCanvas:
    """Paintable surface over a source image.

    Args:
        on_change: Called with the exported data URL after every stroke,
            clear and mask upload.
        brush_size: Initial brush diameter in backing pixels (1-100).
        brush_color: RGBA colour painted by the brush tool.
    """

    def __init__(
        self,
        on_change: Callable[[str], None] | None = None,
        brush_size: int = DEFAULT_BRUSH_SIZE,
        brush_color: tuple[int, int, int, int] = DEFAULT_BRUSH_COLOR,
    ):
        self.on_change = on_change
        self.brush_color = brush_color
        self.brush_size = DEFAULT_BRUSH_SIZE
        self.set_brush_size(brush_size)
        self.tool: Tool = "brush"
        self.last_export: str | None = None

        self._source: Image.Image | None = None
        self._paint: Image.Image | None = None
        self._drawing = False
        self._last_point: tuple[float, float] | None = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def loaded(self) -> bool:
        return self._source is not None

    @property
    def size(self) -> tuple[int, int] | None:
        return self._source.size if self._source is not None else None

    @property
    def is_drawing(self) -> bool:
        return self._drawing

    @property
    def has_paint(self) -> bool:
        """True when at least one paint-layer pixel is set."""
        return self.loaded and self._paint.getchannel("A").getbbox() is not None

    def load_source(self, image: Image.Image) -> None:
        """Load a new source image and reset the paint layer."""
        self._source = image.convert("RGBA")
        self._paint = Image.new("RGBA", self._source.size, _TRANSPARENT)
        self._drawing = False
        self._last_point = None
        self.last_export = None
        logger.debug(f"Mask canvas loaded source image {self._source.size}")

    def discard(self) -> None:
        """Drop the source and paint layers."""
        self._source = None
        self._paint = None
        self._drawing = False
        self._last_point = None
        self.last_export = None

    def set_tool(self, tool: Tool) -> None:
        if tool not in ("brush", "eraser"):
            raise ValueError(f"Unknown tool: {tool}")
        self.tool = tool

    def set_brush_size(self, size: int) -> None:
        self.brush_size = clamp_brush_size(size)

    # ------------------------------------------------------------------
    # Pointer strokes
    # ------------------------------------------------------------------

    def to_backing(
        self, x: float, y: float, display_size: tuple[float, float] | None = None
    ) -> tuple[float, float]:
        """Rescale a display-space point to backing pixel coordinates.

        Args:
            x: Horizontal position relative to the displayed image.
            y: Vertical position relative to the displayed image.
            display_size: ``(width, height)`` the image is displayed at.
                ``None`` means it is displayed at native size.
        """
        if self._source is None or display_size is None:
            return float(x), float(y)
        display_w, display_h = display_size
        width, height = self._source.size
        return x * width / display_w, y * height / display_h

    def pointer_down(
        self, x: float, y: float, display_size: tuple[float, float] | None = None
    ) -> None:
        """Start a stroke.  No-op until a source image is loaded."""
        if not self.loaded:
            return
        self._drawing = True
        point = self.to_backing(x, y, display_size)
        self._apply_stroke([point])
        self._last_point = point

    def pointer_move(
        self, x: float, y: float, display_size: tuple[float, float] | None = None
    ) -> None:
        """Extend the current stroke to ``(x, y)``."""
        if not self._drawing or not self.loaded:
            return
        point = self.to_backing(x, y, display_size)
        self._apply_stroke([self._last_point, point])
        self._last_point = point

    def pointer_up(self) -> str | None:
        """Finish the current stroke, export and report."""
        return self._finish_stroke()

    def pointer_leave(self) -> str | None:
        """Pointer left the surface; finishes the stroke if one is active."""
        return self._finish_stroke()

    def _finish_stroke(self) -> str | None:
        if not self._drawing or not self.loaded:
            return None
        self._drawing = False
        self._last_point = None
        return self._report()

    def _apply_stroke(self, points: list[tuple[float, float]]) -> None:
        """Rasterise a round-capped polyline into the paint layer."""
        stroke = Image.new("L", self._paint.size, 0)
        draw = ImageDraw.Draw(stroke)
        radius = self.brush_size / 2

        if len(points) > 1:
            draw.line(points, fill=255, width=self.brush_size)
        for px, py in points:
            draw.ellipse((px - radius, py - radius, px + radius, py + radius), fill=255)

        if self.tool == "brush":
            fill = Image.new("RGBA", self._paint.size, self.brush_color)
        else:
            fill = Image.new("RGBA", self._paint.size, _TRANSPARENT)
        self._paint = Image.composite(fill, self._paint, stroke)

    # ------------------------------------------------------------------
    # Whole-surface operations
    # ------------------------------------------------------------------

    def clear(self) -> str | None:
        """Revert to the unmodified source image and report."""
        if not self.loaded:
            return None
        self._paint = Image.new("RGBA", self._source.size, _TRANSPARENT)
        return self._report()

    def upload_mask(self, mask: Image.Image) -> str | None:
        """Composite an externally drawn image over the source and report.

        The uploaded image is placed at the top-left corner without scaling.
        A pixel counts as painted only where the upload is not transparent
        and differs from the source pixel, so re-uploading an exported
        composite reproduces the same painted region, including over
        semi-transparent sources.
        """
        if not self.loaded:
            return None

        placed = Image.new("RGBA", self._source.size, _TRANSPARENT)
        placed.paste(mask.convert("RGBA"), (0, 0))
        covered = placed.getchannel("A").point(lambda a: 255 if a else 0)
        changed = ImageChops.darker(_changed_pixels(placed, self._source), covered)

        self._paint = Image.composite(
            placed, Image.new("RGBA", self._source.size, _TRANSPARENT), changed
        )
        return self._report()

    def composite(self) -> Image.Image:
        """Return the paint layer composited over the source."""
        if not self.loaded:
            raise RuntimeError("No source image loaded")
        return Image.alpha_composite(self._source, self._paint)

    def export_data_url(self) -> str:
        """Encode the composite as a PNG data URL."""
        return image_to_data_url(self.composite())

    def source_image(self) -> Image.Image:
        """Return a copy of the unmodified source image."""
        if not self.loaded:
            raise RuntimeError("No source image loaded")
        return self._source.copy()

    def paint_layer(self) -> Image.Image:
        """Return a copy of the paint layer alone."""
        if not self.loaded:
            raise RuntimeError("No source image loaded")
        return self._paint.copy()

    def painted_region(self) -> Image.Image:
        """Return an ``L`` image that is 255 wherever the paint layer is set."""
        if not self.loaded:
            raise RuntimeError("No source image loaded")
        return self._paint.getchannel("A").point(lambda a: 255 if a else 0)

    def binary_mask(self) -> Image.Image:
        """Return the painted region as a white-on-black RGB mask."""
        return self.painted_region().convert("RGB")

    def _report(self) -> str:
        data_url = self.export_data_url()
        self.last_export = data_url
        if self.on_change is not None:
            self.on_change(data_url)
        return data_url
