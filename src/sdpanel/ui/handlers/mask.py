"""Source image and inpainting mask handlers.

The img2img tab shows a ``gr.ImageEditor`` whose background is the uploaded
source image and whose layers hold the user's brush strokes.  Each session
also owns a :class:`~sdpanel.core.mask_canvas.MaskCanvas` (kept in
``gr.State``) which is the authority on the painted region: editor layers
and uploaded mask files are folded into it, and its exported composite is
what the session state records as the mask (None while nothing is
painted).

Strokes are drawn in the browser by the editor, so the brush size only
reaches ``gr.Brush``/``gr.Eraser``.  The canvas's own pointer and tool
methods are not used from here.
"""

import logging
from typing import Any

import gradio as gr
from PIL import Image

from sdpanel.core.mask_canvas import MaskCanvas, clamp_brush_size, image_to_data_url

from ..models import UIState
from ..state import ImageCleared, ImageUploaded, MaskChanged, reduce
from ..validation import ValidationError, validate_image_upload

logger = logging.getLogger(__name__)

BRUSH_HEX = "#FFFFFF"


def editor_value(canvas: MaskCanvas) -> dict[str, Any] | None:
    """Build an ImageEditor value mirroring the canvas layers."""
    if not canvas.loaded:
        return None
    return {
        "background": canvas.source_image(),
        "layers": [canvas.paint_layer()],
        "composite": canvas.composite(),
    }


def mask_preview(canvas: MaskCanvas) -> Image.Image | None:
    return canvas.binary_mask() if canvas.loaded else None


def _recorded_mask(canvas: MaskCanvas, data_url: str | None) -> str | None:
    """Return the mask to send, or None when nothing is painted."""
    return data_url if canvas.has_paint else None


def _open_upload(path: str) -> Image.Image:
    validate_image_upload(path)
    with Image.open(path) as image:
        image.load()
        return image.convert("RGBA")


def upload_source_image(
    path: str | None, state: UIState, canvas: MaskCanvas
) -> tuple[UIState, MaskCanvas, Any, Any]:
    """Load a new source image for img2img.

    Clearing the upload drops the source and its mask.  A rejected file
    leaves everything as it was.

    Args:
        path: Uploaded file path, or None when cleared
        state: UI state
        canvas: Session mask canvas

    Returns:
        Tuple of (state, canvas, editor_value, mask_preview)
    """
    if not path:
        canvas.discard()
        return reduce(state, ImageCleared()), canvas, None, None

    try:
        source = _open_upload(path)
    except ValidationError as e:
        gr.Warning(str(e))
        return state, canvas, gr.update(), gr.update()
    except OSError as e:
        logger.error(f"Could not read uploaded image {path}: {e}")
        gr.Warning(f"Could not read image: {e}")
        return state, canvas, gr.update(), gr.update()

    canvas.load_source(source)
    state = reduce(state, ImageUploaded(image_to_data_url(source)))
    logger.info(f"Loaded img2img source image {source.size}")
    return state, canvas, editor_value(canvas), None


def apply_editor_layers(
    value: dict[str, Any] | None, state: UIState, canvas: MaskCanvas
) -> tuple[UIState, MaskCanvas, Any]:
    """Fold the editor's drawn layers into the mask canvas.

    Args:
        value: ImageEditor value (``background``, ``layers``, ``composite``)
        state: UI state
        canvas: Session mask canvas

    Returns:
        Tuple of (state, canvas, mask_preview)
    """
    if not canvas.loaded or not value:
        return state, canvas, gr.update()

    layers = [layer for layer in value.get("layers") or [] if layer is not None]
    if layers:
        merged = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
        for layer in layers:
            merged.alpha_composite(layer.convert("RGBA").crop((0, 0) + canvas.size))
        data_url = canvas.upload_mask(merged)
    else:
        data_url = canvas.clear()

    state = reduce(state, MaskChanged(_recorded_mask(canvas, data_url)))
    return state, canvas, mask_preview(canvas)


def clear_mask(state: UIState, canvas: MaskCanvas) -> tuple[UIState, MaskCanvas, Any, Any]:
    """Reset the mask to the unmodified source image.

    Returns:
        Tuple of (state, canvas, editor_value, mask_preview)
    """
    if not canvas.loaded:
        return state, canvas, gr.update(), gr.update()

    data_url = canvas.clear()
    state = reduce(state, MaskChanged(_recorded_mask(canvas, data_url)))
    return state, canvas, editor_value(canvas), mask_preview(canvas)


def upload_mask_file(
    path: str | None, state: UIState, canvas: MaskCanvas
) -> tuple[UIState, MaskCanvas, Any, Any]:
    """Composite an uploaded mask image over the source image.

    Returns:
        Tuple of (state, canvas, editor_value, mask_preview)
    """
    if not path:
        return state, canvas, gr.update(), gr.update()
    if not canvas.loaded:
        gr.Warning("Upload a source image first")
        return state, canvas, gr.update(), gr.update()

    try:
        mask = _open_upload(path)
    except ValidationError as e:
        gr.Warning(str(e))
        return state, canvas, gr.update(), gr.update()
    except OSError as e:
        logger.error(f"Could not read uploaded mask {path}: {e}")
        gr.Warning(f"Could not read image: {e}")
        return state, canvas, gr.update(), gr.update()

    data_url = canvas.upload_mask(mask)
    state = reduce(state, MaskChanged(_recorded_mask(canvas, data_url)))
    return state, canvas, editor_value(canvas), mask_preview(canvas)


def set_brush_size(size: float) -> Any:
    """Clamp a brush size and apply it to the editor's brush and eraser."""
    size = clamp_brush_size(size)
    return gr.update(
        brush=gr.Brush(default_size=size, colors=[BRUSH_HEX], color_mode="fixed"),
        eraser=gr.Eraser(default_size=size),
    )
