"""UI event handlers organized by feature area.

- generation: Generation requests, parameter changes and tab mode
- mask: Source image upload and inpainting mask editing
"""

from .generation import (
    check_backend,
    generate_image,
    set_mode,
    update_parameter,
)
from .mask import (
    apply_editor_layers,
    clear_mask,
    set_brush_size,
    upload_mask_file,
    upload_source_image,
)

__all__ = [
    # Generation handlers
    "check_backend",
    "generate_image",
    "set_mode",
    "update_parameter",
    # Mask handlers
    "apply_editor_layers",
    "clear_mask",
    "set_brush_size",
    "upload_mask_file",
    "upload_source_image",
]
