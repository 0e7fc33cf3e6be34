"""Data models for the SD Panel control panel state."""

import logging
from dataclasses import dataclass, field
from typing import Literal

from sdpanel.core.parameters import GenerationParameters, default_parameters

logger = logging.getLogger(__name__)

Mode = Literal["txt2img", "img2img"]
Status = Literal["idle", "generating", "success", "failure"]


@dataclass(frozen=True)
class UIState:
    """Immutable snapshot of one browser session.

    Every change produces a new snapshot through
    :func:`sdpanel.ui.state.reduce`; nothing mutates a snapshot in place.

    ``success`` and ``failure`` are resting states like ``idle``: the
    generate button is enabled again and the snapshot holds the last image
    or error.

    Attributes
    ----------
    parameters : GenerationParameters
        Current form values
    mode : Mode
        Active tab, ``txt2img`` or ``img2img``
    status : Status
        Generation lifecycle state
    uploaded_image : str | None
        Source image for img2img as a data URL
    mask_data_url : str | None
        Last exported mask canvas as a data URL
    image_url : str | None
        Public URL of the last generated image
    image_path : str | None
        Server-side path of the last generated image
    error : str | None
        Display message for the last failure
    """

    parameters: GenerationParameters = field(default_factory=default_parameters)
    mode: Mode = "txt2img"
    status: Status = "idle"
    uploaded_image: str | None = None
    mask_data_url: str | None = None
    image_url: str | None = None
    image_path: str | None = None
    error: str | None = None

    @property
    def is_generating(self) -> bool:
        return self.status == "generating"

    @property
    def can_generate(self) -> bool:
        """Whether the generate button should be enabled."""
        return not self.is_generating and bool(self.parameters.prompt.strip())

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"UIState(mode={self.mode}, status={self.status}, "
            f"image={self.uploaded_image is not None}, mask={self.mask_data_url is not None})"
        )


# UI Constants
DEFAULT_PROMPT_PLACEHOLDER = (
    "Describe the image you want to generate... "
    "(e.g., 'a beautiful sunset over mountains, photorealistic')"
)

PROMPT_TIPS = """
**Tips:**
- Use descriptive language for better results
- Add style modifiers like "photorealistic", "artistic", "detailed"
- Try danbooru tags for specific styles
"""

RECOMMENDED_SETTINGS = """
**Recommended Settings**
- Sampler: DPM++ 2M SDE or DPM++ 3M SDE
- Scheduler: Exponential or Karras
- Steps: 30
- CFG: 2.5-4.5
- Highres fix: 1.4-1.5 upscale, ~0.4 denoising
"""
