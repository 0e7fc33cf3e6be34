"""State transitions for the SD Panel control panel.

The control panel keeps one :class:`~sdpanel.ui.models.UIState` snapshot per
session.  Event handlers never edit it; they describe what happened as an
event and :func:`reduce` returns the next snapshot::

    state = reduce(state, ParameterChanged("steps", 40))
    state = reduce(state, GenerationStarted())
"""

import logging
from dataclasses import dataclass, replace
from typing import Any

from sdpanel.core.parameters import set_field

from .models import Mode, UIState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParameterChanged:
    name: str
    value: Any


@dataclass(frozen=True)
class ModeChanged:
    mode: Mode


@dataclass(frozen=True)
class ImageUploaded:
    """A new img2img source image (data URL).  Resets the mask."""

    data_url: str


@dataclass(frozen=True)
class ImageCleared:
    pass


@dataclass(frozen=True)
class MaskChanged:
    data_url: str | None


@dataclass(frozen=True)
class GenerationStarted:
    pass


@dataclass(frozen=True)
class GenerationSucceeded:
    image_url: str
    image_path: str | None = None


@dataclass(frozen=True)
class GenerationFailed:
    message: str


def reduce(state: UIState, event) -> UIState:
    """Return the snapshot that follows *state* after *event*.

    Args:
        state: Current snapshot (left untouched).
        event: One of the event classes in this module.

    Returns:
        The next snapshot.

    Raises:
        TypeError: For an unknown event type.
        KeyError, ValueError: From :func:`~sdpanel.core.parameters.set_field`
            for a bad parameter change.
    """
    if isinstance(event, ParameterChanged):
        return replace(state, parameters=set_field(state.parameters, event.name, event.value))

    if isinstance(event, ModeChanged):
        return replace(state, mode=event.mode)

    if isinstance(event, ImageUploaded):
        return replace(state, uploaded_image=event.data_url, mask_data_url=None)

    if isinstance(event, ImageCleared):
        return replace(state, uploaded_image=None, mask_data_url=None)

    if isinstance(event, MaskChanged):
        return replace(state, mask_data_url=event.data_url)

    if isinstance(event, GenerationStarted):
        return replace(state, status="generating", image_url=None, image_path=None, error=None)

    if isinstance(event, GenerationSucceeded):
        return replace(
            state,
            status="success",
            image_url=event.image_url,
            image_path=event.image_path,
            error=None,
        )

    if isinstance(event, GenerationFailed):
        logger.warning(f"Generation failed: {event.message}")
        return replace(state, status="failure", error=event.message)

    raise TypeError(f"Unknown UI event: {event!r}")
