"""Generation, parameter and mode handlers."""

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import gradio as gr
from PIL import Image

from ..models import Mode, UIState
from ..orchestrator import GenerationOrchestrator
from ..state import GenerationStarted, ModeChanged, ParameterChanged, reduce
from ..validation import ValidationError

logger = logging.getLogger(__name__)

GENERATE_LABEL = "Generate Image"
GENERATING_LABEL = "Generating..."


def update_parameter(name: str, value: Any, state: UIState) -> UIState:
    """Apply one form control change to the session state.

    Args:
        name: Parameter field name (bound per control)
        value: New control value
        state: UI state

    Returns:
        Updated state (unchanged if the value is rejected)
    """
    try:
        return reduce(state, ParameterChanged(name, value))
    except (KeyError, ValueError) as e:
        logger.warning(f"Ignoring invalid value for {name}: {e}")
        return state


def set_mode(mode: Mode, state: UIState) -> UIState:
    """Record which tab (txt2img or img2img) is active."""
    return reduce(state, ModeChanged(mode))


def result_image(state: UIState, orchestrator: GenerationOrchestrator):
    """Return the value for the output image component.

    The backend runs in the same process, so the generated file is read
    from disk when its path is visible; otherwise the public URL is used.
    """
    if state.image_path and Path(state.image_path).is_file():
        with Image.open(state.image_path) as image:
            image.load()
            return image.copy()
    if state.image_url:
        return orchestrator.absolute_image_url(state.image_url)
    return None


def status_markdown(state: UIState) -> str:
    """Render the status line for a snapshot."""
    if state.status == "generating":
        return "*Generating image...*"
    if state.status == "failure":
        return f"❌ {state.error}"
    if state.status == "success":
        return f"✅ Image saved: `{state.image_url}`"
    return "*Ready to generate images*"


def generate_image(
    orchestrator: GenerationOrchestrator, state: UIState
) -> Iterator[tuple[UIState, Any, str, Any]]:
    """Run a generation, streaming the in-progress state first.

    The generate button is disabled for as long as the request is in
    flight.  A blank prompt shows a warning and sends nothing.

    Args:
        orchestrator: Backend client (bound when the UI is built)
        state: UI state

    Yields:
        Tuples of (state, output_image, status_text, button_update)
    """
    try:
        payload = orchestrator.build_request(state)
    except ValidationError as e:
        gr.Warning(str(e))
        yield state, gr.update(), status_markdown(state), gr.update(interactive=True)
        return

    state = reduce(state, GenerationStarted())
    yield (
        state,
        None,
        status_markdown(state),
        gr.update(interactive=False, value=GENERATING_LABEL),
    )

    state = orchestrator.submit(state, payload)
    yield (
        state,
        result_image(state, orchestrator),
        status_markdown(state),
        gr.update(interactive=True, value=GENERATE_LABEL),
    )


def check_backend(orchestrator: GenerationOrchestrator) -> str:
    """Describe upstream availability for the header."""
    health = orchestrator.check_health()
    if health.get("status") != "ok":
        return f"⚠️ SD Panel backend error: {health.get('error', 'unknown')}"
    if health.get("sd_webui_available"):
        return "✅ Stable Diffusion WebUI is available"
    return "⚠️ Stable Diffusion WebUI is not running. Please start it first."
