"""Client-side generation flow for the control panel.

:class:`GenerationOrchestrator` turns a :class:`~sdpanel.ui.models.UIState`
snapshot into a ``POST /api/generate`` request against the SD Panel backend
and turns the reply back into the next snapshot.  It never talks to Stable
Diffusion WebUI directly.

Flow
----
1. :meth:`~GenerationOrchestrator.build_request` validates the prompt and
   assembles the JSON body.  A blank prompt raises
   :class:`~sdpanel.ui.validation.ValidationError` and nothing is sent.
2. The snapshot moves to ``generating``.
3. :meth:`~GenerationOrchestrator.submit` posts the body and waits with no
   client-side timeout.
4. The reply becomes ``success`` (image URL) or ``failure`` (display
   message, see :func:`format_error_message`).
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from sdpanel.core.errors import NAN_ERROR_MARKER
from sdpanel.core.image_store import strip_data_url_prefix

from .models import UIState
from .state import GenerationFailed, GenerationStarted, GenerationSucceeded, reduce
from .validation import validate_prompt

logger = logging.getLogger(__name__)

GENERATE_PATH = "/api/generate"
HEALTH_PATH = "/api/health"


def format_error_message(message: str) -> str:
    """Turn a backend error message into the text shown to the user.

    NaN errors are reformatted as the title followed by a bulleted list of
    solutions; any other message is prefixed with
    ``"Error generating image: "``.

    Args:
        message: The ``error`` string from the backend response

    Returns:
        Display text
    """
    if NAN_ERROR_MARKER not in message:
        return f"Error generating image: {message}"

    lines = [line.strip() for line in message.splitlines() if line.strip()]
    title, steps = lines[0], lines[1:]
    bullets = []
    for step in steps:
        number, dot, rest = step.partition(". ")
        bullets.append(f"• {rest}" if dot and number.isdigit() else f"• {step}")
    return title + "\n\nSolutions:\n" + "\n".join(bullets)


class GenerationOrchestrator:
    """Submits generation requests to the SD Panel backend.

    Args:
        api_base_url: Base URL of the SD Panel backend
            (e.g. ``http://127.0.0.1:3000``).
        transport: Optional httpx transport (tests use
            ``httpx.MockTransport``).
    """

    def __init__(self, api_base_url: str, *, transport: httpx.BaseTransport | None = None):
        self.api_base_url = api_base_url.rstrip("/")
        self._transport = transport

    def _client(self) -> httpx.Client:
        """Open a client for one exchange; callers close it with ``with``."""
        # A generation may run for minutes; the backend enforces its own limit.
        return httpx.Client(base_url=self.api_base_url, timeout=None, transport=self._transport)

    def absolute_image_url(self, image_url: str) -> str:
        """Resolve a backend-relative image URL against the backend base URL."""
        if image_url.startswith(("http://", "https://")):
            return image_url
        return f"{self.api_base_url}/{image_url.lstrip('/')}"

    def build_request(self, state: UIState) -> dict[str, Any]:
        """Assemble the ``POST /api/generate`` body for *state*.

        The prompt is trimmed.  Source image and mask are attached only in
        ``img2img`` mode with an uploaded image; their data-URL prefixes are
        stripped so the backend receives bare base64.

        Raises:
            ValidationError: If the prompt is blank.
        """
        prompt = validate_prompt(state.parameters.prompt)

        payload = state.parameters.model_dump(exclude={"init_images", "mask"}, exclude_none=True)
        payload["prompt"] = prompt

        if state.mode == "img2img" and state.uploaded_image:
            payload["init_images"] = [strip_data_url_prefix(state.uploaded_image)]
            if state.mask_data_url:
                payload["mask"] = strip_data_url_prefix(state.mask_data_url)

        return payload

    def submit(self, state: UIState, payload: dict[str, Any]) -> UIState:
        """Post *payload* and return the resolved snapshot.

        Never raises for request failures; every failure becomes a
        ``failure`` snapshot carrying a display message.
        """
        try:
            with self._client() as client:
                response = client.post(GENERATE_PATH, json=payload)
        except httpx.TransportError as e:
            logger.error(f"Network error calling {GENERATE_PATH}: {e}")
            return reduce(state, GenerationFailed(f"Network error: {e}"))

        try:
            body = response.json()
        except ValueError:
            logger.error(f"Non-JSON response ({response.status_code}) from {GENERATE_PATH}")
            return reduce(
                state,
                GenerationFailed(
                    format_error_message(f"Unexpected response (HTTP {response.status_code})")
                ),
            )

        if response.is_success and body.get("success"):
            logger.info(f"Generated image: {body.get('imageUrl')}")
            return reduce(
                state,
                GenerationSucceeded(body["imageUrl"], body.get("imagePath")),
            )

        message = body.get("error") or "Failed to generate image"
        return reduce(state, GenerationFailed(format_error_message(message)))

    def generate(self, state: UIState) -> UIState:
        """Run a whole generation and return the final snapshot.

        Raises:
            ValidationError: If the prompt is blank (no request is made).
        """
        payload = self.build_request(state)
        state = reduce(state, GenerationStarted())
        return self.submit(state, payload)

    def check_health(self) -> dict[str, Any]:
        """Return the backend health body, or an error body if unreachable."""
        try:
            with self._client() as client:
                response = client.get(HEALTH_PATH, timeout=10.0)
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Health check against {self.api_base_url} failed: {e}")
            return {"status": "error", "error": str(e), "sd_webui_available": False}
