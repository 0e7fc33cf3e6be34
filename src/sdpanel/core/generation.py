"""Generation proxy: one browser request, one upstream generation.

:class:`GenerationProxy` runs the whole backend flow for ``POST
/api/generate`` once the request has been normalized:

1. Probe the upstream service; fail fast with
   :class:`~sdpanel.core.errors.SDWebUIUnavailableError` if it is down.
2. Pick txt2img or img2img and build the upstream payload.
3. Post it and wait (possibly minutes) for the single response.
4. Decode the first returned image, write it to the image store, and
   return the success envelope.

Nothing is retried and nothing is cancelled.  Concurrent calls share no
state other than the output directory.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from sdpanel.core.config import DEFAULT_NEGATIVE_PROMPT
from sdpanel.core.errors import NoImageGeneratedError, SDWebUIUnavailableError
from sdpanel.core.image_store import ImageStore
from sdpanel.core.parameters import GenerationParameters
from sdpanel.core.payload import build_upstream_payload, select_endpoint, summarize_payload
from sdpanel.core.sd_client import SDWebUIClient

logger = logging.getLogger(__name__)

# Excluded from the parameters echoed back to the browser.
_ECHO_EXCLUDE = {"init_images", "mask"}


class GenerationProxy:
    """Forwards normalized generation requests to Stable Diffusion WebUI.

    Args:
        client: Upstream API client.
        store: Where generated images are written.
        default_negative_prompt: Negative prompt used when none was given.
    """

    def __init__(
        self,
        client: SDWebUIClient,
        store: ImageStore,
        *,
        default_negative_prompt: str = DEFAULT_NEGATIVE_PROMPT,
    ):
        self.client = client
        self.store = store
        self.default_negative_prompt = default_negative_prompt

    async def generate(self, params: GenerationParameters) -> dict[str, Any]:
        """Generate one image and return the normalized success envelope.

        Args:
            params: Normalized parameters with a non-blank prompt.

        Returns:
            ``{success, imageUrl, imagePath, prompt, parameters, info}``.

        Raises:
            SDWebUIUnavailableError: The liveness probe failed.
            NoImageGeneratedError: The upstream response held no image.
            NaNPrecisionError: Upstream reported a NaN failure.
            UpstreamError: Upstream reported another error.
            httpx.HTTPError: Transport-level failure.
        """
        if not await self.client.is_available():
            raise SDWebUIUnavailableError()

        endpoint = select_endpoint(params)
        mode = "img2img" if params.is_img2img else "txt2img"
        payload = build_upstream_payload(
            params, default_negative_prompt=self.default_negative_prompt
        )
        logger.info(f"Sending {mode} request to Stable Diffusion WebUI: {summarize_payload(payload)}")

        try:
            data = await self.client.generate(endpoint, payload)
        except Exception as e:
            logger.error(f"Error generating image: {e}", exc_info=True)
            raise

        images = data.get("images") if isinstance(data, dict) else None
        if not images:
            logger.error("Stable Diffusion WebUI response contained no images")
            raise NoImageGeneratedError(details=data)

        # Disk write runs off the event loop.
        stored = await asyncio.to_thread(self.store.save_base64_png, images[0])
        logger.info(f"{mode} generation complete: {stored.url}")

        return {
            "success": True,
            "imageUrl": stored.url,
            "imagePath": str(stored.path),
            "prompt": params.prompt,
            "parameters": params.model_dump(exclude=_ECHO_EXCLUDE),
            "info": data.get("info") or {},
        }
