"""HTTP client for the Stable Diffusion WebUI API.

:class:`SDWebUIClient` wraps one ``httpx.AsyncClient`` pointed at the
upstream base URL and exposes the two calls the proxy needs:

- :meth:`SDWebUIClient.is_available` probes ``GET /sdapi/v1/progress`` with
  a short timeout and never raises for transport problems.
- :meth:`SDWebUIClient.generate` posts a payload to txt2img or img2img with
  a long timeout and translates structured upstream errors into
  :mod:`sdpanel.core.errors` exceptions.

There are no retries.  A failed call is reported to the caller as-is.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from sdpanel.core.errors import NaNPrecisionError, SDPanelError, UpstreamError
from sdpanel.core.payload import PROGRESS_ENDPOINT

logger = logging.getLogger(__name__)

NANS_EXCEPTION = "NansException"


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def translate_upstream_error(exc: httpx.HTTPStatusError) -> SDPanelError | None:
    """Map an upstream error response onto a proxy exception.

    Args:
        exc: The status error raised for a non-2xx upstream response.

    Returns:
        :class:`NaNPrecisionError` when the body's ``error`` is
        ``NansException``, :class:`UpstreamError` for any other ``error``
        value, or ``None`` when the body carries no structured error.
    """
    body = _error_body(exc.response)
    if not isinstance(body, dict) or not body.get("error"):
        return None

    if body["error"] == NANS_EXCEPTION:
        return NaNPrecisionError(details=body)
    return UpstreamError(str(body["error"]), details=body)


class SDWebUIClient:
    """Async client for one Stable Diffusion WebUI instance.

    Args:
        base_url: Upstream base URL, e.g. ``http://localhost:7860``.
        probe_timeout: Seconds allowed for the liveness probe.
        api_timeout: Seconds allowed for a generation call.
        transport: Optional ``httpx`` transport (tests use
            ``httpx.MockTransport``).
    """

    def __init__(
        self,
        base_url: str,
        *,
        probe_timeout: float = 5.0,
        api_timeout: float = 300.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.probe_timeout = probe_timeout
        self.api_timeout = api_timeout
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def is_available(self) -> bool:
        """Return True if the upstream progress endpoint answers 200."""
        try:
            response = await self._client.get(PROGRESS_ENDPOINT, timeout=self.probe_timeout)
        except httpx.HTTPError as e:
            logger.warning(f"Stable Diffusion WebUI not available: {e!r}")
            return False

        if response.status_code != 200:
            logger.warning(
                f"Stable Diffusion WebUI probe returned HTTP {response.status_code}"
            )
            return False
        return True

    async def generate(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Post *payload* to *endpoint* and return the decoded JSON response.

        Args:
            endpoint: ``/sdapi/v1/txt2img`` or ``/sdapi/v1/img2img``.
            payload: Request body built by
                :func:`sdpanel.core.payload.build_upstream_payload`.

        Returns:
            The upstream response, normally ``{"images": [...], "info": ...}``.

        Raises:
            NaNPrecisionError: Upstream reported ``NansException``.
            UpstreamError: Upstream reported another structured error.
            httpx.HTTPError: Transport failures, timeouts, and error
                responses without a structured body.
        """
        response = await self._client.post(endpoint, json=payload, timeout=self.api_timeout)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            translated = translate_upstream_error(e)
            if translated is None:
                raise
            raise translated from e
        return response.json()

    async def aclose(self) -> None:
        """Close the underlying connection pool."""
        await self._client.aclose()

    async def __aenter__(self) -> SDWebUIClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
