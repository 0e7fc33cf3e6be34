"""SD Panel - FastAPI Application.

This module is the single entry point for the web application.  It builds
the FastAPI ``app`` instance, registers the REST API routes, mounts the
generated-image directory and the Gradio control panel, and provides the
``main()`` CLI function that launches the uvicorn server.

Architecture
------------
The backend is a thin, stateless proxy in front of a Stable Diffusion
WebUI instance:

- **Configuration** comes from :data:`sdpanel.core.config.config`
  (``SDPANEL_*`` environment variables).
- **Generation** is delegated to :class:`~sdpanel.core.generation.GenerationProxy`,
  created in the lifespan handler and stored on ``app.state``.
- **Generated images** are plain PNG files served by ``StaticFiles``.
- **The control panel** is a Gradio Blocks app mounted at ``/``.

Endpoints
---------
========  ============================  ====================================
Method    Path                          Purpose
========  ============================  ====================================
POST      ``/api/generate``             Generate one image upstream
GET       ``/api/health``               Upstream availability
GET       ``/api/options``              Form fields, bounds and options
GET       ``/generated/{filename}``     Previously generated images
GET       ``/``                         Gradio control panel
========  ============================  ====================================

Usage
-----
CLI (installed entry point)::

    sdpanel

Direct invocation::

    python -m sdpanel.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import httpx
from fastapi import APIRouter, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from sdpanel import __version__
from sdpanel.api.models import ErrorResponse, GenerateRequest, GenerateResponse, HealthResponse
from sdpanel.core.config import SDPanelConfig, config
from sdpanel.core.errors import SDPanelError
from sdpanel.core.generation import GenerationProxy
from sdpanel.core.image_store import ImageStore
from sdpanel.core.parameters import PARAMETER_FIELDS, default_parameters
from sdpanel.core.payload import normalize_parameters
from sdpanel.core.sd_client import SDWebUIClient

logger = logging.getLogger(__name__)

router = APIRouter()


def _error_details(error: Exception):
    """Return the raw details blob sent alongside an error message."""
    if isinstance(error, SDPanelError):
        return error.details
    if isinstance(error, httpx.HTTPStatusError):
        try:
            return error.response.json()
        except ValueError:
            return error.response.text
    return repr(error)


def _iso_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


async def _invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies in the same envelope as other errors."""
    logger.warning(f"Rejected malformed request to {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=400,
        content={"error": "Invalid request body", "details": jsonable_encoder(exc.errors())},
    )


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@router.post(
    "/api/generate",
    response_model=GenerateResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def generate_image(request: Request, req: GenerateRequest | None = None):
    """Generate one image through Stable Diffusion WebUI.

    This endpoint:

    1. Rejects a missing or blank prompt with 400.
    2. Resolves server-side defaults for every optional field.
    3. Delegates to :class:`GenerationProxy` (probe, upstream call, persist).
    4. Maps every failure to 500 ``{error, details}``.

    Args:
        request: Current request (for ``app.state``).
        req: Parsed request body; an empty or ``null`` body is treated as
            ``{}``.

    Returns:
        The success envelope, or a ``JSONResponse`` carrying the error.
    """
    req = req or GenerateRequest()
    if not req.prompt or not req.prompt.strip():
        return JSONResponse(status_code=400, content={"error": "Prompt is required"})

    params = normalize_parameters(req.model_dump())
    logger.info(
        f"Generating image: prompt={params.prompt!r} steps={params.steps} "
        f"sampler={params.sampler!r} size={params.width}x{params.height} "
        f"img2img={params.is_img2img} mask={params.mask is not None}"
    )

    proxy: GenerationProxy = request.app.state.proxy
    try:
        return await proxy.generate(params)
    except Exception as e:
        logger.error(f"Generation error: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": str(e) or "Failed to generate image",
                "details": _error_details(e),
            },
        )


@router.get("/api/health", response_model=HealthResponse)
async def health(request: Request):
    """Report whether the upstream service answers its liveness probe.

    The probe's own failures are folded into ``sd_webui_available: false``.
    Only an unexpected exception from the probe call yields a 500.
    """
    client: SDWebUIClient = request.app.state.sd_client
    try:
        available = await client.is_available()
    except Exception as e:
        logger.error(f"Health check failed: {e}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"status": "error", "error": str(e), "sd_webui_available": False},
        )

    return {"status": "ok", "sd_webui_available": available, "timestamp": _iso_timestamp()}


@router.get("/api/options")
async def get_options() -> dict:
    """Return the parameter form definition for non-Gradio clients.

    Returns:
        Dictionary with ``version``, ``defaults`` (the form's starting
        record) and ``fields`` (bounds or options per field).
    """
    fields = {}
    for name, field in PARAMETER_FIELDS.items():
        entry = {"label": field.label, "section": field.section, "default": field.default}
        if field.choices:
            entry["options"] = [{"label": label, "value": value} for label, value in field.choices]
        else:
            entry.update(minimum=field.minimum, maximum=field.maximum, step=field.step)
        fields[name] = entry

    return {
        "version": __version__,
        "defaults": default_parameters().model_dump(),
        "fields": fields,
    }


# ---------------------------------------------------------------------------
# Application factory.
# ---------------------------------------------------------------------------


def create_app(
    settings: SDPanelConfig | None = None,
    *,
    sd_client: SDWebUIClient | None = None,
    enable_ui: bool | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        settings: Configuration to use (defaults to the global ``config``).
        sd_client: Upstream client to use instead of one built from
            *settings* (tests pass a client on a mock transport).
        enable_ui: Override ``settings.enable_ui``.

    Returns:
        The configured application.
    """
    settings = settings or config
    if enable_ui is None:
        enable_ui = settings.enable_ui

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Create the upstream client and proxy; close the client on shutdown."""
        client = sd_client or SDWebUIClient(
            settings.sd_api_url,
            probe_timeout=settings.sd_probe_timeout,
            api_timeout=settings.sd_api_timeout,
        )
        app.state.sd_client = client
        app.state.proxy = GenerationProxy(
            client,
            ImageStore(settings.generated_dir, settings.generated_url_prefix),
            default_negative_prompt=settings.default_negative_prompt,
        )
        logger.info(f"Proxying Stable Diffusion WebUI at {client.base_url}")

        yield

        await client.aclose()
        logger.info("Stable Diffusion WebUI client closed.")

    app = FastAPI(
        title="SD Panel",
        description="Control panel and proxy for Stable Diffusion WebUI.",
        version=__version__,
        lifespan=lifespan,
    )

    # The control panel may be served from a different origin during
    # development.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, _invalid_request)
    app.include_router(router)
    app.mount(
        settings.generated_url_prefix,
        StaticFiles(directory=str(settings.generated_dir)),
        name="generated",
    )

    if enable_ui:
        import gradio as gr

        from sdpanel.ui.app import create_ui

        app = gr.mount_gradio_app(app, create_ui(settings), path="/")

    return app


app = create_app()


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host and port from :data:`~sdpanel.core.config.config` (which
    loads from ``SDPANEL_SERVER_HOST`` and ``SDPANEL_SERVER_PORT``
    environment variables).  Defaults to ``0.0.0.0:3000``.

    This function is registered as the ``sdpanel`` console script in
    ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.info(f"Server running on http://{config.server_host}:{config.server_port}")
    logger.info(f"Health check: {config.resolved_api_base_url}/api/health")
    logger.info(f"Upstream: {config.sd_api_url}")

    uvicorn.run(
        "sdpanel.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
