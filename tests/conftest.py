"""Shared pytest fixtures for SD Panel tests."""

import base64
import io
import json
import os
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Generator

import httpx
import pytest
from PIL import Image

# The module-level app in sdpanel.api.main is built at import time; keep the
# Gradio panel off it.  Tests that need the panel build it explicitly.
os.environ.setdefault("SDPANEL_ENABLE_UI", "false")

from sdpanel.core.config import SDPanelConfig  # noqa: E402
from sdpanel.core.sd_client import SDWebUIClient
from sdpanel.ui.models import UIState


def make_png_b64(size: tuple[int, int] = (8, 8), color=(200, 30, 30)) -> str:
    """Return a small solid-colour PNG as bare base64."""
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


class FakeSDWebUI:
    """Programmable stand-in for the Stable Diffusion WebUI HTTP API.

    Every request is recorded in ``requests``.  The probe answers
    ``probe_status`` (or raises ``probe_error``); generation answers
    ``generate_status`` with ``generate_body``.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.probe_status = 200
        self.probe_error: Exception | None = None
        self.generate_status = 200
        self.generate_body: object = {"images": [make_png_b64()], "info": '{"seed": 1234}'}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/sdapi/v1/progress":
            if self.probe_error is not None:
                raise self.probe_error
            return httpx.Response(self.probe_status, json={"progress": 0.0})
        if isinstance(self.generate_body, (dict, list)):
            return httpx.Response(self.generate_status, json=self.generate_body)
        return httpx.Response(self.generate_status, text=str(self.generate_body))

    @property
    def generate_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path != "/sdapi/v1/progress"]

    def last_payload(self) -> dict:
        return json.loads(self.generate_requests[-1].content)

    def client(self) -> SDWebUIClient:
        return SDWebUIClient("http://sd.test", transport=httpx.MockTransport(self.handler))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> SDPanelConfig:
    """Create a test configuration with temporary directories.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        SDPanelConfig instance for testing
    """
    return SDPanelConfig(
        sd_api_url="http://sd.test",
        uploads_dir=temp_dir / "uploads",
        generated_dir=temp_dir / "generated",
        enable_ui=False,
        _env_file=None,
    )


@pytest.fixture
def fake_sd() -> FakeSDWebUI:
    """A fake upstream that answers every call successfully."""
    return FakeSDWebUI()


@pytest.fixture
def png_b64() -> Callable[..., str]:
    """Factory for small base64 PNG payloads."""
    return make_png_b64


@pytest.fixture
def source_image() -> Image.Image:
    """A 64x48 dark blue RGBA source image for mask tests."""
    return Image.new("RGBA", (64, 48), (20, 40, 120, 255))


@pytest.fixture
def ui_state() -> UIState:
    """Create a UI state with a usable prompt.

    Returns:
        UIState instance
    """
    state = UIState()
    return UIState(parameters=state.parameters.model_copy(update={"prompt": "a red fox in snow"}))
