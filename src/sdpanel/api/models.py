"""Pydantic request and response models for the SD Panel API.

These models define the JSON schema for every API endpoint.  FastAPI uses
them for request parsing, serialisation, and OpenAPI documentation.

Models
------
GenerateRequest
    Payload for ``POST /api/generate``.  Every field is optional at the
    schema level so that a missing prompt yields the documented 400 rather
    than a 422, and so that falsy values can be defaulted server-side.
    Whole-number fields round fractional values down.
GenerateResponse
    Success envelope for ``POST /api/generate``.
ErrorResponse
    Failure envelope for ``POST /api/generate``.
HealthResponse
    Body of ``GET /api/health``.
"""

from __future__ import annotations

import math
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _floor_fraction(value: Any) -> Any:
    """Round finite floats down so fractional counts reach the upstream as ints."""
    if isinstance(value, float) and math.isfinite(value):
        return math.floor(value)
    return value


# Whole-number field; fractional input such as 30.5 is floored.
FlooredInt = Annotated[int, BeforeValidator(_floor_fraction)]


class GenerateRequest(BaseModel):
    """Request body for the ``POST /api/generate`` endpoint.

    Mirrors :class:`sdpanel.core.parameters.GenerationParameters`, but with
    every field optional.  Missing, ``null`` and falsy values are replaced
    by :class:`sdpanel.core.payload.GenerationDefaults`; ranges are not
    re-validated here.  Unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    prompt: str | None = Field(default=None, description="Text prompt (required, non-blank).")
    negative_prompt: str | None = Field(default=None, description="What to avoid.")
    steps: FlooredInt | None = Field(default=None, description="Sampling steps (default 35).")
    cfg_scale: float | None = Field(default=None, description="CFG scale (default 4.0).")
    sampler: str | None = Field(default=None, description="Sampler name (default 'DPM++ 2M').")
    scheduler: str | None = Field(default=None, description="Scheduler name (default 'BETA').")
    width: FlooredInt | None = Field(default=None, description="Width in pixels (default 512).")
    height: FlooredInt | None = Field(default=None, description="Height in pixels (default 512).")
    seed: FlooredInt | None = Field(default=None, description="Seed; null for random.")
    subseed: FlooredInt | None = None
    subseed_strength: float | None = None
    seed_resize_from_h: FlooredInt | None = None
    seed_resize_from_w: FlooredInt | None = None
    batch_size: FlooredInt | None = None
    n_iter: FlooredInt | None = None
    restore_faces: bool | None = None
    tiling: bool | None = None
    enable_hr: bool | None = None
    hr_scale: float | None = None
    hr_upscaler: str | None = None
    hr_second_pass_steps: FlooredInt | None = Field(
        default=None, description="0 or null: half of steps."
    )
    hr_resize_x: FlooredInt | None = Field(
        default=None, description="0 or null: width * hr_scale."
    )
    hr_resize_y: FlooredInt | None = Field(
        default=None, description="0 or null: height * hr_scale."
    )
    denoising_strength: float | None = None
    eta: float | None = None
    s_churn: float | None = None
    s_tmax: float | None = None
    s_tmin: float | None = None
    s_noise: float | None = None
    override_settings: dict[str, Any] | None = None
    override_settings_restore_afterwards: bool | None = None
    script_args: list[Any] | None = None
    alwayson_scripts: dict[str, Any] | None = None
    init_images: list[str] | None = Field(
        default=None, description="Base64 source images; non-empty selects img2img."
    )
    mask: str | None = Field(default=None, description="Base64 inpainting mask.")
    mask_blur: FlooredInt | None = None
    inpainting_fill: FlooredInt | None = None
    inpaint_full_res: bool | None = None
    inpaint_full_res_padding: FlooredInt | None = None
    inpainting_mask_invert: FlooredInt | None = None


class GenerateResponse(BaseModel):
    """Success envelope returned by ``POST /api/generate``."""

    success: bool = True
    imageUrl: str
    imagePath: str
    prompt: str
    parameters: dict[str, Any]
    info: Any = None


class ErrorResponse(BaseModel):
    """Failure envelope returned by ``POST /api/generate``."""

    error: str
    details: Any = None


class HealthResponse(BaseModel):
    """Body of ``GET /api/health``."""

    status: str
    sd_webui_available: bool
    timestamp: str | None = None
    error: str | None = None
