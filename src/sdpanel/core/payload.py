"""Request normalization and upstream payload mapping.

Two steps turn a browser request into a Stable Diffusion WebUI call:

1. :func:`normalize_parameters` resolves every optional field exactly once
   against :class:`GenerationDefaults`.  A field that is missing, ``None``
   or falsy (``0``, ``""``, ``False``) takes its declared default, which
   mirrors how form values arrive from the browser.  Seeds are the
   exception: ``0`` is a real seed, so only ``None`` is replaced.
2. :func:`build_upstream_payload` renames and restructures the normalized
   record into the shape ``/sdapi/v1/txt2img`` and ``/sdapi/v1/img2img``
   expect, and computes the derived high-res-fix values.

:func:`select_endpoint` picks img2img when ``init_images`` is a non-empty
list and txt2img otherwise.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

from sdpanel.core.config import DEFAULT_NEGATIVE_PROMPT
from sdpanel.core.parameters import GenerationParameters

logger = logging.getLogger(__name__)

TXT2IMG_ENDPOINT = "/sdapi/v1/txt2img"
IMG2IMG_ENDPOINT = "/sdapi/v1/img2img"
PROGRESS_ENDPOINT = "/sdapi/v1/progress"

# Fields whose value is forwarded untouched when present.
_PASSTHROUGH_FIELDS = (
    "override_settings",
    "script_args",
    "alwayson_scripts",
    "init_images",
    "mask",
)

# Seeds: only None means "unset".
_NONE_DEFAULTED_FIELDS = ("seed", "subseed")


@dataclass(frozen=True)
class GenerationDefaults:
    """Server-side default for every optional generation field."""

    negative_prompt: str = ""
    steps: int = 35
    cfg_scale: float = 4.0
    sampler: str = "DPM++ 2M"
    scheduler: str = "BETA"
    width: int = 512
    height: int = 512
    seed: int = -1
    subseed: int = -1
    subseed_strength: float = 0.0
    seed_resize_from_h: int = 0
    seed_resize_from_w: int = 0
    batch_size: int = 1
    n_iter: int = 1
    restore_faces: bool = False
    tiling: bool = False
    enable_hr: bool = False
    hr_scale: float = 1.0
    hr_upscaler: str = "Latent"
    hr_second_pass_steps: int = 0
    hr_resize_x: int = 0
    hr_resize_y: int = 0
    denoising_strength: float = 0.4
    eta: float = 0.0
    s_churn: float = 0.0
    s_tmax: float = 0.0
    s_tmin: float = 0.0
    s_noise: float = 0.0
    override_settings_restore_afterwards: bool = False
    mask_blur: int = 4
    inpainting_fill: int = 0
    inpaint_full_res: bool = False
    inpaint_full_res_padding: int = 0
    inpainting_mask_invert: int = 0


DEFAULTS = GenerationDefaults()


def normalize_parameters(
    raw: Mapping[str, Any], defaults: GenerationDefaults = DEFAULTS
) -> GenerationParameters:
    """Resolve a raw request body into a complete parameter record.

    Args:
        raw: Request fields, typically ``GenerateRequest.model_dump()``.
            Unknown keys are ignored.
        defaults: Default values to apply.

    Returns:
        A :class:`GenerationParameters` with every field populated.  The
        prompt is trimmed; it is the caller's job to reject a blank one.
    """
    resolved: dict[str, Any] = {"prompt": (raw.get("prompt") or "").strip()}

    for name, default in asdict(defaults).items():
        value = raw.get(name)
        if name in _NONE_DEFAULTED_FIELDS:
            resolved[name] = default if value is None else value
        else:
            resolved[name] = value or default

    for name in _PASSTHROUGH_FIELDS:
        resolved[name] = raw.get(name)

    return GenerationParameters(**resolved)


def select_endpoint(params: GenerationParameters) -> str:
    """Return the upstream endpoint path for *params*."""
    return IMG2IMG_ENDPOINT if params.is_img2img else TXT2IMG_ENDPOINT


def derive_hr_values(params: GenerationParameters) -> tuple[int, int, int]:
    """Compute ``(hr_second_pass_steps, hr_resize_x, hr_resize_y)``.

    Each value the caller left at 0 is derived: second-pass steps are half
    of ``steps`` rounded down, the resize targets are ``width``/``height``
    times ``hr_scale`` rounded down.
    """
    hr_scale = params.hr_scale or 1.0
    second_pass_steps = params.hr_second_pass_steps or math.floor(params.steps * 0.5)
    resize_x = params.hr_resize_x or math.floor(params.width * hr_scale)
    resize_y = params.hr_resize_y or math.floor(params.height * hr_scale)
    return second_pass_steps, resize_x, resize_y


def build_upstream_payload(
    params: GenerationParameters,
    *,
    default_negative_prompt: str = DEFAULT_NEGATIVE_PROMPT,
) -> dict[str, Any]:
    """Map a normalized record onto the Stable Diffusion WebUI request body.

    ``sampler`` becomes ``sampler_name``, a blank negative prompt becomes
    *default_negative_prompt*, and the high-res values are derived.  In
    img2img mode ``init_images`` is included, and when a mask is present
    the inpainting fields are added.  Keys whose value is ``None`` are
    dropped so the upstream service applies its own defaults.

    Args:
        params: Normalized parameters (see :func:`normalize_parameters`).
        default_negative_prompt: Substitute for a blank negative prompt.

    Returns:
        JSON-serialisable payload dictionary.
    """
    hr_second_pass_steps, hr_resize_x, hr_resize_y = derive_hr_values(params)

    payload: dict[str, Any] = {
        "prompt": params.prompt,
        "negative_prompt": params.negative_prompt or default_negative_prompt,
        "steps": params.steps,
        "cfg_scale": params.cfg_scale,
        "width": params.width,
        "height": params.height,
        "sampler_name": params.sampler,
        "scheduler": params.scheduler,
        "restore_faces": params.restore_faces,
        "tiling": params.tiling,
        "enable_hr": params.enable_hr,
        "hr_scale": params.hr_scale or 1.0,
        "hr_upscaler": params.hr_upscaler or "Latent",
        "hr_second_pass_steps": hr_second_pass_steps,
        "hr_resize_x": hr_resize_x,
        "hr_resize_y": hr_resize_y,
        "denoising_strength": params.denoising_strength or 0.4,
        "seed": params.seed,
        "subseed": params.subseed,
        "subseed_strength": params.subseed_strength,
        "seed_resize_from_h": params.seed_resize_from_h,
        "seed_resize_from_w": params.seed_resize_from_w,
        "batch_size": params.batch_size or 1,
        "n_iter": params.n_iter or 1,
        "eta": params.eta,
        "s_churn": params.s_churn,
        "s_tmax": params.s_tmax,
        "s_tmin": params.s_tmin,
        "s_noise": params.s_noise,
        "override_settings": params.override_settings,
        "override_settings_restore_afterwards": params.override_settings_restore_afterwards,
        "script_args": params.script_args,
        "alwayson_scripts": params.alwayson_scripts,
    }

    if params.is_img2img:
        payload["init_images"] = list(params.init_images)
        if params.mask:
            payload["mask"] = params.mask
            payload["mask_blur"] = params.mask_blur or 4
            payload["inpainting_fill"] = params.inpainting_fill
            payload["inpaint_full_res"] = params.inpaint_full_res
            payload["inpaint_full_res_padding"] = params.inpaint_full_res_padding
            payload["inpainting_mask_invert"] = params.inpainting_mask_invert

    return {key: value for key, value in payload.items() if value is not None}


def summarize_payload(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *payload* safe to log, with image data replaced by sizes."""
    summary = dict(payload)
    if "init_images" in summary:
        summary["init_images"] = [f"<{len(img)} b64 chars>" for img in summary["init_images"]]
    if "mask" in summary:
        summary["mask"] = f"<{len(summary['mask'])} b64 chars>"
    return summary
