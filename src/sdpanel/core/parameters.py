"""Generation parameter record and parameter-form field definitions.

This module owns two things:

- :class:`GenerationParameters`, the flat, immutable record of every option
  the control panel can send to ``POST /api/generate``.
- :data:`PARAMETER_FIELDS`, one :class:`FormField` per numeric or enumerated
  field describing its default, bounds and option set.  The Gradio form is
  built from these, and :func:`set_field` clamps against them, so a value
  outside a field's range cannot be produced through the form.

The backend never re-validates the ranges declared here; it only fills in
defaults (see :mod:`sdpanel.core.payload`).

Usage
-----
::

    from sdpanel.core.parameters import default_parameters, set_field

    params = default_parameters()
    params = set_field(params, "prompt", "a red fox in snow")
    params = set_field(params, "steps", 500)   # clamped to 150
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

SAMPLER_OPTIONS: tuple[str, ...] = (
    "DPM++ 2M SDE",
    "DPM++ 3M SDE",
    "Euler",
    "Euler a",
    "LMS",
    "Heun",
    "DPM2",
    "DPM2 a",
    "DPM++ 2S a",
    "DPM++ 2M",
    "DPM++ SDE",
    "DPM fast",
    "DPM adaptive",
    "LMS Karras",
    "DPM2 Karras",
    "DPM2 a Karras",
    "DPM++ 2S a Karras",
    "DPM++ 2M Karras",
    "DPM++ SDE Karras",
    "DDIM",
    "PLMS",
)

SCHEDULER_OPTIONS: tuple[str, ...] = (
    "BETA",
    "Exponential",
    "Karras",
    "Linear",
    "Cosine",
    "Cosine with restart",
    "Polynomial",
    "Constant",
    "Constant with restart",
)

HR_UPSCALER_OPTIONS: tuple[str, ...] = (
    "Latent",
    "Latent (antialiased)",
    "Latent (bicubic)",
    "Latent (bicubic antialiased)",
    "Latent (nearest)",
    "Latent (nearest-exact)",
    "None",
    "Lanczos",
    "Nearest",
    "ESRGAN_4x",
    "R-ESRGAN 4x+",
    "R-ESRGAN 4x+ Anime6B",
    "SwinIR_4x",
)

# (label, value) pairs; the upstream API takes the integer.
INPAINTING_FILL_OPTIONS: tuple[tuple[str, int], ...] = (
    ("fill", 0),
    ("original", 1),
    ("latent noise", 2),
    ("latent nothing", 3),
)

MASK_INVERT_OPTIONS: tuple[tuple[str, int], ...] = (
    ("Inpaint masked", 0),
    ("Inpaint not masked", 1),
)

MAX_SEED = 2**32 - 1

Section = Literal["basic", "highres", "advanced", "inpainting"]


class GenerationParameters(BaseModel):
    """Every option the control panel can submit for one generation.

    The record is frozen; use :func:`set_field` or ``model_copy(update=...)``
    to derive a changed copy.  Field defaults here are the control panel's
    defaults.  Server-side defaults for fields a caller leaves empty live in
    :class:`sdpanel.core.payload.GenerationDefaults`.

    Attributes:
        prompt: Text describing the image.  Must be non-blank after trimming
            before it is submitted.
        negative_prompt: What to avoid.  Blank means the server default.
        steps: Number of sampling steps.
        cfg_scale: Classifier-free guidance scale.
        sampler: Sampler name (sent upstream as ``sampler_name``).
        scheduler: Noise scheduler name.
        width: Output width in pixels.
        height: Output height in pixels.
        seed: Seed, ``None`` for random.
        subseed: Variation seed, ``None`` for random.
        subseed_strength: Variation strength (0-1).
        seed_resize_from_h: Legacy seed-resize height.
        seed_resize_from_w: Legacy seed-resize width.
        batch_size: Images per batch.
        n_iter: Number of batches.
        restore_faces: Run face restoration.
        tiling: Produce a tileable image.
        enable_hr: Enable the two-pass high-res fix.
        hr_scale: High-res upscale factor.
        hr_upscaler: High-res upscaler name.
        hr_second_pass_steps: Second-pass steps, 0 to derive from ``steps``.
        hr_resize_x: High-res target width, 0 to derive from ``width``.
        hr_resize_y: High-res target height, 0 to derive from ``height``.
        denoising_strength: Denoising for img2img and the high-res pass.
        eta: Sampler eta.
        s_churn: Sampler churn.
        s_tmax: Sampler sigma max.
        s_tmin: Sampler sigma min.
        s_noise: Sampler noise multiplier.
        override_settings: Upstream setting overrides for this call.
        override_settings_restore_afterwards: Restore overrides afterwards.
        script_args: Arguments for an upstream script.
        alwayson_scripts: Always-on extension scripts.
        init_images: Base64 source images; non-empty selects img2img.
        mask: Base64 inpainting mask.
        mask_blur: Mask blur radius.
        inpainting_fill: Fill mode for masked content.
        inpaint_full_res: Inpaint the masked area at full resolution.
        inpaint_full_res_padding: Padding around the masked area.
        inpainting_mask_invert: 0 inpaints the masked area, 1 the rest.
    """

    model_config = ConfigDict(frozen=True)

    prompt: str = ""
    negative_prompt: str = ""
    steps: int = 35
    cfg_scale: float = 4.0
    sampler: str = "DPM++ 2M"
    scheduler: str = "BETA"
    width: int = 512
    height: int = 512

    # Seed family
    seed: int | None = None
    subseed: int | None = None
    subseed_strength: float = 0.0
    seed_resize_from_h: int = 0
    seed_resize_from_w: int = 0

    # Batch controls
    batch_size: int = 1
    n_iter: int = 1
    restore_faces: bool = False
    tiling: bool = False

    # High-res fix
    enable_hr: bool = False
    hr_scale: float = 1.0
    hr_upscaler: str = "Latent"
    hr_second_pass_steps: int = 0
    hr_resize_x: int = 0
    hr_resize_y: int = 0
    denoising_strength: float = 0.4

    # Advanced sampler settings
    eta: float = 0.0
    s_churn: float = 0.0
    s_tmax: float = 0.0
    s_tmin: float = 0.0
    s_noise: float = 0.0
    override_settings: dict[str, Any] | None = None
    override_settings_restore_afterwards: bool = False
    script_args: list[Any] | None = None
    alwayson_scripts: dict[str, Any] | None = None

    # img2img / inpainting
    init_images: list[str] | None = None
    mask: str | None = None
    mask_blur: int = 0
    inpainting_fill: int = 0
    inpaint_full_res: bool = False
    inpaint_full_res_padding: int = 0
    inpainting_mask_invert: int = 0

    @property
    def is_img2img(self) -> bool:
        """True when at least one source image is present."""
        return bool(self.init_images)


@dataclass(frozen=True)
class FormField:
    """Description of one parameter-form control.

    Numeric fields carry ``minimum``/``maximum``/``step``; enumerated fields
    carry ``choices`` as ``(label, value)`` pairs.
    """

    name: str
    label: str
    section: Section
    default: Any
    minimum: float | None = None
    maximum: float | None = None
    step: float | None = None
    choices: tuple[tuple[str, Any], ...] = ()
    info: str = ""

    @property
    def is_numeric(self) -> bool:
        return self.minimum is not None and self.maximum is not None

    @property
    def is_integer(self) -> bool:
        return self.is_numeric and float(self.step or 1).is_integer()

    def choice_values(self) -> tuple[Any, ...]:
        return tuple(value for _, value in self.choices)

    def clamp(self, value: float) -> float | int:
        """Clamp *value* into ``[minimum, maximum]``, as an int for integer fields."""
        clamped = min(max(value, self.minimum), self.maximum)
        if self.is_integer:
            return int(round(clamped))
        return float(clamped)


def _named(options: tuple[str, ...]) -> tuple[tuple[str, str], ...]:
    return tuple((option, option) for option in options)


_DEFAULTS = GenerationParameters()

PARAMETER_FIELDS: dict[str, FormField] = {
    field.name: field
    for field in (
        # Basic
        FormField("steps", "Steps", "basic", _DEFAULTS.steps, 1, 150, 1,
                  info="More steps add detail but take longer"),
        FormField("cfg_scale", "CFG Scale", "basic", _DEFAULTS.cfg_scale, 1, 30, 0.5,
                  info="Higher follows the prompt more closely"),
        FormField("sampler", "Sampler", "basic", _DEFAULTS.sampler,
                  choices=_named(SAMPLER_OPTIONS)),
        FormField("scheduler", "Scheduler", "basic", _DEFAULTS.scheduler,
                  choices=_named(SCHEDULER_OPTIONS)),
        FormField("width", "Width", "basic", _DEFAULTS.width, 64, 2048, 64),
        FormField("height", "Height", "basic", _DEFAULTS.height, 64, 2048, 64),
        FormField("batch_size", "Batch Size", "basic", _DEFAULTS.batch_size, 1, 8, 1),
        FormField("n_iter", "Batch Count", "basic", _DEFAULTS.n_iter, 1, 100, 1),
        # High-res fix
        FormField("hr_scale", "Upscale By", "highres", _DEFAULTS.hr_scale, 1, 4, 0.05),
        FormField("hr_upscaler", "Upscaler", "highres", _DEFAULTS.hr_upscaler,
                  choices=_named(HR_UPSCALER_OPTIONS)),
        FormField("hr_second_pass_steps", "Hires Steps", "highres",
                  _DEFAULTS.hr_second_pass_steps, 0, 150, 1,
                  info="0 uses half of the sampling steps"),
        FormField("hr_resize_x", "Resize Width To", "highres", _DEFAULTS.hr_resize_x,
                  0, 4096, 8, info="0 scales the width by the upscale factor"),
        FormField("hr_resize_y", "Resize Height To", "highres", _DEFAULTS.hr_resize_y,
                  0, 4096, 8, info="0 scales the height by the upscale factor"),
        FormField("denoising_strength", "Denoising Strength", "highres",
                  _DEFAULTS.denoising_strength, 0, 1, 0.01),
        # Advanced
        FormField("seed", "Seed", "advanced", -1, -1, MAX_SEED, 1, info="-1 for random"),
        FormField("subseed", "Variation Seed", "advanced", -1, -1, MAX_SEED, 1,
                  info="-1 for random"),
        FormField("subseed_strength", "Variation Strength", "advanced",
                  _DEFAULTS.subseed_strength, 0, 1, 0.01),
        FormField("seed_resize_from_h", "Resize Seed From Height", "advanced",
                  _DEFAULTS.seed_resize_from_h, 0, 2048, 64),
        FormField("seed_resize_from_w", "Resize Seed From Width", "advanced",
                  _DEFAULTS.seed_resize_from_w, 0, 2048, 64),
        FormField("eta", "Eta", "advanced", _DEFAULTS.eta, 0, 1, 0.01),
        FormField("s_churn", "Sigma Churn", "advanced", _DEFAULTS.s_churn, 0, 100, 0.1),
        FormField("s_tmax", "Sigma Max", "advanced", _DEFAULTS.s_tmax, 0, 999, 0.1),
        FormField("s_tmin", "Sigma Min", "advanced", _DEFAULTS.s_tmin, 0, 10, 0.01),
        FormField("s_noise", "Sigma Noise", "advanced", _DEFAULTS.s_noise, 0, 1.1, 0.001),
        # Inpainting
        FormField("mask_blur", "Mask Blur", "inpainting", _DEFAULTS.mask_blur, 0, 64, 1),
        FormField("inpainting_fill", "Masked Content", "inpainting",
                  _DEFAULTS.inpainting_fill, choices=INPAINTING_FILL_OPTIONS),
        FormField("inpaint_full_res_padding", "Only Masked Padding", "inpainting",
                  _DEFAULTS.inpaint_full_res_padding, 0, 256, 4),
        FormField("inpainting_mask_invert", "Mask Mode", "inpainting",
                  _DEFAULTS.inpainting_mask_invert, choices=MASK_INVERT_OPTIONS),
    )
}

# Seed fields accept None (random) in addition to their numeric range.
_NULLABLE_FIELDS = frozenset({"seed", "subseed"})


def default_parameters() -> GenerationParameters:
    """Return the parameter record the control panel starts with."""
    return GenerationParameters()


def fields_in_section(section: Section) -> list[FormField]:
    """Return the form fields belonging to one presentational section."""
    return [f for f in PARAMETER_FIELDS.values() if f.section == section]


def set_field(params: GenerationParameters, name: str, value: Any) -> GenerationParameters:
    """Return a copy of *params* with one field changed.

    Numeric fields are clamped into their declared range and enumerated
    fields must hold one of their option values.  No other field changes.

    Args:
        params: The current parameter record (left untouched).
        name: Field name.
        value: New value.

    Returns:
        A new :class:`GenerationParameters`.

    Raises:
        KeyError: If *name* is not a parameter field.
        ValueError: If *value* is not a valid option for an enumerated field.
    """
    if name not in GenerationParameters.model_fields:
        raise KeyError(f"Unknown parameter: {name}")

    field = PARAMETER_FIELDS.get(name)
    if field is not None:
        if value is None or (name in _NULLABLE_FIELDS and value == -1):
            if name in _NULLABLE_FIELDS:
                value = None
            else:
                value = field.default
        elif field.choices:
            if value not in field.choice_values():
                raise ValueError(f"{value!r} is not a valid option for {field.label}")
        elif field.is_numeric:
            value = field.clamp(value)

    return params.model_copy(update={name: value})
