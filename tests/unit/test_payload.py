"""Unit tests for request normalization and upstream payload mapping."""

from sdpanel.core.config import DEFAULT_NEGATIVE_PROMPT
from sdpanel.core.payload import (
    IMG2IMG_ENDPOINT,
    TXT2IMG_ENDPOINT,
    build_upstream_payload,
    derive_hr_values,
    normalize_parameters,
    select_endpoint,
    summarize_payload,
)


class TestNormalizeParameters:
    """Tests for server-side defaulting."""

    def test_minimal_request_gets_defaults(self):
        """A prompt-only request resolves every field."""
        params = normalize_parameters({"prompt": "a red fox in snow"})

        assert params.prompt == "a red fox in snow"
        assert params.steps == 35
        assert params.cfg_scale == 4.0
        assert params.sampler == "DPM++ 2M"
        assert params.scheduler == "BETA"
        assert params.width == 512
        assert params.height == 512
        assert params.seed == -1
        assert params.subseed == -1
        assert params.hr_upscaler == "Latent"
        assert params.denoising_strength == 0.4
        assert params.mask_blur == 4

    def test_falsy_values_take_defaults(self):
        """Zero, empty string and null are treated as unset."""
        params = normalize_parameters(
            {"prompt": "x", "steps": 0, "sampler": "", "width": None, "cfg_scale": 0}
        )

        assert params.steps == 35
        assert params.sampler == "DPM++ 2M"
        assert params.width == 512
        assert params.cfg_scale == 4.0

    def test_seed_zero_is_kept(self):
        """Seed 0 is a real seed, not a missing one."""
        params = normalize_parameters({"prompt": "x", "seed": 0})
        assert params.seed == 0

    def test_given_values_are_kept(self):
        """Explicit values win over defaults."""
        params = normalize_parameters(
            {"prompt": "x", "steps": 20, "sampler": "Euler a", "width": 768}
        )
        assert (params.steps, params.sampler, params.width) == (20, "Euler a", 768)

    def test_prompt_is_trimmed(self):
        """Surrounding whitespace is removed from the prompt."""
        assert normalize_parameters({"prompt": "  a cat  "}).prompt == "a cat"

    def test_passthrough_fields(self):
        """Opaque structures are forwarded untouched."""
        params = normalize_parameters(
            {
                "prompt": "x",
                "override_settings": {"CLIP_stop_at_last_layers": 2},
                "init_images": ["abc"],
                "mask": "def",
            }
        )
        assert params.override_settings == {"CLIP_stop_at_last_layers": 2}
        assert params.init_images == ["abc"]
        assert params.mask == "def"

    def test_unknown_keys_are_ignored(self):
        """Extra request keys do not reach the record."""
        params = normalize_parameters({"prompt": "x", "bogus": 1})
        assert not hasattr(params, "bogus")


class TestSelectEndpoint:
    """Tests for txt2img/img2img routing."""

    def test_no_images_selects_txt2img(self):
        assert select_endpoint(normalize_parameters({"prompt": "x"})) == TXT2IMG_ENDPOINT

    def test_empty_images_selects_txt2img(self):
        params = normalize_parameters({"prompt": "x", "init_images": []})
        assert select_endpoint(params) == TXT2IMG_ENDPOINT

    def test_images_select_img2img(self):
        params = normalize_parameters({"prompt": "x", "init_images": ["abc"]})
        assert select_endpoint(params) == IMG2IMG_ENDPOINT


class TestDeriveHrValues:
    """Tests for high-res fix derivation."""

    def test_derived_when_zero(self):
        """Zero values are computed from the base settings."""
        params = normalize_parameters({"prompt": "x", "steps": 35, "hr_scale": 2.0})
        assert derive_hr_values(params) == (17, 1024, 1024)

    def test_fractional_scale_floors(self):
        """Resize targets are rounded down."""
        params = normalize_parameters({"prompt": "x", "width": 513, "height": 300, "hr_scale": 1.5})
        _, resize_x, resize_y = derive_hr_values(params)
        assert (resize_x, resize_y) == (769, 450)

    def test_explicit_values_kept(self):
        """Non-zero values are not recomputed."""
        params = normalize_parameters(
            {
                "prompt": "x",
                "hr_second_pass_steps": 10,
                "hr_resize_x": 640,
                "hr_resize_y": 480,
                "hr_scale": 2.0,
            }
        )
        assert derive_hr_values(params) == (10, 640, 480)


class TestBuildUpstreamPayload:
    """Tests for the Stable Diffusion WebUI request body."""

    def test_txt2img_payload(self):
        """A prompt-only request maps onto the documented defaults."""
        payload = build_upstream_payload(normalize_parameters({"prompt": "a red fox in snow"}))

        assert payload["prompt"] == "a red fox in snow"
        assert payload["sampler_name"] == "DPM++ 2M"
        assert "sampler" not in payload
        assert payload["steps"] == 35
        assert payload["seed"] == -1
        assert payload["negative_prompt"] == DEFAULT_NEGATIVE_PROMPT
        assert "init_images" not in payload
        assert "mask" not in payload

    def test_custom_negative_prompt_default(self):
        """A configured fallback negative prompt is used when blank."""
        payload = build_upstream_payload(
            normalize_parameters({"prompt": "x"}), default_negative_prompt="blurry"
        )
        assert payload["negative_prompt"] == "blurry"

    def test_given_negative_prompt_kept(self):
        payload = build_upstream_payload(
            normalize_parameters({"prompt": "x", "negative_prompt": "dogs"})
        )
        assert payload["negative_prompt"] == "dogs"

    def test_hr_values_in_payload(self):
        """Derived high-res values are sent upstream."""
        payload = build_upstream_payload(
            normalize_parameters({"prompt": "x", "enable_hr": True, "hr_scale": 2.0})
        )
        assert payload["enable_hr"] is True
        assert payload["hr_resize_x"] == 1024
        assert payload["hr_resize_y"] == 1024
        assert payload["hr_second_pass_steps"] == 17

    def test_none_values_dropped(self):
        """Unset optional structures are omitted."""
        payload = build_upstream_payload(normalize_parameters({"prompt": "x"}))
        assert "override_settings" not in payload
        assert "script_args" not in payload
        assert "alwayson_scripts" not in payload

    def test_img2img_without_mask(self):
        """Source images are sent, inpainting fields are not."""
        payload = build_upstream_payload(
            normalize_parameters({"prompt": "x", "init_images": ["abc"]})
        )
        assert payload["init_images"] == ["abc"]
        assert payload["denoising_strength"] == 0.4
        assert "mask" not in payload
        assert "mask_blur" not in payload

    def test_img2img_with_mask(self):
        """A mask brings every inpainting field along."""
        payload = build_upstream_payload(
            normalize_parameters(
                {
                    "prompt": "x",
                    "init_images": ["abc"],
                    "mask": "def",
                    "inpainting_fill": 1,
                    "inpaint_full_res": True,
                    "inpaint_full_res_padding": 32,
                    "inpainting_mask_invert": 1,
                }
            )
        )
        assert payload["mask"] == "def"
        assert payload["mask_blur"] == 4
        assert payload["inpainting_fill"] == 1
        assert payload["inpaint_full_res"] is True
        assert payload["inpaint_full_res_padding"] == 32
        assert payload["inpainting_mask_invert"] == 1

    def test_mask_ignored_for_txt2img(self):
        """A mask without a source image is not forwarded."""
        payload = build_upstream_payload(normalize_parameters({"prompt": "x", "mask": "def"}))
        assert "mask" not in payload


class TestSummarizePayload:
    """Tests for log-safe payload summaries."""

    def test_image_data_replaced(self):
        summary = summarize_payload({"prompt": "x", "init_images": ["a" * 100], "mask": "b" * 50})
        assert summary["init_images"] == ["<100 b64 chars>"]
        assert summary["mask"] == "<50 b64 chars>"
        assert summary["prompt"] == "x"
