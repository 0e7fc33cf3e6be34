"""Integration tests for UI components."""

from unittest.mock import patch

import gradio as gr

from sdpanel.core.parameters import PARAMETER_FIELDS, default_parameters, fields_in_section
from sdpanel.ui.app import create_ui
from sdpanel.ui.components import (
    CHECKBOX_FIELDS,
    ParameterFormUI,
    ParameterSectionUI,
    create_control,
)


class TestCreateControl:
    """Tests for per-field control construction."""

    def test_numeric_field_becomes_slider(self):
        """Sliders carry the field's bounds so they cannot leave its range."""
        with patch("gradio.Slider") as MockSlider:
            create_control(PARAMETER_FIELDS["steps"])

        kwargs = MockSlider.call_args.kwargs
        assert kwargs["minimum"] == 1
        assert kwargs["maximum"] == 150
        assert kwargs["step"] == 1
        assert kwargs["value"] == 35

    def test_enumerated_field_becomes_dropdown(self):
        with patch("gradio.Dropdown") as MockDropdown:
            create_control(PARAMETER_FIELDS["inpainting_fill"])

        kwargs = MockDropdown.call_args.kwargs
        assert kwargs["choices"] == [
            ("fill", 0),
            ("original", 1),
            ("latent noise", 2),
            ("latent nothing", 3),
        ]
        assert kwargs["value"] == 0

    def test_seed_becomes_integer_number(self):
        with patch("gradio.Number") as MockNumber:
            create_control(PARAMETER_FIELDS["seed"])

        kwargs = MockNumber.call_args.kwargs
        assert kwargs["precision"] == 0
        assert kwargs["value"] == -1

    def test_explicit_value_used(self):
        with patch("gradio.Slider") as MockSlider:
            create_control(PARAMETER_FIELDS["width"], 768)

        assert MockSlider.call_args.kwargs["value"] == 768


class TestParameterSectionUI:
    """Tests for one form section."""

    def test_section_has_every_field(self):
        with (
            patch("gradio.Slider"),
            patch("gradio.Dropdown"),
            patch("gradio.Number"),
            patch("gradio.Checkbox"),
        ):
            section = ParameterSectionUI("highres", default_parameters())

        expected = {f.name for f in fields_in_section("highres")} | {"enable_hr"}
        assert set(section.controls) == expected
        assert len(section.get_input_components()) == len(expected)

    def test_inpainting_section_checkbox(self):
        with (
            patch("gradio.Slider"),
            patch("gradio.Dropdown"),
            patch("gradio.Checkbox") as MockCheckbox,
        ):
            section = ParameterSectionUI("inpainting", default_parameters())

        assert "inpaint_full_res" in section.controls
        MockCheckbox.assert_called_once_with(label="Inpaint Only Masked", value=False)


class TestParameterFormUI:
    """Tests for the full parameter form."""

    def test_form_covers_main_sections(self):
        with (
            patch("gradio.Accordion"),
            patch("gradio.Slider"),
            patch("gradio.Dropdown"),
            patch("gradio.Number"),
            patch("gradio.Checkbox"),
        ):
            form = ParameterFormUI(default_parameters())

        assert set(form.sections) == {"basic", "highres", "advanced"}
        main_fields = {
            name for name, field in PARAMETER_FIELDS.items() if field.section != "inpainting"
        }
        main_checkboxes = {
            name for name, (_, section) in CHECKBOX_FIELDS.items() if section != "inpainting"
        }
        assert set(form.controls) == main_fields | main_checkboxes


class TestCreateUI:
    """The full control panel can be built without launching it."""

    def test_create_ui_returns_blocks(self, test_config):
        blocks = create_ui(test_config)

        assert isinstance(blocks, gr.Blocks)
        assert blocks.title == "SD Panel"
