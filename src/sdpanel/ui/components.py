"""Reusable UI components for the SD Panel Gradio interface."""

import gradio as gr

from sdpanel.core.parameters import (
    FormField,
    GenerationParameters,
    Section,
    fields_in_section,
)

# Boolean fields rendered as checkboxes, grouped with their section.
CHECKBOX_FIELDS: dict[str, tuple[str, Section]] = {
    "restore_faces": ("Restore Faces", "basic"),
    "tiling": ("Tiling", "basic"),
    "enable_hr": ("Enable Hires Fix", "highres"),
    "override_settings_restore_afterwards": ("Restore Overrides Afterwards", "advanced"),
    "inpaint_full_res": ("Inpaint Only Masked", "inpainting"),
}


def create_control(field: FormField, value=None) -> gr.components.Component:
    """Build the Gradio control for one form field.

    Enumerated fields become dropdowns, seeds become integer number boxes
    (their range is too wide for a slider) and every other numeric field
    becomes a slider with the field's bounds and step.

    Args:
        field: Field definition
        value: Initial value (defaults to the field default)

    Returns:
        The Gradio component
    """
    value = field.default if value is None else value

    if field.choices:
        return gr.Dropdown(
            label=field.label,
            choices=list(field.choices),
            value=value,
            info=field.info or None,
        )

    if field.name in ("seed", "subseed"):
        return gr.Number(
            label=field.label,
            value=value,
            minimum=field.minimum,
            maximum=field.maximum,
            precision=0,
            info=field.info or None,
        )

    return gr.Slider(
        label=field.label,
        minimum=field.minimum,
        maximum=field.maximum,
        step=field.step,
        value=value,
        info=field.info or None,
    )


class ParameterSectionUI:
    """One presentational section of the parameter form.

    Controls are created from :data:`~sdpanel.core.parameters.PARAMETER_FIELDS`
    so their bounds and options always match what :func:`set_field` accepts.
    """

    def __init__(self, section: Section, params: GenerationParameters):
        """Create the section's controls inside the current Blocks context.

        Args:
            section: Section to render
            params: Record supplying initial values
        """
        self.section = section
        self.controls: dict[str, gr.components.Component] = {}

        for name, (label, field_section) in CHECKBOX_FIELDS.items():
            if field_section == section:
                self.controls[name] = gr.Checkbox(label=label, value=getattr(params, name))

        for field in fields_in_section(section):
            value = getattr(params, field.name)
            if value is None:
                value = field.default
            self.controls[field.name] = create_control(field, value)

    def get_input_components(self) -> list[gr.components.Component]:
        """Return components used as function inputs, in field order."""
        return list(self.controls.values())


class ParameterFormUI:
    """The full parameter form, one accordion per section."""

    SECTION_TITLES: dict[Section, str] = {
        "basic": "Basic Settings",
        "highres": "Hires Fix",
        "advanced": "Advanced Settings",
    }

    def __init__(self, params: GenerationParameters):
        self.sections: dict[Section, ParameterSectionUI] = {}
        for section, title in self.SECTION_TITLES.items():
            with gr.Accordion(title, open=section == "basic"):
                self.sections[section] = ParameterSectionUI(section, params)

    @property
    def controls(self) -> dict[str, gr.components.Component]:
        """All controls across sections, keyed by field name."""
        merged = {}
        for section in self.sections.values():
            merged.update(section.controls)
        return merged
