"""Gradio control panel for SD Panel.

The panel is mounted at ``/`` on the FastAPI app by
:func:`sdpanel.api.main.create_app`.  Handlers never call Stable Diffusion
WebUI themselves; generation goes through
:class:`~sdpanel.ui.orchestrator.GenerationOrchestrator`, which posts to the
backend's ``/api/generate`` like any other client.
"""

import logging
from functools import partial

import gradio as gr

from sdpanel.core.config import SDPanelConfig, config
from sdpanel.core.mask_canvas import DEFAULT_BRUSH_SIZE, MAX_BRUSH_SIZE, MIN_BRUSH_SIZE, MaskCanvas

from .components import ParameterFormUI, ParameterSectionUI
from .handlers import (
    apply_editor_layers,
    check_backend,
    clear_mask,
    generate_image,
    set_brush_size,
    set_mode,
    update_parameter,
    upload_mask_file,
    upload_source_image,
)
from .handlers.generation import GENERATE_LABEL
from .handlers.mask import BRUSH_HEX
from .models import DEFAULT_PROMPT_PLACEHOLDER, PROMPT_TIPS, RECOMMENDED_SETTINGS, UIState
from .orchestrator import GenerationOrchestrator

logger = logging.getLogger(__name__)


def create_ui(settings: SDPanelConfig | None = None) -> gr.Blocks:
    """Create the Gradio control panel.

    Args:
        settings: Configuration (defaults to the global ``config``)

    Returns:
        Gradio Blocks app
    """
    settings = settings or config
    orchestrator = GenerationOrchestrator(settings.resolved_api_base_url)
    initial_state = UIState()
    params = initial_state.parameters

    app = gr.Blocks(title="SD Panel")

    with app:
        # Session state - one instance per user
        ui_state = gr.State(initial_state)
        canvas_state = gr.State(MaskCanvas(brush_size=DEFAULT_BRUSH_SIZE))

        gr.Markdown(
            """
            # SD Panel
            ### Control panel for Stable Diffusion WebUI
            """
        )
        backend_status = gr.Markdown(value="*Checking Stable Diffusion WebUI...*")

        with gr.Row():
            with gr.Column(scale=1):
                prompt_input = gr.Textbox(
                    label="Prompt",
                    placeholder=DEFAULT_PROMPT_PLACEHOLDER,
                    lines=3,
                )
                negative_prompt_input = gr.Textbox(
                    label="Negative Prompt",
                    placeholder="Leave empty for the server default",
                    lines=2,
                )

                with gr.Tabs():
                    with gr.Tab("Text to Image", id="txt2img") as txt2img_tab:
                        gr.Markdown(PROMPT_TIPS)

                    with gr.Tab("Image to Image", id="img2img") as img2img_tab:
                        mask_components = create_img2img_tab(params)

                form = ParameterFormUI(params)

                with gr.Accordion("Recommended Settings", open=False):
                    gr.Markdown(RECOMMENDED_SETTINGS)

                generate_btn = gr.Button(GENERATE_LABEL, variant="primary", size="lg")

            with gr.Column(scale=1):
                gr.Markdown("### Generated Image")
                output_image = gr.Image(label="Output", interactive=False, height=512)
                status_output = gr.Markdown(value="*Ready to generate images*")

        # Event handlers
        app.load(fn=partial(check_backend, orchestrator), outputs=[backend_status])

        txt2img_tab.select(
            fn=partial(set_mode, "txt2img"), inputs=[ui_state], outputs=[ui_state]
        )
        img2img_tab.select(
            fn=partial(set_mode, "img2img"), inputs=[ui_state], outputs=[ui_state]
        )

        controls = {
            "prompt": prompt_input,
            "negative_prompt": negative_prompt_input,
            **form.controls,
            **mask_components["inpainting"].controls,
        }
        for name, control in controls.items():
            control.change(
                fn=partial(update_parameter, name),
                inputs=[control, ui_state],
                outputs=[ui_state],
            )

        source_image = mask_components["source_image"]
        mask_editor = mask_components["mask_editor"]
        mask_preview = mask_components["mask_preview"]

        source_image.change(
            fn=upload_source_image,
            inputs=[source_image, ui_state, canvas_state],
            outputs=[ui_state, canvas_state, mask_editor, mask_preview],
        )
        mask_editor.change(
            fn=apply_editor_layers,
            inputs=[mask_editor, ui_state, canvas_state],
            outputs=[ui_state, canvas_state, mask_preview],
        )
        mask_components["clear_mask_btn"].click(
            fn=clear_mask,
            inputs=[ui_state, canvas_state],
            outputs=[ui_state, canvas_state, mask_editor, mask_preview],
        )
        mask_components["mask_upload"].upload(
            fn=upload_mask_file,
            inputs=[mask_components["mask_upload"], ui_state, canvas_state],
            outputs=[ui_state, canvas_state, mask_editor, mask_preview],
        )
        mask_components["brush_size"].release(
            fn=set_brush_size,
            inputs=[mask_components["brush_size"]],
            outputs=[mask_editor],
        )

        generate_btn.click(
            fn=partial(generate_image, orchestrator),
            inputs=[ui_state],
            outputs=[ui_state, output_image, status_output, generate_btn],
        )

    logger.info(f"Control panel will call the backend at {orchestrator.api_base_url}")
    return app


def create_img2img_tab(params) -> dict:
    """Create the img2img tab: source upload, mask editor and inpainting options.

    Args:
        params: Initial parameter record

    Returns:
        Dictionary of components needed for event wiring
    """
    source_image = gr.Image(
        label="Source Image",
        type="filepath",
        sources=["upload", "clipboard"],
        height=300,
    )

    gr.Markdown(
        "*Paint over the areas to regenerate. Leave the mask empty to "
        "transform the whole image.*"
    )
    mask_editor = gr.ImageEditor(
        label="Mask",
        type="pil",
        image_mode="RGBA",
        sources=(),
        transforms=(),
        layers=False,
        brush=gr.Brush(default_size=DEFAULT_BRUSH_SIZE, colors=[BRUSH_HEX], color_mode="fixed"),
        eraser=gr.Eraser(default_size=DEFAULT_BRUSH_SIZE),
    )

    with gr.Row():
        brush_size = gr.Slider(
            label="Brush Size",
            minimum=MIN_BRUSH_SIZE,
            maximum=MAX_BRUSH_SIZE,
            step=1,
            value=DEFAULT_BRUSH_SIZE,
        )
        clear_mask_btn = gr.Button("Clear Mask", variant="secondary")

    with gr.Row():
        mask_upload = gr.Image(
            label="Upload Mask",
            type="filepath",
            sources=["upload"],
            height=200,
        )
        mask_preview = gr.Image(
            label="Painted Region",
            type="pil",
            interactive=False,
            height=200,
        )

    with gr.Accordion("Inpainting", open=False):
        inpainting = ParameterSectionUI("inpainting", params)

    return {
        "source_image": source_image,
        "mask_editor": mask_editor,
        "brush_size": brush_size,
        "clear_mask_btn": clear_mask_btn,
        "mask_upload": mask_upload,
        "mask_preview": mask_preview,
        "inpainting": inpainting,
    }
