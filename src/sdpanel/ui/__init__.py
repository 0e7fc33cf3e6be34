"""Gradio control panel for SD Panel."""
