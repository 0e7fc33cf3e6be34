"""SD Panel - browser control panel and proxy for Stable Diffusion WebUI."""

__version__ = "0.1.0"

from sdpanel.core.config import SDPanelConfig, config

__all__ = [
    "SDPanelConfig",
    "config",
]
