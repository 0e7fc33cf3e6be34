"""Core functionality for SD Panel.

This package holds everything that does not depend on a web framework:

- **config**: Environment-based configuration using Pydantic Settings
  (``SDPANEL_`` prefix).
- **parameters**: The generation parameter record and the form field
  definitions (defaults, bounds, option lists).
- **payload**: Server-side defaulting and mapping onto the Stable
  Diffusion WebUI request body.
- **sd_client**: Async HTTP client for the upstream API.
- **image_store**: Writing generated PNG files.
- **generation**: The generation proxy tying the above together.
- **mask_canvas**: Raster mask painter used by the control panel.
- **errors**: Exceptions reported by the proxy.

Usage Example
-------------
::

    from sdpanel.core import GenerationProxy, ImageStore, SDWebUIClient, config
    from sdpanel.core.payload import normalize_parameters

    proxy = GenerationProxy(
        SDWebUIClient(config.sd_api_url),
        ImageStore(config.generated_dir),
    )
    result = await proxy.generate(normalize_parameters({"prompt": "a red fox in snow"}))
"""

from sdpanel.core.config import SDPanelConfig, config
from sdpanel.core.generation import GenerationProxy
from sdpanel.core.image_store import ImageStore
from sdpanel.core.mask_canvas import MaskCanvas
from sdpanel.core.parameters import GenerationParameters
from sdpanel.core.sd_client import SDWebUIClient

__all__ = [
    "GenerationParameters",
    "GenerationProxy",
    "ImageStore",
    "MaskCanvas",
    "SDPanelConfig",
    "SDWebUIClient",
    "config",
]
