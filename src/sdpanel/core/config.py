"""Configuration management for SD Panel.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the SDPANEL_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (SDPANEL_* prefix)
2. .env file in the project root
3. Default values defined in SDPanelConfig

Example .env file:
    SDPANEL_SD_API_URL=http://192.168.1.20:7860
    SDPANEL_SD_API_TIMEOUT=600
    SDPANEL_GENERATED_DIR=generated
    SDPANEL_SERVER_PORT=3000

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
This ensures a single source of truth for all configuration values across
the application.

Usage Example
-------------
    from sdpanel.core.config import config

    print(config.sd_api_url)
    print(config.generated_dir)

Directory Management
--------------------
The configuration automatically creates required directories on initialization:
- uploads_dir: Reserved for user uploads (not used by the generation flow)
- generated_dir: Generated PNG files, served at ``/generated/<filename>``

Timeouts
--------
Two upstream timeouts exist because the proxy makes two calls per request:
- sd_probe_timeout: Liveness probe against ``/sdapi/v1/progress``
- sd_api_timeout: The txt2img/img2img call itself, which may take minutes
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_NEGATIVE_PROMPT = (
    "lowres, bad anatomy, bad hands, text, error, missing fingers, extra digit, "
    "fewer digits, cropped, worst quality, low quality, normal quality, jpeg artifacts, "
    "signature, watermark, username, blurry"
)


class SDPanelConfig(BaseSettings):
    """Main configuration for SD Panel.

    Values are loaded from environment variables with the SDPANEL_ prefix,
    with fallback to defaults defined here.

    Attributes
    ----------
    Upstream Settings:
        sd_api_url : str
            Base URL of the Stable Diffusion WebUI instance
        sd_probe_timeout : float
            Timeout in seconds for the liveness probe
        sd_api_timeout : float
            Timeout in seconds for a generation call
        default_negative_prompt : str
            Negative prompt sent upstream when the caller supplies none

    Paths:
        uploads_dir : Path
            Directory reserved for uploaded files
        generated_dir : Path
            Directory where generated images are written
        generated_url_prefix : str
            URL path under which generated images are served

    Server Settings:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Port for uvicorn (1024-65535)
        api_base_url : str | None
            Base URL the control panel uses to reach ``/api/generate``.
            Derived from server_port when unset.
        enable_ui : bool
            Mount the Gradio control panel at ``/``
        log_level : str
            Root logging level

    Notes
    -----
    - All directories are created automatically if they don't exist
    - To modify config, set environment variables and restart the application
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SDPANEL_",
        case_sensitive=False,
    )

    # Upstream Stable Diffusion WebUI
    sd_api_url: str = Field(
        default="http://localhost:7860",
        description="Base URL of the Stable Diffusion WebUI API",
    )
    sd_probe_timeout: float = Field(
        default=5.0,
        description="Timeout (seconds) for the /sdapi/v1/progress liveness probe",
        gt=0,
    )
    sd_api_timeout: float = Field(
        default=300.0,
        description="Timeout (seconds) for txt2img/img2img calls",
        gt=0,
    )
    default_negative_prompt: str = Field(
        default=DEFAULT_NEGATIVE_PROMPT,
        description="Negative prompt used when the request leaves it blank",
    )

    # Paths
    uploads_dir: Path = Field(
        default=Path("uploads"),
        description="Directory for uploaded files",
    )
    generated_dir: Path = Field(
        default=Path("generated"),
        description="Directory to save generated images",
    )
    generated_url_prefix: str = Field(
        default="/generated",
        description="URL path prefix for generated images",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address (0.0.0.0 for local network)",
    )
    server_port: int = Field(
        default=3000,
        description="Server port",
        ge=1024,
        le=65535,
    )
    api_base_url: str | None = Field(
        default=None,
        description="Base URL of this server as seen by the control panel",
    )
    enable_ui: bool = Field(
        default=True,
        description="Mount the Gradio control panel at /",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    def __init__(self, **kwargs):
        """Initialize configuration and create required directories.

        Args:
            **kwargs: Configuration overrides (typically from environment variables)
        """
        super().__init__(**kwargs)

        self.uploads_dir.mkdir(parents=True, exist_ok=True)
        self.generated_dir.mkdir(parents=True, exist_ok=True)

    @property
    def resolved_api_base_url(self) -> str:
        """Base URL for ``/api/*`` calls made by the control panel."""
        if self.api_base_url:
            return self.api_base_url.rstrip("/")
        return f"http://127.0.0.1:{self.server_port}"


# Global configuration instance
# Loads values from environment variables (SDPANEL_* prefix) and .env file.
config = SDPanelConfig()
