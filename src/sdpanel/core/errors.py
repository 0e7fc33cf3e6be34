"""Exceptions raised by the generation proxy.

Every failure the proxy reports to its caller is one of these.  The API
layer turns them into ``500 {error, details}`` responses; the message is
what crosses the HTTP boundary, so it is written for the end user.
"""

NAN_ERROR_MARKER = "NaN Error:"

NAN_REMEDIATION_STEPS = (
    "In Stable Diffusion WebUI Settings, enable 'Upcast cross attention layer to float32'",
    "Restart WebUI with --no-half command line argument",
    "Try a different model or reduce image resolution",
    "Use --disable-nan-check to bypass this check (not recommended)",
)


class SDPanelError(Exception):
    """Base class for proxy errors.

    Attributes:
        details: Optional raw payload (usually the upstream response body)
            to return alongside the message.
    """

    def __init__(self, message: str, details=None):
        super().__init__(message)
        self.details = details


class SDWebUIUnavailableError(SDPanelError):
    """The liveness probe against the upstream service failed."""

    def __init__(self, details=None):
        super().__init__(
            "Stable Diffusion WebUI is not running. Please start it first.", details
        )


class NaNPrecisionError(SDPanelError):
    """The upstream service reported ``NansException``.

    The message is multi-line: a title carrying :data:`NAN_ERROR_MARKER`
    followed by one numbered line per remediation step.
    """

    def __init__(self, details=None):
        lines = [
            f"{NAN_ERROR_MARKER} This is usually caused by GPU precision issues. "
            "Try these solutions:"
        ]
        lines.extend(f"{i}. {step}" for i, step in enumerate(NAN_REMEDIATION_STEPS, start=1))
        super().__init__("\n".join(lines), details)


class UpstreamError(SDPanelError):
    """The upstream service returned a structured error other than NaN."""

    def __init__(self, upstream_message: str, details=None):
        super().__init__(f"Stable Diffusion WebUI Error: {upstream_message}", details)
        self.upstream_message = upstream_message


class NoImageGeneratedError(SDPanelError):
    """The upstream response contained no images."""

    def __init__(self, details=None):
        super().__init__("No image generated by Stable Diffusion WebUI", details)
