"""Validation utilities for SD Panel UI inputs.

These checks run in the control panel before anything is sent to the
backend; a failure is shown to the user and no request is made.
"""

import logging
import mimetypes
from pathlib import Path

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """User-friendly validation error.

    This exception is raised when user input fails validation.
    The message is intended to be displayed directly to the user.
    """

    pass


def validate_prompt(prompt: str | None) -> str:
    """Check that the prompt is non-blank.

    Args:
        prompt: Prompt text from the form

    Returns:
        The trimmed prompt

    Raises:
        ValidationError: If the prompt is missing or whitespace only
    """
    if not prompt or not prompt.strip():
        raise ValidationError("Please enter a prompt")
    return prompt.strip()


def validate_image_upload(path: str | Path | None) -> Path:
    """Check that an uploaded file exists and is an image.

    The check goes by the file's MIME type as guessed from its name, the
    same information a browser reports for a picked file.

    Args:
        path: Path of the uploaded file

    Returns:
        The path as a :class:`Path`

    Raises:
        ValidationError: If nothing was uploaded or the file is not an image
    """
    if not path:
        raise ValidationError("No file selected")

    file_path = Path(path)
    mime_type, _ = mimetypes.guess_type(file_path.name)
    if not mime_type or not mime_type.startswith("image/"):
        logger.warning(f"Rejected non-image upload: {file_path.name} ({mime_type})")
        raise ValidationError("Please select an image file")

    if not file_path.is_file():
        raise ValidationError(f"File not found: {file_path.name}")

    return file_path
