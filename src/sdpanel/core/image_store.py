"""File storage for generated images.

Generated images are written to a single directory as
``generated_<uuid4>.png`` and served statically under a URL prefix.  Files
are never deleted and no index ties them back to their request; a random
name per file is all that keeps concurrent requests apart.
"""

from __future__ import annotations

import base64
import binascii
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


def strip_data_url_prefix(data: str) -> str:
    """Return the base64 payload of a ``data:`` URL, or *data* unchanged."""
    if data.startswith("data:") and "," in data:
        return data.split(",", 1)[1]
    return data


@dataclass(frozen=True)
class StoredImage:
    """A generated image written to disk."""

    filename: str
    path: Path
    url: str


class ImageStore:
    """Writes generated PNG files and maps them to public URLs.

    Args:
        directory: Directory for generated files (created if missing).
        url_prefix: URL path the directory is served under.
    """

    def __init__(self, directory: Path, url_prefix: str = "/generated"):
        self.directory = Path(directory)
        self.url_prefix = url_prefix.rstrip("/")
        self.directory.mkdir(parents=True, exist_ok=True)

    def new_filename(self) -> str:
        return f"generated_{uuid.uuid4()}.png"

    def url_for(self, filename: str) -> str:
        return f"{self.url_prefix}/{filename}"

    def save_base64_png(self, image_b64: str) -> StoredImage:
        """Decode a base64 image and write it under a fresh unique name.

        Args:
            image_b64: Base64 image data, with or without a ``data:`` prefix.

        Returns:
            The stored file's name, absolute path and public URL.

        Raises:
            ValueError: If *image_b64* is not valid base64.
        """
        try:
            image_bytes = base64.b64decode(strip_data_url_prefix(image_b64), validate=False)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 image data: {e}") from e

        filename = self.new_filename()
        path = (self.directory / filename).resolve()
        path.write_bytes(image_bytes)

        logger.info(f"Saved generated image: {path} ({len(image_bytes)} bytes)")
        return StoredImage(filename=filename, path=path, url=self.url_for(filename))
