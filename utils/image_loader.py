"""Consolidated image loading utilities.

Single place that turns bytes or files into decoded Pillow images for the
www source and for the no-image placeholder.
"""
from __future__ import annotations

import io
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from core.constants import MIN_IMAGE_BYTES
from core.logging.logger import get_logger
from core.logging.tags import TAG_IMAGE

logger = get_logger(__name__)


class ImageLoader:
    """Unified image loading interface."""

    @staticmethod
    def decode_bytes(data: bytes, name: str = "<mem>", log_errors: bool = True) -> Optional[Image.Image]:
        """Decode an in-memory image.

        Pixel data is loaded eagerly so truncated downloads fail here, on
        the worker thread, and not later while the image is displayed.

        Args:
            data: Encoded image bytes (JPEG, PNG, ...)
            name: Label used in log messages
            log_errors: Whether to log errors (default True)

        Returns:
            Decoded image, or None if the bytes are not a readable image
        """
        if not data or len(data) < MIN_IMAGE_BYTES:
            if log_errors:
                logger.warning(f"{TAG_IMAGE} Refusing to decode {name}: only {len(data or b'')} bytes")
            return None
        try:
            img = Image.open(io.BytesIO(data))
            img.load()
            return img
        except (UnidentifiedImageError, OSError, ValueError) as e:
            if log_errors:
                logger.warning(f"{TAG_IMAGE} Failed to decode image {name}: {e}")
            return None

    @staticmethod
    def load_file(path: Union[str, Path], log_errors: bool = True) -> Optional[Image.Image]:
        """Load and decode an image file from disk.

        Returns:
            Decoded image, or None if the file is missing or unreadable
        """
        p = Path(path)
        try:
            data = p.read_bytes()
        except OSError as e:
            if log_errors:
                logger.warning(f"{TAG_IMAGE} Can't read image file {p}: {e}")
            return None
        return ImageLoader.decode_bytes(data, name=str(p), log_errors=log_errors)
