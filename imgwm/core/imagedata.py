"""
Image Data
==========
Immutable encoded image bytes plus their detected type, and the
process-wide watermark source.

The watermark source is loaded once by `init_watermark()` at process
start and then shared read-only by every processing call.
"""

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError

from .. import config
from ..errors import LoadError
from .options import ImageType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ImageData:
    """Encoded image bytes and the format they are encoded in."""
    data: bytes
    type: ImageType

    @classmethod
    def from_bytes(cls, data: bytes) -> "ImageData":
        """
        Wrap raw bytes, detecting their image type with Pillow.

        Raises:
            LoadError: If the bytes are not a supported image.
        """
        if not data:
            raise LoadError("Image data is empty")

        try:
            with Image.open(io.BytesIO(data)) as img:
                fmt = img.format
        except (UnidentifiedImageError, OSError) as e:
            raise LoadError(f"Cannot identify image data: {e}") from e

        image_type = ImageType.from_pillow(fmt)
        if image_type is None:
            raise LoadError(f"Unsupported image format: {fmt}")

        return cls(data=data, type=image_type)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ImageData":
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as e:
            raise LoadError(f"Cannot read image file {path}: {e}") from e
        return cls.from_bytes(data)

    @classmethod
    def from_base64(cls, encoded: str) -> "ImageData":
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise LoadError(f"Cannot decode base64 image data: {e}") from e
        return cls.from_bytes(data)


# Process-wide watermark source, None when no watermark is configured.
_watermark: Optional[ImageData] = None


def init_watermark() -> Optional[ImageData]:
    """
    Load the watermark configured for this process.

    Inline base64 data takes precedence over a file path.

    Raises:
        LoadError: If the configured watermark cannot be read or decoded.
    """
    global _watermark

    if config.WATERMARK_DATA:
        _watermark = ImageData.from_base64(config.WATERMARK_DATA)
        logger.debug("Loaded watermark from inline data (%s)", _watermark.type.value)
    elif config.WATERMARK_PATH:
        _watermark = ImageData.from_file(config.WATERMARK_PATH)
        logger.debug("Loaded watermark from %s (%s)", config.WATERMARK_PATH, _watermark.type.value)
    else:
        _watermark = None

    return _watermark


def set_watermark(image_data: Optional[ImageData]) -> None:
    """Replace the process-wide watermark. Intended for start-up and tests."""
    global _watermark
    _watermark = image_data


def get_watermark() -> Optional[ImageData]:
    """Return the process-wide watermark, or None if none is configured."""
    return _watermark
