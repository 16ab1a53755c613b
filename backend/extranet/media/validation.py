"""Per-file image validation: MIME type, size and decoded pixel width."""

import asyncio
import io
import logging
from collections.abc import Callable
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

ALLOWED_MIME_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"})


class MediaValidationError(Exception):
    """An image failed validation; `code` says which check."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class ImageLimits:
    """Validation limits for the image step."""

    max_bytes: int = 7 * 1024 * 1024
    min_width_px: int = 1280
    timeout_ms: int = 10000


def decode_width(content: bytes) -> int:
    """Pixel width of an encoded image, read with Pillow.

    Raises:
        MediaValidationError: If the bytes are not a decodable image
    """
    try:
        with Image.open(io.BytesIO(content)) as img:
            width, _height = img.size
    except (UnidentifiedImageError, OSError) as e:
        raise MediaValidationError("UNREADABLE", "The file could not be read as an image.") from e
    return width


async def validate_image(
    content: bytes,
    content_type: str,
    limits: ImageLimits,
    decoder: Callable[[bytes], int] = decode_width,
) -> int:
    """Validate one pending image.

    Decoding runs in a worker thread bounded by `limits.timeout_ms`; a file
    that neither decodes nor errors in time is invalid.

    Args:
        content: File bytes
        content_type: Declared MIME type
        limits: Image limits
        decoder: Width decoder (injectable for tests)

    Returns:
        Decoded pixel width

    Raises:
        MediaValidationError: On the first failed check
    """
    if content_type.lower() not in ALLOWED_MIME_TYPES:
        raise MediaValidationError("MIME_TYPE", f"Unsupported file type {content_type}.")
    if len(content) > limits.max_bytes:
        raise MediaValidationError("TOO_LARGE", "The file is larger than the allowed size.")

    try:
        width = await asyncio.wait_for(
            asyncio.to_thread(decoder, content), timeout=limits.timeout_ms / 1000
        )
    except TimeoutError as e:
        logger.warning("Image validation timed out")
        raise MediaValidationError("TIMEOUT", "The image could not be validated in time.") from e

    if width < limits.min_width_px:
        raise MediaValidationError(
            "TOO_NARROW", f"The image must be at least {limits.min_width_px}px wide."
        )
    return width
