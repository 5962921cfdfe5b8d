"""Validation of base64 image data URLs sent by clients.

Clients send screenshots and thumbnails as `data:image/<type>;base64,<data>`
strings. This module checks the declared type, the decoded size and that
Pillow can actually read the bytes before anything is sent to a provider.
"""

import base64
import binascii
import io
import logging
import re
from dataclasses import dataclass

from PIL import Image, UnidentifiedImageError

from services.ai.exceptions import InvalidImageError


logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 10 * 1024 * 1024  # 10 MiB decoded

# image/jpg is not a registered type but browsers and SDKs send it anyway
ALLOWED_MIME_TYPES = {
    "image/png": "image/png",
    "image/jpeg": "image/jpeg",
    "image/jpg": "image/jpeg",
    "image/webp": "image/webp",
}

_DATA_URL_RE = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL
)


@dataclass(frozen=True, slots=True)
class DecodedImage:
    """An image payload ready to attach to a provider request."""

    media_type: str
    data: bytes


def decode_data_url(
    data_url: str, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES
) -> DecodedImage:
    """Decode and validate an image data URL.

    Args:
        data_url: A `data:image/...;base64,...` string
        max_bytes: Maximum decoded size in bytes

    Returns:
        The normalized media type and decoded bytes

    Raises:
        InvalidImageError: If the payload is not a supported, readable image
    """
    match = _DATA_URL_RE.match(data_url.strip()) if data_url else None
    if match is None:
        raise InvalidImageError("Image must be a base64 data URL")

    mime = match.group("mime").lower()
    media_type = ALLOWED_MIME_TYPES.get(mime)
    if media_type is None:
        raise InvalidImageError(
            f"Unsupported image type: {mime}. "
            f"Only {', '.join(sorted(ALLOWED_MIME_TYPES))} are allowed."
        )

    encoded = "".join(match.group("data").split())
    # base64 expands by 4/3; reject before decoding anything huge
    if len(encoded) * 3 // 4 > max_bytes + 3:
        raise InvalidImageError(f"Image exceeds the {max_bytes} byte limit")
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageError("Image data is not valid base64") from e
    if not data:
        raise InvalidImageError("Image data is empty")
    if len(data) > max_bytes:
        raise InvalidImageError(f"Image exceeds the {max_bytes} byte limit")

    verify_image_bytes(data)
    return DecodedImage(media_type=media_type, data=data)


def verify_image_bytes(data: bytes) -> None:
    """Raise InvalidImageError unless Pillow can identify and verify `data`."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        logger.debug("Rejected unreadable image: %s", e)
        raise InvalidImageError("Image data could not be decoded") from e
