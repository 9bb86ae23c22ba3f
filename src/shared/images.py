"""Helpers for inline (data URL) receipt images."""

import io
import re
import base64
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from .exceptions import ValidationError
from .validators import validate_base64_image

DEFAULT_MIME_TYPE = 'image/jpeg'

# Scanned photos are downscaled to this width before extraction and upload
MAX_IMAGE_WIDTH = 800
JPEG_QUALITY = 0.7

_MIME_HEADER = re.compile(r'^data:([^;,]+)')


def decode_data_url(data_url: str) -> Tuple[bytes, str]:
    """
    Decode an inline image into bytes.

    Args:
        data_url: Data URL or bare base64 payload

    Returns:
        Tuple of (image bytes, MIME type)

    Raises:
        ValidationError: If the payload is not a valid base64 image
    """
    mime_type = DEFAULT_MIME_TYPE
    match = _MIME_HEADER.match(data_url or '')
    if match:
        mime_type = match.group(1)

    payload = validate_base64_image(data_url)
    return base64.b64decode(payload), mime_type


def encode_data_url(content: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """Encode image bytes as a data URL."""
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


def is_data_url(value: str) -> bool:
    """Check whether an image value is inline data rather than a URL."""
    return bool(value) and value.startswith('data:')


def resize_image(data_url: str, max_width: int = MAX_IMAGE_WIDTH, quality: float = JPEG_QUALITY) -> str:
    """
    Shrink a photo and re-encode it as JPEG.

    Images wider than max_width are scaled down keeping their aspect
    ratio; narrower ones keep their size but are still re-encoded.

    Args:
        data_url: Photo as a data URL or bare base64 payload
        max_width: Maximum width in pixels
        quality: JPEG quality between 0 and 1

    Returns:
        JPEG data URL

    Raises:
        ValidationError: If the payload is not a readable image
    """
    content, _ = decode_data_url(data_url)

    try:
        with Image.open(io.BytesIO(content)) as image:
            image = image.convert('RGB')
    except (UnidentifiedImageError, OSError) as e:
        raise ValidationError(f"Unreadable image: {str(e)}")

    if image.width > max_width:
        height = round(image.height * max_width / image.width)
        image = image.resize((max_width, height), Image.LANCZOS)

    buffer = io.BytesIO()
    image.save(buffer, format='JPEG', quality=int(quality * 100))
    return encode_data_url(buffer.getvalue(), 'image/jpeg')
