"""
Image normalization before upload.
Downscales a captured photo so its longer edge fits MAX_IMAGE_DIMENSION and
re-encodes it as JPEG. Best effort: on any decode problem the original is sent.
"""
import asyncio
import base64
import binascii
import io
import logging
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from models.generation import DEFAULT_MIME_TYPE, ImagePayload

logger = logging.getLogger(__name__)

DEFAULT_MAX_DIMENSION = 1024
DEFAULT_QUALITY = 0.8
DEFAULT_DECODE_TIMEOUT = 5.0


def split_data_url(data_url: str) -> Tuple[Optional[str], str]:
    """Return (mime_type or None, raw base64) for a data URL or bare base64 string."""
    payload = ImagePayload.from_data_url(data_url)
    if payload.data == data_url:
        return None, data_url
    return payload.mime_type, payload.data


def strip_data_url_prefix(data_url: str) -> str:
    return split_data_url(data_url)[1]


def compute_target_size(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """
    Fit (width, height) inside max_dimension keeping the aspect ratio.

    The longer edge becomes exactly max_dimension and the shorter edge is
    floored. Images already within bounds keep their size.
    """
    if width <= max_dimension and height <= max_dimension:
        return width, height
    if width >= height:
        return max_dimension, max(1, (height * max_dimension) // width)
    return max(1, (width * max_dimension) // height), max_dimension


def _reencode(raw_base64: str, max_dimension: int, quality: float) -> str:
    image_bytes = base64.b64decode(raw_base64, validate=True)
    with Image.open(io.BytesIO(image_bytes)) as source:
        source.load()
        # phone cameras store portrait shots sideways with an Orientation tag
        image = ImageOps.exif_transpose(source)
        target = compute_target_size(image.width, image.height, max_dimension)

        # JPEG has no alpha or palette
        output = image if image.mode == "RGB" else image.convert("RGB")
        if target != (image.width, image.height):
            output = output.resize(target, Image.Resampling.LANCZOS)

        buffer = io.BytesIO()
        output.save(buffer, format="JPEG", quality=int(round(quality * 100)))

    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:{DEFAULT_MIME_TYPE};base64,{encoded}"


async def normalize_image(
    data_url: str,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    quality: float = DEFAULT_QUALITY,
    timeout: float = DEFAULT_DECODE_TIMEOUT,
) -> str:
    """
    Downscale and recompress an image data URL.

    Args:
        data_url: Source image as a data URL (bare base64 is accepted too)
        max_dimension: Longest allowed edge in pixels
        quality: JPEG quality factor in 0..1
        timeout: Seconds to wait for decode/encode before giving up

    Returns:
        A JPEG data URL, or data_url unchanged if the image could not be
        decoded in time.
    """
    raw_base64 = strip_data_url_prefix(data_url)
    try:
        return await asyncio.wait_for(
            asyncio.to_thread(_reencode, raw_base64, max_dimension, quality),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        logger.warning("Image resize timed out after %.1fs, using original", timeout)
    except (binascii.Error, UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.warning("Image resize failed, using original: %s", e)
    return data_url
