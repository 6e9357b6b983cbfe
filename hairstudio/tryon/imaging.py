"""
Image Normalizer
Data URI handling and bounded re-encoding of uploaded photos.
"""
import base64
import binascii
import io
import logging
import re
from typing import Optional, Tuple, Union

from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 1024
DEFAULT_QUALITY = 80

# Sent when the payload header is not recognised
FALLBACK_MIME = "image/jpeg"

DATA_URI_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w-]+=[\w.-]+)*;base64,", re.IGNORECASE)

ImageData = Union[str, bytes]


def strip_envelope(data: ImageData) -> bytes:
    """
    Remove a data URI prefix and return the raw image bytes.
    Raw bytes pass through unchanged.
    """
    if isinstance(data, bytes):
        return data

    match = DATA_URI_PATTERN.match(data)
    payload = data[match.end():] if match else data
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as e:
        raise DecodeError(f"Image payload is not valid base64: {e}")


def detect_encoding(data: ImageData) -> str:
    """Report the actual image encoding from the payload's magic bytes."""
    try:
        header = strip_envelope(data)[:16]
    except DecodeError:
        return FALLBACK_MIME

    if header.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if header.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if header[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    if header[:4] == b"RIFF" and header[8:12] == b"WEBP":
        return "image/webp"
    if header.startswith(b"BM"):
        return "image/bmp"
    if header[4:8] == b"ftyp":
        brand = header[8:12]
        if brand in (b"heic", b"heix", b"hevc", b"hevx"):
            return "image/heic"
        if brand in (b"mif1", b"msf1"):
            return "image/heif"
    return FALLBACK_MIME


def to_data_uri(data: bytes, mime: Optional[str] = None) -> str:
    mime = mime or detect_encoding(data)
    return f"data:{mime};base64,{base64.b64encode(data).decode('utf-8')}"


def _open(raw: bytes) -> Image.Image:
    try:
        img = Image.open(io.BytesIO(raw))
        img.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Could not decode image: {e}")
    return img


def read_upload(raw: bytes) -> str:
    """
    Validate uploaded bytes and wrap them as a data URI.

    Raises:
        DecodeError: if the bytes are empty or not a readable image
    """
    if not raw:
        raise DecodeError("The uploaded file is empty.")
    _open(raw)
    return to_data_uri(raw)


def image_size(data: ImageData) -> Tuple[int, int]:
    """Return (width, height) of an encoded image."""
    return _open(strip_envelope(data)).size


def fit_within(size: Tuple[int, int], max_size: int) -> Tuple[int, int]:
    """Clamp the longer side to max_size, keeping the aspect ratio."""
    w, h = size
    longest = max(w, h)
    if longest <= max_size:
        return w, h
    scale = max_size / longest
    return max(1, int(round(w * scale))), max(1, int(round(h * scale)))


def normalize_image(data: ImageData, max_size: int = DEFAULT_MAX_SIZE, quality: int = DEFAULT_QUALITY) -> str:
    """
    Resize an image so neither side exceeds max_size and re-encode it as JPEG.

    Args:
        data: Data URI or raw image bytes
        max_size: Bound for the longer side in pixels
        quality: JPEG quality (1-95)

    Returns:
        A JPEG data URI, or the original image as a data URI if it
        could not be processed.
    """
    original = data if isinstance(data, str) else to_data_uri(data)
    try:
        img = _open(strip_envelope(data))
        img = ImageOps.exif_transpose(img)
        target = fit_within(img.size, max_size)
        if target != img.size:
            logger.info(f"Resizing image from {img.size[0]}x{img.size[1]} to {target[0]}x{target[1]}")
            img = img.resize(target, Image.LANCZOS)
        if img.mode != "RGB":
            img = img.convert("RGB")

        buffer = io.BytesIO()
        img.save(buffer, format="JPEG", quality=quality)
        return to_data_uri(buffer.getvalue(), "image/jpeg")
    except (DecodeError, OSError, ValueError) as e:
        logger.warning(f"Image normalization failed, sending original: {e}")
        return original
