from __future__ import annotations

import base64
import binascii
import io
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from .errors import ImageValidationError
from .types import now_ms

SUPPORTED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")

_FORMAT_TO_MIME = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
    "GIF": "image/gif",
}


def strip_data_uri(value: str) -> str:
    """Drop a ``data:<mime>;base64,`` prefix, leaving the base64 payload."""
    if value.startswith("data:") and "," in value:
        return value.split(",", 1)[1]
    return value


def to_data_uri(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


def decode_base64_image(value: str) -> bytes:
    """Decode a base64 payload, with or without a data-URI prefix."""
    try:
        return base64.b64decode(strip_data_uri(value), validate=True)
    except (ValueError, binascii.Error) as exc:
        raise ImageValidationError("Image data is not valid base64") from exc


def detect_mime(data: bytes) -> str | None:
    """Return the MIME type Pillow recognizes for ``data``, or None."""
    try:
        with Image.open(io.BytesIO(data)) as image:
            return _FORMAT_TO_MIME.get(image.format or "")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        return None


def validate_image(data: bytes, max_size_mb: float = 10.0) -> str:
    """Check size and type of a picked image and return its MIME type."""
    size_mb = len(data) / (1024 * 1024)
    if size_mb > max_size_mb:
        raise ImageValidationError(
            f"Image is {size_mb:.1f} MB; the limit is {max_size_mb:g} MB"
        )
    mime = detect_mime(data)
    if mime not in SUPPORTED_IMAGE_TYPES:
        raise ImageValidationError(
            f"Unsupported image type; expected one of {', '.join(SUPPORTED_IMAGE_TYPES)}"
        )
    return mime


def to_jpeg(data: bytes, quality: int = 90) -> bytes:
    """Re-encode any supported image as an RGB JPEG."""
    if data[:3] == b"\xff\xd8\xff":
        return data
    try:
        with Image.open(io.BytesIO(data)) as image:
            if image.mode in ("RGBA", "LA", "P"):
                rgba = image.convert("RGBA")
                rgb = Image.new("RGB", rgba.size, (255, 255, 255))
                rgb.paste(rgba, mask=rgba.getchannel("A"))
            else:
                rgb = image.convert("RGB")
            buffer = io.BytesIO()
            rgb.save(buffer, format="JPEG", quality=quality)
            return buffer.getvalue()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as exc:
        raise ImageValidationError(f"Cannot convert image to JPEG: {exc}") from exc


def save_look_image(image: str, directory: str | Path) -> Path:
    """Write a generated look (data URI or bare base64 PNG) to ``directory``."""
    target_dir = Path(directory)
    target_dir.mkdir(parents=True, exist_ok=True)
    path = target_dir / f"zyora-look-{now_ms()}.png"
    path.write_bytes(decode_base64_image(image))
    return path
