"""Image payload helpers: data URLs, MIME sniffing and PNG normalization."""

import base64
import binascii
import io

from PIL import Image, UnidentifiedImageError

from ..errors import InvalidInput
from ..models import UserPhoto


def split_data_url(data_url: str) -> tuple[str, str]:
    """Split ``data:<mime>;base64,<payload>`` into (payload, mime type)."""
    header, _, data = data_url.partition(",")
    if not header.startswith("data:") or not data:
        raise ValueError("Invalid data URL")
    mime_type = header[len("data:"):].split(";")[0] or "application/octet-stream"
    return data, mime_type


def to_data_url(payload: str, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{payload}"


def detect_mime_type(image_bytes: bytes, default: str = "image/png") -> str:
    """Detect image format from magic bytes."""
    if image_bytes[:3] == b'\xff\xd8\xff':
        return "image/jpeg"
    if image_bytes[:8] == b'\x89PNG\r\n\x1a\n':
        return "image/png"
    if image_bytes[:4] == b'RIFF' and image_bytes[8:12] == b'WEBP':
        return "image/webp"
    if image_bytes[:6] in (b'GIF87a', b'GIF89a'):
        return "image/gif"
    return default


def decode_image(data: str) -> bytes:
    """Decode a data URL or raw base64 string to bytes."""
    if data.startswith("data:"):
        data, _ = split_data_url(data)
    return base64.b64decode(data, validate=True)


def to_png_bytes(raw_bytes: bytes) -> bytes:
    """Re-encode any Pillow-readable image as PNG."""
    img = Image.open(io.BytesIO(raw_bytes))
    # Convert to RGB if needed (e.g., RGBA, P mode)
    if img.mode in ('RGBA', 'P'):
        img = img.convert('RGB')
    output = io.BytesIO()
    img.save(output, format='PNG')
    return output.getvalue()


def photo_from_upload(data: bytes | str) -> UserPhoto:
    """Normalize a captured frame or uploaded file into a UserPhoto.

    Accepts raw bytes, a data URL or bare base64. The result is always PNG
    with a data URL display handle.

    Raises:
        InvalidInput: if the payload is not a decodable image.
    """
    try:
        raw_bytes = decode_image(data) if isinstance(data, str) else data
        png_bytes = to_png_bytes(raw_bytes)
    except (ValueError, binascii.Error, UnidentifiedImageError, OSError) as e:
        raise InvalidInput("Failed to process the uploaded image.") from e

    encoded = base64.b64encode(png_bytes).decode("utf-8")
    return UserPhoto(base64=encoded, mime_type="image/png", url=to_data_url(encoded))
