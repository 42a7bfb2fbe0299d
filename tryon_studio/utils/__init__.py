"""Utility helpers for the try-on studio."""

from .images import (
    split_data_url,
    to_data_url,
    detect_mime_type,
    decode_image,
    to_png_bytes,
    photo_from_upload,
)

__all__ = [
    "split_data_url",
    "to_data_url",
    "detect_mime_type",
    "decode_image",
    "to_png_bytes",
    "photo_from_upload",
]
