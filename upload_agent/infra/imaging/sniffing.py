from __future__ import annotations

from enum import StrEnum

import filetype


class ImageMIME(StrEnum):
    JPEG = "image/jpeg"
    JPG = "image/jpg"
    PNG = "image/png"
    WEBP = "image/webp"
    TIFF = "image/tiff"
    BMP = "image/bmp"
    GIF = "image/gif"


IMAGE_MIME_TYPES: frozenset[str] = frozenset(m.value for m in ImageMIME)


def sniff_mime(data: bytes) -> str | None:
    """Guess the MIME type of a buffer from its magic bytes."""
    if not data:
        return None
    kind = filetype.guess(data)
    return kind.mime if kind else None


def is_image_mime(content_type: str | None) -> bool:
    if not content_type:
        return False
    return content_type.split(";")[0].strip().lower() in IMAGE_MIME_TYPES
