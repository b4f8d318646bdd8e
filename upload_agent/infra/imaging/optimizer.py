"""Image recompression used before uploading pictures.

Images are shrunk to fit a bounding box (never enlarged, aspect ratio kept)
and re-encoded as lossy WebP. EXIF and ICC data travel with the new file.

Dependencies:
    - Pillow
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from io import BytesIO
from typing import Any

from PIL import Image

from upload_agent.common.config import (
    DEFAULT_IMAGE_MAX_DIMENSION,
    DEFAULT_IMAGE_QUALITY,
)
from upload_agent.common.errors import ImageProcessingError

WEBP_CONTENT_TYPE = "image/webp"

_ALPHA_MODES = {"RGBA", "LA", "PA", "RGBa", "La"}


@dataclass(frozen=True, slots=True)
class OptimizedImage:
    data: bytes
    content_type: str
    width: int
    height: int


def _has_alpha(image: Image.Image) -> bool:
    if image.mode in _ALPHA_MODES:
        return True
    return image.mode == "P" and "transparency" in image.info


class ImageOptimizer:
    """Resize-and-transcode policy applied to uploaded images."""

    def __init__(
        self,
        *,
        max_width: int = DEFAULT_IMAGE_MAX_DIMENSION,
        max_height: int = DEFAULT_IMAGE_MAX_DIMENSION,
        quality: int = DEFAULT_IMAGE_QUALITY,
    ) -> None:
        if max_width <= 0 or max_height <= 0:
            raise ValueError("max_width and max_height must be positive")
        self.max_width = max_width
        self.max_height = max_height
        self.quality = quality

    async def compress(self, data: bytes) -> OptimizedImage:
        """Recompress in a worker thread so the event loop stays free."""
        return await asyncio.to_thread(self.compress_sync, data)

    def compress_sync(self, data: bytes) -> OptimizedImage:
        try:
            with Image.open(BytesIO(data)) as source:
                source.load()
                metadata = self._metadata(source)
                image = self._normalize_mode(source)
                image.thumbnail(
                    (self.max_width, self.max_height), Image.Resampling.LANCZOS
                )
                buffer = BytesIO()
                image.save(buffer, format="WEBP", quality=self.quality, **metadata)
                width, height = image.size
        except Exception as exc:
            raise ImageProcessingError(f"Failed to optimize image: {exc}") from exc

        return OptimizedImage(
            data=buffer.getvalue(),
            content_type=WEBP_CONTENT_TYPE,
            width=width,
            height=height,
        )

    @staticmethod
    def _metadata(image: Image.Image) -> dict[str, Any]:
        metadata: dict[str, Any] = {}
        exif = image.info.get("exif")
        if exif:
            metadata["exif"] = exif
        icc_profile = image.info.get("icc_profile")
        if icc_profile:
            metadata["icc_profile"] = icc_profile
        return metadata

    @staticmethod
    def _normalize_mode(image: Image.Image) -> Image.Image:
        # WebP only encodes RGB and RGBA
        if image.mode in {"RGB", "RGBA"}:
            return image.copy()
        return image.convert("RGBA" if _has_alpha(image) else "RGB")
