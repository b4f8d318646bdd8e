"""Image inspection and recompression helpers."""

from .optimizer import WEBP_CONTENT_TYPE, ImageOptimizer, OptimizedImage
from .sniffing import IMAGE_MIME_TYPES, ImageMIME, is_image_mime, sniff_mime

__all__ = [
    "IMAGE_MIME_TYPES",
    "ImageMIME",
    "ImageOptimizer",
    "OptimizedImage",
    "WEBP_CONTENT_TYPE",
    "is_image_mime",
    "sniff_mime",
]
