"""
Utility modules for image loading, encoding and the fast raw image format.
"""

from .image import PNG, RAW, ImageUtils
from . import raw_image

__all__ = [
    "PNG",
    "RAW",
    "ImageUtils",
    "raw_image",
]
