"""
Image loading and encoding utilities for the bundler.
"""

import io
from pathlib import Path
from typing import Union

from PIL import Image

from ..errors import ImageDecodeError
from . import raw_image


PNG = "png"
RAW = "raw"


class ImageUtils:
    """Utility class for common image operations."""

    @staticmethod
    def load_image(data: Union[bytes, str, Path, Image.Image]) -> Image.Image:
        """
        Load and fully decode an image from bytes, a path or a PIL Image.

        Raises:
            ImageDecodeError: If data cannot be decoded as an image
        """
        if isinstance(data, Image.Image):
            return data

        if isinstance(data, bytes):
            if data[:4] == raw_image.MAGIC:
                return raw_image.decode(data)
            source = io.BytesIO(data)
            label = "bytes"
        elif isinstance(data, (str, Path)):
            path = Path(data)
            if path.suffix.lower() == raw_image.FILE_SUFFIX:
                try:
                    return raw_image.decode(path.read_bytes())
                except OSError as e:
                    raise ImageDecodeError(f"Cannot read image '{path}': {e}")
            source = str(path)
            label = f"path '{path}'"
        else:
            raise ImageDecodeError(f"Unsupported image data type: {type(data)}")

        try:
            image = Image.open(source)
            image.load()
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise ImageDecodeError(f"Cannot load image from {label}: {e}")
        return image

    @staticmethod
    def ensure_rgba(image: Image.Image) -> Image.Image:
        """Convert image to RGBA mode if not already."""
        if image.mode != 'RGBA':
            return image.convert('RGBA')
        return image

    @staticmethod
    def encode_image(image: Image.Image, image_format: str = PNG, compress_level: int = 6) -> bytes:
        """
        Encode an image as PNG or in the fast raw format.

        Args:
            image: Image to encode
            image_format: ``"png"`` or ``"raw"``
            compress_level: zlib level for PNG output
        """
        if image_format == RAW:
            return raw_image.encode(image)
        elif image_format == PNG:
            buffer = io.BytesIO()
            image.save(buffer, format='PNG', compress_level=compress_level)
            return buffer.getvalue()
        else:
            raise ValueError(f"Unknown image format: {image_format}")

    @staticmethod
    def can_write_raw(image: Image.Image) -> bool:
        return raw_image.can_write(image)

    @staticmethod
    def adjust_image_path(image_path: str) -> str:
        """Replace the image suffix with ``.raw``."""
        dot = image_path.rfind('.')
        slash = max(image_path.rfind('/'), image_path.rfind('\\'))
        base = image_path if dot <= slash else image_path[:dot]
        return base + raw_image.FILE_SUFFIX
