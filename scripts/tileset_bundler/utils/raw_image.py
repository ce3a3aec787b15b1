"""
Fast raw image format.

The format trades size for load speed: pixel data is stored exactly as
Pillow keeps it in memory so decoding is a single ``frombytes`` call.

    Offset Size Description
    ------ ---- -----------
    0      4    Magic ('TSRW')
    4      1    Format version
    5      1    Length of mode name (n)
    6      n    Pillow mode name, ASCII
    6+n    4    Width (big endian)
    10+n   4    Height
    14+n   4    Palette length in bytes (p, zero unless mode is 'P')
    18+n   p    Palette
    18+n+p 2    Transparent palette index (signed, -1 for none)
    20+n+p ...  Pixel data
"""

import struct

from PIL import Image

from ..errors import ImageDecodeError

MAGIC = b"TSRW"
VERSION = 1
FILE_SUFFIX = ".raw"

WRITABLE_MODES = ('RGBA', 'RGB', 'LA', 'L', 'P')

_SIZE_FMT = ">III"
_TRANS_FMT = ">h"


def can_write(image: Image.Image) -> bool:
    """Check whether ``image`` can be stored in the raw format without loss."""
    if image.mode not in WRITABLE_MODES:
        return False
    if image.mode == 'P':
        transparency = image.info.get('transparency')
        return transparency is None or isinstance(transparency, int)
    return True


def encode(image: Image.Image) -> bytes:
    """Encode ``image`` into raw format bytes."""
    if not can_write(image):
        raise ValueError(f"Image mode {image.mode} cannot be written as raw")

    mode = image.mode.encode('ascii')
    palette = b""
    transparency = -1
    if image.mode == 'P':
        palette = bytes(image.getpalette() or [])
        transparency = image.info.get('transparency', -1)

    header = MAGIC + struct.pack(">BB", VERSION, len(mode)) + mode
    header += struct.pack(_SIZE_FMT, image.width, image.height, len(palette))
    return header + palette + struct.pack(_TRANS_FMT, transparency) + image.tobytes()


def decode(data: bytes) -> Image.Image:
    """
    Decode raw format bytes.

    Raises:
        ImageDecodeError: If the data is truncated or not in raw format
    """
    if data[:4] != MAGIC:
        raise ImageDecodeError("Not a raw format image")

    try:
        version, mode_len = struct.unpack_from(">BB", data, 4)
        if version != VERSION:
            raise ImageDecodeError(f"Unsupported raw format version {version}")

        offset = 6
        mode = data[offset:offset + mode_len].decode('ascii')
        offset += mode_len

        width, height, palette_len = struct.unpack_from(_SIZE_FMT, data, offset)
        offset += struct.calcsize(_SIZE_FMT)
        palette = data[offset:offset + palette_len]
        offset += palette_len
        (transparency,) = struct.unpack_from(_TRANS_FMT, data, offset)
        offset += struct.calcsize(_TRANS_FMT)

        image = Image.frombytes(mode, (width, height), data[offset:])
    except ImageDecodeError:
        raise
    except (struct.error, ValueError, UnicodeDecodeError) as e:
        raise ImageDecodeError(f"Corrupt raw format image: {e}")

    if palette:
        image.putpalette(palette)
    if transparency >= 0:
        image.info['transparency'] = transparency
    return image
