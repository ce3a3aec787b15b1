"""
Tile set trimming: crop every sprite to its opaque bounds and repack the
results into a new atlas image.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from PIL import Image

from ..errors import OutOfBoundsError, TrimError
from ..tiles.base import Rect, TileSet
from ..utils.image import PNG, ImageUtils
from .bounds import BoundsScanner, PixelSource
from .packer import Packer, StripPacker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrimResult:
    """Where a trimmed sprite ended up and how much was cut from its cell."""
    placement: Rect
    trim_x: int = 0
    trim_y: int = 0

    @property
    def width(self) -> int:
        return self.placement.width

    @property
    def height(self) -> int:
        return self.placement.height

    @property
    def is_degenerate(self) -> bool:
        return self.placement.is_empty


@dataclass
class TrimOutput:
    """Encoded atlas image plus the per-sprite trim results."""
    image_bytes: bytes
    results: Dict[int, TrimResult] = field(default_factory=dict)
    atlas_size: Tuple[int, int] = (0, 0)


class TileSetTrimmer:
    """Trims the sprites of a tile set and packs them into a new atlas."""

    def __init__(self, packer: Optional[Packer] = None, compress_level: int = 6):
        self.packer = packer or StripPacker()
        self.compress_level = compress_level

    def trim(self, tile_set: TileSet, image: Image.Image, image_format: str = PNG) -> TrimOutput:
        """
        Trim every sprite of ``tile_set`` and encode the packed atlas.

        Args:
            tile_set: Source tile set, never modified
            image: Decoded source image, never modified
            image_format: ``"png"`` or ``"raw"``

        Returns:
            TrimOutput with the atlas bytes and a TrimResult per sprite index

        Raises:
            TrimError: If a cell lies outside the image or packing fails
        """
        source = PixelSource(image)
        scanner = BoundsScanner(source)

        # Source cell and opaque bounds (cell-local) of each sprite
        cells: Dict[int, Tuple[Rect, Optional[Rect]]] = {}
        for index in range(tile_set.tile_count):
            cell = tile_set.layout.cell(index)
            try:
                cells[index] = (cell, scanner.scan(cell))
            except OutOfBoundsError as e:
                raise TrimError(f"Tile {index} of '{tile_set.name}' is not inside its image: {e}")

        to_pack = [(index, bounds.width, bounds.height)
                   for index, (_, bounds) in cells.items() if bounds is not None]
        try:
            packed = self.packer.pack(to_pack)
        except Exception as e:
            raise TrimError(f"Packing '{tile_set.name}' failed: {e}") from e

        rgba = ImageUtils.ensure_rgba(image)
        # PNG cannot hold a 0x0 image; an all-transparent set keeps a 1x1 canvas
        atlas = Image.new('RGBA', (max(packed.width, 1), max(packed.height, 1)), (0, 0, 0, 0))
        results: Dict[int, TrimResult] = {}

        for index, (cell, bounds) in cells.items():
            if bounds is None:
                results[index] = TrimResult(Rect(0, 0, 0, 0))
                continue

            if index not in packed.positions:
                raise TrimError(f"Packer did not place tile {index} of '{tile_set.name}'")
            placement = packed.placement(index, bounds.width, bounds.height)
            if placement.x < 0 or placement.y < 0 or \
                    placement.right > packed.width or placement.bottom > packed.height:
                raise TrimError(f"Packer placed tile {index} outside the {packed.width}x{packed.height} canvas")

            region = rgba.crop(bounds.translate(cell.x, cell.y).as_box())
            atlas.paste(region, (placement.x, placement.y))
            results[index] = TrimResult(placement, bounds.x, bounds.y)

        logger.debug(
            f"Trimmed '{tile_set.name}': {tile_set.tile_count} tiles into "
            f"{packed.width}x{packed.height} atlas"
        )
        try:
            image_bytes = ImageUtils.encode_image(atlas, image_format, self.compress_level)
        except (OSError, ValueError) as e:
            raise TrimError(f"Encoding trimmed image of '{tile_set.name}' failed: {e}") from e

        return TrimOutput(image_bytes, results, (packed.width, packed.height))
