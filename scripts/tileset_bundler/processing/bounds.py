"""
Pixel access and opaque-bounds scanning for sprite cells.
"""

from typing import Optional

import numpy as np
from PIL import Image

from ..errors import OutOfBoundsError
from ..tiles.base import Rect


class PixelSource:
    """
    Read-only view of an image's alpha plane.

    A pixel counts as opaque when its alpha is greater than zero.
    """

    def __init__(self, image: Image.Image):
        rgba = image if image.mode == 'RGBA' else image.convert('RGBA')
        self._alpha = np.asarray(rgba.getchannel('A'))
        self._alpha.setflags(write=False)

    @property
    def width(self) -> int:
        return self._alpha.shape[1]

    @property
    def height(self) -> int:
        return self._alpha.shape[0]

    def contains(self, cell: Rect) -> bool:
        return (cell.x >= 0 and cell.y >= 0 and
                cell.right <= self.width and cell.bottom <= self.height)

    def is_opaque(self, x: int, y: int) -> bool:
        if not (0 <= x < self.width and 0 <= y < self.height):
            raise OutOfBoundsError(f"Pixel ({x}, {y}) outside {self.width}x{self.height} image")
        return bool(self._alpha[y, x] > 0)

    def alpha_region(self, cell: Rect) -> np.ndarray:
        """Return the alpha values covered by ``cell`` (rows first)."""
        if not self.contains(cell):
            raise OutOfBoundsError(
                f"Cell {cell} outside {self.width}x{self.height} image"
            )
        return self._alpha[cell.y:cell.bottom, cell.x:cell.right]


class BoundsScanner:
    """Finds the smallest rectangle enclosing the opaque pixels of a cell."""

    def __init__(self, source: PixelSource):
        self.source = source

    def scan(self, cell: Rect) -> Optional[Rect]:
        """
        Scan ``cell`` for non-transparent pixels.

        Returns:
            Bounds in cell-local coordinates, or None if the cell is fully transparent
        """
        opaque = self.source.alpha_region(cell) > 0

        rows = np.flatnonzero(opaque.any(axis=1))
        if rows.size == 0:
            return None
        cols = np.flatnonzero(opaque.any(axis=0))

        top, bottom = int(rows[0]), int(rows[-1])
        left, right = int(cols[0]), int(cols[-1])
        return Rect(left, top, right - left + 1, bottom - top + 1)
