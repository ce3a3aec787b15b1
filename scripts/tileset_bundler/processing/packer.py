"""
Packing strategies that place trimmed sprite rectangles onto an atlas canvas.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, Hashable, List, Optional, Sequence, Tuple

from ..errors import ConfigurationError
from ..tiles.base import Rect


PackItem = Tuple[Hashable, int, int]


@dataclass
class PackResult:
    """Canvas size and the top-left position assigned to each item id."""
    width: int
    height: int
    positions: Dict[Hashable, Tuple[int, int]] = field(default_factory=dict)

    def placement(self, item_id: Hashable, width: int, height: int) -> Rect:
        x, y = self.positions[item_id]
        return Rect(x, y, width, height)

    def calculate_efficiency(self, items: Sequence[PackItem]) -> float:
        """Used area / canvas area."""
        total_area = self.width * self.height
        used = sum(w * h for _, w, h in items)
        return used / total_area if total_area > 0 else 0.0


class Packer(ABC):
    """Strategy interface for laying out rectangles on a single canvas."""

    @abstractmethod
    def pack(self, rects: Sequence[PackItem]) -> PackResult:
        """
        Place every rectangle without overlap.

        Args:
            rects: Sequence of (id, width, height) in declaration order

        Returns:
            PackResult with the canvas size and every item's position
        """
        pass


class StripPacker(Packer):
    """
    Greedy shelf packer.

    Items are placed left to right in input order. When the next item would
    run past ``max_width`` a new row starts below the tallest item of the
    current row. An item wider than ``max_width`` gets a row of its own and
    widens the canvas.
    """

    def __init__(self, max_width: int = 1024):
        if max_width <= 0:
            raise ConfigurationError(f"Strip width must be positive, got {max_width}")
        self.max_width = max_width

    def pack(self, rects: Sequence[PackItem]) -> PackResult:
        result = PackResult(0, 0)
        x = y = row_height = 0

        for item_id, width, height in rects:
            if x > 0 and x + width > self.max_width:
                y += row_height
                x = row_height = 0

            result.positions[item_id] = (x, y)
            x += width
            row_height = max(row_height, height)
            result.width = max(result.width, x)

        result.height = y + row_height
        return result


@dataclass
class LayoutNode:
    """Node in the layout tree for binary-tree bin packing."""
    rect: Rect
    used: bool = False
    right: Optional['LayoutNode'] = None
    down: Optional['LayoutNode'] = None

    def find_node(self, width: int, height: int) -> Optional['LayoutNode']:
        """Find a node that can fit the given dimensions."""
        if self.used:
            node = self.right.find_node(width, height) if self.right else None
            if node:
                return node
            return self.down.find_node(width, height) if self.down else None
        elif width <= self.rect.width and height <= self.rect.height:
            return self
        else:
            return None

    def split_node(self, width: int, height: int) -> 'LayoutNode':
        """Split this node to accommodate the given dimensions."""
        self.used = True

        if self.rect.width > width:
            self.right = LayoutNode(Rect(
                self.rect.x + width, self.rect.y,
                self.rect.width - width, self.rect.height
            ))

        if self.rect.height > height:
            self.down = LayoutNode(Rect(
                self.rect.x, self.rect.y + height,
                width, self.rect.height - height
            ))

        return self


class TreePacker(Packer):
    """
    Binary-tree bin packer.

    Items are inserted largest area first into a square canvas that grows
    until everything fits. The canvas is then shrunk to the used extent.
    """

    def __init__(self, padding: int = 0, growth: float = 1.25):
        self.padding = padding
        self.growth = growth

    def pack(self, rects: Sequence[PackItem]) -> PackResult:
        items = [(item_id, w, h) for item_id, w, h in rects if w > 0 and h > 0]
        empty = [item_id for item_id, w, h in rects if w <= 0 or h <= 0]

        result = PackResult(0, 0, {item_id: (0, 0) for item_id in empty})
        if not items:
            return result

        # Stable order for equal areas keeps the layout reproducible
        order = sorted(range(len(items)), key=lambda i: (-items[i][1] * items[i][2], i))
        ordered = [items[i] for i in order]

        total_area = sum((w + self.padding) * (h + self.padding) for _, w, h in ordered)
        widest = max(max(w, h) for _, w, h in ordered) + self.padding
        size = max(int(math.sqrt(total_area)), widest)

        while True:
            positions = self._try_pack(ordered, size)
            if positions is not None:
                break
            size = int(math.ceil(size * self.growth))

        for item_id, width, height in ordered:
            x, y = positions[item_id]
            result.positions[item_id] = (x, y)
            result.width = max(result.width, x + width)
            result.height = max(result.height, y + height)
        return result

    def _try_pack(self, items: List[PackItem], size: int) -> Optional[Dict[Hashable, Tuple[int, int]]]:
        """Try to pack items into a size x size canvas."""
        root = LayoutNode(Rect(0, 0, size, size))
        positions = {}

        for item_id, width, height in items:
            padded_width = width + self.padding
            padded_height = height + self.padding

            node = root.find_node(padded_width, padded_height)
            if not node:
                return None

            node.split_node(padded_width, padded_height)
            positions[item_id] = (node.rect.x, node.rect.y)

        return positions


PACKERS: Dict[str, Callable[..., Packer]] = {
    "strip": StripPacker,
    "tree": TreePacker,
}


def create_packer(name: str, **kwargs) -> Packer:
    """Instantiate a registered packer by name."""
    try:
        factory = PACKERS[name]
    except KeyError:
        raise ConfigurationError(
            f"Unknown packer '{name}', expected one of: {', '.join(sorted(PACKERS))}"
        )
    return factory(**kwargs)
