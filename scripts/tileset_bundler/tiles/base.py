"""
Tile set data model: sprites, cell layouts, source and trimmed tile sets.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


NO_SPOT = -1


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in pixel coordinates."""
    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    def contains_point(self, x: int, y: int) -> bool:
        """Check if point is inside rectangle."""
        return self.x <= x < self.right and self.y <= y < self.bottom

    def intersects(self, other: 'Rect') -> bool:
        """Check if this rectangle shares any area with another."""
        if self.is_empty or other.is_empty:
            return False
        return not (self.right <= other.x or other.right <= self.x or
                    self.bottom <= other.y or other.bottom <= self.y)

    def translate(self, dx: int, dy: int) -> 'Rect':
        return Rect(self.x + dx, self.y + dy, self.width, self.height)

    def as_box(self) -> Tuple[int, int, int, int]:
        """Return (left, top, right, bottom) as used by Pillow."""
        return (self.x, self.y, self.right, self.bottom)


@dataclass(frozen=True)
class Spot:
    """Interaction point of an object sprite."""
    x: int
    y: int
    orient: int = NO_SPOT


@dataclass(frozen=True)
class Sprite:
    """
    One object tile: declared footprint, origin and optional render bits.

    Optional attributes are present or absent per sprite; there are no
    partially filled per-attribute arrays.
    """
    owidth: int
    oheight: int
    xorigin: int = 0
    yorigin: int = 0
    priority: Optional[int] = None
    spot: Optional[Spot] = None
    constraints: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True)
class RowSpec:
    """One row of equally sized cells."""
    count: int
    width: int
    height: int


@dataclass(frozen=True)
class GridLayout:
    """
    Cell layout of a tile set image.

    Rows are stacked top to bottom and cells run left to right within a row.
    The offset positions the first cell and the gap separates neighbouring
    cells and rows.
    """
    rows: Tuple[RowSpec, ...] = ()
    offset: Tuple[int, int] = (0, 0)
    gap: Tuple[int, int] = (0, 0)

    @classmethod
    def uniform(cls, width: int, height: int, count: int, columns: Optional[int] = None,
                offset: Tuple[int, int] = (0, 0), gap: Tuple[int, int] = (0, 0)) -> "GridLayout":
        """Build a layout of ``count`` same-sized cells wrapped at ``columns``."""
        columns = columns or count
        rows = []
        remaining = count
        while remaining > 0:
            rows.append(RowSpec(min(columns, remaining), width, height))
            remaining -= columns
        return cls(tuple(rows), offset, gap)

    @property
    def tile_count(self) -> int:
        return sum(row.count for row in self.rows)

    def cell(self, index: int) -> Rect:
        """Compute the source cell of the tile at ``index``."""
        if index < 0 or index >= self.tile_count:
            raise IndexError(f"Tile index {index} out of range [0, {self.tile_count})")

        y = self.offset[1]
        for row in self.rows:
            if index < row.count:
                x = self.offset[0] + index * (row.width + self.gap[0])
                return Rect(x, y, row.width, row.height)
            index -= row.count
            y += row.height + self.gap[1]

        raise IndexError(f"Tile index {index} not found in layout")


@dataclass
class TileSet:
    """A plain (decorative) tile set sharing one source image."""
    name: Optional[str]
    image_path: Optional[str]
    layout: GridLayout = field(default_factory=GridLayout)

    @property
    def is_object_set(self) -> bool:
        return False

    @property
    def tile_count(self) -> int:
        return self.layout.tile_count

    def tile_bounds(self, index: int) -> Rect:
        return self.layout.cell(index)


@dataclass
class ObjectTileSet(TileSet):
    """A tile set whose sprites are interactive game objects."""
    sprites: List[Sprite] = field(default_factory=list)
    colorizations: Optional[Tuple[str, ...]] = None

    def __post_init__(self):
        if len(self.sprites) != self.layout.tile_count:
            raise ValueError(
                f"Object tile set '{self.name}' declares {self.layout.tile_count} cells "
                f"but {len(self.sprites)} sprites"
            )

    @property
    def is_object_set(self) -> bool:
        return True


@dataclass(frozen=True)
class ObjectMetrics:
    """Origin offset and footprint of an object tile."""
    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class TrimmedSprite:
    """An object tile after trimming, located inside the packed atlas."""
    bounds: Rect
    ometrics: ObjectMetrics
    priority: Optional[int] = None
    spot: Optional[Spot] = None
    constraints: Optional[Tuple[str, ...]] = None


@dataclass
class TrimmedTileSet:
    """
    An object tile set whose sprites were trimmed to their opaque bounds.

    The origins are shifted so that each tile renders exactly like its
    untrimmed counterpart.
    """
    name: Optional[str]
    image_path: Optional[str]
    sprites: List[TrimmedSprite] = field(default_factory=list)
    colorizations: Optional[Tuple[str, ...]] = None

    @property
    def is_object_set(self) -> bool:
        return True

    @property
    def tile_count(self) -> int:
        return len(self.sprites)

    def tile_bounds(self, index: int) -> Rect:
        return self.sprites[index].bounds

    def base_width(self, index: int) -> int:
        return self.sprites[index].ometrics.width

    def base_height(self, index: int) -> int:
        return self.sprites[index].ometrics.height

    def origin(self, index: int) -> Tuple[int, int]:
        metrics = self.sprites[index].ometrics
        return (metrics.x, metrics.y)

    def x_spot(self, index: int) -> int:
        spot = self.sprites[index].spot
        return 0 if spot is None else spot.x

    def y_spot(self, index: int) -> int:
        spot = self.sprites[index].spot
        return 0 if spot is None else spot.y

    def spot_orient(self, index: int) -> int:
        """Orientation of the tile's spot, or ``NO_SPOT`` when it has none."""
        spot = self.sprites[index].spot
        return NO_SPOT if spot is None else spot.orient

    def constraints(self, index: int) -> Optional[Tuple[str, ...]]:
        return self.sprites[index].constraints

    def has_constraint(self, index: int, constraint: str) -> bool:
        constraints = self.sprites[index].constraints
        return constraints is not None and constraint in constraints
