"""
Tile set model: geometry, sprites, bundles, id brokers and description loading.
"""

from .base import (
    GridLayout,
    ObjectMetrics,
    ObjectTileSet,
    Rect,
    RowSpec,
    Sprite,
    Spot,
    TileSet,
    TrimmedSprite,
    TrimmedTileSet,
)
from .bundle import TileSetBundle
from .ids import FileTileSetIDBroker, MemoryTileSetIDBroker, TileSetIDBroker
from .description import ParsedDescription, load_bundle_description

__all__ = [
    "GridLayout",
    "ObjectMetrics",
    "ObjectTileSet",
    "Rect",
    "RowSpec",
    "Sprite",
    "Spot",
    "TileSet",
    "TrimmedSprite",
    "TrimmedTileSet",
    "TileSetBundle",
    "FileTileSetIDBroker",
    "MemoryTileSetIDBroker",
    "TileSetIDBroker",
    "ParsedDescription",
    "load_bundle_description",
]
