"""
Tile Set Bundler

Packs tile set images into bundles for the game client. Object tile sets are
trimmed to their opaque pixels and repacked into compact atlases, with sprite
origins corrected so the trimmed images render exactly like the originals.
Bundles are written as directories or zip archives together with a manifest
in binary, JSON or TOML form.
"""

__version__ = "0.1.0"
__author__ = "Tile Set Bundler Development Team"

from .config import BundleConfig
from .pipeline import BuildReport, ItemState, TileSetBundler
from .processing.metadata import MetadataFormat
from .processing.packer import Packer, StripPacker, TreePacker
from .tiles.bundle import TileSetBundle
from .writers import create_writer

__all__ = [
    "BundleConfig",
    "BuildReport",
    "ItemState",
    "TileSetBundler",
    "MetadataFormat",
    "Packer",
    "StripPacker",
    "TreePacker",
    "TileSetBundle",
    "create_writer",
]
