"""
Processing modules for opaque bounds scanning, packing, trimming, metrics correction and metadata.
"""

from .bounds import BoundsScanner, PixelSource
from .packer import PACKERS, PackResult, Packer, StripPacker, TreePacker, create_packer
from .trimmer import TileSetTrimmer, TrimOutput, TrimResult
from .metrics import adjust_metrics, build_trimmed_tile_set, trim_object_tile_set
from .metadata import (
    METADATA_PATHS,
    MetadataFormat,
    TomlMetadataRenderer,
    decode_metadata,
    encode_metadata,
    read_binary_metadata,
)

__all__ = [
    "BoundsScanner",
    "PixelSource",
    "PACKERS",
    "PackResult",
    "Packer",
    "StripPacker",
    "TreePacker",
    "create_packer",
    "TileSetTrimmer",
    "TrimOutput",
    "TrimResult",
    "adjust_metrics",
    "build_trimmed_tile_set",
    "trim_object_tile_set",
    "METADATA_PATHS",
    "MetadataFormat",
    "TomlMetadataRenderer",
    "decode_metadata",
    "encode_metadata",
    "read_binary_metadata",
]
