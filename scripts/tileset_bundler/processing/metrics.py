"""
Origin correction for trimmed sprites.

Trimming removes only fully transparent border pixels, so shifting the
origin by the amount cut from the left and top edges makes the trimmed
image render exactly where the untrimmed one did.
"""

from typing import Dict, Optional, Tuple

from PIL import Image

from ..tiles.base import ObjectMetrics, ObjectTileSet, Sprite, TrimmedSprite, TrimmedTileSet
from ..utils.image import PNG
from .packer import Packer
from .trimmer import TileSetTrimmer, TrimResult


def adjust_metrics(sprite: Sprite, result: TrimResult) -> TrimmedSprite:
    """Build the trimmed counterpart of ``sprite`` from its trim result."""
    # The footprint is game logic and does not depend on the image size
    ometrics = ObjectMetrics(
        x=sprite.xorigin - result.trim_x,
        y=sprite.yorigin - result.trim_y,
        width=sprite.owidth,
        height=sprite.oheight,
    )
    return TrimmedSprite(
        bounds=result.placement,
        ometrics=ometrics,
        priority=sprite.priority,
        spot=sprite.spot,
        constraints=sprite.constraints,
    )


def build_trimmed_tile_set(source: ObjectTileSet, results: Dict[int, TrimResult],
                           image_path: Optional[str] = None) -> TrimmedTileSet:
    """Create a trimmed tile set; ``source`` is left untouched."""
    sprites = [adjust_metrics(sprite, results[index])
               for index, sprite in enumerate(source.sprites)]
    return TrimmedTileSet(
        name=source.name,
        image_path=image_path,
        sprites=sprites,
        colorizations=source.colorizations,
    )


def trim_object_tile_set(source: ObjectTileSet, image: Image.Image,
                         packer: Optional[Packer] = None,
                         image_format: str = PNG,
                         compress_level: int = 6) -> Tuple[TrimmedTileSet, bytes]:
    """
    Trim an object tile set and return it with its new atlas image.

    The trimmed tile set has no image path; set it to wherever the returned
    image bytes are stored.
    """
    output = TileSetTrimmer(packer, compress_level).trim(source, image, image_format)
    return build_trimmed_tile_set(source, output.results), output.image_bytes
