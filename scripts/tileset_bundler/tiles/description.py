"""
Loading of bundle descriptions (TOML or JSON) into tile set objects.

A description lists tile sets under a top-level ``tileset`` array:

    [[tileset]]
    kind = "object"
    name = "trees"
    image = "trees.png"
    rows = [[4, 64, 64]]
    colorizations = ["leaves"]

    [[tileset.sprites]]
    owidth = 2
    oheight = 2
    xorigin = 32
    yorigin = 60
    spot = [10, 12, 3]
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import toml

from ..errors import DescriptionError
from .base import GridLayout, ObjectTileSet, RowSpec, Sprite, Spot, TileSet


@dataclass
class ParsedDescription:
    """Tile sets read from a description plus the description's mtime."""
    path: Path
    tile_sets: List[TileSet] = field(default_factory=list)
    newest_mtime: float = 0.0


def load_bundle_description(path: Union[str, Path]) -> ParsedDescription:
    """
    Parse a bundle description file.

    Args:
        path: TOML or JSON description file

    Returns:
        ParsedDescription with tile sets in declaration order

    Raises:
        DescriptionError: If the file is missing, malformed or names an unknown kind
    """
    path = Path(path)
    if not path.exists():
        raise DescriptionError(f"Bundle description not found: {path}")

    try:
        if path.suffix.lower() == '.toml':
            data = toml.load(str(path))
        elif path.suffix.lower() == '.json':
            with open(path, 'r') as f:
                data = json.load(f)
        else:
            raise DescriptionError(f"Unsupported description format: {path.suffix}")
    except DescriptionError:
        raise
    except (OSError, ValueError, toml.TomlDecodeError) as e:
        raise DescriptionError(f"Failure parsing bundle description {path}: {e}")

    tile_sets = [parse_tile_set(entry) for entry in data.get('tileset', [])]
    return ParsedDescription(path, tile_sets, os.path.getmtime(path))


def parse_tile_set(entry: Dict[str, Any]) -> TileSet:
    """Build a tile set from one description entry."""
    kind = entry.get('kind', 'uniform')
    name = entry.get('name')
    image = entry.get('image')

    try:
        layout = _parse_layout(kind, entry)
        if kind == 'object':
            sprites = [_parse_sprite(s) for s in entry.get('sprites', [])]
            zations = entry.get('colorizations')
            return ObjectTileSet(
                name=name,
                image_path=image,
                layout=layout,
                sprites=sprites,
                colorizations=tuple(zations) if zations is not None else None,
            )
        return TileSet(name=name, image_path=image, layout=layout)
    except (KeyError, TypeError, ValueError) as e:
        raise DescriptionError(f"Invalid tile set '{name}': {e}")


def _parse_layout(kind: str, entry: Dict[str, Any]) -> GridLayout:
    offset = tuple(entry.get('offset', (0, 0)))
    gap = tuple(entry.get('gap', (0, 0)))

    if kind == 'uniform':
        if 'width' not in entry:
            return GridLayout(offset=offset, gap=gap)
        return GridLayout.uniform(
            entry['width'], entry['height'], entry.get('count', 1),
            columns=entry.get('columns'), offset=offset, gap=gap,
        )
    elif kind in ('swiss', 'object'):
        rows = tuple(RowSpec(int(c), int(w), int(h)) for c, w, h in entry.get('rows', []))
        return GridLayout(rows, offset, gap)
    else:
        raise DescriptionError(f"Unknown tile set kind: {kind}")


def _parse_sprite(data: Dict[str, Any]) -> Sprite:
    spot: Optional[Spot] = None
    if 'spot' in data:
        x, y, orient = data['spot']
        spot = Spot(int(x), int(y), int(orient))

    constraints = data.get('constraints')
    return Sprite(
        owidth=int(data['owidth']),
        oheight=int(data['oheight']),
        xorigin=int(data.get('xorigin', 0)),
        yorigin=int(data.get('yorigin', 0)),
        priority=data.get('priority'),
        spot=spot,
        constraints=tuple(constraints) if constraints is not None else None,
    )
