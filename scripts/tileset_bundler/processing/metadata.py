"""
Serialization of the bundle manifest in binary, JSON or TOML form.
"""

import io
import json
import struct
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import toml
from jinja2 import Environment, FileSystemLoader, TemplateError

from ..errors import MetadataWriteError
from ..tiles.base import (
    GridLayout, ObjectMetrics, ObjectTileSet, Rect, RowSpec, Sprite, Spot,
    TileSet, TrimmedSprite, TrimmedTileSet,
)
from ..tiles.bundle import AnyTileSet, TileSetBundle


class MetadataFormat(str, Enum):
    """Encoding of the bundle metadata entry."""
    BINARY = "binary"
    JSON = "json"
    TOML = "toml"

    @property
    def path(self) -> str:
        return METADATA_PATHS[self]


METADATA_PATHS = {
    MetadataFormat.BINARY: "tsbundle.dat",
    MetadataFormat.JSON: "tsbundle.json",
    MetadataFormat.TOML: "tsbundle.toml",
}

KIND_PLAIN = "plain"
KIND_OBJECT = "object"
KIND_TRIMMED = "trimmed_object"


# Dictionary form, shared by the JSON and TOML encodings

def tile_set_to_dict(tile_set: AnyTileSet) -> Dict[str, Any]:
    """Convert a tile set to plain data. Absent optional fields are omitted."""
    data: Dict[str, Any] = {"kind": tile_set_kind(tile_set)}
    if tile_set.name is not None:
        data["name"] = tile_set.name
    if tile_set.image_path is not None:
        data["image_path"] = tile_set.image_path

    if isinstance(tile_set, TrimmedTileSet):
        data["sprites"] = [_trimmed_sprite_to_dict(s) for s in tile_set.sprites]
    else:
        layout = tile_set.layout
        data["layout"] = {
            "rows": [[row.count, row.width, row.height] for row in layout.rows],
            "offset": list(layout.offset),
            "gap": list(layout.gap),
        }
        if isinstance(tile_set, ObjectTileSet):
            data["sprites"] = [_sprite_to_dict(s) for s in tile_set.sprites]

    zations = getattr(tile_set, 'colorizations', None)
    if zations is not None:
        data["colorizations"] = list(zations)
    return data


def tile_set_from_dict(data: Dict[str, Any]) -> AnyTileSet:
    """Inverse of ``tile_set_to_dict``."""
    kind = data["kind"]
    name = data.get("name")
    image_path = data.get("image_path")
    zations = data.get("colorizations")
    zations = tuple(zations) if zations is not None else None

    if kind == KIND_TRIMMED:
        sprites = [_trimmed_sprite_from_dict(s) for s in data.get("sprites", [])]
        return TrimmedTileSet(name, image_path, sprites, zations)

    layout_data = data.get("layout", {})
    layout = GridLayout(
        tuple(RowSpec(*row) for row in layout_data.get("rows", [])),
        tuple(layout_data.get("offset", (0, 0))),
        tuple(layout_data.get("gap", (0, 0))),
    )
    if kind == KIND_OBJECT:
        sprites = [_sprite_from_dict(s) for s in data.get("sprites", [])]
        return ObjectTileSet(name, image_path, layout, sprites, zations)
    return TileSet(name, image_path, layout)


def tile_set_kind(tile_set: AnyTileSet) -> str:
    if isinstance(tile_set, TrimmedTileSet):
        return KIND_TRIMMED
    if isinstance(tile_set, ObjectTileSet):
        return KIND_OBJECT
    return KIND_PLAIN


def _bits_to_dict(data: Dict[str, Any], sprite) -> Dict[str, Any]:
    if sprite.priority is not None:
        data["priority"] = sprite.priority
    if sprite.spot is not None:
        data["spot"] = [sprite.spot.x, sprite.spot.y, sprite.spot.orient]
    if sprite.constraints is not None:
        data["constraints"] = list(sprite.constraints)
    return data


def _bits_from_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    spot = data.get("spot")
    constraints = data.get("constraints")
    return {
        "priority": data.get("priority"),
        "spot": Spot(*spot) if spot is not None else None,
        "constraints": tuple(constraints) if constraints is not None else None,
    }


def _sprite_to_dict(sprite: Sprite) -> Dict[str, Any]:
    data = {
        "owidth": sprite.owidth,
        "oheight": sprite.oheight,
        "xorigin": sprite.xorigin,
        "yorigin": sprite.yorigin,
    }
    return _bits_to_dict(data, sprite)


def _sprite_from_dict(data: Dict[str, Any]) -> Sprite:
    return Sprite(data["owidth"], data["oheight"], data.get("xorigin", 0),
                  data.get("yorigin", 0), **_bits_from_dict(data))


def _trimmed_sprite_to_dict(sprite: TrimmedSprite) -> Dict[str, Any]:
    b, m = sprite.bounds, sprite.ometrics
    data = {
        "bounds": [b.x, b.y, b.width, b.height],
        "origin": [m.x, m.y],
        "base": [m.width, m.height],
    }
    return _bits_to_dict(data, sprite)


def _trimmed_sprite_from_dict(data: Dict[str, Any]) -> TrimmedSprite:
    x, y = data["origin"]
    width, height = data["base"]
    return TrimmedSprite(Rect(*data["bounds"]), ObjectMetrics(x, y, width, height),
                         **_bits_from_dict(data))


# JSON

def encode_json(bundle: TileSetBundle) -> bytes:
    """Encode as a JSON array of {"id", "set"} objects in id order."""
    array = [{"id": tile_set_id, "set": tile_set_to_dict(tile_set)}
             for tile_set_id, tile_set in bundle.items()]
    return json.dumps(array, indent=2, sort_keys=True).encode('utf-8')


def decode_json(data: bytes) -> TileSetBundle:
    bundle = TileSetBundle()
    for entry in json.loads(data.decode('utf-8')):
        bundle.add_tile_set(int(entry["id"]), tile_set_from_dict(entry["set"]))
    return bundle


# TOML

def _toml_value(value: Any) -> str:
    """Render a scalar or list as a TOML literal."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(_toml_value(v) for v in value) + "]"
    raise TypeError(f"Cannot render {type(value).__name__} as TOML")


class TomlMetadataRenderer:
    """Renders the bundle manifest through a Jinja2 template."""

    TEMPLATE_NAME = "tileset_bundle.toml.j2"

    def __init__(self, template_dir: Optional[str] = None):
        if template_dir is None:
            template_dir = Path(__file__).parent.parent / "templates"
        self.template_dir = Path(template_dir)

        self.env = Environment(
            loader=FileSystemLoader(str(self.template_dir)),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
            autoescape=False
        )
        self.env.filters['toml'] = _toml_value

    def render(self, bundle: TileSetBundle) -> str:
        entries = [{"id": tile_set_id, "set": tile_set_to_dict(tile_set)}
                   for tile_set_id, tile_set in bundle.items()]
        try:
            content = self.env.get_template(self.TEMPLATE_NAME).render(tilesets=entries)
        except TemplateError as e:
            raise MetadataWriteError(f"Failed to render {self.TEMPLATE_NAME}: {e}")

        errors = self.validate_toml_syntax(content)
        if errors:
            raise MetadataWriteError(f"Generated TOML has syntax errors: {', '.join(errors)}")
        return content

    def validate_toml_syntax(self, content: str) -> List[str]:
        """Return a list of syntax errors (empty when the content parses)."""
        try:
            toml.loads(content)
        except toml.TomlDecodeError as e:
            return [str(e)]
        return []


def decode_toml(data: bytes) -> TileSetBundle:
    bundle = TileSetBundle()
    for entry in toml.loads(data.decode('utf-8')).get("tileset", []):
        entry = dict(entry)
        tile_set_id = int(entry.pop("id"))
        bundle.add_tile_set(tile_set_id, tile_set_from_dict(entry))
    return bundle


# Binary
#
# Header: magic 'TSBN', u8 version, u32 tile set count. Each tile set:
# u32 id, u8 kind, name, image path, then a layout (plain and object sets),
# sprite records (object and trimmed sets) and colorizations (object and
# trimmed sets). Strings are u16 length + UTF-8, 0xFFFF marks an absent
# string. All integers are big endian.

BINARY_MAGIC = b"TSBN"
BINARY_VERSION = 1

_KIND_CODES = {KIND_PLAIN: 0, KIND_OBJECT: 1, KIND_TRIMMED: 2}
_NO_STRING = 0xFFFF
_HAS_PRIORITY, _HAS_SPOT, _HAS_CONSTRAINTS = 1, 2, 4


class _BinaryWriter:
    def __init__(self):
        self.out = io.BytesIO()

    def pack(self, fmt: str, *values) -> None:
        self.out.write(struct.pack(">" + fmt, *values))

    def string(self, value: Optional[str]) -> None:
        if value is None:
            self.pack("H", _NO_STRING)
            return
        encoded = value.encode('utf-8')
        if len(encoded) >= _NO_STRING:
            raise MetadataWriteError(f"String too long for binary metadata: {value[:32]}...")
        self.pack("H", len(encoded))
        self.out.write(encoded)

    def strings(self, values: Optional[tuple]) -> None:
        self.pack("B", values is not None)
        if values is not None:
            self.pack("H", len(values))
            for value in values:
                self.string(value)


class _BinaryReader:
    def __init__(self, data: bytes):
        self.data = data
        self.offset = 0

    def unpack(self, fmt: str):
        fmt = ">" + fmt
        values = struct.unpack_from(fmt, self.data, self.offset)
        self.offset += struct.calcsize(fmt)
        return values if len(values) > 1 else values[0]

    def string(self) -> Optional[str]:
        length = self.unpack("H")
        if length == _NO_STRING:
            return None
        if self.offset + length > len(self.data):
            raise struct.error(f"string of {length} bytes runs past the end of the data")
        value = self.data[self.offset:self.offset + length].decode('utf-8')
        self.offset += length
        return value

    def strings(self) -> Optional[tuple]:
        if not self.unpack("B"):
            return None
        return tuple(self.string() for _ in range(self.unpack("H")))


def _write_bits(w: _BinaryWriter, sprite) -> None:
    flags = ((_HAS_PRIORITY if sprite.priority is not None else 0) |
             (_HAS_SPOT if sprite.spot is not None else 0) |
             (_HAS_CONSTRAINTS if sprite.constraints is not None else 0))
    w.pack("B", flags)
    if sprite.priority is not None:
        w.pack("i", sprite.priority)
    if sprite.spot is not None:
        w.pack("iib", sprite.spot.x, sprite.spot.y, sprite.spot.orient)
    if sprite.constraints is not None:
        w.pack("H", len(sprite.constraints))
        for constraint in sprite.constraints:
            w.string(constraint)


def _read_bits(r: _BinaryReader) -> Dict[str, Any]:
    flags = r.unpack("B")
    bits: Dict[str, Any] = {"priority": None, "spot": None, "constraints": None}
    if flags & _HAS_PRIORITY:
        bits["priority"] = r.unpack("i")
    if flags & _HAS_SPOT:
        bits["spot"] = Spot(*r.unpack("iib"))
    if flags & _HAS_CONSTRAINTS:
        bits["constraints"] = tuple(r.string() for _ in range(r.unpack("H")))
    return bits


def encode_binary(bundle: TileSetBundle) -> bytes:
    w = _BinaryWriter()
    w.out.write(BINARY_MAGIC)
    w.pack("BI", BINARY_VERSION, len(bundle))

    try:
        for tile_set_id, tile_set in bundle.items():
            kind = tile_set_kind(tile_set)
            w.pack("IB", tile_set_id, _KIND_CODES[kind])
            w.string(tile_set.name)
            w.string(tile_set.image_path)

            if kind != KIND_TRIMMED:
                layout = tile_set.layout
                w.pack("H", len(layout.rows))
                for row in layout.rows:
                    w.pack("III", row.count, row.width, row.height)
                w.pack("iiii", *layout.offset, *layout.gap)

            if kind == KIND_OBJECT:
                w.pack("I", len(tile_set.sprites))
                for sprite in tile_set.sprites:
                    w.pack("iiii", sprite.owidth, sprite.oheight, sprite.xorigin, sprite.yorigin)
                    _write_bits(w, sprite)
            elif kind == KIND_TRIMMED:
                w.pack("I", len(tile_set.sprites))
                for sprite in tile_set.sprites:
                    b, m = sprite.bounds, sprite.ometrics
                    w.pack("iiiiiiii", b.x, b.y, b.width, b.height, m.x, m.y, m.width, m.height)
                    _write_bits(w, sprite)

            if kind != KIND_PLAIN:
                w.strings(tile_set.colorizations)
    except struct.error as e:
        raise MetadataWriteError(f"Value out of range for binary metadata: {e}")

    return w.out.getvalue()


def read_binary_metadata(data: bytes) -> TileSetBundle:
    """
    Decode binary bundle metadata.

    Raises:
        ValueError: If the data is not binary metadata or is truncated
    """
    if data[:4] != BINARY_MAGIC:
        raise ValueError("Not a binary tile set bundle")
    try:
        return _read_binary(data)
    except struct.error as e:
        raise ValueError(f"Truncated binary tile set bundle: {e}")
    except KeyError as e:
        raise ValueError(f"Unknown tile set kind code {e} in binary bundle")


def _read_binary(data: bytes) -> TileSetBundle:
    r = _BinaryReader(data)
    r.offset = 4
    version, count = r.unpack("BI")
    if version != BINARY_VERSION:
        raise ValueError(f"Unsupported binary metadata version {version}")

    codes = {code: kind for kind, code in _KIND_CODES.items()}
    bundle = TileSetBundle()
    for _ in range(count):
        tile_set_id, code = r.unpack("IB")
        kind = codes[code]
        name = r.string()
        image_path = r.string()

        layout = None
        if kind != KIND_TRIMMED:
            rows = tuple(RowSpec(*r.unpack("III")) for _ in range(r.unpack("H")))
            ox, oy, gx, gy = r.unpack("iiii")
            layout = GridLayout(rows, (ox, oy), (gx, gy))

        if kind == KIND_PLAIN:
            bundle.add_tile_set(tile_set_id, TileSet(name, image_path, layout))
            continue

        sprites = []
        for _ in range(r.unpack("I")):
            if kind == KIND_OBJECT:
                owidth, oheight, xorigin, yorigin = r.unpack("iiii")
                sprites.append(Sprite(owidth, oheight, xorigin, yorigin, **_read_bits(r)))
            else:
                bx, by, bw, bh, mx, my, mw, mh = r.unpack("iiiiiiii")
                sprites.append(TrimmedSprite(Rect(bx, by, bw, bh),
                                             ObjectMetrics(mx, my, mw, mh), **_read_bits(r)))
        zations = r.strings()

        if kind == KIND_OBJECT:
            tile_set = ObjectTileSet(name, image_path, layout, sprites, zations)
        else:
            tile_set = TrimmedTileSet(name, image_path, sprites, zations)
        bundle.add_tile_set(tile_set_id, tile_set)

    return bundle


def encode_metadata(bundle: TileSetBundle, metadata_format: MetadataFormat) -> bytes:
    """Encode ``bundle`` in the requested format."""
    if metadata_format == MetadataFormat.BINARY:
        return encode_binary(bundle)
    elif metadata_format == MetadataFormat.JSON:
        return encode_json(bundle)
    elif metadata_format == MetadataFormat.TOML:
        return TomlMetadataRenderer().render(bundle).encode('utf-8')
    raise MetadataWriteError(f"Unknown metadata format: {metadata_format}")


def decode_metadata(data: bytes, metadata_format: MetadataFormat) -> TileSetBundle:
    """Decode a metadata entry back into a bundle manifest."""
    if metadata_format == MetadataFormat.BINARY:
        return read_binary_metadata(data)
    elif metadata_format == MetadataFormat.JSON:
        return decode_json(data)
    return decode_toml(data)
