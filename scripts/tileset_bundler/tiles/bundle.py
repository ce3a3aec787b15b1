"""
The bundle manifest: tile sets keyed by their brokered integer id.
"""

import threading
from typing import Dict, Iterator, List, Mapping, Optional, Union

from .base import TileSet, TrimmedTileSet


AnyTileSet = Union[TileSet, TrimmedTileSet]


class TileSetBundle:
    """
    Maps tile set ids to tile sets and remembers the newest source timestamp.

    Replacements are applied only through ``put_all`` so a manifest is never
    observed with half of a packing pass merged in.
    """

    def __init__(self, newest_source: float = 0.0):
        self.newest_source = newest_source
        self._tile_sets: Dict[int, AnyTileSet] = {}
        self._lock = threading.Lock()

    def add_tile_set(self, tile_set_id: int, tile_set: AnyTileSet) -> None:
        with self._lock:
            self._tile_sets[tile_set_id] = tile_set

    def get_tile_set(self, tile_set_id: int) -> Optional[AnyTileSet]:
        return self._tile_sets.get(tile_set_id)

    def tile_set_ids(self) -> List[int]:
        """Return the ids of all tile sets in ascending order."""
        return sorted(self._tile_sets)

    def put_all(self, staging: Mapping[int, AnyTileSet]) -> None:
        """Merge staged replacements in one step."""
        with self._lock:
            self._tile_sets.update(staging)

    def items(self) -> Iterator:
        for tile_set_id in self.tile_set_ids():
            yield tile_set_id, self._tile_sets[tile_set_id]

    def __len__(self) -> int:
        return len(self._tile_sets)

    def __contains__(self, tile_set_id: int) -> bool:
        return tile_set_id in self._tile_sets

    def __repr__(self) -> str:
        names = {tid: ts.name for tid, ts in self.items()}
        return f"TileSetBundle(newest_source={self.newest_source}, tile_sets={names})"
