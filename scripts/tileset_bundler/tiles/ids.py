"""
Tile set id brokers: stable integer ids for tile set names.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional, Union

from ..errors import IdAssignmentError

logger = logging.getLogger(__name__)


class TileSetIDBroker(ABC):
    """Assigns a unique, stable integer id to every tile set name."""

    @abstractmethod
    def get_tile_set_id(self, name: str) -> int:
        """
        Return the id for ``name``, assigning a new one if needed.

        Raises:
            IdAssignmentError: If no id can be obtained
        """
        pass

    @abstractmethod
    def commit(self) -> None:
        """
        Persist any newly assigned ids.

        Raises:
            IdAssignmentError: If the ids cannot be persisted
        """
        pass


class MemoryTileSetIDBroker(TileSetIDBroker):
    """Hands out sequential ids without persisting them."""

    def __init__(self, first_id: int = 1):
        self._next_id = first_id
        self._ids: Dict[str, int] = {}

    def get_tile_set_id(self, name: str) -> int:
        if not name:
            raise IdAssignmentError("Cannot assign an id to an unnamed tile set")
        if name not in self._ids:
            self._ids[name] = self._next_id
            self._next_id += 1
        return self._ids[name]

    def commit(self) -> None:
        pass

    @property
    def assigned(self) -> Dict[str, int]:
        return dict(self._ids)


class FileTileSetIDBroker(TileSetIDBroker):
    """
    Keeps the name to id mapping in a JSON file.

    The store is read on the first lookup, so an unreadable store fails each
    lookup with ``IdAssignmentError`` instead of failing construction.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._ids: Optional[Dict[str, int]] = None
        self._dirty = False

    def _load(self) -> Dict[str, int]:
        if self._ids is not None:
            return self._ids
        if not self.path.exists():
            self._ids = {}
            return self._ids
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise IdAssignmentError(f"Cannot read tile set ids from {self.path}: {e}")

        if not isinstance(data, dict):
            raise IdAssignmentError(f"Tile set id store {self.path} is not a JSON object")
        try:
            self._ids = {str(name): int(tid) for name, tid in data.items()}
        except (TypeError, ValueError) as e:
            raise IdAssignmentError(f"Tile set id store {self.path} holds a non-integer id: {e}")
        return self._ids

    def get_tile_set_id(self, name: str) -> int:
        if not name:
            raise IdAssignmentError("Cannot assign an id to an unnamed tile set")
        ids = self._load()
        tile_set_id = ids.get(name)
        if tile_set_id is None:
            tile_set_id = max(ids.values(), default=0) + 1
            ids[name] = tile_set_id
            self._dirty = True
            logger.debug(f"Assigned tile set id {tile_set_id} to '{name}'")
        return tile_set_id

    def commit(self) -> None:
        if not self._dirty:
            return
        tmp_path = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".ids-", dir=str(self.path.parent))
            with os.fdopen(fd, 'w') as f:
                json.dump(self._ids, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise IdAssignmentError(f"Cannot write tile set ids to {self.path}: {e}")
        self._dirty = False
