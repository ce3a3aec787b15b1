"""
Bundle writer that stores entries as files below a directory.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import List

from ..errors import WriteError
from .base import BundleWriter

logger = logging.getLogger(__name__)


class DirectoryBundleWriter(BundleWriter):
    """
    Writes a bundle into a plain directory.

    Entries carry their own timestamps, so an unchanged tile set is skipped
    entry by entry rather than by comparing the whole directory.

    The target may already hold other files. Rolling back removes only the
    entries and directories this writer created; files it overwrote keep
    their new content.
    """

    def __init__(self, target):
        super().__init__(target)
        self._written: List[Path] = []
        self._created_dirs: List[Path] = []

    def _entry_path(self, path: str) -> Path:
        dest = self.target / path
        root = self.target.resolve()
        if root not in dest.resolve().parents:
            raise WriteError(f"Entry '{path}' lies outside bundle {self.target}")
        return dest

    def _make_dirs(self, directory: Path) -> None:
        missing = []
        while not directory.exists():
            missing.append(directory)
            directory = directory.parent
        for directory in reversed(missing):
            directory.mkdir()
            self._created_dirs.append(directory)

    def _write_entry(self, path: str, data: bytes) -> None:
        dest = self._entry_path(path)
        self._make_dirs(dest.parent)

        existed = dest.exists()
        fd, tmp_path = tempfile.mkstemp(prefix=f".{dest.name}.", dir=str(dest.parent))
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, dest)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        if not existed and dest not in self._written:
            self._written.append(dest)
        logger.debug(f"Wrote {len(data)} bytes to {dest}")

    def is_path_newer_than(self, path: str, timestamp: float) -> bool:
        entry = self._entry_path(path)
        return entry.is_file() and entry.stat().st_mtime > timestamp

    def is_newer_than(self, timestamp: float) -> bool:
        return False

    def _remove(self) -> bool:
        removed = True
        for dest in reversed(self._written):
            try:
                dest.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to remove {dest}: {e}")
                removed = False

        for directory in reversed(self._created_dirs):
            try:
                directory.rmdir()
            except OSError as e:
                logger.warning(f"Failed to remove directory {directory}: {e}")
                removed = False
        return removed

    def read_entry(self, path: str) -> bytes:
        return self._entry_path(path).read_bytes()
