"""
Bundle writer that produces a zip (or jar) archive.
"""

import logging
import os
import zipfile
from pathlib import Path
from typing import Optional

from .base import BundleWriter

logger = logging.getLogger(__name__)

# Fixed entry timestamp so identical input yields identical archives
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)


class ZipBundleWriter(BundleWriter):
    """
    Writes a bundle into a zip archive.

    Entries go to a temporary archive next to the target, which replaces the
    target only when the bundle is closed. A zip is always rebuilt whole, so
    no single entry is ever considered up to date.
    """

    def __init__(self, target, compression: int = zipfile.ZIP_DEFLATED):
        super().__init__(target)
        self.compression = compression
        self._tmp_path = self.target.with_name(f".{self.target.name}.tmp")
        self._zip: Optional[zipfile.ZipFile] = None

    def _open(self) -> zipfile.ZipFile:
        if self._zip is None:
            self._tmp_path.parent.mkdir(parents=True, exist_ok=True)
            self._zip = zipfile.ZipFile(self._tmp_path, 'w', self.compression)
        return self._zip

    def _write_entry(self, path: str, data: bytes) -> None:
        info = zipfile.ZipInfo(path.replace(os.sep, '/'), date_time=ZIP_EPOCH)
        info.compress_type = self.compression
        info.external_attr = 0o644 << 16
        self._open().writestr(info, data)

    def is_path_newer_than(self, path: str, timestamp: float) -> bool:
        return False

    def is_newer_than(self, timestamp: float) -> bool:
        return self.target.is_file() and self.target.stat().st_mtime > timestamp

    def _finalize(self) -> None:
        self._open().close()
        os.replace(self._tmp_path, self.target)
        logger.debug(f"Finalized bundle archive {self.target}")

    def _remove(self) -> bool:
        if self._zip is not None:
            try:
                self._zip.close()
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to close partial archive {self._tmp_path}: {e}")
        for path in (self._tmp_path, self.target):
            try:
                path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Failed to remove {path}: {e}")
        return not self.target.exists() and not self._tmp_path.exists()

    def read_entry(self, path: str) -> bytes:
        source = self.target if self._closed or self._zip is None else self._tmp_path
        with zipfile.ZipFile(source) as archive:
            return archive.read(path)
