"""
Abstract base class for bundle writers.
Defines the interface the build pipeline needs from its output archive.
"""

import io
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Callable, Union

from ..errors import ArchiveFinalizeError, WriteError


class EntrySink(io.BytesIO):
    """
    Buffer for a single bundle entry.

    The entry is committed to the bundle when the sink is closed. Leaving a
    ``with`` block through an exception discards it, so an entry is either
    written completely or not at all.
    """

    def __init__(self, path: str, commit: Callable[[str, bytes], None]):
        super().__init__()
        self.path = path
        self._commit = commit
        self._discarded = False

    def close(self) -> None:
        if not self.closed and not self._discarded:
            data = self.getvalue()
            self._discarded = True
            self._commit(self.path, data)
        super().close()

    def discard(self) -> None:
        self._discarded = True
        super().close()

    def __exit__(self, exc_type, exc, tb):
        if exc_type is not None:
            self.discard()
        else:
            self.close()
        return False


class BundleWriter(ABC):
    """
    Output archive of a bundle build.

    Entries may be committed from several threads; commits are serialized.
    ``close`` and ``delete`` may each be called once.
    """

    def __init__(self, target: Union[str, Path]):
        self.target = Path(target)
        self._lock = threading.Lock()
        self._closed = False
        self._deleted = False
        self._removed = False

    def start_new_file(self, path: str) -> EntrySink:
        """Open a sink for a new entry at ``path`` within the bundle."""
        if self._closed or self._deleted:
            raise WriteError(f"Bundle {self.target} is no longer writable")
        entry = PurePosixPath(path.replace(os.sep, "/"))
        if not path or entry.is_absolute() or ".." in entry.parts:
            raise WriteError(f"Entry path '{path}' does not stay inside bundle {self.target}")
        return EntrySink(path, self._commit)

    def _commit(self, path: str, data: bytes) -> None:
        with self._lock:
            try:
                self._write_entry(path, data)
            except OSError as e:
                raise WriteError(f"Failed to write '{path}' to {self.target}: {e}")

    @abstractmethod
    def _write_entry(self, path: str, data: bytes) -> None:
        """Store a complete entry. Called with the writer lock held."""
        pass

    @abstractmethod
    def is_path_newer_than(self, path: str, timestamp: float) -> bool:
        """Check whether the entry at ``path`` exists and is newer than ``timestamp``."""
        pass

    @abstractmethod
    def is_newer_than(self, timestamp: float) -> bool:
        """Check whether the bundle as a whole is newer than ``timestamp``."""
        pass

    def close(self) -> None:
        """
        Finalize the bundle.

        Raises:
            ArchiveFinalizeError: If the bundle cannot be committed
        """
        if self._closed or self._deleted:
            raise ArchiveFinalizeError(f"Bundle {self.target} was already closed")
        with self._lock:
            self._closed = True
            try:
                self._finalize()
            except OSError as e:
                raise ArchiveFinalizeError(f"Failed to finalize {self.target}: {e}")

    def delete(self) -> bool:
        """Roll back the bundle; returns True when everything it wrote was removed."""
        if self._deleted:
            return self._removed
        with self._lock:
            self._deleted = True
            self._removed = self._remove()
            return self._removed

    def _finalize(self) -> None:
        pass

    @abstractmethod
    def _remove(self) -> bool:
        pass

    @abstractmethod
    def read_entry(self, path: str) -> bytes:
        """Read back a committed entry."""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({str(self.target)!r})"
