"""
Bundle writers for directory and zip archive targets.
"""

from pathlib import Path
from typing import Union

from .base import BundleWriter, EntrySink
from .directory import DirectoryBundleWriter
from .zip import ZipBundleWriter

ARCHIVE_SUFFIXES = ('.zip', '.jar')


def create_writer(target: Union[str, Path]) -> BundleWriter:
    """Pick a zip writer for archive targets and a directory writer otherwise."""
    target = Path(target)
    if target.suffix.lower() in ARCHIVE_SUFFIXES:
        return ZipBundleWriter(target)
    return DirectoryBundleWriter(target)


__all__ = [
    "BundleWriter",
    "EntrySink",
    "DirectoryBundleWriter",
    "ZipBundleWriter",
    "create_writer",
]
