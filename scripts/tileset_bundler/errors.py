"""
Exception taxonomy for the tileset bundler.

Item-level errors are recoverable: the pipeline downgrades them to warnings and
skips the offending tile set. Everything else aborts the build.
"""

from typing import Optional


class BundlerError(Exception):
    """Base exception for tileset bundler errors."""

    def __init__(self, message: str, recoverable: bool = False):
        super().__init__(message)
        self.message = message
        self.recoverable = recoverable


class ConfigurationError(BundlerError):
    """Raised when the bundler configuration is invalid."""
    pass


class DescriptionError(BundlerError):
    """Raised when a bundle description cannot be parsed."""
    pass


class OutOfBoundsError(BundlerError, IndexError):
    """Raised when a pixel or cell lies outside the source image."""
    pass


# Recoverable, per tile set

class MissingImageError(BundlerError):
    """Tile set references an image file that does not exist."""

    def __init__(self, message: str, image_path: Optional[str] = None):
        super().__init__(message, recoverable=True)
        self.image_path = image_path


class UnnamedTileSetError(BundlerError):
    """Tile set was parsed without a name."""

    def __init__(self, message: str):
        super().__init__(message, recoverable=True)


class IdAssignmentError(BundlerError):
    """Tile set id could not be obtained or committed."""

    def __init__(self, message: str):
        super().__init__(message, recoverable=True)


# Fatal, trigger rollback

class ImageDecodeError(BundlerError):
    """Source image could not be decoded."""
    pass


class TrimError(BundlerError):
    """Trimming or packing a tile set failed."""
    pass


class WriteError(BundlerError):
    """Writing an entry into the bundle failed."""
    pass


class MetadataWriteError(BundlerError):
    """Serializing or writing the bundle metadata failed."""
    pass


class ArchiveFinalizeError(BundlerError):
    """Committing the bundle failed after entries were written."""
    pass


class BundleBuildError(BundlerError):
    """Wraps the original cause of a failed, rolled back build."""

    def __init__(self, message: str, target: Optional[str] = None):
        super().__init__(message)
        self.target = target
