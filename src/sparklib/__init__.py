"""sparklib - Firmware library repositories on disk and in a remote registry."""

__version__ = "0.1.0"

from .errors import (
    LibraryCapabilityError,
    LibraryError,
    LibraryFormatError,
    LibraryNotFoundError,
)
from .models import Layout, Library, LibraryFile, LibraryMetadata, LibrarySummary
from .repository import (
    BuildLibraryRepository,
    FileSystemLibraryRepository,
    LibraryRepository,
    PublishingLibraryRepository,
)

__all__ = [
    "Layout",
    "Library",
    "LibraryFile",
    "LibraryMetadata",
    "LibrarySummary",
    "LibraryRepository",
    "PublishingLibraryRepository",
    "FileSystemLibraryRepository",
    "BuildLibraryRepository",
    "LibraryError",
    "LibraryNotFoundError",
    "LibraryFormatError",
    "LibraryCapabilityError",
]
