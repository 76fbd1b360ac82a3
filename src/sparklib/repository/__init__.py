"""Library repositories for sparklib."""

import logging
from typing import Any, Protocol, runtime_checkable

from ..config import Config
from ..models import Layout, Library, LibraryFile, LibraryMetadata
from .build import BuildLibraryRepository
from .filesystem import FileSystemLibraryRepository

logger = logging.getLogger(__name__)


@runtime_checkable
class LibraryRepository(Protocol):
    """Protocol for library repositories."""

    async def index(self) -> list[Any]:
        """Fetch the catalog of library summaries (backend-defined shape)."""
        ...

    async def names(self) -> list[str]:
        """List the names of available libraries in storage order."""
        ...

    async def fetch(self, name: str) -> Library:
        """Fetch a library by name.

        Raises:
            LibraryNotFoundError: No library with this name exists
            LibraryFormatError: The library exists but is malformed
        """
        ...

    async def definition(self, library: Library) -> LibraryMetadata:
        """Get the metadata record of a fetched library."""
        ...

    async def files(self, library: Library) -> list[LibraryFile]:
        """List the library's source files."""
        ...


@runtime_checkable
class PublishingLibraryRepository(LibraryRepository, Protocol):
    """Protocol for repositories that accept new libraries."""

    async def add(self, library: Library, layout: Layout | int = Layout.CURRENT) -> None:
        """Write the library's descriptor and source files into the repository."""
        ...


def make_repository(config: Config, kind: str = "filesystem") -> LibraryRepository:
    """Factory function to create a repository from configuration.

    Args:
        config: sparklib configuration
        kind: "filesystem" for the local repository, "build" for the remote registry

    Returns:
        The configured repository
    """
    kind = kind.lower()
    if kind == "filesystem":
        return FileSystemLibraryRepository(config.repository_root)
    if kind == "build":
        logger.debug(f"Using library registry at {config.registry_endpoint}")
        return BuildLibraryRepository(
            endpoint=config.registry_endpoint,
            timeout=config.registry_timeout,
            catalog_path=config.registry_catalog_path,
            library_path=config.registry_library_path,
            api_key=config.registry_api_key,
        )
    raise ValueError(f"Unknown repository kind '{kind}'")


__all__ = [
    "LibraryRepository",
    "PublishingLibraryRepository",
    "FileSystemLibraryRepository",
    "BuildLibraryRepository",
    "make_repository",
]
