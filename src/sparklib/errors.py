"""Error taxonomy shared by all library repositories."""

from __future__ import annotations

from typing import Any


class LibraryError(Exception):
    """Base class for library repository errors."""

    kind = "LibraryError"

    def __init__(self, repository: Any, library_name: str, message: str):
        super().__init__(message)
        self.repository = repository
        self.library_name = library_name


class LibraryNotFoundError(LibraryError):
    """The named library does not exist in the repository."""

    kind = "LibraryNotFoundError"

    def __init__(self, repository: Any, library_name: str, cause: Any = None):
        message = f"library '{library_name}' not found"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(repository, library_name, message)
        self.cause = cause


class LibraryFormatError(LibraryError):
    """The library exists but its descriptor is malformed."""

    kind = "LibraryFormatError"

    def __init__(self, repository: Any, library_name: str, cause: Any):
        super().__init__(
            repository, library_name, f"library '{library_name}' is malformed: {cause}"
        )
        self.cause = cause


class LibraryCapabilityError(LibraryError):
    """The repository does not support the requested operation."""

    kind = "LibraryCapabilityError"

    def __init__(self, repository: Any, operation: str, library_name: str = ""):
        super().__init__(
            repository,
            library_name,
            f"{type(repository).__name__} does not support '{operation}'",
        )
        self.operation = operation


__all__ = [
    "LibraryError",
    "LibraryNotFoundError",
    "LibraryFormatError",
    "LibraryCapabilityError",
]
