"""Core data models for sparklib."""

from __future__ import annotations

from collections.abc import Iterator
from enum import Enum
from typing import IO, TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

if TYPE_CHECKING:
    from .repository import LibraryRepository

SOURCE_KIND = "source"


class Layout(int, Enum):
    """On-disk library layout version."""

    LEGACY = 1
    CURRENT = 2


class LibraryMetadata(BaseModel):
    """Descriptor record identifying a library."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    name: str = Field(..., description="Library name, unique within a repository")
    version: str | None = Field(None, description="Library version")
    author: str | None = Field(None, description="Library author")
    license: str | None = Field(None, description="License identifier")
    description: str | None = Field(
        None, description="One line description (stored as 'sentence' on disk)"
    )
    id: str | None = Field(None, description="Registry assigned identifier")

    @model_validator(mode="before")
    @classmethod
    def alias_sentence(cls, data: Any) -> Any:
        """Map the legacy 'sentence' key onto description."""
        if isinstance(data, dict) and "sentence" in data:
            data = dict(data)
            sentence = data.pop("sentence")
            if data.get("description") is None:
                data["description"] = sentence
        return data


class LibrarySummary(BaseModel):
    """Catalog entry published by a remote registry."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    id: str = Field(..., description="Registry identifier")
    title: str = Field(..., description="Library name")
    content: str | None = Field(None, description="Short description")
    version: str | None = Field(None, description="Latest version")
    visibility: str = Field("public", description="Catalog visibility")


class LibraryFile:
    """A member file of a library.

    ``content()`` returns a fresh, single-pass iterator of byte chunks each
    time it is called.
    """

    def __init__(self, name: str, kind: str, extension: str):
        self.name = name
        self.kind = kind
        self.extension = extension

    @property
    def file_name(self) -> str:
        return f"{self.name}.{self.extension}" if self.extension else self.name

    def content(self) -> Iterator[bytes]:
        raise NotImplementedError

    def write_to(self, sink: IO[bytes]) -> int:
        """Drain the content into a binary sink and return the byte count."""
        written = 0
        for chunk in self.content():
            sink.write(chunk)
            written += len(chunk)
        return written

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.file_name!r}, kind={self.kind!r})"


class MemoryLibraryFile(LibraryFile):
    """Library file whose content is held in memory."""

    def __init__(self, name: str, kind: str, extension: str, data: bytes):
        super().__init__(name, kind, extension)
        self.data = data

    def content(self) -> Iterator[bytes]:
        yield self.data


class Library:
    """A named library.

    Libraries fetched from a repository delegate ``definition()`` and
    ``files()`` back to it. A library authored in memory (repository is
    None) answers from the metadata and files it was built with.
    """

    def __init__(
        self,
        name: str,
        metadata: LibraryMetadata,
        repository: LibraryRepository | None = None,
        files: list[LibraryFile] | None = None,
    ):
        self._name = name
        self.metadata = metadata
        self.repository = repository
        self._files = list(files) if files is not None else []

    @property
    def name(self) -> str:
        return self._name

    async def definition(self) -> LibraryMetadata:
        if self.repository is None:
            return self.metadata
        return await self.repository.definition(self)

    async def files(self) -> list[LibraryFile]:
        if self.repository is None:
            return list(self._files)
        return await self.repository.files(self)

    def __repr__(self) -> str:
        return f"Library({self._name!r}, version={self.metadata.version!r})"
