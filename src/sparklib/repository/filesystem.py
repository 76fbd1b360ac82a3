"""File system library repository."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import stat
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError

from ..errors import (
    LibraryCapabilityError,
    LibraryError,
    LibraryFormatError,
    LibraryNotFoundError,
)
from ..models import SOURCE_KIND, Layout, Library, LibraryFile, LibraryMetadata
from .descriptor import (
    LIBRARY_PROPERTIES,
    SPARK_JSON,
    build_v1_descriptor,
    build_v2_descriptor,
    is_source_extension,
    migrate_source,
    parse_properties,
)
from .scan import get_dirs, map_action_dir, remove_failed_predicate

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class FileSystemLibraryFile(LibraryFile):
    """A library file stored on disk."""

    def __init__(self, path: str, name: str, kind: str, extension: str):
        super().__init__(name, kind, extension)
        self.path = path

    def content(self) -> Iterator[bytes]:
        with open(self.path, "rb") as f:
            while True:
                chunk = f.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk


class FileSystemLibraryRepository:
    """Library repository backed by a directory tree.

    Each library is a subdirectory of the repository root named after the
    library. The directory holds the descriptor (``library.properties`` for
    layout 2, ``spark.json`` for legacy layout 1) and the source files.
    """

    def __init__(self, path: str | Path):
        """Initialize repository with root path."""
        root = str(path)
        if not root.endswith(os.sep):
            root += os.sep
        self.path = root

    def __repr__(self) -> str:
        return f"FileSystemLibraryRepository({self.path!r})"

    def name_to_fs(self, name: str) -> str:
        """Map a library name to its directory name."""
        return name

    def directory(self, name: str) -> str:
        return self.path + self.name_to_fs(name) + os.sep

    def descriptor_file_v1(self, name: str) -> str:
        return self.directory(name) + SPARK_JSON

    def descriptor_file_v2(self, name: str) -> str:
        return self.directory(name) + LIBRARY_PROPERTIES

    def library_file_name(self, library_name: str, file_name: str) -> str:
        return self.directory(library_name) + file_name

    # Publishing

    async def add(self, library: Library, layout: Layout | int = Layout.CURRENT) -> None:
        """Add a library to this repository.

        The descriptor and the source files are written out; other file kinds
        are skipped. Nothing is rolled back when a step fails.

        Args:
            library: The library to add
            layout: The descriptor layout to write (1 legacy, 2 current)
        """
        layout = Layout(layout)
        name = library.name
        directory = self.directory(name)
        if not os.path.exists(directory):
            await asyncio.to_thread(os.mkdir, directory)

        definition = await library.definition()
        if layout is Layout.LEGACY:
            await self.write_descriptor_v1(self.descriptor_file_v1(name), definition)
        else:
            await self.write_descriptor_v2(self.descriptor_file_v2(name), definition)

        files = await library.files()
        copies = [
            self.copy_library_file(name, f) for f in files if self.include_library_file(f)
        ]
        await asyncio.gather(*copies)
        logger.info(
            f"Added library {name} ({len(copies)} files, layout {layout.value}) to {self.path}"
        )

    def include_library_file(self, library_file: LibraryFile) -> bool:
        return library_file.kind == SOURCE_KIND

    async def copy_library_file(self, library_name: str, library_file: LibraryFile) -> None:
        """Copy a library file into the named library's directory."""
        target = self.library_file_name(library_name, library_file.file_name)
        source = getattr(library_file, "path", None)
        if source is not None and os.path.abspath(source) == os.path.abspath(target):
            return
        self.create_directory(os.path.dirname(target))
        await asyncio.to_thread(self._write_library_file, target, library_file)

    @staticmethod
    def _write_library_file(target: str, library_file: LibraryFile) -> None:
        with open(target, "wb") as f:
            library_file.write_to(f)

    def create_directory(self, directory: str) -> None:
        """Create a directory, creating missing ancestors first."""
        directory = os.path.normpath(directory)
        if not os.path.exists(directory):
            parent = os.path.dirname(directory)
            if parent and parent != directory:
                self.create_directory(parent)
            os.mkdir(directory)

    async def write_descriptor_v1(self, to_file: str, metadata: LibraryMetadata) -> None:
        content = build_v1_descriptor(metadata)
        await asyncio.to_thread(Path(to_file).write_text, content, encoding="utf-8")

    def build_v2_descriptor(self, metadata: LibraryMetadata) -> str:
        return build_v2_descriptor(metadata)

    async def write_descriptor_v2(self, to_file: str, metadata: LibraryMetadata) -> None:
        content = self.build_v2_descriptor(metadata)
        await asyncio.to_thread(Path(to_file).write_text, content, encoding="utf-8")

    # Reading

    async def fetch(self, name: str) -> Library:
        """Fetch the named library from its layout 2 descriptor.

        Raises:
            LibraryNotFoundError: The descriptor is missing or cannot be read
        """
        try:
            descriptor = await self.read_descriptor_v2(name, self.descriptor_file_v2(name))
        except (OSError, LibraryError) as e:
            raise LibraryNotFoundError(self, name, e) from e
        return self._create_library(name, descriptor)

    async def read_descriptor_v2(self, name: str, path: str) -> LibraryMetadata:
        data = await asyncio.to_thread(Path(path).read_bytes)
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise LibraryFormatError(self, name, e) from e

        props = parse_properties(text)
        if props.get("name") != name:
            raise LibraryFormatError(
                self, name, "name in descriptor does not match directory name"
            )
        return self._metadata(name, props)

    async def read_descriptor_v1(self, name: str, path: str) -> LibraryMetadata:
        """Read and decode a legacy JSON descriptor."""
        try:
            text = await asyncio.to_thread(Path(path).read_text, encoding="utf-8")
            data = json.loads(text)
        except (OSError, ValueError) as e:
            raise LibraryFormatError(self, name, f'error parsing "{path}": {e}') from e

        if not isinstance(data, dict):
            raise LibraryFormatError(self, name, f'"{path}" does not hold a JSON object')
        if data.get("name") != name:
            raise LibraryFormatError(
                self, name, "name in descriptor does not match directory name"
            )
        return self._metadata(name, data)

    def _metadata(self, name: str, data: dict) -> LibraryMetadata:
        try:
            return LibraryMetadata(**data)
        except ValidationError as e:
            raise LibraryFormatError(self, name, e) from e

    def _create_library(self, name: str, metadata: LibraryMetadata) -> Library:
        return Library(name, metadata, self)

    async def names(self) -> list[str]:
        """Names of the directories under the root holding a library.properties file."""
        dirs = await get_dirs(self.path)

        async def is_library(directory: str) -> bool:
            try:
                descriptor = await asyncio.to_thread(os.stat, self.descriptor_file_v2(directory))
            except OSError:
                return False
            return stat.S_ISREG(descriptor.st_mode)

        is_lib = await asyncio.gather(*(is_library(d) for d in dirs))
        return remove_failed_predicate(dirs, is_lib)

    async def index(self) -> list[LibraryMetadata]:
        """Metadata of every library in the repository, in names() order."""
        names = await self.names()
        libraries = await asyncio.gather(*(self.fetch(name) for name in names))
        return [library.metadata for library in libraries]

    async def definition(self, library: Library) -> LibraryMetadata:
        # the descriptor is read eagerly by fetch()
        return library.metadata

    @staticmethod
    def extension(file_name: str) -> tuple[str, str]:
        """Split a file name into (extension, base name) at the last period."""
        idx = file_name.rfind(".")
        if idx >= 0:
            return file_name[idx + 1 :], file_name[:idx]
        return "", file_name

    def is_source_file(self, entry_stat: os.stat_result, name: str) -> bool:
        return stat.S_ISREG(entry_stat.st_mode) and self.is_source_file_name(name)

    def is_source_file_name(self, name: str) -> bool:
        return name not in (LIBRARY_PROPERTIES, SPARK_JSON)

    async def files(self, library: Library) -> list[LibraryFile]:
        """List the source files of a library, in directory order."""
        library_dir = self.directory(library.name)
        return await map_action_dir(
            library_dir,
            self.is_source_file,
            lambda entries, include: self.create_library_files(
                library_dir, remove_failed_predicate(entries, include)
            ),
        )

    def create_library_files(self, library_dir: str, file_names: list[str]) -> list[LibraryFile]:
        return [self.create_library_file(library_dir, f) for f in file_names]

    def create_library_file(self, library_dir: str, file_name: str) -> FileSystemLibraryFile:
        extension, base_name = self.extension(file_name)
        return FileSystemLibraryFile(library_dir + file_name, base_name, SOURCE_KIND, extension)

    # Layouts

    async def get_library_layout(self, name: str) -> Layout:
        """Determine the on-disk layout of a library.

        The legacy descriptor is probed first, so it wins when both exist.

        Raises:
            LibraryNotFoundError: No library directory or no descriptor
        """
        directory = self.directory(name)
        if not await asyncio.to_thread(os.path.isdir, directory):
            raise LibraryNotFoundError(self, name)
        if await asyncio.to_thread(os.path.isfile, self.descriptor_file_v1(name)):
            return Layout.LEGACY
        if await asyncio.to_thread(os.path.isfile, self.descriptor_file_v2(name)):
            return Layout.CURRENT
        raise LibraryNotFoundError(self, name)

    async def set_library_layout(self, name: str, layout: Layout | int) -> None:
        """Convert a library to another layout in place.

        Only legacy to current is supported. Files nested under the legacy
        ``<library>/`` subdirectory move up into the library directory,
        includes of the library's own headers are flattened in every source
        file, and the JSON descriptor is replaced by library.properties last.
        Sources are decoded before anything is written; a failure while
        writing is not rolled back.
        """
        layout = Layout(layout)
        current = await self.get_library_layout(name)
        if current is layout:
            return
        if layout is Layout.LEGACY:
            raise LibraryCapabilityError(self, "set_library_layout to layout 1", name)

        metadata = await self.read_descriptor_v1(name, self.descriptor_file_v1(name))
        migrated = await asyncio.to_thread(self._migrate_sources, name)
        await self.write_descriptor_v2(self.descriptor_file_v2(name), metadata)
        await asyncio.to_thread(os.remove, self.descriptor_file_v1(name))
        logger.info(f"Migrated library {name} to layout 2 ({migrated} sources rewritten)")

    def _migrate_sources(self, name: str) -> int:
        library_dir = Path(self.directory(name))
        nested = library_dir / self.name_to_fs(name)

        rewrites: list[tuple[Path, str]] = []
        for dirpath, _dirnames, filenames in os.walk(library_dir):
            for file_name in filenames:
                extension, _ = self.extension(file_name)
                if not is_source_extension(extension):
                    continue
                path = Path(dirpath) / file_name
                source = path.read_text(encoding="utf-8")
                result = self.migrate_source(source, name)
                if result != source:
                    rewrites.append((path, result))

        if nested.is_dir():
            entries = list(nested.iterdir())
            clashes = [e.name for e in entries if (library_dir / e.name).exists()]
            if clashes:
                raise LibraryFormatError(
                    self, name, f"cannot move {', '.join(sorted(clashes))} out of {nested}"
                )
            for entry in entries:
                entry.replace(library_dir / entry.name)
            nested.rmdir()
            rewrites = [
                (library_dir / p.relative_to(nested) if p.is_relative_to(nested) else p, text)
                for p, text in rewrites
            ]

        for path, text in rewrites:
            path.write_text(text, encoding="utf-8")
        return len(rewrites)

    def migrate_source(self, source: str, library_name: str) -> str:
        return migrate_source(source, library_name)
