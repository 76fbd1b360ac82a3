"""Remote library registry accessed over HTTP."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from typing import Any
from urllib.parse import quote

import requests
from pydantic import ValidationError

from ..errors import LibraryFormatError, LibraryNotFoundError
from ..models import SOURCE_KIND, Library, LibraryFile, LibraryMetadata, LibrarySummary

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "https://build.particle.io/"
CHUNK_SIZE = 64 * 1024

# Statuses the registry uses for unknown or unparseable library names
NOT_FOUND_STATUSES = (400, 404)


class BuildLibraryFile(LibraryFile):
    """A library file served by the registry.

    Content is either inlined in the library record or downloaded from a URL
    when ``content()`` is iterated.
    """

    def __init__(
        self,
        name: str,
        kind: str,
        extension: str,
        data: bytes | None = None,
        url: str | None = None,
        session: requests.Session | None = None,
        timeout: float = 30,
    ):
        super().__init__(name, kind, extension)
        self.data = data
        self.url = url
        self._session = session
        self._timeout = timeout

    def content(self) -> Iterator[bytes]:
        if self.data is not None:
            yield self.data
            return
        if self.url is None:
            return

        session = self._session or requests.Session()
        response = session.get(self.url, stream=True, timeout=self._timeout)
        try:
            response.raise_for_status()
            for chunk in response.iter_content(CHUNK_SIZE):
                if chunk:
                    yield chunk
        finally:
            response.close()


class BuildLibrary(Library):
    """Library fetched from the registry, carrying its file listing."""

    def __init__(
        self,
        name: str,
        metadata: LibraryMetadata,
        repository: BuildLibraryRepository,
        file_records: list[dict[str, Any]],
    ):
        super().__init__(name, metadata, repository)
        self.file_records = file_records


class BuildLibraryRepository:
    """Read-only library repository backed by a remote registry.

    The registry publishes a catalog (a JSON array of summaries) and one JSON
    record per library. HTTP calls run in worker threads so the repository
    presents the same async interface as the file system repository.
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        timeout: float = 30,
        catalog_path: str = "libs.json",
        library_path: str = "libs/{name}.json",
        api_key: str = "",
        session: requests.Session | None = None,
    ):
        """Initialize the registry client.

        Args:
            endpoint: Base URL of the registry
            timeout: Timeout in seconds for each request
            catalog_path: Path of the catalog, relative to the endpoint
            library_path: Path template of a library record; ``{name}`` is
                replaced by the URL-quoted library name
            api_key: Bearer token sent with every request when set
            session: requests session to use, a new one by default
        """
        if not endpoint.endswith("/"):
            endpoint += "/"
        self.endpoint = endpoint
        self.timeout = timeout
        self.catalog_path = catalog_path
        self.library_path = library_path
        self.session = session or requests.Session()
        self.headers = {"Accept": "application/json"}
        if api_key:
            self.headers["Authorization"] = f"Bearer {api_key}"

    def __repr__(self) -> str:
        return f"BuildLibraryRepository({self.endpoint!r})"

    def _url(self, path: str) -> str:
        return self.endpoint + path.lstrip("/")

    def _get(self, url: str) -> requests.Response:
        logger.debug(f"GET {url}")
        return self.session.get(url, headers=self.headers, timeout=self.timeout)

    async def index(self) -> list[LibrarySummary]:
        """Fetch the registry catalog."""
        response = await asyncio.to_thread(self._get, self._url(self.catalog_path))
        response.raise_for_status()
        return [LibrarySummary(**entry) for entry in response.json()]

    async def names(self) -> list[str]:
        return [summary.title for summary in await self.index()]

    async def fetch(self, name: str) -> BuildLibrary:
        """Fetch a library record from the registry.

        Raises:
            LibraryNotFoundError: The registry has no library with this name
            LibraryFormatError: The record is not valid JSON or names another library
        """
        url = self._url(self.library_path.format(name=quote(name, safe="")))
        response = await asyncio.to_thread(self._get, url)
        if response.status_code in NOT_FOUND_STATUSES:
            raise LibraryNotFoundError(self, name, f"HTTP {response.status_code} from {url}")
        response.raise_for_status()

        try:
            record = response.json()
        except ValueError as e:
            raise LibraryFormatError(self, name, e) from e
        if not isinstance(record, dict):
            raise LibraryFormatError(self, name, "library record is not a JSON object")
        if record.get("name") != name:
            raise LibraryFormatError(
                self, name, "name in library record does not match the requested name"
            )

        fields = {k: v for k, v in record.items() if k != "files"}
        try:
            metadata = LibraryMetadata(**fields)
        except ValidationError as e:
            raise LibraryFormatError(self, name, e) from e
        return BuildLibrary(name, metadata, self, list(record.get("files") or []))

    async def definition(self, library: Library) -> LibraryMetadata:
        return library.metadata

    async def files(self, library: Library) -> list[LibraryFile]:
        """Build the library's files from the record listing."""
        if not isinstance(library, BuildLibrary):
            library = await self.fetch(library.name)
        return [self._create_library_file(record) for record in library.file_records]

    def _create_library_file(self, record: dict[str, Any]) -> BuildLibraryFile:
        name = record["name"]
        extension = record.get("extension")
        if extension is None:
            idx = name.rfind(".")
            extension, name = (name[idx + 1 :], name[:idx]) if idx >= 0 else ("", name)

        content = record.get("content")
        url = record.get("url")
        return BuildLibraryFile(
            name,
            record.get("kind", SOURCE_KIND),
            extension,
            data=content.encode("utf-8") if isinstance(content, str) else None,
            url=self._url(url) if url and "://" not in url else url,
            session=self.session,
            timeout=self.timeout,
        )
