"""Tests for the remote registry repository."""

import asyncio
import json
from unittest.mock import MagicMock

import pytest
import requests

from sparklib.errors import LibraryFormatError, LibraryNotFoundError
from sparklib.repository import BuildLibraryRepository, FileSystemLibraryRepository, LibraryRepository

ENDPOINT = "http://localhost:3000/"

CATALOG = [
    {"id": "1", "title": "swd", "content": "Serial wire debug", "version": "0.1.0", "visibility": "public"},
    {"id": "2", "title": "neopixel", "content": "LED strips", "version": "0.0.10", "visibility": "public"},
]

SWD = {
    "id": "1",
    "name": "swd",
    "version": "0.1.0",
    "description": "Serial wire debug",
    "author": "Particle",
    "license": "LGPL",
    "files": [
        {"name": "swd", "extension": "h", "content": "#pragma once\n"},
        {"name": "swd.cpp", "content": '#include "swd.h"\n'},
        {"name": "blink", "extension": "cpp", "kind": "example", "content": "void loop() {}\n"},
    ],
}


class FakeResponse:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code=200, payload=None, text=None, chunks=None):
        self.status_code = status_code
        self._payload = payload
        self._text = text
        self._chunks = chunks or []
        self.closed = False

    def json(self):
        if self._text is not None:
            return json.loads(self._text)
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def iter_content(self, chunk_size=1):
        return iter(self._chunks)

    def close(self):
        self.closed = True


@pytest.fixture
def session():
    """Session whose responses are keyed by URL."""
    responses = {
        ENDPOINT + "libs.json": FakeResponse(payload=CATALOG),
        ENDPOINT + "libs/swd.json": FakeResponse(payload=SWD),
    }
    mock = MagicMock()
    mock.get.side_effect = lambda url, **kwargs: responses.get(url, FakeResponse(404))
    mock.responses = responses
    return mock


@pytest.fixture
def repo(session):
    return BuildLibraryRepository(endpoint="http://localhost:3000", session=session)


def test_endpoint_is_normalized(repo):
    assert repo.endpoint == ENDPOINT


def test_is_library_repository(repo):
    assert isinstance(repo, LibraryRepository)
    assert not hasattr(repo, "add")


def test_index(repo):
    index = asyncio.run(repo.index())

    assert len(index) > 0
    for summary in index:
        assert summary.id
        assert summary.title
        assert summary.content
        assert summary.version
        assert summary.visibility == "public"


def test_names(repo):
    names = asyncio.run(repo.names())

    assert names == ["swd", "neopixel"]
    assert all(isinstance(name, str) for name in names)


def test_fetch(repo):
    library = asyncio.run(repo.fetch("swd"))

    assert library.name == "swd"
    assert library.repository is repo


def test_definition(repo):
    definition = asyncio.run(asyncio.run(repo.fetch("swd")).definition())

    assert definition.name == "swd"
    assert definition.version == "0.1.0"
    assert definition.description == "Serial wire debug"


def test_fetch_unknown_library(repo, session):
    with pytest.raises(LibraryNotFoundError) as exc_info:
        asyncio.run(repo.fetch("$$!!@@"))

    assert exc_info.value.kind == "LibraryNotFoundError"
    requested = session.get.call_args[0][0]
    assert requested == ENDPOINT + "libs/%24%24%21%21%40%40.json"


def test_bad_request_is_not_found(repo, session):
    session.responses[ENDPOINT + "libs/bad.json"] = FakeResponse(400)

    with pytest.raises(LibraryNotFoundError):
        asyncio.run(repo.fetch("bad"))


def test_server_error_propagates(repo, session):
    session.responses[ENDPOINT + "libs/down.json"] = FakeResponse(503)

    with pytest.raises(requests.HTTPError):
        asyncio.run(repo.fetch("down"))


def test_invalid_json_is_format_error(repo, session):
    session.responses[ENDPOINT + "libs/html.json"] = FakeResponse(text="<html></html>")

    with pytest.raises(LibraryFormatError):
        asyncio.run(repo.fetch("html"))


def test_record_for_other_library_is_format_error(repo, session):
    session.responses[ENDPOINT + "libs/alias.json"] = FakeResponse(payload=SWD)

    with pytest.raises(LibraryFormatError):
        asyncio.run(repo.fetch("alias"))


def test_files(repo):
    library = asyncio.run(repo.fetch("swd"))
    files = asyncio.run(library.files())

    assert [(f.name, f.extension, f.kind) for f in files] == [
        ("swd", "h", "source"),
        ("swd", "cpp", "source"),
        ("blink", "cpp", "example"),
    ]
    assert b"".join(files[0].content()) == b"#pragma once\n"


def test_url_content_is_streamed(repo, session):
    session.responses[ENDPOINT + "libs/remote.json"] = FakeResponse(
        payload={"name": "remote", "files": [{"name": "remote.h", "url": "files/remote.h"}]}
    )
    download = FakeResponse(chunks=[b"#pragma ", b"once\n"])
    session.responses[ENDPOINT + "files/remote.h"] = download

    (remote_file,) = asyncio.run(asyncio.run(repo.fetch("remote")).files())

    assert b"".join(remote_file.content()) == b"#pragma once\n"
    assert download.closed


def test_api_key_header(session):
    repo = BuildLibraryRepository(endpoint=ENDPOINT, api_key="token", session=session)

    asyncio.run(repo.names())

    headers = session.get.call_args[1]["headers"]
    assert headers["Authorization"] == "Bearer token"


def test_install_into_file_system(repo, tmp_path):
    """A registry library can be added to a local repository."""
    local = FileSystemLibraryRepository(tmp_path)

    asyncio.run(local.add(asyncio.run(repo.fetch("swd"))))

    assert sorted(p.name for p in (tmp_path / "swd").iterdir()) == [
        "library.properties",
        "swd.cpp",
        "swd.h",
    ]
    definition = asyncio.run(asyncio.run(local.fetch("swd")).definition())
    assert definition.description == "Serial wire debug"
    assert definition.id is None
