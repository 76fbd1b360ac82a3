"""Library descriptor codec.

Two on-disk forms exist:

* layout 1 (legacy): ``spark.json``, a JSON object of the metadata.
* layout 2 (current): ``library.properties``, one ``key: value`` pair per line.
"""

from __future__ import annotations

import json
import re
from typing import Any

from ..models import LibraryMetadata

SPARK_JSON = "spark.json"
LIBRARY_PROPERTIES = "library.properties"

# (metadata field, on-disk key) in emission order
V2_FIELDS = [
    ("name", "name"),
    ("version", "version"),
    ("license", "license"),
    ("author", "author"),
    ("description", "sentence"),
]

SOURCE_EXTENSIONS = {"c", "cpp", "h", "ino"}


def _as_dict(metadata: LibraryMetadata | dict[str, Any]) -> dict[str, Any]:
    if isinstance(metadata, LibraryMetadata):
        return metadata.model_dump(exclude_none=True)
    return {k: v for k, v in metadata.items() if v is not None}


def remove_id(metadata: LibraryMetadata | dict[str, Any]) -> dict[str, Any]:
    """Return a copy of the metadata without the registry id."""
    data = _as_dict(metadata)
    data.pop("id", None)
    return data


def build_v1_descriptor(metadata: LibraryMetadata | dict[str, Any]) -> str:
    """Serialize metadata as a layout 1 JSON descriptor."""
    return json.dumps(remove_id(metadata))


# escape sequences understood in descriptor values
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t"}


def escape_value(value: Any) -> str:
    """Escape backslashes and line breaks so a value stays on one line."""
    return str(value).replace("\\", "\\\\").replace("\n", "\\n").replace("\r", "\\r")


def unescape_value(value: str) -> str:
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), value)


def build_v2_descriptor(metadata: LibraryMetadata | dict[str, Any]) -> str:
    """Serialize metadata as a layout 2 properties descriptor.

    Only defined fields produce a line, always in the order name, version,
    license, author, sentence. Backslashes and line breaks in values are
    escaped.
    """
    data = _as_dict(metadata)
    if "description" not in data and "sentence" in data:
        data["description"] = data["sentence"]
    lines = [
        f"{key}: {escape_value(data[field])}" for field, key in V2_FIELDS if field in data
    ]
    return "\n".join(lines)


def parse_properties(text: str) -> dict[str, str]:
    """Parse ``key: value`` / ``key=value`` lines.

    Blank lines and lines starting with '#' or '!' are ignored. Later keys
    override earlier ones. ``\\n``, ``\\r``, ``\\t`` and ``\\\\`` in values
    are unescaped.
    """
    props: dict[str, str] = {}
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line[0] in "#!":
            continue
        match = re.match(r"([^:=\s]+)\s*[:=]?\s*(.*)$", line)
        if match:
            props[match.group(1)] = unescape_value(match.group(2).rstrip())
    return props


def migrate_source(source: str, library_name: str) -> str:
    """Rewrite legacy includes of a library's own headers.

    ``#include "libname/rest/of/path"`` becomes ``#include "rest/of/path"``
    (single quotes and backslash separators likewise). Includes of other
    libraries are left alone.
    """
    pattern = re.compile(r"(#include\s+['\"])" + re.escape(library_name) + r"[/\\]")
    return pattern.sub(lambda m: m.group(1), source)


def is_source_extension(extension: str) -> bool:
    return extension.lower() in SOURCE_EXTENSIONS
