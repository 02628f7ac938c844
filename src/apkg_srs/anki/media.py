"""The ``media`` index of an Anki export and the payload files it names.

The index maps a numeric-string key, which is also the archive entry name of
the payload, to the filename the media is known by inside note fields.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from pathlib import Path

from ..exceptions import MediaMappingError

REEXPORT_HINT = "Please re-export the deck from Anki and try again."

_IMG_SRC = re.compile(r"""<img[^>]*?\ssrc\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))""", re.IGNORECASE)
_SOUND = re.compile(r"\[sound:([^\]]+)\]")


def _describe_json_type(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "a boolean"
    if isinstance(value, (int, float)):
        return "a number"
    if isinstance(value, str):
        return "a string"
    if isinstance(value, list):
        return "an array"
    return "an object"


def parse_media_mapping(text: str | bytes) -> dict[str, str]:
    """Parse and validate the ``media`` index.

    An empty or whitespace-only index means the package has no media. Raw
    bytes must be UTF-8.

    Raises:
        MediaMappingError: For invalid UTF-8 or JSON, a non-object top level,
            or a value that is not a string filename.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MediaMappingError(
                "The media file ('media') is not valid UTF-8 text "
                f"(invalid byte at position {e.start}). {REEXPORT_HINT}"
            ) from e

    if not text.strip():
        return {}

    try:
        mapping = json.loads(text)
    except json.JSONDecodeError as e:
        raise MediaMappingError(
            "The media file ('media') contains invalid JSON and cannot be parsed "
            f"({e.msg} at line {e.lineno}, column {e.colno}). {REEXPORT_HINT}"
        ) from e

    if not isinstance(mapping, dict):
        raise MediaMappingError(
            "The media file ('media') has an invalid structure: expected a JSON object "
            f"but found {_describe_json_type(mapping)}. {REEXPORT_HINT}"
        )

    for key, value in mapping.items():
        if not isinstance(value, str):
            raise MediaMappingError(
                f"The media file ('media') contains an invalid entry for key '{key}': "
                f"found {_describe_json_type(value)} instead of a string filename. {REEXPORT_HINT}",
                context={"key": key},
            )

    return mapping


def serialize_media_mapping(mapping: dict[str, str]) -> str:
    return json.dumps(mapping, indent=2, ensure_ascii=False)


def find_missing_media(mapping: dict[str, str], directory: Path) -> list[tuple[str, str]]:
    """Return ``(key, filename)`` for every entry whose payload file is absent."""
    return [
        (key, filename)
        for key, filename in mapping.items()
        if not (directory / key).is_file()
    ]


def next_media_key(mapping: dict[str, str]) -> str:
    """Next free sequential numeric key."""
    numeric = [int(k) for k in mapping if k.isdigit()]
    return str(max(numeric) + 1 if numeric else 0)


def referenced_media(field_texts: Iterable[str]) -> set[str]:
    """Filenames referenced from note fields by ``<img src>`` or ``[sound:]``."""
    found: set[str] = set()
    for text in field_texts:
        for match in _IMG_SRC.finditer(text):
            found.add(next(g for g in match.groups() if g is not None))
        found.update(_SOUND.findall(text))
    return found
