"""Small helpers for Anki note fields and identifiers."""

import hashlib
import html
import re
import secrets

from .constants import FIELD_SEPARATOR

_BASE91_TABLE = (
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
    "!#$%&()*+,-./:;<=>?@[]^_`{|}~"
)
_HTML_TAG = re.compile(r"<[^>]*>")


def base91(num: int) -> str:
    if num == 0:
        return _BASE91_TABLE[0]
    buf = ""
    while num:
        num, mod = divmod(num, len(_BASE91_TABLE))
        buf = _BASE91_TABLE[mod] + buf
    return buf


def guid64() -> str:
    """Random 64-bit value in Anki's base91 guid alphabet."""
    return base91(secrets.randbits(64))


def join_fields(values: list[str]) -> str:
    return FIELD_SEPARATOR.join(values)


def split_fields(joined: str) -> list[str]:
    return joined.split(FIELD_SEPARATOR)


def strip_html(text: str) -> str:
    return html.unescape(_HTML_TAG.sub("", text))


def field_checksum(first_field: str) -> int:
    """Duplicate-detection checksum: first 8 hex digits of SHA-1 of the stripped field."""
    digest = hashlib.sha1(strip_html(first_field).encode("utf-8")).hexdigest()
    return int(digest[:8], 16)


def preview(text: str, limit: int = 50) -> str:
    """Single-line plain-text preview of a field for messages."""
    clean = " ".join(strip_html(text).split())
    return clean if len(clean) <= limit else f"{clean[: limit - 3]}..."
