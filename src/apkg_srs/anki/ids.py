"""Mapping universal identifiers onto unique vendor integer IDs."""

from __future__ import annotations

import hashlib
import uuid
from collections.abc import Mapping

from ..universal import extract_timestamp_from_uuid

ORIGINAL_ID_KEY = "originalAnkiId"


def _parse_number(value: str) -> int | None:
    value = value.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        pass
    try:
        number = float(value)
    except ValueError:
        return None
    if number != number or number in (float("inf"), float("-inf")):
        return None
    return int(number)


def resolve_anki_id(
    application_specific_data: Mapping[str, str] | None, fallback: int
) -> int:
    """Prefer a previously recorded vendor ID, otherwise ``fallback``."""
    if application_specific_data:
        recorded = application_specific_data.get(ORIGINAL_ID_KEY)
        if recorded:
            parsed = _parse_number(str(recorded))
            if parsed is not None:
                return parsed
    return fallback


def fallback_anki_id(universal_id: str) -> int:
    """Vendor ID candidate for an entity with no recorded vendor ID.

    A UUID yields the millisecond timestamp in its high 48 bits. Any other
    string yields a stable 48-bit value derived from its SHA-1 digest.
    """
    try:
        canonical = str(uuid.UUID(universal_id))
    except ValueError:
        digest = hashlib.sha1(universal_id.encode("utf-8")).digest()
        return int.from_bytes(digest[:6], "big")
    return extract_timestamp_from_uuid(canonical)


class IdReconciler:
    """Hands out vendor IDs that are unique within each entity kind.

    One instance lives for the duration of a single conversion. A candidate
    already taken for its kind is incremented by one until a free value is
    found.
    """

    def __init__(self) -> None:
        self._assigned: dict[str, set[int]] = {}

    def claim(self, kind: str, candidate: int) -> int:
        taken = self._assigned.setdefault(kind, set())
        while candidate in taken:
            candidate += 1
        taken.add(candidate)
        return candidate

    def resolve(
        self,
        kind: str,
        application_specific_data: Mapping[str, str] | None,
        fallback: int,
    ) -> int:
        return self.claim(kind, resolve_anki_id(application_specific_data, fallback))

    def assigned(self, kind: str) -> frozenset[int]:
        return frozenset(self._assigned.get(kind, ()))
