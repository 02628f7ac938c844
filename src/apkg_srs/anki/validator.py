"""Validation and referential filtering of a raw collection snapshot.

``filter_snapshot`` checks every entity's shape and then its references
against the entities that survived before it, in the order

    decks -> note types -> notes -> cards -> reviews

so that a rejected parent silently takes its dependents with it: each of
those dependents fails its own reference check and is reported once.
Tombstones are shape-checked and copied through.
"""

from __future__ import annotations

import json
from typing import Any

from pydantic import BaseModel, ValidationError

from ..issues import ConversionIssue, IssueContext, ItemType, Severity
from ..utils.logging import get_logger
from .constants import default_collection_row
from .types import (
    CardRow,
    Collection,
    DatabaseDump,
    Deck,
    GraveRow,
    NoteRow,
    NoteType,
    RawSnapshot,
    RevlogRow,
)

logger = get_logger(__name__)

_JSON_COLUMNS = ("conf", "models", "decks", "dconf", "tags")


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors()[:3]:
        location = ".".join(str(p) for p in item["loc"]) or "value"
        parts.append(f"{location}: {item['msg'].lower()}")
    if error.error_count() > 3:
        parts.append(f"and {error.error_count() - 3} more")
    return "; ".join(parts)


def _identifier(raw: Any) -> str:
    value = raw.get("id") if isinstance(raw, dict) else None
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return "unknown"


class _Filter:
    def __init__(self) -> None:
        self.issues: list[ConversionIssue] = []

    def reject(self, kind: str, item_type: ItemType | None, ident: str, reason: str, raw: Any) -> None:
        self.issues.append(
            ConversionIssue(
                Severity.ERROR,
                f"{kind.capitalize()} {ident} is invalid: {reason}. This {kind} will be skipped.",
                IssueContext(item_type=item_type, original_data=raw),
            )
        )

    def parse(self, model: type[BaseModel], kind: str, item_type: ItemType | None, raw: Any) -> Any:
        if not isinstance(raw, dict):
            self.reject(kind, item_type, "unknown", f"expected an object, got {type(raw).__name__}", raw)
            return None
        try:
            return model.model_validate(raw)
        except ValidationError as e:
            self.reject(kind, item_type, _identifier(raw), _describe_validation_error(e), raw)
            return None

    def keyed(
        self,
        model: type[Deck] | type[NoteType],
        kind: str,
        item_type: ItemType,
        entries: dict[str, Any],
    ) -> dict[str, Any]:
        kept: dict[str, Any] = {}
        seen: set[int] = set()
        for key, raw in entries.items():
            entity = self.parse(model, kind, item_type, raw)
            if entity is None:
                continue
            if str(entity.id) != str(key):
                self.reject(
                    kind, item_type, str(entity.id),
                    f"it is stored under key '{key}' which does not match its id", raw,
                )
                continue
            if entity.id in seen:
                self.reject(kind, item_type, str(entity.id), "its id is used more than once", raw)
                continue
            seen.add(entity.id)
            kept[str(entity.id)] = entity
        return kept

    def rows(
        self,
        model: type[BaseModel],
        kind: str,
        item_type: ItemType | None,
        rows: list[dict[str, Any]],
        references: list[tuple[str, set[int], str]],
    ) -> list[Any]:
        """Validate rows; ``references`` lists (attribute, allowed ids, target kind)."""
        kept = []
        seen: set[int] = set()
        for raw in rows:
            entity = self.parse(model, kind, item_type, raw)
            if entity is None:
                continue
            ident = str(entity.id) if getattr(entity, "id", None) is not None else "unknown"
            if getattr(entity, "id", None) is not None:
                if entity.id in seen:
                    self.reject(kind, item_type, ident, "its id is used more than once", raw)
                    continue
            broken = next(
                (
                    (attr, target)
                    for attr, allowed, target in references
                    if getattr(entity, attr) not in allowed
                ),
                None,
            )
            if broken is not None:
                attr, target = broken
                self.reject(
                    kind, item_type, ident,
                    f"it references non-existent {target} {getattr(entity, attr)}", raw,
                )
                continue
            if getattr(entity, "id", None) is not None:
                seen.add(entity.id)
            kept.append(entity)
        return kept


def _empty_collection() -> Collection:
    row = default_collection_row()
    row["decks"] = {}
    return Collection.model_validate(row)


def _decode_collection(raw: dict[str, Any] | None) -> tuple[dict[str, Any] | None, str | None]:
    """Decode the JSON columns of the ``col`` row. Returns (row, failure reason)."""
    if raw is None:
        return None, "the collection table has no row"
    row = dict(raw)
    for column in _JSON_COLUMNS:
        value = row.get(column)
        if isinstance(value, (bytes, bytearray)):
            value = value.decode("utf-8", errors="replace")
        if isinstance(value, str):
            try:
                value = json.loads(value) if value.strip() else {}
            except json.JSONDecodeError as e:
                return None, f"column '{column}' is not valid JSON ({e.msg})"
        if value is None:
            value = {}
        if not isinstance(value, dict):
            return None, f"column '{column}' must hold a JSON object"
        row[column] = value
    return row, None


def filter_snapshot(raw: RawSnapshot) -> tuple[DatabaseDump, list[ConversionIssue]]:
    """Validate ``raw`` and keep only consistent entities. Never raises."""
    f = _Filter()

    row, reason = _decode_collection(raw.collection)
    collection: Collection | None = None
    if row is not None:
        header = {k: v for k, v in row.items() if k not in ("models", "decks")}
        try:
            collection = Collection.model_validate(header)
        except ValidationError as e:
            reason = _describe_validation_error(e)

    if collection is None or row is None:
        f.issues.append(
            ConversionIssue(
                Severity.CRITICAL,
                f"The collection metadata is unusable: {reason}. "
                "Please re-export the deck from Anki and try again.",
                IssueContext(original_data=raw.collection),
            )
        )
        return DatabaseDump(collection=_empty_collection()), f.issues

    collection.decks = f.keyed(Deck, "deck", ItemType.DECK, row["decks"])
    collection.models = f.keyed(NoteType, "note type", ItemType.NOTE_TYPE, row["models"])

    deck_ids = {d.id for d in collection.decks.values()}
    note_type_ids = {m.id for m in collection.models.values()}

    notes = f.rows(NoteRow, "note", ItemType.NOTE, raw.notes, [("mid", note_type_ids, "note type")])
    note_ids = {n.id for n in notes}

    cards = f.rows(
        CardRow, "card", ItemType.CARD, raw.cards,
        [("nid", note_ids, "note"), ("did", deck_ids, "deck")],
    )
    card_ids = {c.id for c in cards}

    reviews = f.rows(RevlogRow, "review", ItemType.REVIEW, raw.reviews, [("cid", card_ids, "card")])

    graves = []
    for grave_raw in raw.deleted_items:
        grave = f.parse(GraveRow, "deletion record", None, grave_raw)
        if grave is not None:
            graves.append(grave)

    dump = DatabaseDump(
        collection=collection,
        notes=notes,
        cards=cards,
        reviews=reviews,
        deleted_items=graves,
    )
    logger.debug(
        "snapshot_filtered",
        decks=len(collection.decks),
        note_types=len(collection.models),
        notes=len(notes),
        cards=len(cards),
        reviews=len(reviews),
        rejected=len(f.issues),
    )
    return dump, f.issues
