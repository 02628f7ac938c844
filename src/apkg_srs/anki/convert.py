"""Field-by-field mapping between an Anki snapshot and a universal package.

``application_specific_data`` keys written on the way out and read back on the
way in:

==================  ============  =============================================
key                 entity        content
==================  ============  =============================================
originalAnkiId      all           vendor integer ID, as a decimal string
ankiDeckData        deck          JSON of the vendor deck object
ankiNoteTypeData    note type     JSON of the vendor note type minus flds/tmpls
ankiFieldData       note type     JSON list of the vendor field definitions
ankiTemplateData    template      JSON of the vendor template definition
ankiGuid            note          vendor note guid
ankiTags            note          vendor space-separated tag string
ankiNoteData        note          JSON of the vendor note row
ankiCardData        card          JSON of the vendor card row
ankiDue             card          ``due`` column
ankiQueue           card          ``queue`` column
ankiType            card          ``type`` column
ankiReviewData      review        JSON of the vendor revlog row
==================  ============  =============================================

Any other key is carried along untouched.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from ..issues import IssueCollector, ItemType
from ..universal import (
    SrsCard,
    SrsNote,
    SrsNoteField,
    SrsNoteTemplate,
    SrsNoteType,
    SrsPackage,
    SrsReviewScore,
    create_card,
    create_deck,
    create_note,
    create_note_type,
    create_review,
    is_cloze_note_type,
)
from .cloze import cloze_ordinals
from .constants import (
    CLOZE_CSS,
    DEFAULT_CSS,
    DEFAULT_DECK_ID,
    LATEX_POST,
    LATEX_PRE,
    default_deck,
)
from .ids import ORIGINAL_ID_KEY, IdReconciler, fallback_anki_id
from .types import (
    CardRow,
    DatabaseDump,
    Deck,
    DeckDynamicity,
    Ease,
    NoteRow,
    NoteType,
    NoteTypeKind,
    RevlogRow,
)
from .util import field_checksum, guid64, join_fields, preview, split_fields

_EASE_TO_SCORE = {
    Ease.AGAIN: SrsReviewScore.AGAIN,
    Ease.HARD: SrsReviewScore.HARD,
    Ease.GOOD: SrsReviewScore.NORMAL,
    Ease.EASY: SrsReviewScore.EASY,
}
_SCORE_TO_EASE = {score: ease for ease, score in _EASE_TO_SCORE.items()}

_CARD_SCHEDULING = (
    "mod", "usn", "type", "queue", "due", "ivl", "factor", "reps",
    "lapses", "left", "odue", "odid", "flags", "data",
)
_REVIEW_SCHEDULING = ("usn", "ivl", "lastIvl", "factor", "time", "type")


def _json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _load_object(data: dict[str, str], key: str) -> dict[str, Any]:
    """Decode a JSON object stored under ``key``; anything else yields ``{}``."""
    raw = data.get(key)
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return value if isinstance(value, dict) else {}


def _load_list(data: dict[str, str], key: str) -> list[Any]:
    raw = data.get(key)
    if not raw:
        return []
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return []
    return value if isinstance(value, list) else []


def _int_or(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _card_description(card: CardRow, note: NoteRow | None, deck: Deck | None) -> str:
    deck_name = deck.name if deck else "Unknown"
    text = preview(split_fields(note.flds)[0]) if note else ""
    if text:
        return f'Card "{text}" (ID {card.id}) in deck "{deck_name}"'
    return f'Card ID {card.id} in deck "{deck_name}"'


def _review_description(review: RevlogRow, dump: DatabaseDump) -> str:
    ident = "Unknown" if review.id is None else str(review.id)
    when = (
        "Unknown"
        if review.id is None
        else datetime.fromtimestamp(review.id / 1000, tz=timezone.utc).date().isoformat()
    )
    card = next((c for c in dump.cards if c.id == review.cid), None)
    if card is not None:
        note = next((n for n in dump.notes if n.id == card.nid), None)
        deck = dump.collection.decks.get(str(card.did))
        return f"Review of {_card_description(card, note, deck)} on {when}"
    return f"Review ID {ident} on {when}"


# Anki -> universal


def anki_to_srs(dump: DatabaseDump, collector: IssueCollector) -> SrsPackage:
    """Build a universal package from a validated snapshot."""
    srs = SrsPackage()
    collection = dump.collection

    deck_map: dict[int, str] = {}
    for key, deck in collection.decks.items():
        srs_deck = create_deck(
            deck.name,
            deck.desc or None,
            {ORIGINAL_ID_KEY: key, "ankiDeckData": _json(deck.dump())},
        )
        srs.add_deck(srs_deck)
        deck_map[deck.id] = srs_deck.id

    note_type_map: dict[int, SrsNoteType] = {}
    for key, note_type in collection.models.items():
        type_data = note_type.dump()
        field_data = type_data.pop("flds")
        type_data.pop("tmpls")
        srs_note_type = create_note_type(
            note_type.name,
            [
                SrsNoteField(index, f.name, f.description or None)
                for index, f in enumerate(note_type.flds)
            ],
            [
                SrsNoteTemplate(
                    index,
                    t.name,
                    t.qfmt,
                    t.afmt,
                    {"ankiTemplateData": _json(t.dump())},
                )
                for index, t in enumerate(note_type.tmpls)
            ],
            {
                ORIGINAL_ID_KEY: key,
                "ankiNoteTypeData": _json(type_data),
                "ankiFieldData": _json(field_data),
            },
        )
        srs.add_note_type(srs_note_type)
        note_type_map[note_type.id] = srs_note_type

    # A note belongs to the deck of the first card seen for it
    note_deck: dict[int, int] = {}
    for card in dump.cards:
        note_deck.setdefault(card.nid, card.did)

    note_map: dict[int, str] = {}
    for note in dump.notes:
        srs_note_type = note_type_map.get(note.mid)
        srs_deck_id = deck_map.get(note_deck.get(note.id, DEFAULT_DECK_ID))
        if srs_note_type is None or srs_deck_id is None:
            collector.add_note_error(
                f"Cannot convert note {note.id} because note type or deck mapping is missing. "
                "This note will be skipped.",
                note,
            )
            continue

        values = split_fields(note.flds)
        field_values = [
            (f.name, values[index] if index < len(values) else "")
            for index, f in enumerate(srs_note_type.fields)
        ]
        try:
            srs_note = create_note(
                srs_note_type,
                srs_deck_id,
                field_values,
                {
                    ORIGINAL_ID_KEY: str(note.id),
                    "ankiGuid": note.guid,
                    "ankiTags": note.tags,
                    "ankiNoteData": _json(note.dump()),
                },
            )
        except ValueError as e:
            collector.add_note_error(f"Cannot convert note {note.id}: {e}. This note will be skipped.", note)
            continue
        srs.add_note(srs_note)
        note_map[note.id] = srs_note.id

    card_map: dict[int, str] = {}
    for card in dump.cards:
        deck = collection.decks.get(str(card.did))
        srs_note_id = note_map.get(card.nid)
        if srs_note_id is None:
            collector.add_card_error(
                f"Note not found for {_card_description(card, None, deck)} - Skipping card",
                card,
            )
            continue

        srs_card = create_card(
            srs_note_id,
            card.ord,
            {
                ORIGINAL_ID_KEY: str(card.id),
                "ankiCardData": _json(card.dump()),
                "ankiDue": str(card.due),
                "ankiQueue": str(card.queue),
                "ankiType": str(card.type),
            },
        )
        try:
            srs.add_card(srs_card)
        except ValueError as e:
            note = next((n for n in dump.notes if n.id == card.nid), None)
            collector.add_card_error(
                f"Failed to convert {_card_description(card, note, deck)}: {e}", card
            )
            continue
        card_map[card.id] = srs_card.id

    for review in dump.reviews:
        srs_card_id = card_map.get(review.cid)
        if srs_card_id is None:
            collector.add_review_error(
                f"Card not found for {_review_description(review, dump)} - Skipping review",
                review,
            )
            continue
        if review.id is None:
            collector.add_review_error(
                f"Review ID is undefined for {_review_description(review, dump)} - Skipping review",
                review,
            )
            continue
        if review.ease not in _EASE_TO_SCORE:
            collector.add_review_error(
                f"Unknown review score {review.ease} for {_review_description(review, dump)} "
                "- Skipping review",
                review,
            )
            continue

        srs.add_review(
            create_review(
                srs_card_id,
                review.id,
                _EASE_TO_SCORE[Ease(review.ease)],
                {
                    ORIGINAL_ID_KEY: str(review.id),
                    "ankiReviewData": _json(review.dump()),
                },
            )
        )

    srs.remove_unused()
    return srs


# Universal -> Anki


def _build_deck(deck_id: int, name: str, description: str | None, restored: dict[str, Any]) -> Deck:
    data = default_deck()
    data.update(restored)
    data.update(id=deck_id, name=name, desc=description or "")
    if "dyn" not in restored:
        data["dyn"] = DeckDynamicity.STATIC.value
        data["conf"] = 1
    return Deck.model_validate(data)


def _build_note_type(note_type: SrsNoteType, note_type_id: int, deck_id: int) -> NoteType:
    cloze = is_cloze_note_type(note_type)
    asd = note_type.application_specific_data
    restored_fields = _load_list(asd, "ankiFieldData")

    data: dict[str, Any] = {
        "mod": 0,
        "usn": 0,
        "sortf": 0,
        "did": deck_id,
        "css": CLOZE_CSS if cloze else DEFAULT_CSS,
        "latexPre": LATEX_PRE,
        "latexPost": LATEX_POST,
        "latexsvg": False,
        "req": [[index, "any", [0]] for index in range(len(note_type.templates))],
        "originalStockKind": 5 if cloze else 1,
    }
    data.update(_load_object(asd, "ankiNoteTypeData"))
    data.update(
        id=note_type_id,
        name=note_type.name,
        type=(NoteTypeKind.CLOZE if cloze else NoteTypeKind.STANDARD).value,
        did=deck_id,
    )

    templates = []
    for template in note_type.templates:
        tmpl: dict[str, Any] = {
            "bqfmt": "",
            "bafmt": "",
            "did": None,
            "bfont": "",
            "bsize": 0,
            "id": template.id,
        }
        tmpl.update(_load_object(template.application_specific_data, "ankiTemplateData"))
        tmpl.update(
            name=template.name,
            ord=template.id,
            qfmt=template.question_template,
            afmt=template.answer_template,
        )
        templates.append(tmpl)

    fields = []
    for index, srs_field in enumerate(note_type.fields):
        fld: dict[str, Any] = {
            "sticky": False,
            "rtl": False,
            "font": "Arial",
            "size": 20,
            "plainText": False,
            "collapsed": False,
            "excludeFromSearch": False,
            "id": srs_field.id,
            "tag": None,
            "preventDeletion": False,
        }
        if index < len(restored_fields) and isinstance(restored_fields[index], dict):
            fld.update(restored_fields[index])
        fld.update(name=srs_field.name, ord=srs_field.id, description=srs_field.description or "")
        fields.append(fld)

    data["tmpls"] = templates
    data["flds"] = fields
    return NoteType.model_validate(data)


def _ordered_values(note: SrsNote, note_type: SrsNoteType) -> list[str]:
    by_name = dict(note.field_values)
    if set(by_name) == set(note_type.field_names):
        return [by_name[name] for name in note_type.field_names]
    return [value for _, value in note.field_values]


def _cards_to_create(
    note: SrsNote, note_type: SrsNoteType | None, cards: list[SrsCard]
) -> list[tuple[int, SrsCard, bool]]:
    """(ordinal, source card, is_clone) for every vendor card the note needs."""
    if note_type is None or not is_cloze_note_type(note_type):
        return [(card.template_id, card, False) for card in cards]

    ordinals = cloze_ordinals(join_fields([value for _, value in note.field_values]))
    if not ordinals:
        return [(card.template_id, card, False) for card in cards]

    planned = []
    for ordinal in ordinals:
        existing = next((c for c in cards if c.template_id == ordinal), None)
        if existing is not None:
            planned.append((ordinal, existing, False))
        else:
            planned.append((ordinal, cards[0], True))
    return planned


def srs_to_anki(srs_package: SrsPackage, dump: DatabaseDump, collector: IssueCollector) -> bool:
    """Write ``srs_package`` into ``dump``.

    ``dump`` should hold a collection with no decks. The caller's package is
    not modified; unreferenced entities are pruned from a copy. Returns False
    when a critical precondition failed and nothing usable was written.
    """
    srs = srs_package.copy()
    srs.remove_unused()

    decks = srs.get_decks()
    if len(decks) != 1:
        names = ", ".join(f"'{d.name}'" for d in decks)
        collector.add_critical(
            f"The package must contain exactly one deck, but found {len(decks)} decks: {names}.",
            ItemType.DECK,
        )
        return False

    ids = IdReconciler()
    collection = dump.collection

    deck_map: dict[str, int] = {}
    for deck in decks:
        deck_id = ids.resolve("deck", deck.application_specific_data, fallback_anki_id(deck.id))
        restored = _load_object(deck.application_specific_data, "ankiDeckData")
        collection.decks[str(deck_id)] = _build_deck(deck_id, deck.name, deck.description, restored)
        deck_map[deck.id] = deck_id

    first_deck_id = next(iter(deck_map.values()))
    collection.conf["curDeck"] = first_deck_id
    collection.conf["activeDecks"] = [first_deck_id]

    note_type_map: dict[str, int] = {}
    for note_type in srs.get_note_types():
        note_type_id = ids.resolve(
            "noteType", note_type.application_specific_data, fallback_anki_id(note_type.id)
        )
        try:
            collection.models[str(note_type_id)] = _build_note_type(note_type, note_type_id, first_deck_id)
        except ValidationError as e:
            collector.add_error(
                f"Cannot convert note type '{note_type.name}': {e.error_count()} invalid value(s). "
                "This note type will be skipped.",
                ItemType.NOTE_TYPE,
                note_type,
            )
            continue
        note_type_map[note_type.id] = note_type_id
    if note_type_map:
        collection.conf["curModel"] = next(iter(note_type_map.values()))

    note_map: dict[str, int] = {}
    for note in srs.get_notes():
        mid = note_type_map.get(note.note_type_id)
        note_type = srs.get_note_type(note.note_type_id)
        if mid is None or note_type is None:
            collector.add_note_error(
                f"Cannot convert note because note type ID {note.note_type_id} was not found. "
                "This note will be skipped.",
                note,
            )
            continue

        asd = note.application_specific_data
        note_id = ids.resolve("note", asd, fallback_anki_id(note.id))
        restored = _load_object(asd, "ankiNoteData")
        values = _ordered_values(note, note_type)
        sort_index = collection.models[str(mid)].sortf
        row = {
            "mod": restored.get("mod", 0),
            "usn": 0,
            "flags": restored.get("flags", 0),
            "data": restored.get("data", ""),
            "id": note_id,
            "guid": asd.get("ankiGuid") or restored.get("guid") or guid64(),
            "mid": mid,
            "tags": asd.get("ankiTags", restored.get("tags", "")),
            "flds": join_fields(values),
            "sfld": values[sort_index] if sort_index < len(values) else (values[0] if values else ""),
            "csum": field_checksum(values[0]) if values else 0,
        }
        try:
            dump.notes.append(NoteRow.model_validate(row))
        except ValidationError as e:
            collector.add_note_error(
                f"Cannot convert note {note.id}: {e.error_count()} invalid value(s). "
                "This note will be skipped.",
                note,
            )
            continue
        note_map[note.id] = note_id

    cards_by_note: dict[str, list[SrsCard]] = {}
    for card in srs.get_cards():
        cards_by_note.setdefault(card.note_id, []).append(card)

    written_decks = {d.id for d in collection.decks.values()}
    planned: list[tuple[int, int, int, SrsCard, bool]] = []
    for srs_note_id, cards in cards_by_note.items():
        note = srs.get_note(srs_note_id)
        anki_note_id = note_map.get(srs_note_id)
        deck_id = deck_map.get(note.deck_id) if note is not None else None
        if note is None or anki_note_id is None or deck_id is None:
            if note is None:
                reason = "its note was not found"
            elif anki_note_id is None:
                reason = f"note ID {srs_note_id} was skipped earlier"
            else:
                reason = f"deck ID {note.deck_id} was not found"
            for card in cards:
                collector.add_card_error(
                    f"Cannot convert card because {reason}. This card will be skipped.", card
                )
            continue

        for ordinal, srs_card, is_clone in _cards_to_create(
            note, srs.get_note_type(note.note_type_id), cards
        ):
            planned.append((anki_note_id, deck_id, ordinal, srs_card, is_clone))

    # Cards with a recorded vendor ID claim it before any clone is numbered.
    # Clones never reuse their source's recorded ID.
    card_ids: dict[int, int] = {}
    for index in sorted(range(len(planned)), key=lambda i: planned[i][4]):
        srs_card, is_clone = planned[index][3], planned[index][4]
        asd = {} if is_clone else srs_card.application_specific_data
        card_ids[index] = ids.resolve("card", asd, fallback_anki_id(srs_card.id))

    card_map: dict[str, int] = {}
    for index, (anki_note_id, deck_id, ordinal, srs_card, is_clone) in enumerate(planned):
        asd = srs_card.application_specific_data
        card_id = card_ids[index]

        row: dict[str, Any] = {column: 0 for column in _CARD_SCHEDULING}
        row["data"] = "{}"
        restored = _load_object(asd, "ankiCardData")
        row.update({k: restored[k] for k in _CARD_SCHEDULING if k in restored})
        row["due"] = _int_or(asd.get("ankiDue"), row["due"])
        row["queue"] = _int_or(asd.get("ankiQueue"), row["queue"])
        row["type"] = _int_or(asd.get("ankiType"), row["type"])
        if row["odid"] not in written_decks:
            row["odid"] = 0
            row["odue"] = 0
        row.update(id=card_id, nid=anki_note_id, did=deck_id, ord=ordinal, usn=0)

        try:
            dump.cards.append(CardRow.model_validate(row))
        except ValidationError as e:
            collector.add_card_error(
                f"Cannot convert card {srs_card.id}: {e.error_count()} invalid value(s). "
                "This card will be skipped.",
                srs_card,
            )
            continue
        if not is_clone:
            card_map.setdefault(srs_card.id, card_id)

    for review in srs.get_reviews():
        try:
            ease = _SCORE_TO_EASE[SrsReviewScore(review.score)]
        except ValueError:
            collector.add_review_error(
                f"Cannot convert review because the score {review.score} is not valid. "
                "Valid review scores are 1 (Again), 2 (Hard), 3 (Normal), 4 (Easy). "
                "This review will be skipped.",
                review,
            )
            continue

        card_id = card_map.get(review.card_id)
        if card_id is None:
            collector.add_review_error(
                f"Cannot convert review because card ID {review.card_id} was not found. "
                "The card may have been skipped earlier. This review will be skipped.",
                review,
            )
            continue

        asd = review.application_specific_data
        review_id = ids.resolve("review", asd, review.timestamp)
        restored = _load_object(asd, "ankiReviewData")
        row = {column: restored.get(column, 0) for column in _REVIEW_SCHEDULING}
        row.update(id=review_id, cid=card_id, ease=ease.value, usn=0)
        try:
            dump.reviews.append(RevlogRow.model_validate(row))
        except ValidationError as e:
            collector.add_review_error(
                f"Cannot convert review {review.id}: {e.error_count()} invalid value(s). "
                "This review will be skipped.",
                review,
            )

    return True
