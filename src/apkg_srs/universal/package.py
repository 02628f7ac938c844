"""Vendor-neutral spaced-repetition package model.

Entities are immutable once constructed. Each carries an open-ended
``application_specific_data`` string map so that fields without a universal
equivalent survive a round trip through another format.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from .ids import generate_uuid


class SrsReviewScore(IntEnum):
    AGAIN = 1
    HARD = 2
    NORMAL = 3
    EASY = 4


@dataclass(frozen=True)
class SrsDeck:
    id: str
    name: str
    description: str | None = None
    application_specific_data: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Deck id cannot be empty")


@dataclass(frozen=True)
class SrsNoteField:
    id: int
    name: str
    description: str | None = None


@dataclass(frozen=True)
class SrsNoteTemplate:
    id: int
    name: str
    question_template: str
    answer_template: str
    application_specific_data: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SrsNoteType:
    id: str
    name: str
    fields: tuple[SrsNoteField, ...]
    templates: tuple[SrsNoteTemplate, ...]
    application_specific_data: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Lists are accepted for convenience and stored as tuples
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "templates", tuple(self.templates))

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


@dataclass(frozen=True)
class SrsNote:
    id: str
    note_type_id: str
    deck_id: str
    field_values: tuple[tuple[str, str], ...]
    application_specific_data: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "field_values", tuple((str(n), str(v)) for n, v in self.field_values)
        )

    def get_field(self, name: str) -> str | None:
        for field_name, value in self.field_values:
            if field_name == name:
                return value
        return None


@dataclass(frozen=True)
class SrsCard:
    id: str
    note_id: str
    template_id: int
    application_specific_data: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SrsReview:
    id: str
    card_id: str
    timestamp: int
    score: int
    application_specific_data: dict[str, str] = field(default_factory=dict)


# Factories


def create_deck(
    name: str,
    description: str | None = None,
    application_specific_data: Mapping[str, str] | None = None,
    id: str | None = None,
) -> SrsDeck:
    return SrsDeck(
        id=id or generate_uuid(),
        name=name,
        description=description,
        application_specific_data=dict(application_specific_data or {}),
    )


def create_note_type(
    name: str,
    fields: Iterable[SrsNoteField],
    templates: Iterable[SrsNoteTemplate],
    application_specific_data: Mapping[str, str] | None = None,
    id: str | None = None,
) -> SrsNoteType:
    return SrsNoteType(
        id=id or generate_uuid(),
        name=name,
        fields=tuple(fields),
        templates=tuple(templates),
        application_specific_data=dict(application_specific_data or {}),
    )


def create_note(
    note_type: SrsNoteType,
    deck_id: str,
    field_values: Sequence[tuple[str, str]],
    application_specific_data: Mapping[str, str] | None = None,
    id: str | None = None,
) -> SrsNote:
    """Create a note for ``note_type``.

    Raises:
        ValueError: If the provided field names do not match the note type's
            field names exactly.
    """
    provided = {name for name, _ in field_values}
    required = set(note_type.field_names)
    if provided != required or len(field_values) != len(required):
        raise ValueError("Field names do not match the note type exactly")

    return SrsNote(
        id=id or generate_uuid(),
        note_type_id=note_type.id,
        deck_id=deck_id,
        field_values=tuple(field_values),
        application_specific_data=dict(application_specific_data or {}),
    )


def create_card(
    note_id: str,
    template_id: int,
    application_specific_data: Mapping[str, str] | None = None,
    id: str | None = None,
) -> SrsCard:
    return SrsCard(
        id=id or generate_uuid(),
        note_id=note_id,
        template_id=template_id,
        application_specific_data=dict(application_specific_data or {}),
    )


def create_review(
    card_id: str,
    timestamp: int,
    score: int,
    application_specific_data: Mapping[str, str] | None = None,
    id: str | None = None,
) -> SrsReview:
    return SrsReview(
        id=id or generate_uuid(),
        card_id=card_id,
        timestamp=timestamp,
        score=score,
        application_specific_data=dict(application_specific_data or {}),
    )


def is_cloze_note_type(note_type: SrsNoteType) -> bool:
    """A note type is a cloze type when any template references a cloze field."""
    return any(
        "{{cloze:" in t.question_template or "{{cloze:" in t.answer_template
        for t in note_type.templates
    )


class SrsPackage:
    """In-memory container for one universal deck collection."""

    def __init__(self) -> None:
        self._decks: list[SrsDeck] = []
        self._note_types: list[SrsNoteType] = []
        self._notes: list[SrsNote] = []
        self._cards: list[SrsCard] = []
        self._reviews: list[SrsReview] = []

    def __repr__(self) -> str:
        return (
            f"SrsPackage(decks={len(self._decks)}, note_types={len(self._note_types)}, "
            f"notes={len(self._notes)}, cards={len(self._cards)}, "
            f"reviews={len(self._reviews)})"
        )

    def copy(self) -> SrsPackage:
        """Return a package sharing the (immutable) entities but not the lists."""
        clone = SrsPackage()
        clone._decks = list(self._decks)
        clone._note_types = list(self._note_types)
        clone._notes = list(self._notes)
        clone._cards = list(self._cards)
        clone._reviews = list(self._reviews)
        return clone

    # Decks

    def get_decks(self) -> list[SrsDeck]:
        return list(self._decks)

    def add_deck(self, deck: SrsDeck) -> None:
        self._decks.append(deck)

    def remove_deck(self, deck_id: str) -> None:
        self._decks = [d for d in self._decks if d.id != deck_id]

    # Note types

    def get_note_types(self) -> list[SrsNoteType]:
        return list(self._note_types)

    def get_note_type(self, note_type_id: str) -> SrsNoteType | None:
        return next((nt for nt in self._note_types if nt.id == note_type_id), None)

    def add_note_type(self, note_type: SrsNoteType) -> None:
        self._note_types.append(note_type)

    def remove_note_type(self, note_type_id: str) -> None:
        self._note_types = [nt for nt in self._note_types if nt.id != note_type_id]

    # Notes

    def get_notes(self) -> list[SrsNote]:
        return list(self._notes)

    def get_note(self, note_id: str) -> SrsNote | None:
        return next((n for n in self._notes if n.id == note_id), None)

    def add_note(self, note: SrsNote) -> None:
        if self.get_note_type(note.note_type_id) is None:
            raise ValueError(f"Note type {note.note_type_id} does not exist.")
        if not any(d.id == note.deck_id for d in self._decks):
            raise ValueError(f"Deck {note.deck_id} does not exist.")
        self._notes.append(note)

    def remove_note(self, note_id: str) -> None:
        for card in [c for c in self._cards if c.note_id == note_id]:
            self.remove_card(card.id)
        self._notes = [n for n in self._notes if n.id != note_id]

    # Cards

    def get_cards(self) -> list[SrsCard]:
        return list(self._cards)

    def add_card(self, card: SrsCard) -> None:
        note = self.get_note(card.note_id)
        if note is None:
            raise ValueError(f"Note {card.note_id} does not exist.")

        note_type = self.get_note_type(note.note_type_id)
        if note_type is None:
            raise ValueError(f"Invalid template ID {card.template_id}.")
        # Cloze cards are numbered by their markers, not by template
        if not is_cloze_note_type(note_type) and not (
            0 <= card.template_id < len(note_type.templates)
        ):
            raise ValueError(f"Invalid template ID {card.template_id}.")

        self._cards.append(card)

    def remove_card(self, card_id: str) -> None:
        self._reviews = [r for r in self._reviews if r.card_id != card_id]
        self._cards = [c for c in self._cards if c.id != card_id]

    # Reviews

    def get_reviews(self) -> list[SrsReview]:
        return list(self._reviews)

    def add_review(self, review: SrsReview) -> None:
        self._reviews.append(review)

    def remove_review(self, review_id: str) -> None:
        self._reviews = [r for r in self._reviews if r.id != review_id]

    def remove_unused(self) -> None:
        """Drop decks and note types no note uses, and notes no card uses."""
        used_deck_ids = {n.deck_id for n in self._notes}
        self._decks = [d for d in self._decks if d.id in used_deck_ids]

        used_note_type_ids = {n.note_type_id for n in self._notes}
        self._note_types = [nt for nt in self._note_types if nt.id in used_note_type_ids]

        used_note_ids = {c.note_id for c in self._cards}
        self._notes = [n for n in self._notes if n.id in used_note_ids]


def create_complete_deck_structure(
    deck_name: str,
    note_types: Sequence[tuple[SrsNoteType, Sequence[Mapping[str, Any]]]],
    deck_description: str | None = None,
) -> SrsPackage:
    """Build a package with one deck in a single call.

    ``note_types`` pairs each note type with a list of note specs. A note spec
    is a mapping with ``field_values`` and optional ``cards``; each card spec
    has ``template_id`` and optional ``reviews`` (``timestamp`` and ``score``).

    Example:
        package = create_complete_deck_structure(
            "Geography",
            [(BASIC_NOTE_TYPE, [{
                "field_values": [("Question", "Capital of France?"), ("Answer", "Paris")],
                "cards": [{"template_id": 0, "reviews": [{"timestamp": 1700000000000, "score": 3}]}],
            }])],
        )
    """
    package = SrsPackage()
    deck = create_deck(deck_name, deck_description)
    package.add_deck(deck)

    for note_type, notes in note_types:
        package.add_note_type(note_type)
        for note_spec in notes:
            note = create_note(
                note_type,
                deck.id,
                list(note_spec["field_values"]),
                note_spec.get("application_specific_data"),
            )
            package.add_note(note)
            for card_spec in note_spec.get("cards", ()):
                card = create_card(
                    note.id,
                    card_spec["template_id"],
                    card_spec.get("application_specific_data"),
                )
                package.add_card(card)
                for review_spec in card_spec.get("reviews", ()):
                    package.add_review(
                        create_review(card.id, review_spec["timestamp"], review_spec["score"])
                    )

    return package


BASIC_NOTE_TYPE = SrsNoteType(
    id="019343de-833d-736d-bcda-a75874b2e5a8",
    name="Basic (srs-converter)",
    fields=(SrsNoteField(0, "Question"), SrsNoteField(1, "Answer")),
    templates=(
        SrsNoteTemplate(0, "Question > Answer", "{{Question}}", "{{Answer}}"),
    ),
)

BASIC_AND_REVERSE_NOTE_TYPE = SrsNoteType(
    id="019343de-833d-736d-bcda-a97a136df584",
    name="Basic and reverse (srs-converter)",
    fields=(SrsNoteField(0, "Front"), SrsNoteField(1, "Back")),
    templates=(
        SrsNoteTemplate(0, "Front > Back", "{{Front}}", "{{Back}}"),
        SrsNoteTemplate(1, "Back > Front", "{{Back}}", "{{Front}}"),
    ),
)

CLOZE_NOTE_TYPE = SrsNoteType(
    id="019343de-833d-736d-bcda-af3d2c567ea3",
    name="Cloze (srs-converter)",
    fields=(SrsNoteField(0, "Text"),),
    templates=(
        SrsNoteTemplate(0, "Cloze", "{{cloze:Text}}", "{{cloze:Text}}"),
    ),
)
