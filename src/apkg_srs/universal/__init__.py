"""Vendor-neutral spaced-repetition package model."""

from .ids import extract_timestamp_from_uuid, generate_uuid
from .package import (
    BASIC_AND_REVERSE_NOTE_TYPE,
    BASIC_NOTE_TYPE,
    CLOZE_NOTE_TYPE,
    SrsCard,
    SrsDeck,
    SrsNote,
    SrsNoteField,
    SrsNoteTemplate,
    SrsNoteType,
    SrsPackage,
    SrsReview,
    SrsReviewScore,
    create_card,
    create_complete_deck_structure,
    create_deck,
    create_note,
    create_note_type,
    create_review,
    is_cloze_note_type,
)

__all__ = [
    "BASIC_AND_REVERSE_NOTE_TYPE",
    "BASIC_NOTE_TYPE",
    "CLOZE_NOTE_TYPE",
    "SrsCard",
    "SrsDeck",
    "SrsNote",
    "SrsNoteField",
    "SrsNoteTemplate",
    "SrsNoteType",
    "SrsPackage",
    "SrsReview",
    "SrsReviewScore",
    "create_card",
    "create_complete_deck_structure",
    "create_deck",
    "create_note",
    "create_note_type",
    "create_review",
    "extract_timestamp_from_uuid",
    "generate_uuid",
    "is_cloze_note_type",
]
