"""Test fixtures package."""

from .apkg_factory import (
    BASIC_MODEL_ID,
    CLOZE_MODEL_ID,
    DECK_ID,
    SAMPLE_MEDIA,
    SAMPLE_MEDIA_BYTES,
    build_sample_apkg,
    card_row,
    make_collection,
    note_row,
    revlog_row,
    write_apkg,
    write_database,
)

__all__ = [
    "BASIC_MODEL_ID",
    "CLOZE_MODEL_ID",
    "DECK_ID",
    "SAMPLE_MEDIA",
    "SAMPLE_MEDIA_BYTES",
    "build_sample_apkg",
    "card_row",
    "make_collection",
    "note_row",
    "revlog_row",
    "write_apkg",
    "write_database",
]
