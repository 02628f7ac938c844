"""Anki ``.apkg`` reading, validation, conversion and writing."""

from .cloze import cloze_ordinals
from .container import OpenedContainer, read_container, write_container
from .convert import anki_to_srs, srs_to_anki
from .database import AnkiDatabase
from .ids import IdReconciler, resolve_anki_id
from .package import AnkiPackage
from .types import (
    CardRow,
    Collection,
    DatabaseDump,
    Deck,
    NoteRow,
    NoteType,
    RawSnapshot,
    RevlogRow,
)
from .validator import filter_snapshot

__all__ = [
    "AnkiDatabase",
    "AnkiPackage",
    "CardRow",
    "Collection",
    "DatabaseDump",
    "Deck",
    "IdReconciler",
    "NoteRow",
    "NoteType",
    "OpenedContainer",
    "RawSnapshot",
    "RevlogRow",
    "anki_to_srs",
    "cloze_ordinals",
    "filter_snapshot",
    "read_container",
    "resolve_anki_id",
    "srs_to_anki",
    "write_container",
]
