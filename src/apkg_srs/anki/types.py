"""Typed models for the rows and JSON blobs of a legacy Anki collection.

Every model allows extra keys so that vendor fields this package does not
interpret still survive a read/write cycle untouched.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictInt


class NoteTypeKind(IntEnum):
    STANDARD = 0
    CLOZE = 1


class CardType(IntEnum):
    NEW = 0
    LEARN = 1
    REVIEW = 2
    RELEARN = 3


class QueueType(IntEnum):
    BURIED_BY_USER = -3
    BURIED_BY_SCHEDULER = -2
    SUSPENDED = -1
    NEW = 0
    LEARN = 1
    REVIEW = 2
    DAY_LEARN = 3
    PREVIEW_REPEAT = 4


class Ease(IntEnum):
    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


class DeckDynamicity(IntEnum):
    STATIC = 0
    DYNAMIC = 1


class ExportVersion(IntEnum):
    LEGACY_V1 = 1
    LEGACY_V2 = 2
    LATEST = 3


class AnkiModel(BaseModel):
    model_config = ConfigDict(extra="allow")

    def dump(self) -> dict[str, Any]:
        """Plain dict including pass-through keys, as stored by Anki."""
        return self.model_dump(mode="python")


class Deck(AnkiModel):
    id: StrictInt
    name: str
    desc: str = ""
    dyn: int = 0
    conf: int | None = 1
    mod: int = 0
    usn: int = 0


class NoteTypeField(AnkiModel):
    name: str
    ord: int | None = None
    description: str = ""


class NoteTypeTemplate(AnkiModel):
    name: str
    ord: int | None = None
    qfmt: str
    afmt: str


class NoteType(AnkiModel):
    id: StrictInt
    name: str
    type: int = 0
    flds: list[NoteTypeField] = Field(min_length=1)
    tmpls: list[NoteTypeTemplate] = Field(min_length=1)
    css: str = ""
    sortf: int = 0
    mod: int = 0
    usn: int = 0


class Collection(AnkiModel):
    """The single ``col`` row with its JSON columns decoded."""

    id: StrictInt
    crt: int
    mod: int
    scm: int
    ver: int
    dty: int = 0
    usn: int = 0
    ls: int = 0
    conf: dict[str, Any] = Field(default_factory=dict)
    models: dict[str, NoteType] = Field(default_factory=dict)
    decks: dict[str, Deck] = Field(default_factory=dict)
    dconf: dict[str, Any] = Field(default_factory=dict)
    tags: dict[str, Any] = Field(default_factory=dict)


class NoteRow(AnkiModel):
    id: StrictInt
    guid: str
    mid: StrictInt
    mod: int = 0
    usn: int = 0
    tags: str = ""
    flds: str
    sfld: str | int = ""
    csum: int = 0
    flags: int = 0
    data: str = ""


class CardRow(AnkiModel):
    id: StrictInt
    nid: StrictInt
    did: StrictInt
    ord: StrictInt
    mod: int = 0
    usn: int = 0
    type: int = 0
    queue: int = 0
    due: int = 0
    ivl: int = 0
    factor: int = 0
    reps: int = 0
    lapses: int = 0
    left: int = 0
    odue: int = 0
    odid: int = 0
    flags: int = 0
    data: str = ""


class RevlogRow(AnkiModel):
    id: StrictInt | None
    cid: StrictInt
    usn: int = 0
    ease: int
    ivl: int = 0
    lastIvl: int = 0
    factor: int = 0
    time: int = 0
    type: int = 0


class GraveRow(AnkiModel):
    usn: int
    oid: StrictInt
    type: int


class DatabaseDump(BaseModel):
    """Validated in-memory snapshot of one collection database."""

    collection: Collection
    notes: list[NoteRow] = Field(default_factory=list)
    cards: list[CardRow] = Field(default_factory=list)
    reviews: list[RevlogRow] = Field(default_factory=list)
    deleted_items: list[GraveRow] = Field(default_factory=list)


@dataclass
class RawSnapshot:
    """Rows exactly as read from SQLite, before any validation.

    ``collection`` is the ``col`` row with its text columns untouched, or
    ``None`` when the table has no row.
    """

    collection: dict[str, Any] | None
    notes: list[dict[str, Any]] = field(default_factory=list)
    cards: list[dict[str, Any]] = field(default_factory=list)
    reviews: list[dict[str, Any]] = field(default_factory=list)
    deleted_items: list[dict[str, Any]] = field(default_factory=list)
