"""Builders for Anki exports assembled from scratch with sqlite3 and zipfile.

Nothing here goes through the code under test except ``write_meta``, so a
broken reader cannot hide behind a broken writer.
"""

import json
import sqlite3
import zipfile
from pathlib import Path
from typing import Any

from apkg_srs.anki.constants import (
    ANKI_DB_SCHEMA,
    basic_model,
    cloze_model,
    default_collection_row,
    default_deck,
)
from apkg_srs.anki.meta import write_meta

DECK_ID = 1700000000001
BASIC_MODEL_ID = basic_model()["id"]
CLOZE_MODEL_ID = cloze_model()["id"]
SAMPLE_MEDIA = {"0": "paris.png"}
SAMPLE_MEDIA_BYTES = b"\x89PNG\r\n\x1a\nfake image"

_JSON_COLUMNS = ("conf", "models", "decks", "dconf", "tags")


def make_collection(**overrides: Any) -> dict[str, Any]:
    """``col`` row with the default deck, "Test Deck", and the basic and cloze models."""
    row = default_collection_row()
    deck = default_deck()
    deck.update(id=DECK_ID, name="Test Deck", desc="Deck used in tests")
    row["decks"][str(DECK_ID)] = deck
    row["models"] = {
        str(BASIC_MODEL_ID): basic_model(),
        str(CLOZE_MODEL_ID): cloze_model(),
    }
    row.update(overrides)
    return row


def note_row(note_id: int, mid: int, fields: list[str], **overrides: Any) -> dict[str, Any]:
    row = {
        "id": note_id,
        "guid": f"guid{note_id}",
        "mid": mid,
        "mod": 1700000000,
        "usn": -1,
        "tags": "",
        "flds": "\x1f".join(fields),
        "sfld": fields[0],
        "csum": 0,
        "flags": 0,
        "data": "",
    }
    row.update(overrides)
    return row


def card_row(card_id: int, nid: int, did: int = DECK_ID, ord: int = 0, **overrides: Any) -> dict[str, Any]:
    row = {
        "id": card_id,
        "nid": nid,
        "did": did,
        "ord": ord,
        "mod": 1700000000,
        "usn": -1,
        "type": 0,
        "queue": 0,
        "due": 1,
        "ivl": 0,
        "factor": 0,
        "reps": 0,
        "lapses": 0,
        "left": 0,
        "odue": 0,
        "odid": 0,
        "flags": 0,
        "data": "{}",
    }
    row.update(overrides)
    return row


def revlog_row(review_id: int, cid: int, ease: int = 3, **overrides: Any) -> dict[str, Any]:
    row = {
        "id": review_id,
        "cid": cid,
        "usn": -1,
        "ease": ease,
        "ivl": 1,
        "lastIvl": 0,
        "factor": 2500,
        "time": 4200,
        "type": 0,
    }
    row.update(overrides)
    return row


def _insert(conn: sqlite3.Connection, table: str, rows: list[dict[str, Any]]) -> None:
    for row in rows:
        columns = ", ".join(f'"{c}"' for c in row)
        placeholders = ", ".join("?" for _ in row)
        conn.execute(f'INSERT INTO "{table}" ({columns}) VALUES ({placeholders})', tuple(row.values()))


def write_database(
    path: Path,
    collection: dict[str, Any] | None = None,
    notes: list[dict[str, Any]] = (),
    cards: list[dict[str, Any]] = (),
    revlog: list[dict[str, Any]] = (),
    graves: list[dict[str, Any]] = (),
    drop_tables: tuple[str, ...] = (),
) -> Path:
    """Create a collection database. JSON columns given as objects are encoded."""
    col = make_collection() if collection is None else dict(collection)
    for column in _JSON_COLUMNS:
        if column in col and not isinstance(col[column], str):
            col[column] = json.dumps(col[column])

    conn = sqlite3.connect(path)
    try:
        conn.executescript(ANKI_DB_SCHEMA)
        _insert(conn, "col", [col])
        _insert(conn, "notes", list(notes))
        _insert(conn, "cards", list(cards))
        _insert(conn, "revlog", list(revlog))
        _insert(conn, "graves", list(graves))
        for table in drop_tables:
            conn.execute(f'DROP TABLE "{table}"')
        conn.commit()
    finally:
        conn.close()
    return path


def write_apkg(
    path: Path,
    database: Path | bytes | None = None,
    meta: bytes | None = None,
    media: str | bytes = "{}",
    payloads: dict[str, bytes] | None = None,
    omit: tuple[str, ...] = (),
) -> Path:
    """Zip an export, leaving out the entries named in ``omit``."""
    if meta is None:
        meta = write_meta(2)
    with zipfile.ZipFile(path, "w") as archive:
        if "collection.anki21" not in omit:
            data = database if isinstance(database, bytes) else Path(database).read_bytes()
            archive.writestr("collection.anki21", data, compress_type=zipfile.ZIP_DEFLATED)
        if "meta" not in omit:
            archive.writestr("meta", meta)
        if "media" not in omit:
            archive.writestr("media", media)
        for key, payload in (payloads or {}).items():
            archive.writestr(key, payload)
    return path


def build_sample_apkg(directory: Path, name: str = "sample.apkg") -> Path:
    """A realistic export: two basic notes, one cloze note, reviews and one image.

    =====  ======  ===============================================
    note   model   cards (ord)
    =====  ======  ===============================================
    100    basic   200 (0), reviewed twice, in review queue
    101    basic   201 (0), field references paris.png
    102    cloze   202 (0), 203 (1)
    =====  ======  ===============================================
    """
    notes = [
        note_row(100, BASIC_MODEL_ID, ["What is 2 + 2?", "4"], tags=" math "),
        note_row(101, BASIC_MODEL_ID, ["Capital of France?", 'Paris <img src="paris.png">']),
        note_row(102, CLOZE_MODEL_ID, ["{{c1::Paris}} is the capital of {{c2::France}}", ""]),
    ]
    cards = [
        card_row(200, 100, type=2, queue=2, due=12, ivl=3, factor=2500, reps=2, lapses=1),
        card_row(201, 101),
        card_row(202, 102, ord=0),
        card_row(203, 102, ord=1),
    ]
    revlog = [
        revlog_row(1700000000000, 200, ease=1),
        revlog_row(1700000600000, 200, ease=3, ivl=3, lastIvl=1),
    ]
    database = write_database(directory / f"{name}.db", notes=notes, cards=cards, revlog=revlog)
    return write_apkg(
        directory / name,
        database,
        media=json.dumps(SAMPLE_MEDIA),
        payloads={"0": SAMPLE_MEDIA_BYTES},
    )
