"""SQLite access for the collection database embedded in an Anki export."""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Any

from ..exceptions import AnkiDatabaseError
from ..utils.logging import get_logger
from .constants import ANKI_DB_SCHEMA, REQUIRED_TABLES, SQLITE_MAGIC, default_collection_row
from .types import DatabaseDump, RawSnapshot

logger = get_logger(__name__)

_JSON_COLUMNS = ("conf", "models", "decks", "dconf", "tags")

_COL_COLUMNS = (
    "id", "crt", "mod", "scm", "ver", "dty", "usn", "ls",
    "conf", "models", "decks", "dconf", "tags",
)
_NOTE_COLUMNS = (
    "id", "guid", "mid", "mod", "usn", "tags", "flds", "sfld", "csum", "flags", "data",
)
_CARD_COLUMNS = (
    "id", "nid", "did", "ord", "mod", "usn", "type", "queue", "due", "ivl",
    "factor", "reps", "lapses", "left", "odue", "odid", "flags", "data",
)
_REVLOG_COLUMNS = (
    "id", "cid", "usn", "ease", "ivl", "lastIvl", "factor", "time", "type",
)
_GRAVE_COLUMNS = ("usn", "oid", "type")


def _insert(conn: sqlite3.Connection, table: str, columns: tuple[str, ...], rows: list[dict[str, Any]]) -> None:
    if not rows:
        return
    quoted = ", ".join(f'"{c}"' for c in columns)
    placeholders = ", ".join("?" for _ in columns)
    conn.executemany(
        f'INSERT INTO "{table}" ({quoted}) VALUES ({placeholders})',
        [tuple(row.get(c) for c in columns) for row in rows],
    )


def diagnose_database_file(path: Path) -> None:
    """Classify a database file that is obviously not a usable SQLite file.

    Raises:
        AnkiDatabaseError: ``empty``, ``truncated`` or ``invalid_header``.
    """
    size = path.stat().st_size
    if size == 0:
        raise AnkiDatabaseError("empty", "The database file is empty (0 bytes).")
    if size < len(SQLITE_MAGIC):
        raise AnkiDatabaseError(
            "truncated",
            "The database file is truncated and too small to be a valid SQLite database.",
        )
    with open(path, "rb") as f:
        header = f.read(len(SQLITE_MAGIC))
    if header != SQLITE_MAGIC:
        raise AnkiDatabaseError(
            "invalid_header",
            "The file is not a valid SQLite database (invalid header).",
        )


class AnkiDatabase:
    """Thin wrapper around one ``sqlite3`` connection to a collection database."""

    def __init__(self, conn: sqlite3.Connection, path: Path | None = None) -> None:
        self._conn: sqlite3.Connection | None = conn
        self._conn.row_factory = sqlite3.Row
        self.path = path

    def __enter__(self) -> AnkiDatabase:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise AnkiDatabaseError("corrupted", "Database connection is closed.")
        return self._conn

    @classmethod
    def _create(cls, path: Path | None) -> AnkiDatabase:
        target = str(path) if path is not None else ":memory:"
        conn = sqlite3.connect(target)
        conn.executescript(ANKI_DB_SCHEMA)
        return cls(conn, path)

    @classmethod
    def from_default(cls) -> AnkiDatabase:
        """In-memory database holding the schema and a fresh default collection."""
        db = cls._create(None)
        db._insert_collection(default_collection_row())
        db.conn.commit()
        return db

    @classmethod
    def open(cls, path: Path) -> AnkiDatabase:
        """Open an existing database file read-only after diagnosing it.

        Raises:
            AnkiDatabaseError: If the file is empty, truncated, has a bad
                header, or SQLite cannot read it.
        """
        diagnose_database_file(path)
        try:
            conn = sqlite3.connect(f"{path.resolve().as_uri()}?mode=ro", uri=True)
            # Forces SQLite to read the schema page
            conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
        except sqlite3.DatabaseError as e:
            raise AnkiDatabaseError(
                "corrupted",
                f"The database file is corrupted and cannot be opened: {e}",
            ) from e
        logger.debug("anki_database_opened", path=str(path))
        return cls(conn, path)

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def validate_schema(self) -> None:
        """Ensure every required table exists.

        Raises:
            AnkiDatabaseError: ``missing_tables`` naming each absent table, or
                ``corrupted`` if the schema cannot be read.
        """
        try:
            rows = self.conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        except sqlite3.DatabaseError as e:
            raise AnkiDatabaseError(
                "corrupted", f"The database is corrupted and cannot be read: {e}"
            ) from e

        existing = {row["name"] for row in rows}
        missing = [t for t in REQUIRED_TABLES if t not in existing]
        if missing:
            missing_list = ", ".join(f"'{t}'" for t in missing)
            raise AnkiDatabaseError(
                "missing_tables",
                f"The database is missing required tables: {missing_list}. "
                "This may indicate a corrupted or incompatible database.",
                missing_tables=missing,
            )

    def _select(self, table: str) -> list[dict[str, Any]]:
        try:
            rows = self.conn.execute(f'SELECT * FROM "{table}"').fetchall()
        except sqlite3.DatabaseError as e:
            raise AnkiDatabaseError(
                "corrupted", f"The database is corrupted and table '{table}' cannot be read: {e}"
            ) from e
        return [dict(row) for row in rows]

    def read_raw(self) -> RawSnapshot:
        """Read every row without interpreting it."""
        col_rows = self._select("col")
        snapshot = RawSnapshot(
            collection=col_rows[0] if col_rows else None,
            notes=self._select("notes"),
            cards=self._select("cards"),
            reviews=self._select("revlog"),
            deleted_items=self._select("graves"),
        )
        logger.debug(
            "anki_database_read",
            notes=len(snapshot.notes),
            cards=len(snapshot.cards),
            reviews=len(snapshot.reviews),
        )
        return snapshot

    def collection_version(self) -> int | None:
        """Schema version stored in the ``col`` row.

        Raises:
            AnkiDatabaseError: ``corrupted`` if the ``col`` table cannot be read.
        """
        try:
            row = self.conn.execute("SELECT ver FROM col LIMIT 1").fetchone()
        except sqlite3.DatabaseError as e:
            raise AnkiDatabaseError(
                "corrupted", f"The collection table cannot be read: {e}"
            ) from e
        return None if row is None else row["ver"]

    def _insert_collection(self, collection: dict[str, Any]) -> None:
        row = dict(collection)
        for column in _JSON_COLUMNS:
            row[column] = json.dumps(row.get(column, {}), ensure_ascii=False)
        _insert(self.conn, "col", _COL_COLUMNS, [row])

    @classmethod
    def write_dump(cls, dump: DatabaseDump, path: Path) -> None:
        """Write ``dump`` into a new database file at ``path``."""
        if path.exists():
            path.unlink()
        db = cls._create(path)
        try:
            with db.conn:
                db._insert_collection(dump.collection.model_dump(mode="python"))
                _insert(db.conn, "notes", _NOTE_COLUMNS, [n.dump() for n in dump.notes])
                _insert(db.conn, "cards", _CARD_COLUMNS, [c.dump() for c in dump.cards])
                _insert(db.conn, "revlog", _REVLOG_COLUMNS, [r.dump() for r in dump.reviews])
                _insert(db.conn, "graves", _GRAVE_COLUMNS, [g.dump() for g in dump.deleted_items])
            db.conn.execute("PRAGMA page_size = 512")
            db.conn.execute("VACUUM")
        finally:
            db.close()
        logger.debug(
            "anki_database_written",
            path=str(path),
            notes=len(dump.notes),
            cards=len(dump.cards),
            reviews=len(dump.reviews),
        )
