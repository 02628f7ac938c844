"""Diagnostics for broken or foreign files passed as Anki exports."""

import json
import re
import sqlite3
import zipfile

import pytest

from apkg_srs.anki.meta import write_meta
from apkg_srs.anki.package import AnkiPackage
from apkg_srs.issues import ConversionOptions, ConversionStatus, ItemType, Severity
from tests.fixtures import (
    BASIC_MODEL_ID,
    card_row,
    make_collection,
    note_row,
    write_apkg,
    write_database,
)


def _open(path, options=None):
    return AnkiPackage.from_anki_export(path, options or ConversionOptions.best_effort())


def _critical_messages(result):
    return [i.message for i in result.issues if i.severity is Severity.CRITICAL]


@pytest.fixture
def database(tmp_path):
    return write_database(
        tmp_path / "collection.db",
        notes=[note_row(1, BASIC_MODEL_ID, ["q", "a"])],
        cards=[card_row(10, 1)],
    )


class TestArchive:
    def test_wrong_extension(self, tmp_path):
        path = tmp_path / "deck.zip"
        path.write_bytes(b"PK")
        result = _open(path)
        assert result.status is ConversionStatus.FAILURE
        assert "Unsupported file type '.zip'" in _critical_messages(result)[0]

    def test_missing_file(self, tmp_path):
        result = _open(tmp_path / "nope.apkg")
        assert result.status is ConversionStatus.FAILURE
        assert "does not exist" in _critical_messages(result)[0]

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.apkg"
        path.write_bytes(b"")
        messages = _critical_messages(_open(path))
        assert re.search(r"empty \(0 bytes\).*re-export", messages[0])

    def test_not_a_zip(self, tmp_path):
        path = tmp_path / "garbage.apkg"
        path.write_bytes(b"this is definitely not a zip archive" * 10)
        message = _critical_messages(_open(path))[0]
        assert "not a valid ZIP archive" in message
        assert "exported from Anki" in message

    def test_truncated_zip(self, tmp_path, database):
        full = write_apkg(tmp_path / "full.apkg", database)
        path = tmp_path / "truncated.apkg"
        path.write_bytes(full.read_bytes()[:200])
        message = _critical_messages(_open(path))[0]
        assert "ZIP archive is truncated" in message
        assert re.search(r"re-download|re-export", message)

    def test_empty_archive_reports_every_missing_entry(self, tmp_path):
        path = tmp_path / "hollow.apkg"
        with zipfile.ZipFile(path, "w"):
            pass
        messages = _critical_messages(_open(path))
        assert len(messages) == 3
        assert re.search(r"missing.*'meta'", messages[0])
        assert "'media'" in messages[1]
        assert "'collection.anki21'" in messages[2]
        assert all("re-export" in m for m in messages)

    @pytest.mark.parametrize("entry", ["meta", "media", "collection.anki21"])
    def test_single_missing_entry(self, tmp_path, database, entry):
        path = write_apkg(tmp_path / "partial.apkg", database, omit=(entry,))
        messages = _critical_messages(_open(path))
        assert len(messages) == 1
        assert f"'{entry}'" in messages[0]

    def test_scratch_dir_removed_on_failure(self, tmp_path, database, scratch_root):
        path = write_apkg(tmp_path / "partial.apkg", database, omit=("media",))
        _open(path)
        assert not scratch_root.exists() or list(scratch_root.iterdir()) == []


class TestMeta:
    def test_unsupported_version(self, tmp_path, database):
        path = write_apkg(tmp_path / "new.apkg", database, meta=write_meta(3))
        message = _critical_messages(_open(path))[0]
        assert "Unsupported Anki export package version: 3" in message
        assert "Support older Anki versions" in message

    def test_unreadable_meta(self, tmp_path, database):
        path = write_apkg(tmp_path / "bad-meta.apkg", database, meta=b"\xff\xff\xff")
        message = _critical_messages(_open(path))[0]
        assert "'meta' file" in message


class TestDatabase:
    def test_garbage_database(self, tmp_path):
        path = write_apkg(tmp_path / "deck.apkg", b"not sqlite at all, just some bytes")
        message = _critical_messages(_open(path))[0]
        assert re.search(r"not a valid SQLite database.*re-export", message)
        assert re.search(r"Anki.*re-export", message)
        assert len(message) > 50

    def test_empty_database(self, tmp_path):
        path = write_apkg(tmp_path / "deck.apkg", b"")
        assert re.search(r"empty.*0 bytes.*re-export", _critical_messages(_open(path))[0])

    def test_truncated_database(self, tmp_path):
        path = write_apkg(tmp_path / "deck.apkg", b"SQLite")
        assert re.search(r"truncated.*too small.*re-export", _critical_messages(_open(path))[0])

    def test_missing_tables(self, tmp_path):
        database = write_database(tmp_path / "c.db", drop_tables=("revlog", "graves"))
        path = write_apkg(tmp_path / "deck.apkg", database)
        message = _critical_messages(_open(path))[0]
        assert re.search(r"missing required tables.*'revlog', 'graves'.*re-export", message)

    def test_unsupported_schema_version(self, tmp_path):
        database = write_database(tmp_path / "c.db", collection=make_collection(ver=18))
        path = write_apkg(tmp_path / "deck.apkg", database)
        message = _critical_messages(_open(path))[0]
        assert "database version 18" in message

    def test_collection_table_without_version(self, tmp_path, scratch_root):
        database = write_database(tmp_path / "c.db")
        conn = sqlite3.connect(database)
        try:
            conn.executescript(
                "DROP TABLE col;"
                "CREATE TABLE col (id integer primary key, crt integer);"
                "INSERT INTO col VALUES (1, 0);"
            )
            conn.commit()
        finally:
            conn.close()
        path = write_apkg(tmp_path / "deck.apkg", database)

        result = _open(path)
        assert result.status is ConversionStatus.FAILURE
        message = _critical_messages(result)[0]
        assert re.search(r"unusable.*collection table cannot be read.*re-export", message)
        assert list(scratch_root.iterdir()) == []


class TestMedia:
    @pytest.mark.parametrize(
        ("media", "pattern"),
        [
            ("{broken", r"invalid JSON.*cannot be parsed"),
            ("[1, 2]", r"invalid structure.*array"),
            ('{"0": 5}', r"invalid entry.*number.*instead of.*string"),
            ('{"0": null}', r"null"),
        ],
    )
    def test_malformed_media_index(self, tmp_path, database, media, pattern):
        path = write_apkg(tmp_path / "deck.apkg", database, media=media)
        message = _critical_messages(_open(path))[0]
        assert re.search(pattern, message)
        assert re.search(r"re-export.*Anki", message)

    def test_missing_payloads_are_warnings(self, tmp_path, database):
        media = json.dumps({"0": "a.png", "1": "b.mp3", "2": "c.jpg"})
        path = write_apkg(tmp_path / "deck.apkg", database, media=media, payloads={"1": b"mp3"})
        result = _open(path)

        assert result.status is ConversionStatus.PARTIAL
        warnings = [i for i in result.issues if i.severity is Severity.WARNING]
        assert [w.item_type for w in warnings] == [ItemType.MEDIA, ItemType.MEDIA]
        assert "a.png" in warnings[0].message
        assert "c.jpg" in warnings[1].message
        result.data.cleanup()

    def test_missing_payloads_fail_strict_mode(self, tmp_path, database, scratch_root):
        path = write_apkg(tmp_path / "deck.apkg", database, media='{"0": "a.png"}')
        result = _open(path, ConversionOptions.strict())
        assert result.status is ConversionStatus.FAILURE
        assert result.data is None
        assert list(scratch_root.iterdir()) == []

    def test_media_index_must_be_utf8(self, tmp_path, database, scratch_root):
        path = write_apkg(tmp_path / "deck.apkg", database, media=b'{"0": "caf\xe9.png"}')
        result = _open(path)
        assert result.status is ConversionStatus.FAILURE
        assert re.search(r"not valid UTF-8.*re-export", _critical_messages(result)[0])
        assert list(scratch_root.iterdir()) == []


class TestPartialRecovery:
    def test_invalid_entities_are_skipped(self, tmp_path):
        database = write_database(
            tmp_path / "c.db",
            notes=[note_row(1, BASIC_MODEL_ID, ["ok", "a"]), note_row(2, 31337, ["bad", "b"])],
            cards=[card_row(10, 1), card_row(11, 1, did=999), card_row(12, 2)],
        )
        path = write_apkg(tmp_path / "deck.apkg", database)
        result = _open(path)

        assert result.status is ConversionStatus.PARTIAL
        package = result.data
        assert [n.id for n in package.get_notes()] == [1]
        assert [c.id for c in package.get_cards()] == [10]

        messages = [i.message for i in result.issues]
        assert any(re.search(r"Note.*invalid", m) for m in messages)
        assert any("non-existent" in m and "deck" in m for m in messages)
        assert any("non-existent note 2" in m for m in messages)
        package.cleanup()
