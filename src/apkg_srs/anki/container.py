"""Reading and writing the ``.apkg`` ZIP container.

``read_container`` diagnoses a candidate file step by step, from the outside
in, and turns every failure into a ``critical`` issue with a message a user
can act on:

1. file extension and existence
2. empty file, truncated or foreign archive
3. required ``meta`` / ``media`` / ``collection.anki21`` entries
4. export version in ``meta``
5. the embedded SQLite database and its schema version
6. the ``media`` index and the payloads it names
7. entity validation of the collection contents

Entries are extracted into a scratch directory which the caller owns on
success and which is removed here on failure.
"""

from __future__ import annotations

import sqlite3
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path

from ..exceptions import AnkiDatabaseError, MediaMappingError, PackageMetaError
from ..issues import IssueCollector, ItemType
from ..utils.io import atomic_write, make_scratch_dir, remove_dir
from ..utils.logging import get_logger
from .constants import (
    DATABASE_FILENAME,
    DB_VERSION,
    EXPORT_VERSION,
    MEDIA_FILENAME,
    META_FILENAME,
    REQUIRED_ENTRIES,
    VALID_FILE_EXTENSIONS,
    ZIP_LOCAL_FILE_HEADER,
)
from .database import AnkiDatabase
from .media import REEXPORT_HINT, find_missing_media, parse_media_mapping, serialize_media_mapping
from .meta import parse_meta, write_meta
from .types import DatabaseDump
from .validator import filter_snapshot

logger = get_logger(__name__)

CLEANUP_WARNING = (
    "Could not clean up temporary files after conversion. "
    "This does not affect your converted data."
)


@dataclass
class OpenedContainer:
    """Contents of a successfully read export."""

    scratch_dir: Path
    dump: DatabaseDump
    media_mapping: dict[str, str]


def cleanup_scratch(scratch_dir: Path, collector: IssueCollector) -> None:
    """Remove ``scratch_dir``; a failure is only worth a warning."""
    try:
        remove_dir(scratch_dir)
    except OSError as e:
        logger.warning("scratch_cleanup_failed", path=str(scratch_dir), error=str(e))
        collector.add_warning(CLEANUP_WARNING, original_data=str(e))


def _open_archive(path: Path, collector: IssueCollector) -> zipfile.ZipFile | None:
    size = path.stat().st_size
    if size == 0:
        collector.add_critical(
            "The Anki export file is empty (0 bytes). "
            "Please re-export the deck from Anki and try again."
        )
        return None

    try:
        return zipfile.ZipFile(path)
    except zipfile.BadZipFile:
        with open(path, "rb") as f:
            head = f.read(len(ZIP_LOCAL_FILE_HEADER))
        if head == ZIP_LOCAL_FILE_HEADER:
            collector.add_critical(
                "The Anki export file is not complete: the ZIP archive is truncated. "
                "Please re-download or re-export the deck from Anki and try again."
            )
        else:
            collector.add_critical(
                "The file is not a valid ZIP archive. "
                "Make sure the file was exported from Anki as an .apkg package."
            )
        return None


def _extract(archive: zipfile.ZipFile, scratch_dir: Path, collector: IssueCollector) -> bool:
    try:
        archive.extractall(scratch_dir)
    except (zipfile.BadZipFile, zlib.error, EOFError) as e:
        collector.add_critical(
            "The Anki export file is corrupted: the ZIP archive is truncated or damaged "
            f"({e}). Please re-download or re-export the deck from Anki and try again."
        )
        return False
    return True


def _check_entries(names: set[str], collector: IssueCollector) -> bool:
    missing = [entry for entry in REQUIRED_ENTRIES if entry not in names]
    for entry in missing:
        collector.add_critical(
            f"The Anki export is missing the required '{entry}' file. "
            "Please re-export the deck from Anki and try again."
        )
    return not missing


def _check_version(scratch_dir: Path, collector: IssueCollector) -> bool:
    try:
        version = parse_meta((scratch_dir / META_FILENAME).read_bytes())
    except PackageMetaError as e:
        collector.add_critical(e.message)
        return False
    if version != EXPORT_VERSION:
        collector.add_critical(
            f"Unsupported Anki export package version: {version}. Make sure to check "
            '"Support older Anki versions" in the Anki export dialog.'
        )
        return False
    return True


def _read_database(scratch_dir: Path, collector: IssueCollector) -> DatabaseDump | None:
    try:
        with AnkiDatabase.open(scratch_dir / DATABASE_FILENAME) as db:
            db.validate_schema()
            version = db.collection_version()
            if version is not None and version != DB_VERSION:
                collector.add_critical(
                    f"This Anki file uses database version {version}, which is not supported. "
                    "Please export your deck from a compatible Anki version."
                )
                return None
            raw = db.read_raw()
    except AnkiDatabaseError as e:
        collector.add_critical(
            f"The database inside this Anki export is unusable: {e.message} {REEXPORT_HINT}"
        )
        return None

    dump, issues = filter_snapshot(raw)
    collector.add_issues(issues)
    if collector.has_critical_issues():
        return None
    return dump


def _read_media(scratch_dir: Path, collector: IssueCollector) -> dict[str, str] | None:
    try:
        mapping = parse_media_mapping((scratch_dir / MEDIA_FILENAME).read_bytes())
    except MediaMappingError as e:
        collector.add_critical(e.message)
        return None

    for key, filename in find_missing_media(mapping, scratch_dir):
        collector.add_warning(
            f"Media file '{filename}' (archive entry '{key}') is listed in the media index "
            "but is missing from the package. Cards that use it will not display it.",
            ItemType.MEDIA,
            {"key": key, "filename": filename},
        )
    return mapping


def read_container(
    path: Path,
    collector: IssueCollector,
    scratch_root: Path | None = None,
    allowed_extensions: tuple[str, ...] | list[str] = VALID_FILE_EXTENSIONS,
) -> OpenedContainer | None:
    """Open, diagnose and load the export at ``path``.

    Returns None after recording at least one ``critical`` issue.
    """
    path = Path(path)
    if path.suffix.lower() not in allowed_extensions:
        allowed = ", ".join(allowed_extensions)
        collector.add_critical(
            f"Unsupported file type '{path.suffix or path.name}'. "
            f"Expected an Anki export ({allowed})."
        )
        return None
    if not path.is_file():
        collector.add_critical(f"The file '{path}' does not exist or is not a regular file.")
        return None

    archive = _open_archive(path, collector)
    if archive is None:
        return None

    try:
        scratch_dir = make_scratch_dir(scratch_root)
    except OSError as e:
        archive.close()
        collector.add_critical(f"Could not create a temporary directory for extraction: {e}")
        return None
    try:
        with archive:
            names = set(archive.namelist())
            loaded = (
                _check_entries(names, collector)
                and _extract(archive, scratch_dir, collector)
                and _check_version(scratch_dir, collector)
            )

        dump = _read_database(scratch_dir, collector) if loaded else None
        mapping = _read_media(scratch_dir, collector) if dump is not None else None
    except (OSError, sqlite3.Error) as e:
        collector.add_critical(f"The Anki export could not be read: {e}. {REEXPORT_HINT}")
        dump = mapping = None
    except BaseException:
        cleanup_scratch(scratch_dir, collector)
        raise

    if dump is None or mapping is None:
        cleanup_scratch(scratch_dir, collector)
        return None

    logger.debug("anki_container_read", path=str(path), media=len(mapping))
    return OpenedContainer(scratch_dir, dump, mapping)


def write_container(
    path: Path,
    dump: DatabaseDump,
    media_mapping: dict[str, str],
    media_dir: Path,
) -> None:
    """Write an export to ``path``.

    The database is deflated; ``meta``, ``media`` and payloads are stored.

    Raises:
        OSError: If any file cannot be written.
    """
    database_path = media_dir / f".{DATABASE_FILENAME}.export"
    AnkiDatabase.write_dump(dump, database_path)
    try:
        with atomic_write(path, "wb") as f, zipfile.ZipFile(f, "w") as archive:
            archive.write(database_path, DATABASE_FILENAME, compress_type=zipfile.ZIP_DEFLATED)
            archive.writestr(META_FILENAME, write_meta(int(EXPORT_VERSION)), compress_type=zipfile.ZIP_STORED)
            archive.writestr(
                MEDIA_FILENAME,
                serialize_media_mapping(media_mapping),
                compress_type=zipfile.ZIP_STORED,
            )
            for key in media_mapping:
                payload = media_dir / key
                if payload.is_file():
                    archive.write(payload, key, compress_type=zipfile.ZIP_STORED)
    finally:
        database_path.unlink(missing_ok=True)
    logger.debug("anki_container_written", path=str(path), media=len(media_mapping))
