"""``AnkiPackage``: an Anki export held in memory plus its media scratch directory.

Every constructor and conversion returns a ``ConversionResult``; the caller
owns the package after a successful or partial result and should call
``cleanup()`` (or use it as a context manager) to remove the scratch
directory.

Example:
    with AnkiPackage.from_anki_export("deck.apkg").unwrap() as package:
        srs = package.to_srs_package().unwrap()
"""

from __future__ import annotations

import shutil
import sqlite3
from collections.abc import Iterator
from pathlib import Path
from typing import Any, BinaryIO

from ..config import get_config
from ..exceptions import AnkiDatabaseError, MediaFileError, PackageStateError
from ..issues import ConversionIssue, ConversionOptions, ConversionResult, IssueCollector
from ..universal import SrsPackage
from ..utils.io import make_scratch_dir
from ..utils.logging import get_logger
from .constants import DEFAULT_DECK_ID
from .container import cleanup_scratch, read_container, write_container
from .convert import anki_to_srs, srs_to_anki
from .database import AnkiDatabase
from .media import next_media_key, referenced_media
from .types import CardRow, DatabaseDump, Deck, NoteRow, NoteType, RevlogRow
from .util import split_fields
from .validator import filter_snapshot

logger = get_logger(__name__)


class AnkiPackage:
    """Validated collection snapshot, media index and scratch directory."""

    def __init__(self, scratch_dir: Path, dump: DatabaseDump | None = None) -> None:
        self._scratch_dir = scratch_dir
        self._dump = dump
        self._media: dict[str, str] = {}

    def __enter__(self) -> AnkiPackage:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.cleanup()

    def __repr__(self) -> str:
        if self._dump is None:
            return f"AnkiPackage(scratch_dir={str(self._scratch_dir)!r}, empty)"
        return (
            f"AnkiPackage(scratch_dir={str(self._scratch_dir)!r}, "
            f"decks={len(self._dump.collection.decks)}, notes={len(self._dump.notes)}, "
            f"cards={len(self._dump.cards)}, reviews={len(self._dump.reviews)}, "
            f"media={len(self._media)})"
        )

    @property
    def scratch_dir(self) -> Path:
        return self._scratch_dir

    @property
    def media_mapping(self) -> dict[str, str]:
        """Copy of the archive-entry -> filename index."""
        return dict(self._media)

    @property
    def dump(self) -> DatabaseDump:
        if self._dump is None:
            raise PackageStateError()
        return self._dump

    # Construction

    @classmethod
    def from_default(cls, options: ConversionOptions | None = None) -> ConversionResult[AnkiPackage]:
        """Empty package holding a fresh collection with the default deck."""
        collector = IssueCollector(options)
        try:
            scratch_dir = make_scratch_dir(get_config().scratch_root)
        except OSError as e:
            collector.add_critical(
                "Cannot proceed with conversion because the temporary working directory "
                f"could not be created. {e}."
            )
            return collector.create_failure_result()

        try:
            with AnkiDatabase.from_default() as db:
                raw = db.read_raw()
        except (sqlite3.Error, AnkiDatabaseError) as e:
            collector.add_critical(
                f"Cannot start conversion because the default database could not be created. {e}."
            )
            cleanup_scratch(scratch_dir, collector)
            return collector.create_failure_result()

        dump, issues = filter_snapshot(raw)
        collector.add_issues(issues)
        return collector.create_result(cls(scratch_dir, dump))

    @classmethod
    def from_anki_export(
        cls, path: str | Path, options: ConversionOptions | None = None
    ) -> ConversionResult[AnkiPackage]:
        """Read an ``.apkg`` file, keeping every entity that passes validation."""
        collector = IssueCollector(options)
        settings = get_config()
        opened = read_container(
            Path(path),
            collector,
            scratch_root=settings.scratch_root,
            allowed_extensions=tuple(settings.allowed_extensions),
        )
        if opened is None:
            logger.warning("conversion_failed", source=str(path), issues=len(collector.issues))
            return collector.create_failure_result()

        package = cls(opened.scratch_dir, opened.dump)
        package._media = opened.media_mapping
        result = collector.create_result(package)
        if result.data is None:
            # Strict mode rejected the package; nobody will clean up after us
            cleanup_scratch(opened.scratch_dir, collector)
            return collector.create_failure_result()
        logger.info(
            "anki_package_opened",
            path=str(path),
            status=result.status.value,
            notes=len(opened.dump.notes),
            cards=len(opened.dump.cards),
        )
        return result

    @classmethod
    def from_srs_package(
        cls, srs_package: SrsPackage, options: ConversionOptions | None = None
    ) -> ConversionResult[AnkiPackage]:
        """Convert a universal package. The argument is left untouched."""
        collector = IssueCollector(options)
        base = cls.from_default(options)
        collector.add_issues(base.issues)
        if base.data is None:
            return collector.create_failure_result()

        package = base.data
        package.remove_deck(DEFAULT_DECK_ID)
        try:
            converted = srs_to_anki(srs_package, package.dump, collector)
        except BaseException:
            package.cleanup()
            raise
        if not converted:
            collector.add_issues(package.cleanup())
            return collector.create_failure_result()

        result = collector.create_result(package)
        if result.data is None:
            collector.add_issues(package.cleanup())
            return collector.create_failure_result()
        logger.info("conversion_completed", direction="srs_to_anki", status=result.status.value)
        return result

    # Conversion / export

    def to_srs_package(self, options: ConversionOptions | None = None) -> ConversionResult[SrsPackage]:
        collector = IssueCollector(options)
        if self._dump is None:
            collector.add_critical(
                "The Anki database could not be loaded, so conversion to SRS format is not possible."
            )
            return collector.create_failure_result()

        srs = anki_to_srs(self._dump, collector)
        result = collector.create_result(srs)
        logger.info("conversion_completed", direction="anki_to_srs", status=result.status.value)
        return result

    def to_anki_export(
        self, path: str | Path, options: ConversionOptions | None = None
    ) -> ConversionResult[Path]:
        """Write the package to ``path`` as an ``.apkg`` archive."""
        collector = IssueCollector(options)
        if self._dump is None:
            collector.add_critical("Database contents not available, nothing to export.")
            return collector.create_failure_result()
        if not str(path).strip():
            collector.add_critical("Export filepath cannot be empty.")
            return collector.create_failure_result()

        target = Path(path)
        try:
            write_container(target, self._dump, self._media, self._scratch_dir)
        except OSError as e:
            collector.add_critical(f"Could not write the Anki export to '{target}': {e}")
            return collector.create_failure_result()

        logger.info("anki_package_exported", path=str(target), media=len(self._media))
        return collector.create_result(target)

    def cleanup(self) -> list[ConversionIssue]:
        """Remove the scratch directory. Safe to call more than once."""
        collector = IssueCollector(ConversionOptions.best_effort())
        if self._scratch_dir.exists():
            cleanup_scratch(self._scratch_dir, collector)
        return collector.issues

    # Entity access

    def add_deck(self, deck: Deck) -> None:
        self.dump.collection.decks[str(deck.id)] = deck

    def add_note_type(self, note_type: NoteType) -> None:
        self.dump.collection.models[str(note_type.id)] = note_type

    def add_note(self, note: NoteRow) -> None:
        self.dump.notes.append(note)

    def add_card(self, card: CardRow) -> None:
        self.dump.cards.append(card)

    def add_review(self, review: RevlogRow) -> None:
        self.dump.reviews.append(review)

    def remove_deck(self, deck_id: int) -> None:
        decks = self.dump.collection.decks
        if str(deck_id) not in decks:
            raise KeyError(f"Deck with ID {deck_id} does not exist")
        del decks[str(deck_id)]

    def get_decks(self) -> list[Deck]:
        return list(self.dump.collection.decks.values())

    def get_note_types(self) -> list[NoteType]:
        return list(self.dump.collection.models.values())

    def get_notes(self) -> list[NoteRow]:
        return self.dump.notes

    def get_cards(self) -> list[CardRow]:
        return self.dump.cards

    def get_reviews(self) -> list[RevlogRow]:
        return self.dump.reviews

    def get_config(self) -> dict[str, Any]:
        return self.dump.collection.conf

    # Media

    def _key_for(self, filename: str) -> str:
        for key, name in self._media.items():
            if name == filename:
                return key
        raise MediaFileError(
            f"Media file '{filename}' does not exist in this package",
            context={"filename": filename},
        )

    def list_media_files(self) -> list[str]:
        return list(self._media.values())

    def get_media_file_size(self, filename: str) -> int:
        return (self._scratch_dir / self._key_for(filename)).stat().st_size

    def read_media_file(self, filename: str) -> bytes:
        path = self._scratch_dir / self._key_for(filename)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise MediaFileError(
                f"Media file '{filename}' is listed but its contents are missing",
                context={"filename": filename},
            ) from e

    def add_media_file(self, filename: str, source: str | Path | bytes | BinaryIO) -> str:
        """Store ``source`` under ``filename``; returns the archive entry key.

        ``source`` may be a path, raw bytes or a readable binary stream.
        """
        if filename in self._media.values():
            raise MediaFileError(
                f"Media file '{filename}' already exists in this package",
                context={"filename": filename},
            )

        key = next_media_key(self._media)
        target = self._scratch_dir / key
        if isinstance(source, (bytes, bytearray)):
            target.write_bytes(source)
        elif isinstance(source, (str, Path)):
            source_path = Path(source)
            if not source_path.is_file():
                raise MediaFileError(
                    f"Source file '{source_path}' for media '{filename}' does not exist",
                    context={"filename": filename, "source": str(source_path)},
                )
            shutil.copyfile(source_path, target)
        else:
            with open(target, "wb") as f:
                shutil.copyfileobj(source, f)

        self._media[key] = filename
        logger.debug("media_file_added", filename=filename, key=key)
        return key

    def remove_media_file(self, filename: str) -> None:
        key = self._key_for(filename)
        (self._scratch_dir / key).unlink(missing_ok=True)
        del self._media[key]
        logger.debug("media_file_removed", filename=filename, key=key)

    def _field_texts(self) -> Iterator[str]:
        for note in self.dump.notes:
            yield from split_fields(note.flds)
        for note_type in self.dump.collection.models.values():
            for template in note_type.tmpls:
                yield template.qfmt
                yield template.afmt

    def remove_unreferenced_media_files(self) -> list[str]:
        """Drop media no note field or template references; returns removed names, sorted."""
        used = referenced_media(self._field_texts())
        removed = sorted(name for name in self._media.values() if name not in used)
        for name in removed:
            self.remove_media_file(name)
        return removed
