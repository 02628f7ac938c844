"""Centralized exception hierarchy for apkg-srs.

Expected data problems (a dangling reference, a malformed row) never raise;
they are recorded as issues and surface through a ``ConversionResult``. The
exceptions below are used inside components to signal that a whole step
failed, and are translated into ``critical`` issues at the package boundary.

Exception Hierarchy:
    ApkgSrsError (base)
     ConfigurationError - Configuration loading/validation errors
     PackageStateError - Operation on a package whose snapshot is not loaded
     AnkiPackageError - Problems with an Anki export container
        AnkiDatabaseError - Embedded SQLite database is unusable
        PackageMetaError - The protobuf ``meta`` entry is unreadable
        MediaMappingError - The ``media`` JSON index is malformed
        MediaFileError - Media payload CRUD failures

Usage Examples:
    try:
        database = AnkiDatabase.open(path)
    except AnkiDatabaseError as e:
        collector.add_critical(e.message)
"""

from typing import Any


class ApkgSrsError(Exception):
    """Base exception for all apkg-srs errors.

    Attributes:
        message: Human-readable error message
        suggestion: Optional suggestion for resolving the error
        error_code: Structured error code for machine-readable handling
        context: Additional context for debugging (e.g., file paths, table names)
    """

    def __init__(
        self,
        message: str,
        suggestion: str | None = None,
        error_code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        self.message = message
        self.suggestion = suggestion
        self.error_code = error_code
        self.context = context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with error code and suggestion if available."""
        parts = []
        if self.error_code:
            parts.append(f"[{self.error_code}] {self.message}")
        else:
            parts.append(self.message)
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "message": self.message,
            "error_code": self.error_code,
            "suggestion": self.suggestion,
            "context": self.context,
            "type": type(self).__name__,
        }


class ConfigurationError(ApkgSrsError):
    """Configuration loading or validation errors.

    Raised when:
    - Config file is missing or malformed
    - Configuration values fail validation
    """


class PackageStateError(ApkgSrsError):
    """Raised when a package operation needs database contents that are absent."""

    def __init__(self, message: str = "Database contents not available", **kwargs: Any):
        super().__init__(message, **kwargs)


class AnkiPackageError(ApkgSrsError):
    """Anki export container errors.

    Base class for everything that makes an ``.apkg`` unreadable.
    """


class AnkiDatabaseError(AnkiPackageError):
    """The embedded SQLite database cannot be used.

    ``kind`` is one of ``empty``, ``truncated``, ``invalid_header``,
    ``corrupted`` or ``missing_tables``.
    """

    def __init__(
        self,
        kind: str,
        message: str,
        missing_tables: list[str] | None = None,
        **kwargs: Any,
    ):
        self.kind = kind
        self.missing_tables = missing_tables
        context = kwargs.pop("context", None) or {}
        context.setdefault("kind", kind)
        if missing_tables:
            context.setdefault("missing_tables", list(missing_tables))
        super().__init__(message, context=context, **kwargs)


class PackageMetaError(AnkiPackageError):
    """The ``meta`` entry could not be decoded as a version header."""


class MediaMappingError(AnkiPackageError):
    """The ``media`` entry is not a valid filename index."""


class MediaFileError(AnkiPackageError):
    """A media payload could not be added, read or removed.

    Raised when:
    - The named media file is not part of the package
    - A media file with the same name already exists
    - The source for a new media file does not exist
    """
