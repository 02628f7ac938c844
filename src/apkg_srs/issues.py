"""Severity-tiered issue collection and result classification.

Every public conversion entry point creates one ``IssueCollector``, records
problems into it while working, and asks it for the final
``ConversionResult``. The collector owns the outcome decision:

- any ``critical`` issue: ``failure`` and no data
- any ``error`` or ``warning``: ``partial`` with data under best-effort,
  ``failure`` without data under strict
- nothing recorded: ``success``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Literal, TypeVar

from .utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class Severity(str, Enum):
    """Issue severity levels, ascending."""

    WARNING = "warning"  # output still valid
    ERROR = "error"  # one entity skipped
    CRITICAL = "critical"  # no usable output


class ItemType(str, Enum):
    """Kind of entity an issue refers to."""

    CARD = "card"
    NOTE = "note"
    REVIEW = "review"
    DECK = "deck"
    NOTE_TYPE = "noteType"
    MEDIA = "media"


class ErrorHandling(str, Enum):
    STRICT = "strict"
    BEST_EFFORT = "best-effort"


class ConversionStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


@dataclass(frozen=True)
class ConversionOptions:
    """Caller-selected issue policy for one operation."""

    error_handling: ErrorHandling = ErrorHandling.BEST_EFFORT

    def __post_init__(self) -> None:
        # Accept the plain strings "strict" / "best-effort"
        object.__setattr__(self, "error_handling", ErrorHandling(self.error_handling))

    @classmethod
    def strict(cls) -> ConversionOptions:
        return cls(ErrorHandling.STRICT)

    @classmethod
    def best_effort(cls) -> ConversionOptions:
        return cls(ErrorHandling.BEST_EFFORT)


@dataclass
class IssueContext:
    """Structured context attached to an issue."""

    item_type: ItemType | None = None
    original_data: Any = None


@dataclass
class ConversionIssue:
    """A single problem found while reading, validating or converting."""

    severity: Severity
    message: str
    context: IssueContext | None = None

    @property
    def item_type(self) -> ItemType | None:
        return self.context.item_type if self.context else None

    def __str__(self) -> str:
        prefix = f"[{self.item_type.value}] " if self.item_type else ""
        return f"{self.severity.value.upper()}: {prefix}{self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary (raw data is stringified)."""
        data: dict[str, Any] = {"severity": self.severity.value, "message": self.message}
        if self.context is not None:
            data["context"] = {
                "item_type": self.item_type.value if self.item_type else None,
                "original_data": (
                    None
                    if self.context.original_data is None
                    else repr(self.context.original_data)
                ),
            }
        return data


@dataclass
class ConversionResult(Generic[T]):
    """Three-valued outcome of a public operation."""

    status: ConversionStatus
    data: T | None = None
    issues: list[ConversionIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """True when data is available (success or partial)."""
        return self.status is not ConversionStatus.FAILURE and self.data is not None

    def unwrap(self) -> T:
        """Return the data or raise ``ValueError`` listing the issues."""
        if self.data is None:
            details = "; ".join(str(issue) for issue in self.issues) or "no issues recorded"
            msg = f"Operation failed: {details}"
            raise ValueError(msg)
        return self.data


_LOG_METHOD = {
    Severity.WARNING: "warning",
    Severity.ERROR: "error",
    Severity.CRITICAL: "critical",
}


def _default_options() -> ConversionOptions:
    from .config import get_config

    return ConversionOptions(get_config().error_handling)


class IssueCollector:
    """Accumulates issues for the duration of one operation."""

    def __init__(self, options: ConversionOptions | None = None) -> None:
        self.options = options if options is not None else _default_options()
        self._issues: list[ConversionIssue] = []

    def add_issue(self, issue: ConversionIssue) -> None:
        self._issues.append(issue)
        getattr(logger, _LOG_METHOD[issue.severity])(
            "conversion_issue",
            severity=issue.severity.value,
            item_type=issue.item_type.value if issue.item_type else None,
            issue=issue.message,
        )

    def add_issues(self, issues: list[ConversionIssue]) -> None:
        for issue in issues:
            self.add_issue(issue)

    def _add(
        self,
        severity: Severity,
        message: str,
        item_type: ItemType | None,
        original_data: Any,
    ) -> None:
        context = None
        if item_type is not None or original_data is not None:
            context = IssueContext(item_type=item_type, original_data=original_data)
        self.add_issue(ConversionIssue(severity, message, context))

    def add_warning(
        self, message: str, item_type: ItemType | None = None, original_data: Any = None
    ) -> None:
        self._add(Severity.WARNING, message, item_type, original_data)

    def add_error(
        self, message: str, item_type: ItemType | None = None, original_data: Any = None
    ) -> None:
        self._add(Severity.ERROR, message, item_type, original_data)

    def add_critical(
        self, message: str, item_type: ItemType | None = None, original_data: Any = None
    ) -> None:
        self._add(Severity.CRITICAL, message, item_type, original_data)

    def add_card_error(self, message: str, card: Any) -> None:
        self.add_error(message, ItemType.CARD, card)

    def add_note_error(self, message: str, note: Any) -> None:
        self.add_error(message, ItemType.NOTE, note)

    def add_review_error(self, message: str, review: Any) -> None:
        self.add_error(message, ItemType.REVIEW, review)

    @property
    def issues(self) -> list[ConversionIssue]:
        return list(self._issues)

    def has_critical_issues(self) -> bool:
        return any(i.severity is Severity.CRITICAL for i in self._issues)

    def has_recoverable_errors(self) -> bool:
        return any(i.severity is Severity.ERROR for i in self._issues)

    def has_warnings(self) -> bool:
        return any(i.severity is Severity.WARNING for i in self._issues)

    def create_result(self, data: T) -> ConversionResult[T]:
        issues = self.issues

        if self.has_critical_issues():
            return ConversionResult(ConversionStatus.FAILURE, None, issues)

        if issues:
            if self.options.error_handling is ErrorHandling.STRICT:
                return ConversionResult(ConversionStatus.FAILURE, None, issues)
            return ConversionResult(ConversionStatus.PARTIAL, data, issues)

        return ConversionResult(ConversionStatus.SUCCESS, data, issues)

    def create_failure_result(self) -> ConversionResult[Any]:
        return ConversionResult(ConversionStatus.FAILURE, None, self.issues)
