"""Convert Anki .apkg exports to and from a universal spaced-repetition package."""

from .anki import AnkiPackage
from .issues import (
    ConversionIssue,
    ConversionOptions,
    ConversionResult,
    ConversionStatus,
    ErrorHandling,
    IssueCollector,
    ItemType,
    Severity,
)
from .universal import SrsPackage

__version__ = "0.1.0"

__all__ = [
    "AnkiPackage",
    "ConversionIssue",
    "ConversionOptions",
    "ConversionResult",
    "ConversionStatus",
    "ErrorHandling",
    "IssueCollector",
    "ItemType",
    "Severity",
    "SrsPackage",
    "__version__",
]
