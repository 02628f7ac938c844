"""Tests for issue collection and outcome classification."""

import pytest

from apkg_srs.config import Settings, set_config
from apkg_srs.issues import (
    ConversionIssue,
    ConversionOptions,
    ConversionResult,
    ConversionStatus,
    ErrorHandling,
    IssueCollector,
    IssueContext,
    ItemType,
    Severity,
)


class TestOutcome:
    """The collector decides success / partial / failure."""

    def test_no_issues_is_success(self):
        collector = IssueCollector(ConversionOptions.best_effort())
        result = collector.create_result("data")
        assert result.status is ConversionStatus.SUCCESS
        assert result.data == "data"
        assert result.issues == []

    def test_error_is_partial_under_best_effort(self):
        collector = IssueCollector(ConversionOptions.best_effort())
        collector.add_error("Note 1 is invalid", ItemType.NOTE)
        result = collector.create_result("data")
        assert result.status is ConversionStatus.PARTIAL
        assert result.data == "data"
        assert len(result.issues) == 1

    def test_error_is_failure_under_strict(self):
        collector = IssueCollector(ConversionOptions.strict())
        collector.add_error("Note 1 is invalid", ItemType.NOTE)
        result = collector.create_result("data")
        assert result.status is ConversionStatus.FAILURE
        assert result.data is None
        assert len(result.issues) == 1

    @pytest.mark.parametrize(
        ("options", "expected"),
        [
            (ConversionOptions.best_effort(), ConversionStatus.PARTIAL),
            (ConversionOptions.strict(), ConversionStatus.FAILURE),
        ],
    )
    def test_warning_alone_is_not_success(self, options, expected):
        collector = IssueCollector(options)
        collector.add_warning("media missing", ItemType.MEDIA)
        assert collector.create_result("data").status is expected

    @pytest.mark.parametrize("options", [ConversionOptions.best_effort(), ConversionOptions.strict()])
    def test_critical_is_always_failure(self, options):
        collector = IssueCollector(options)
        collector.add_warning("w")
        collector.add_critical("bad container")
        result = collector.create_result("data")
        assert result.status is ConversionStatus.FAILURE
        assert result.data is None
        assert [i.severity for i in result.issues] == [Severity.WARNING, Severity.CRITICAL]

    def test_failure_result_keeps_issues(self):
        collector = IssueCollector(ConversionOptions.best_effort())
        collector.add_error("e")
        result = collector.create_failure_result()
        assert result.status is ConversionStatus.FAILURE
        assert result.data is None
        assert result.issues[0].message == "e"


class TestCollector:
    def test_issues_keep_insertion_order(self):
        collector = IssueCollector(ConversionOptions.best_effort())
        collector.add_warning("first")
        collector.add_card_error("second", {"id": 1})
        collector.add_review_error("third", {"id": 2})
        assert [i.message for i in collector.issues] == ["first", "second", "third"]
        assert [i.item_type for i in collector.issues] == [None, ItemType.CARD, ItemType.REVIEW]

    def test_issues_property_is_a_copy(self):
        collector = IssueCollector(ConversionOptions.best_effort())
        collector.add_warning("w")
        collector.issues.clear()
        assert len(collector.issues) == 1

    def test_add_issues_forwards_existing(self):
        collector = IssueCollector(ConversionOptions.best_effort())
        collector.add_issues([ConversionIssue(Severity.ERROR, "forwarded")])
        assert collector.has_recoverable_errors()
        assert not collector.has_critical_issues()
        assert not collector.has_warnings()

    def test_note_error_carries_original_data(self):
        collector = IssueCollector(ConversionOptions.best_effort())
        raw = {"id": 5, "mid": 99}
        collector.add_note_error("Note 5 is invalid", raw)
        issue = collector.issues[0]
        assert issue.context == IssueContext(ItemType.NOTE, raw)

    def test_default_options_come_from_config(self):
        set_config(Settings(error_handling="strict"))
        assert IssueCollector().options.error_handling is ErrorHandling.STRICT


class TestOptionsAndResults:
    def test_options_accept_plain_strings(self):
        assert ConversionOptions("strict").error_handling is ErrorHandling.STRICT
        assert ConversionOptions("best-effort").error_handling is ErrorHandling.BEST_EFFORT

    def test_options_reject_unknown_mode(self):
        with pytest.raises(ValueError):
            ConversionOptions("lenient")

    def test_unwrap_returns_data(self):
        assert ConversionResult(ConversionStatus.PARTIAL, 42).unwrap() == 42

    def test_unwrap_raises_with_issue_text(self):
        result = ConversionResult(
            ConversionStatus.FAILURE, None, [ConversionIssue(Severity.CRITICAL, "broken zip")]
        )
        assert not result.ok
        with pytest.raises(ValueError, match="broken zip"):
            result.unwrap()

    def test_issue_str_and_dict(self):
        issue = ConversionIssue(
            Severity.ERROR, "Card 3 is invalid", IssueContext(ItemType.CARD, {"id": 3})
        )
        assert str(issue) == "ERROR: [card] Card 3 is invalid"
        assert issue.to_dict() == {
            "severity": "error",
            "message": "Card 3 is invalid",
            "context": {"item_type": "card", "original_data": "{'id': 3}"},
        }
