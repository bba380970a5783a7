"""Tests for chatflow.workflow.extractor.ParameterExtractor"""

from datetime import datetime

from chatflow.workflow.extractor import ParameterExtractor


REFERENCE = datetime(2024, 5, 1, 12, 0)


class TestEmails:
    def test_extracts_all_emails_and_primary(self):
        hints = ParameterExtractor().extract(
            "loop in alice@example.com and bob.smith+work@corp.co.uk please"
        )
        assert hints["extracted_emails"] == ["alice@example.com", "bob.smith+work@corp.co.uk"]
        assert hints["primary_email"] == "alice@example.com"

    def test_no_email(self):
        hints = ParameterExtractor().extract("no addresses here")
        assert "extracted_emails" not in hints
        assert "primary_email" not in hints


class TestDates:
    def test_us_format(self):
        hints = ParameterExtractor().extract("meeting on 05/14/2024", reference=REFERENCE)
        assert hints["extracted_dates"] == ["05/14/2024"]
        assert hints["resolved_dates"] == ["2024-05-14"]

    def test_iso_format(self):
        hints = ParameterExtractor().extract("due 2024-06-30", reference=REFERENCE)
        assert hints["extracted_dates"] == ["2024-06-30"]
        assert hints["resolved_dates"] == ["2024-06-30"]

    def test_relative_words(self):
        hints = ParameterExtractor().extract("Tomorrow works, not today", reference=REFERENCE)
        assert hints["extracted_dates"] == ["Tomorrow", "today"]
        assert hints["resolved_dates"] == ["2024-05-02", "2024-05-01"]

    def test_first_matching_format_wins(self):
        """A US date shadows ISO dates and relative words in the same message."""
        hints = ParameterExtractor().extract(
            "move 05/14/2024 to 2024-05-20 or tomorrow", reference=REFERENCE
        )
        assert hints["extracted_dates"] == ["05/14/2024"]

    def test_yesterday(self):
        assert ParameterExtractor().resolve_date("yesterday", REFERENCE) == "2024-04-30"

    def test_unresolvable_date_is_dropped(self):
        hints = ParameterExtractor().extract("on 13/45/2024", reference=REFERENCE)
        assert hints["extracted_dates"] == ["13/45/2024"]
        assert "resolved_dates" not in hints


class TestTimes:
    def test_times_with_and_without_meridiem(self):
        hints = ParameterExtractor().extract("either 9:30 or 2:15 PM")
        assert hints["extracted_times"] == ["9:30", "2:15 PM"]

    def test_lowercase_meridiem(self):
        hints = ParameterExtractor().extract("at 10:00am")
        assert hints["extracted_times"] == ["10:00am"]


class TestEmptyInput:
    def test_empty_message(self):
        assert ParameterExtractor().extract("") == {}

    def test_nothing_found(self):
        assert ParameterExtractor().extract("plan project") == {}
