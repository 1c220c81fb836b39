"""
Tests for report date rendering
"""

from sprintreport.services.dates import format_report_date


class TestFormatReportDate:
    """Tests for format_report_date."""

    def test_english(self):
        assert format_report_date("2025-01-06T09:00:00.000Z") == "January 6, 2025"

    def test_russian(self):
        assert format_report_date("2025-01-06T09:00:00.000Z", "ru") == "6 января 2025 г."

    def test_plain_date(self):
        assert format_report_date("2025-03-01") == "March 1, 2025"

    def test_unknown_language_uses_english_months(self):
        assert format_report_date("2025-01-06", "de") == "January 6, 2025"

    def test_unparseable(self):
        assert format_report_date("next week") == "next week"
        assert format_report_date(None) is None
