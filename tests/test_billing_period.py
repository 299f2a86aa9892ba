"""
Tests for BillingPeriod parsing and month boundaries.
"""
from datetime import date

import pytest

from focus_export.services.costs.period import BillingPeriod
from focus_export.shared.core.exceptions import ConfigurationError


class TestBillingPeriodParse:
    def test_parse_valid_period(self):
        period = BillingPeriod.parse("2025-01")
        assert period.year == 2025
        assert period.month == 1
        assert period.label == "2025-01"

    @pytest.mark.parametrize("value", ["2025-1", "25-01", "2025/01", "January", "", "2025-01-01"])
    def test_rejects_bad_format(self, value):
        with pytest.raises(ConfigurationError) as exc:
            BillingPeriod.parse(value)
        assert "YYYY-MM" in exc.value.message

    @pytest.mark.parametrize("value", ["2025-00", "2025-13"])
    def test_rejects_out_of_range_month(self, value):
        with pytest.raises(ConfigurationError):
            BillingPeriod.parse(value)


class TestBillingPeriodBounds:
    def test_start_and_end(self):
        period = BillingPeriod.parse("2025-04")
        assert period.start == date(2025, 4, 1)
        assert period.end == date(2025, 4, 30)

    def test_leap_year_february(self):
        assert BillingPeriod.parse("2024-02").end == date(2024, 2, 29)
        assert BillingPeriod.parse("2025-02").end == date(2025, 2, 28)

    def test_query_end_is_first_of_next_month(self):
        assert BillingPeriod.parse("2025-01").query_end == date(2025, 2, 1)

    def test_query_end_rolls_over_year(self):
        assert BillingPeriod.parse("2024-12").query_end == date(2025, 1, 1)


class TestPreviousPeriod:
    def test_previous_month(self):
        assert BillingPeriod.previous(date(2025, 3, 15)).label == "2025-02"

    def test_previous_month_in_january(self):
        assert BillingPeriod.previous(date(2025, 1, 1)).label == "2024-12"
