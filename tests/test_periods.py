# ABOUTME: Tests for the period and cutoff date policy
# ABOUTME: Covers monthly/seasonal windows, the season epoch clamp and as-of helpers

import datetime as dt

from finebook.periods import (
    Period,
    effective_payment_date,
    is_in_period,
    is_on_or_before,
    season_bounds,
)
from finebook.types import Fine


class TestMonthly:
    """Test the monthly window."""

    def test_same_month_and_year(self):
        now = dt.date(2025, 7, 15)
        assert is_in_period(dt.date(2025, 7, 31), Period.MONTHLY, now)
        assert is_in_period(dt.date(2025, 7, 1), Period.MONTHLY, now)

    def test_other_month_or_year(self):
        now = dt.date(2025, 7, 15)
        assert not is_in_period(dt.date(2025, 6, 30), Period.MONTHLY, now)
        assert not is_in_period(dt.date(2024, 7, 15), Period.MONTHLY, now)

    def test_end_of_july_not_in_august(self):
        assert not is_in_period(dt.date(2025, 7, 31), Period.MONTHLY, dt.date(2025, 8, 1))


class TestSeasonal:
    """Test the August-to-July season window."""

    def test_season_bounds_autumn(self):
        assert season_bounds(dt.date(2026, 10, 1)) == (dt.date(2026, 8, 1), dt.date(2027, 7, 31))

    def test_season_bounds_spring(self):
        assert season_bounds(dt.date(2027, 3, 1)) == (dt.date(2026, 8, 1), dt.date(2027, 7, 31))

    def test_season_start_clamped_to_first_season(self):
        start, end = season_bounds(dt.date(2025, 3, 1))
        assert start == dt.date(2025, 8, 1)
        assert end == dt.date(2025, 7, 31)

    def test_previous_season_excluded_on_first_day(self):
        now = dt.date(2025, 8, 1)
        assert not is_in_period(dt.date(2025, 7, 31), Period.SEASONAL, now)
        assert is_in_period(dt.date(2025, 8, 1), Period.SEASONAL, now)

    def test_upper_bound_is_today(self):
        now = dt.date(2025, 10, 10)
        assert is_in_period(dt.date(2025, 10, 10), Period.SEASONAL, now)
        assert not is_in_period(dt.date(2025, 10, 11), Period.SEASONAL, now)

    def test_spans_new_year(self):
        now = dt.date(2026, 2, 1)
        assert is_in_period(dt.date(2025, 9, 1), Period.SEASONAL, now)
        assert is_in_period(dt.date(2026, 1, 31), Period.SEASONAL, now)


class TestNoPeriod:
    """Test unfiltered and missing-date cases."""

    def test_none_period_accepts_everything(self):
        assert is_in_period(dt.date(1999, 1, 1), None, dt.date(2025, 9, 1))
        assert is_in_period(None, None)

    def test_missing_date_never_in_bounded_period(self):
        assert not is_in_period(None, Period.MONTHLY, dt.date(2025, 9, 1))


class TestAsOfHelpers:
    """Test cutoff comparison and payment date fallback."""

    def test_on_or_before(self):
        cutoff = dt.date(2024, 3, 1)
        assert is_on_or_before(dt.date(2024, 3, 1), cutoff)
        assert is_on_or_before(dt.date(2024, 1, 1), cutoff)
        assert not is_on_or_before(dt.date(2024, 3, 2), cutoff)

    def test_missing_date_is_epoch(self):
        assert is_on_or_before(None, dt.date(1970, 1, 1))

    def test_effective_payment_date_prefers_payment_date(self):
        fine = Fine(category="multa", amount=5, date=dt.date(2024, 1, 1), paid=True,
                    payment_date=dt.date(2024, 6, 1))
        assert effective_payment_date(fine) == dt.date(2024, 6, 1)

    def test_effective_payment_date_falls_back_to_assignment(self):
        fine = Fine(category="multa", amount=5, date=dt.date(2024, 1, 1), paid=True)
        assert effective_payment_date(fine) == dt.date(2024, 1, 1)
