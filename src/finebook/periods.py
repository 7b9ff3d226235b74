# ABOUTME: Period and cutoff date policy for ledger aggregation
# ABOUTME: Classifies dates into monthly/seasonal windows and as-of cutoffs

import datetime as dt
from enum import Enum

from finebook.types import Fine

# Seasons run August 1 to July 31 and tracking began with the 2025/26 season
SEASON_START_MONTH = 8
FIRST_SEASON_START = dt.date(2025, 8, 1)

EPOCH = dt.date(1970, 1, 1)


class Period(str, Enum):
    MONTHLY = "monthly"
    SEASONAL = "seasonal"


def season_bounds(now: dt.date) -> tuple[dt.date, dt.date]:
    """
    Get the nominal (start, end) of the season containing `now`.

    The start is clamped so it never precedes FIRST_SEASON_START.
    """
    if now.month >= SEASON_START_MONTH:
        start = dt.date(now.year, SEASON_START_MONTH, 1)
        end = dt.date(now.year + 1, SEASON_START_MONTH - 1, 31)
    else:
        start = dt.date(now.year - 1, SEASON_START_MONTH, 1)
        end = dt.date(now.year, SEASON_START_MONTH - 1, 31)

    return max(start, FIRST_SEASON_START), end


def is_in_period(
    date: dt.date | None,
    period: Period | None,
    now: dt.date | None = None,
) -> bool:
    """
    Check whether a date falls in the current monthly or seasonal window.

    Args:
        date: Date to classify (None never qualifies for a bounded period)
        period: Window to test against; None means no filtering
        now: Reference "today" (default: date.today())

    Returns:
        True if the date is inside the window
    """
    if period is None:
        return True
    if date is None:
        return False

    now = now or dt.date.today()

    if period == Period.MONTHLY:
        return date.year == now.year and date.month == now.month

    if period == Period.SEASONAL:
        season_start, _ = season_bounds(now)
        # Upper bound is today, not the nominal season end
        return season_start <= date <= now

    return True


def is_on_or_before(date: dt.date | None, cutoff: dt.date) -> bool:
    """Check a date against an as-of cutoff; a missing date counts as the epoch."""
    return (date or EPOCH) <= cutoff


def effective_payment_date(fine: Fine) -> dt.date | None:
    """Payment date of a fine, falling back to its assignment date."""
    return fine.payment_date or fine.date
