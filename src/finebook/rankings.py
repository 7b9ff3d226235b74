# ABOUTME: Ranking builder for the Finebook ledger
# ABOUTME: Top contributors, category, donation, ICS and paid rankings

import datetime as dt
from collections.abc import Callable

from pydantic import BaseModel, Field

from finebook.periods import Period, is_in_period, is_on_or_before
from finebook.stats import (
    FineStatus,
    MemberStats,
    MemberStatsAsOf,
    category_label,
    category_stats,
    external_donations,
    member_stats,
    member_stats_as_of,
)
from finebook.types import Ledger, Member, round_cents, sum_cents, to_decimal

DEFAULT_LIMIT = 10
EXTERNAL_DONOR_NAME = "External"


class RankingEntry(BaseModel):
    """One row of a ranking; member_id is None for categories and external donors."""

    member_id: str | None = None
    name: str
    amount: float
    breakdown: dict[str, float] = Field(default_factory=dict)


def _member_rows(
    ledger: Ledger,
    period: Period | None,
    now: dt.date | None,
    as_of: dt.date | None,
    include_inactive: bool,
) -> list[tuple[Member, MemberStats | MemberStatsAsOf]]:
    members = [m for m in ledger.members if include_inactive or m.active]
    if as_of is not None:
        return [(m, member_stats_as_of(ledger, m.id, as_of)) for m in members]
    return [(m, member_stats(ledger, m.id, period, now=now)) for m in members]


def _fines_paid(stats: MemberStats | MemberStatsAsOf) -> float:
    """Paid fines including ICS."""
    return round_cents(to_decimal(stats.total_paid) - to_decimal(stats.donations_amount))


def _regular_fines_paid(stats: MemberStats | MemberStatsAsOf) -> float:
    return round_cents(to_decimal(_fines_paid(stats)) - to_decimal(stats.paid_ics))


def _external_total(
    ledger: Ledger,
    period: Period | None,
    now: dt.date | None,
    as_of: dt.date | None,
) -> float:
    if as_of is not None:
        donations = [d for d in external_donations(ledger) if is_on_or_before(d.date, as_of)]
    else:
        donations = [d for d in external_donations(ledger) if is_in_period(d.date, period, now)]
    return sum_cents(d.amount for d in donations)


def _rank(entries: list[RankingEntry], limit: int) -> list[RankingEntry]:
    """Keep positive amounts, sort descending (stable on ties), truncate."""
    positive = [e for e in entries if e.amount > 0]
    return sorted(positive, key=lambda e: e.amount, reverse=True)[:limit]


def _member_ranking(
    ledger: Ledger,
    period: Period | None,
    limit: int,
    now: dt.date | None,
    as_of: dt.date | None,
    include_inactive: bool,
    amount: Callable[[MemberStats | MemberStatsAsOf], float],
    breakdown: Callable[[MemberStats | MemberStatsAsOf], dict[str, float]],
    external: Callable[[float], RankingEntry] | None = None,
) -> list[RankingEntry]:
    entries = [
        RankingEntry(
            member_id=member.id,
            name=member.display_name,
            amount=amount(stats),
            breakdown=breakdown(stats),
        )
        for member, stats in _member_rows(ledger, period, now, as_of, include_inactive)
    ]

    if external is not None:
        external_total = _external_total(ledger, period, now, as_of)
        if external_total > 0:
            entries.append(external(external_total))

    return _rank(entries, limit)


def top_contributors(
    ledger: Ledger,
    period: Period | None,
    status: FineStatus = FineStatus.PAID,
    limit: int = DEFAULT_LIMIT,
    now: dt.date | None = None,
    as_of: dt.date | None = None,
    include_inactive: bool = False,
) -> list[RankingEntry]:
    """
    Rank members by total contribution.

    With status PAID the amount is what a member has actually paid (fines,
    ICS and donations); with ASSIGNED it is what was levied on them.

    Args:
        ledger: Ledger to read
        period: Monthly or seasonal window (ignored when as_of is set)
        status: Collected vs levied view
        limit: Maximum entries to return
        now: Reference date for the period window
        as_of: Rank as things stood on this cutoff date instead
        include_inactive: Also rank deactivated members

    Returns:
        Entries sorted by amount, highest first
    """
    if status == FineStatus.PAID:
        return _member_ranking(
            ledger, period, limit, now, as_of, include_inactive,
            amount=lambda s: s.total_paid,
            breakdown=lambda s: {
                "fines_paid": _regular_fines_paid(s),
                "paid_ics": s.paid_ics,
                "donations": s.donations_amount,
            },
        )

    return _member_ranking(
        ledger, period, limit, now, as_of, include_inactive,
        amount=lambda s: s.assigned_amount,
        breakdown=lambda s: {"total_fines": s.total_fines, "total_ics": s.total_ics},
    )


def paid_ranking(
    ledger: Ledger,
    period: Period | None,
    limit: int = DEFAULT_LIMIT,
    now: dt.date | None = None,
    as_of: dt.date | None = None,
    include_inactive: bool = False,
) -> list[RankingEntry]:
    """Rank by total paid (fines + donations), with external donors as one entry."""
    return _member_ranking(
        ledger, period, limit, now, as_of, include_inactive,
        amount=lambda s: s.total_paid,
        breakdown=lambda s: {"fines_paid": _fines_paid(s), "donations": s.donations_amount},
        external=lambda total: RankingEntry(
            name=EXTERNAL_DONOR_NAME,
            amount=total,
            breakdown={"fines_paid": 0.0, "donations": total},
        ),
    )


def donations_ranking(
    ledger: Ledger,
    period: Period | None,
    limit: int = DEFAULT_LIMIT,
    now: dt.date | None = None,
    as_of: dt.date | None = None,
    include_inactive: bool = False,
) -> list[RankingEntry]:
    """Rank by donations, with external donors as one entry."""
    return _member_ranking(
        ledger, period, limit, now, as_of, include_inactive,
        amount=lambda s: s.donations_amount,
        breakdown=lambda s: {},
        external=lambda total: RankingEntry(name=EXTERNAL_DONOR_NAME, amount=total),
    )


def ics_ranking(
    ledger: Ledger,
    period: Period | None,
    limit: int = DEFAULT_LIMIT,
    now: dt.date | None = None,
    as_of: dt.date | None = None,
    include_inactive: bool = False,
) -> list[RankingEntry]:
    """Rank by ICS assigned."""
    return _member_ranking(
        ledger, period, limit, now, as_of, include_inactive,
        amount=lambda s: s.total_ics,
        breakdown=lambda s: {"paid_ics": s.paid_ics},
    )


def category_ranking(
    ledger: Ledger,
    period: Period | None,
    limit: int = DEFAULT_LIMIT,
    now: dt.date | None = None,
    as_of: dt.date | None = None,
) -> list[RankingEntry]:
    """
    Rank categories by total amount fined.

    Fines whose category was removed still rank, labelled by their raw key.
    """
    keys = [key for key, category in ledger.categories.items() if category.is_leaf]
    for member in ledger.members:
        for fine in member.fines:
            if fine.category not in keys:
                keys.append(fine.category)

    entries = []
    for key in keys:
        stats = category_stats(ledger, key, None if as_of else period, now=now, as_of=as_of)
        entries.append(
            RankingEntry(
                name=category_label(ledger, key),
                amount=stats.total_amount,
                breakdown={"count": float(stats.count), "paid_amount": stats.paid_amount},
            )
        )

    return _rank(entries, limit)
