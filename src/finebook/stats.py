# ABOUTME: Aggregation engine for the Finebook ledger
# ABOUTME: Per-member, per-category and global totals, live and as of a cutoff date

import datetime as dt
import logging
from collections.abc import Iterable, Iterator
from enum import Enum

from pydantic import BaseModel, Field

from finebook.periods import Period, effective_payment_date, is_in_period, is_on_or_before
from finebook.types import (
    ICS_CATEGORY_KEY,
    Donation,
    Fine,
    Ledger,
    Member,
    MemberRole,
    round_cents,
    sum_cents,
    to_decimal,
)

logger = logging.getLogger(__name__)


class FineStatus(str, Enum):
    """Which view a contribution figure shows: money collected or money levied."""

    PAID = "paid"
    ASSIGNED = "assigned"


class MemberStats(BaseModel):
    """Totals for one member over a monthly or seasonal window."""

    total_fines: float = 0.0
    paid_amount: float = 0.0
    unpaid_amount: float = 0.0
    total_ics: float = 0.0
    paid_ics: float = 0.0
    donations_amount: float = 0.0
    assigned_amount: float = 0.0
    total_paid: float = 0.0
    total_contribution: float = 0.0


class MemberStatsAsOf(BaseModel):
    """Totals for one member as they stood on a cutoff date."""

    assigned_amount: float = 0.0
    paid_amount: float = 0.0
    unpaid_amount: float = 0.0
    donations_amount: float = 0.0
    total_contribution: float = 0.0
    total_fines: float = 0.0
    total_ics: float = 0.0
    paid_fines: float = 0.0
    paid_ics: float = 0.0
    total_paid: float = 0.0


class CategoryStats(BaseModel):
    count: int = 0
    total_amount: float = 0.0
    paid_amount: float = 0.0


class CategoryBreakdown(BaseModel):
    key: str
    name: str
    count: int = 0
    total_amount: float = 0.0
    paid_amount: float = 0.0
    unpaid_amount: float = 0.0


class MacroCategoryBreakdown(CategoryBreakdown):
    """A macro category rolled up from the micro categories filed under it."""

    subcategories: list[CategoryBreakdown] = Field(default_factory=list)


class CategoryTree(BaseModel):
    """
    Fines per category as of a cutoff, grouped for reporting.

    ICS is listed on its own. Micro categories sit under their macro
    category; categories with no parent (or since removed) are ungrouped.
    """

    ics: CategoryBreakdown | None = None
    macros: list[MacroCategoryBreakdown] = Field(default_factory=list)
    ungrouped: list[CategoryBreakdown] = Field(default_factory=list)


class GlobalTotals(BaseModel):
    """Cash totals across the whole ledger. Donations are always collected."""

    total_fines: float = 0.0
    paid_fines: float = 0.0
    unpaid_fines: float = 0.0
    total_ics: float = 0.0
    paid_ics: float = 0.0
    unpaid_ics: float = 0.0
    total_donations: float = 0.0
    total_cash: float = 0.0
    total_paid_all: float = 0.0
    total_unpaid_all: float = 0.0


class TeamStats(BaseModel):
    players: int = 0
    staff: int = 0
    members_with_unpaid_fines: int = 0


def _difference(total: float, part: float) -> float:
    return round_cents(to_decimal(total) - to_decimal(part))


def _is_ics(fine: Fine) -> bool:
    return fine.category == ICS_CATEGORY_KEY


def _unique_donations(donations: Iterable[Donation]) -> Iterator[Donation]:
    """Yield donations once each, keyed by id."""
    seen: set[str] = set()
    for donation in donations:
        key = str(donation.id)
        if key in seen:
            continue
        seen.add(key)
        yield donation


def member_donations(ledger: Ledger, member: Member) -> list[Donation]:
    """A member's own donations plus global donations attributed to them."""
    attributed = [d for d in ledger.global_donations if d.member_id == member.id]
    return list(_unique_donations([*member.donations, *attributed]))


def all_donations(ledger: Ledger) -> list[Donation]:
    """Every donation in the ledger, member lists and global list combined."""
    owned = [d for member in ledger.members for d in member.donations]
    return list(_unique_donations([*owned, *ledger.global_donations]))


def external_donations(ledger: Ledger) -> list[Donation]:
    return [d for d in ledger.global_donations if d.member_id is None]


def is_paid_as_of(fine: Fine, cutoff: dt.date) -> bool:
    return fine.paid and is_on_or_before(effective_payment_date(fine), cutoff)


def member_stats(
    ledger: Ledger,
    member_id: str,
    period: Period | None,
    status: FineStatus = FineStatus.PAID,
    now: dt.date | None = None,
) -> MemberStats:
    """
    Compute a member's totals over the current period.

    ICS fines are tracked separately from regular fines. Donations are
    collected money only: they count towards total_paid but never towards
    assigned_amount.

    Args:
        ledger: Ledger to read
        member_id: Member to summarize
        period: Monthly or seasonal window (None for all time)
        status: PAID makes total_contribution the collected amount,
            ASSIGNED makes it the levied amount
        now: Reference date for the period window

    Returns:
        MemberStats; all zeros for an unknown member
    """
    member = ledger.find_member(member_id)
    if member is None:
        logger.debug(f"Stats requested for unknown member {member_id}")
        return MemberStats()

    fines = [f for f in member.fines if is_in_period(f.date, period, now)]
    regular = [f for f in fines if not _is_ics(f)]
    ics = [f for f in fines if _is_ics(f)]
    donations = [
        d for d in member_donations(ledger, member) if is_in_period(d.date, period, now)
    ]

    total_fines = sum_cents(f.amount for f in regular)
    paid_amount = sum_cents(f.amount for f in regular if f.paid)
    total_ics = sum_cents(f.amount for f in ics)
    paid_ics = sum_cents(f.amount for f in ics if f.paid)
    donations_amount = sum_cents(d.amount for d in donations)

    total_paid = sum_cents([paid_amount, paid_ics, donations_amount])
    assigned_amount = sum_cents([total_fines, total_ics])

    return MemberStats(
        total_fines=total_fines,
        paid_amount=paid_amount,
        unpaid_amount=_difference(total_fines, paid_amount),
        total_ics=total_ics,
        paid_ics=paid_ics,
        donations_amount=donations_amount,
        assigned_amount=assigned_amount,
        total_paid=total_paid,
        total_contribution=total_paid if status == FineStatus.PAID else assigned_amount,
    )


def member_stats_as_of(ledger: Ledger, member_id: str, cutoff: dt.date) -> MemberStatsAsOf:
    """
    Compute a member's totals as they stood at the end of `cutoff`.

    A fine assigned before the cutoff but paid after it is unpaid here.
    """
    member = ledger.find_member(member_id)
    if member is None:
        logger.debug(f"As-of stats requested for unknown member {member_id}")
        return MemberStatsAsOf()

    fines = [f for f in member.fines if is_on_or_before(f.date, cutoff)]
    donations = [
        d for d in member_donations(ledger, member) if is_on_or_before(d.date, cutoff)
    ]

    total_fines = sum_cents(f.amount for f in fines if not _is_ics(f))
    paid_fines = sum_cents(f.amount for f in fines if not _is_ics(f) and is_paid_as_of(f, cutoff))
    total_ics = sum_cents(f.amount for f in fines if _is_ics(f))
    paid_ics = sum_cents(f.amount for f in fines if _is_ics(f) and is_paid_as_of(f, cutoff))
    donations_amount = sum_cents(d.amount for d in donations)

    assigned_amount = sum_cents([total_fines, total_ics])
    paid_amount = sum_cents([paid_fines, paid_ics])
    total_contribution = sum_cents([paid_amount, donations_amount])

    return MemberStatsAsOf(
        assigned_amount=assigned_amount,
        paid_amount=paid_amount,
        unpaid_amount=_difference(assigned_amount, paid_amount),
        donations_amount=donations_amount,
        total_contribution=total_contribution,
        total_fines=total_fines,
        total_ics=total_ics,
        paid_fines=paid_fines,
        paid_ics=paid_ics,
        total_paid=total_contribution,
    )


def category_stats(
    ledger: Ledger,
    category_key: str,
    period: Period | None = None,
    now: dt.date | None = None,
    as_of: dt.date | None = None,
) -> CategoryStats:
    """
    Count and total the fines filed under one category.

    Args:
        ledger: Ledger to read
        category_key: Category to scan for (need not exist any more)
        period: Optional monthly/seasonal window
        now: Reference date for the period window
        as_of: Optional cutoff; payments after it count as unpaid

    Returns:
        CategoryStats with count, total and paid amounts
    """
    fines = [
        fine
        for member in ledger.members
        for fine in member.fines
        if fine.category == category_key and is_in_period(fine.date, period, now)
    ]
    if as_of is not None:
        fines = [f for f in fines if is_on_or_before(f.date, as_of)]
        paid = [f for f in fines if is_paid_as_of(f, as_of)]
    else:
        paid = [f for f in fines if f.paid]

    return CategoryStats(
        count=len(fines),
        total_amount=sum_cents(f.amount for f in fines),
        paid_amount=sum_cents(f.amount for f in paid),
    )


def _breakdown(ledger: Ledger, key: str, stats: CategoryStats) -> CategoryBreakdown:
    return CategoryBreakdown(
        key=key,
        name=category_label(ledger, key),
        count=stats.count,
        total_amount=stats.total_amount,
        paid_amount=stats.paid_amount,
        unpaid_amount=_difference(stats.total_amount, stats.paid_amount),
    )


def macro_category_stats(ledger: Ledger, cutoff: dt.date) -> CategoryTree:
    """
    Roll fines assigned up to `cutoff` into a macro/micro category tree.

    Each macro category totals the micro categories whose parent it is;
    payments after the cutoff count as unpaid. Categories appear in the
    order their first fine is found.

    Args:
        ledger: Ledger to read
        cutoff: Last day included

    Returns:
        CategoryTree with the ICS row, macro groups and ungrouped rows
    """
    keys: list[str] = []
    for member in ledger.members:
        for fine in member.fines:
            if fine.category not in keys and is_on_or_before(fine.date, cutoff):
                keys.append(fine.category)

    tree = CategoryTree()
    macros: dict[str, MacroCategoryBreakdown] = {}
    for key in keys:
        row = _breakdown(ledger, key, category_stats(ledger, key, as_of=cutoff))
        category = ledger.categories.get(key)

        if key == ICS_CATEGORY_KEY:
            tree.ics = row
        elif category is not None and category.parent_category:
            parent = category.parent_category
            if parent not in macros:
                macros[parent] = MacroCategoryBreakdown(
                    key=parent, name=category_label(ledger, parent)
                )
            macros[parent].subcategories.append(row)
        else:
            tree.ungrouped.append(row)

    for macro in macros.values():
        rows = macro.subcategories
        macro.count = sum(r.count for r in rows)
        macro.total_amount = sum_cents(r.total_amount for r in rows)
        macro.paid_amount = sum_cents(r.paid_amount for r in rows)
        macro.unpaid_amount = _difference(macro.total_amount, macro.paid_amount)
    tree.macros = list(macros.values())

    return tree


def _totals(
    fines: list[Fine],
    donations: list[Donation],
    cutoff: dt.date | None,
) -> GlobalTotals:
    if cutoff is None:
        paid = [f for f in fines if f.paid]
    else:
        fines = [f for f in fines if is_on_or_before(f.date, cutoff)]
        donations = [d for d in donations if is_on_or_before(d.date, cutoff)]
        paid = [f for f in fines if is_paid_as_of(f, cutoff)]

    total_fines = sum_cents(f.amount for f in fines if not _is_ics(f))
    paid_fines = sum_cents(f.amount for f in paid if not _is_ics(f))
    total_ics = sum_cents(f.amount for f in fines if _is_ics(f))
    paid_ics = sum_cents(f.amount for f in paid if _is_ics(f))
    total_donations = sum_cents(d.amount for d in donations)

    unpaid_fines = _difference(total_fines, paid_fines)
    unpaid_ics = _difference(total_ics, paid_ics)

    return GlobalTotals(
        total_fines=total_fines,
        paid_fines=paid_fines,
        unpaid_fines=unpaid_fines,
        total_ics=total_ics,
        paid_ics=paid_ics,
        unpaid_ics=unpaid_ics,
        total_donations=total_donations,
        total_cash=sum_cents([total_fines, total_ics, total_donations]),
        total_paid_all=sum_cents([paid_fines, paid_ics, total_donations]),
        total_unpaid_all=sum_cents([unpaid_fines, unpaid_ics]),
    )


def global_totals(ledger: Ledger) -> GlobalTotals:
    """Compute the live cash totals across all members and donations."""
    fines = [fine for member in ledger.members for fine in member.fines]
    return _totals(fines, all_donations(ledger), cutoff=None)


def global_totals_as_of(ledger: Ledger, cutoff: dt.date) -> GlobalTotals:
    """Compute the cash totals as they stood at the end of `cutoff`."""
    fines = [fine for member in ledger.members for fine in member.fines]
    return _totals(fines, all_donations(ledger), cutoff=cutoff)


def team_stats(ledger: Ledger) -> TeamStats:
    active = [m for m in ledger.members if m.active]
    return TeamStats(
        players=sum(1 for m in active if m.role == MemberRole.PLAYER),
        staff=sum(1 for m in active if m.role == MemberRole.STAFF),
        members_with_unpaid_fines=sum(
            1 for m in ledger.members if any(not f.paid for f in m.fines)
        ),
    )


def category_label(ledger: Ledger, category_key: str) -> str:
    """Display name of a category, or the raw key if it no longer exists."""
    category = ledger.categories.get(category_key)
    return category.name if category else category_key
