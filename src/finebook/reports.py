# ABOUTME: Report records built from ledger aggregates
# ABOUTME: Point-in-time cash reports, pre-reset deletion report, and the sink protocol

import datetime as dt
import logging
from typing import Protocol

from pydantic import BaseModel, Field

from finebook.periods import is_on_or_before
from finebook.rankings import (
    RankingEntry,
    category_ranking,
    donations_ranking,
    ics_ranking,
    paid_ranking,
    top_contributors,
)
from finebook.stats import (
    FineStatus,
    CategoryTree,
    GlobalTotals,
    category_label,
    global_totals,
    global_totals_as_of,
    is_paid_as_of,
    macro_category_stats,
)
from finebook.types import Ledger, sum_cents

logger = logging.getLogger(__name__)

# Reports list every category, not just a top ten
CATEGORY_LIMIT = 100


class UnpaidFine(BaseModel):
    category: str
    label: str
    amount: float
    date: dt.date | None = None
    description: str | None = None


class UnpaidMember(BaseModel):
    member_id: str
    name: str
    unpaid_amount: float
    fines: list[UnpaidFine] = Field(default_factory=list)


class CashReport(BaseModel):
    """The team's cash situation at the end of a cutoff date."""

    generated_on: dt.date
    as_of: dt.date
    totals: GlobalTotals
    unpaid_members: list[UnpaidMember] = Field(default_factory=list)
    category_tree: CategoryTree = Field(default_factory=CategoryTree)
    categories: list[RankingEntry] = Field(default_factory=list)
    assigned_ranking: list[RankingEntry] = Field(default_factory=list)
    paid_ranking: list[RankingEntry] = Field(default_factory=list)
    ics_ranking: list[RankingEntry] = Field(default_factory=list)
    donations_ranking: list[RankingEntry] = Field(default_factory=list)


class DeletionReport(BaseModel):
    """What a full reset is about to remove."""

    generated_on: dt.date
    totals: GlobalTotals
    fines_count: int
    fines_amount: float
    donations_count: int
    donations_amount: float
    assigned_ranking: list[RankingEntry] = Field(default_factory=list)
    paid_ranking: list[RankingEntry] = Field(default_factory=list)


class ReportSink(Protocol):
    """Receives report records to render into a document."""

    def render(self, report: CashReport | DeletionReport) -> None: ...


class LoggingReportSink:
    """Sink that only logs a one-line summary of each report."""

    def render(self, report: CashReport | DeletionReport) -> None:
        if isinstance(report, CashReport):
            logger.info(
                f"Cash report as of {report.as_of.isoformat()}: "
                f"cash {report.totals.total_cash:.2f}, "
                f"collected {report.totals.total_paid_all:.2f}, "
                f"outstanding {report.totals.total_unpaid_all:.2f}"
            )
        else:
            logger.info(
                f"Deletion report: {report.fines_count} fines ({report.fines_amount:.2f}) "
                f"and {report.donations_count} donations ({report.donations_amount:.2f})"
            )


def previous_month_end(today: dt.date) -> dt.date:
    """Last calendar day of the month before `today`."""
    return today.replace(day=1) - dt.timedelta(days=1)


def unpaid_members_as_of(ledger: Ledger, cutoff: dt.date) -> list[UnpaidMember]:
    """Members (active or not) who still owed money at the end of `cutoff`."""
    result = []
    for member in ledger.members:
        fines = [
            UnpaidFine(
                category=fine.category,
                label=category_label(ledger, fine.category),
                amount=fine.amount,
                date=fine.date,
                description=fine.description,
            )
            for fine in member.fines
            if is_on_or_before(fine.date, cutoff) and not is_paid_as_of(fine, cutoff)
        ]
        if fines:
            result.append(
                UnpaidMember(
                    member_id=member.id,
                    name=member.display_name,
                    unpaid_amount=sum_cents(f.amount for f in fines),
                    fines=fines,
                )
            )
    return result


def build_report_as_of(
    ledger: Ledger,
    cutoff: dt.date,
    today: dt.date | None = None,
) -> CashReport:
    """
    Build a cash report for the situation at the end of `cutoff`.

    Args:
        ledger: Ledger to report on
        cutoff: Last day included; payments after it count as unpaid
        today: Generation date (default: date.today())

    Returns:
        CashReport with as-of totals, outstanding fines, the category
        tree and rankings
    """
    return CashReport(
        generated_on=today or dt.date.today(),
        as_of=cutoff,
        totals=global_totals_as_of(ledger, cutoff),
        unpaid_members=unpaid_members_as_of(ledger, cutoff),
        category_tree=macro_category_stats(ledger, cutoff),
        categories=category_ranking(ledger, None, limit=CATEGORY_LIMIT, as_of=cutoff),
        assigned_ranking=top_contributors(
            ledger, None, FineStatus.ASSIGNED, as_of=cutoff, include_inactive=True
        ),
        paid_ranking=paid_ranking(ledger, None, as_of=cutoff, include_inactive=True),
        ics_ranking=ics_ranking(ledger, None, as_of=cutoff, include_inactive=True),
        donations_ranking=donations_ranking(ledger, None, as_of=cutoff, include_inactive=True),
    )


def build_monthly_report(ledger: Ledger, today: dt.date | None = None) -> CashReport:
    """Report the situation at the end of last month."""
    today = today or dt.date.today()
    return build_report_as_of(ledger, previous_month_end(today), today)


def build_current_report(ledger: Ledger, today: dt.date | None = None) -> CashReport:
    """Report everything up to and including today."""
    today = today or dt.date.today()
    return build_report_as_of(ledger, today, today)


def build_deletion_report(ledger: Ledger, today: dt.date | None = None) -> DeletionReport:
    """Summarize the live ledger right before a full reset."""
    fines = [fine for member in ledger.members for fine in member.fines]

    return DeletionReport(
        generated_on=today or dt.date.today(),
        totals=global_totals(ledger),
        fines_count=len(fines),
        fines_amount=sum_cents(f.amount for f in fines),
        donations_count=len(ledger.global_donations),
        donations_amount=sum_cents(d.amount for d in ledger.global_donations),
        assigned_ranking=top_contributors(
            ledger, None, FineStatus.ASSIGNED, include_inactive=True
        ),
        paid_ranking=paid_ranking(ledger, None, include_inactive=True),
    )
