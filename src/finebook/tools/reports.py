# ABOUTME: Financial report tools for Finebook
# ABOUTME: Global totals, point-in-time totals, rankings, cash reports and activity feed

import datetime as dt
from enum import Enum
from typing import TYPE_CHECKING

from finebook.periods import Period
from finebook.rankings import (
    DEFAULT_LIMIT,
    category_ranking,
    donations_ranking,
    ics_ranking,
    paid_ranking,
    top_contributors,
)
from finebook.reports import (
    LoggingReportSink,
    build_current_report,
    build_monthly_report,
    build_report_as_of,
)
from finebook.stats import FineStatus, global_totals, global_totals_as_of

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastmcp import FastMCP

    from finebook.client import LedgerSession


class RankingKind(str, Enum):
    CONTRIBUTORS = "contributors"
    CATEGORIES = "categories"
    DONATIONS = "donations"
    ICS = "ics"
    PAID = "paid"


def register_report_tools(mcp: "FastMCP", get_session: "Callable") -> None:
    """Register financial report tools with the MCP server."""

    @mcp.tool
    async def get_cash_totals() -> dict:
        """
        Get the live cash totals.

        total_cash is fines + ICS + donations; total_paid_all is what has
        been collected (donations always count as collected);
        total_unpaid_all is what is still owed.
        """
        session: LedgerSession = await get_session()
        return global_totals(session.ledger).model_dump()

    @mcp.tool
    async def get_cash_totals_as_of(as_of_date: str | None = None) -> dict:
        """
        Get the cash totals as they stood at the end of a past date.

        Fines paid after the date count as unpaid.

        Args:
            as_of_date: Date in YYYY-MM-DD format (default: today)
        """
        session: LedgerSession = await get_session()

        if as_of_date is None:
            as_of_date = dt.date.today().isoformat()

        cutoff = dt.date.fromisoformat(as_of_date)
        return {
            "as_of_date": cutoff.isoformat(),
            **global_totals_as_of(session.ledger, cutoff).model_dump(),
        }

    @mcp.tool
    async def get_ranking(
        kind: RankingKind = RankingKind.CONTRIBUTORS,
        period: Period = Period.MONTHLY,
        status: FineStatus = FineStatus.PAID,
        limit: int = DEFAULT_LIMIT,
    ) -> list[dict]:
        """
        Get a ranking for the current period.

        Args:
            kind: contributors, categories, donations, ics or paid
            period: monthly or seasonal
            status: For contributors only; paid ranks by money collected,
                assigned by money levied
            limit: Maximum entries (default 10)

        Returns:
            Entries sorted by amount, highest first. Donation and paid
            rankings include one "External" entry for external donors.
        """
        session: LedgerSession = await get_session()
        ledger = session.ledger

        if kind == RankingKind.CATEGORIES:
            entries = category_ranking(ledger, period, limit)
        elif kind == RankingKind.DONATIONS:
            entries = donations_ranking(ledger, period, limit)
        elif kind == RankingKind.ICS:
            entries = ics_ranking(ledger, period, limit)
        elif kind == RankingKind.PAID:
            entries = paid_ranking(ledger, period, limit)
        else:
            entries = top_contributors(ledger, period, status, limit)

        return [
            {"rank": position, **entry.model_dump()}
            for position, entry in enumerate(entries, start=1)
        ]

    @mcp.tool
    async def get_monthly_report(today: str | None = None) -> dict:
        """
        Build the monthly report: the situation at the end of last month.

        Includes totals, members with outstanding fines, category
        breakdown, and rankings for assigned, paid, ICS and donations.

        Args:
            today: Generation date in YYYY-MM-DD format (default: today)
        """
        session: LedgerSession = await get_session()
        report = build_monthly_report(
            session.ledger, dt.date.fromisoformat(today) if today else None
        )
        LoggingReportSink().render(report)
        return report.model_dump(mode="json")

    @mcp.tool
    async def get_current_report(as_of_date: str | None = None) -> dict:
        """
        Build a cash report with everything up to today, or up to a given date.

        Same contents as the monthly report, including the macro category
        breakdown, without waiting for the month to close.

        Args:
            as_of_date: Cutoff in YYYY-MM-DD format (default: today)
        """
        session: LedgerSession = await get_session()
        if as_of_date:
            report = build_report_as_of(session.ledger, dt.date.fromisoformat(as_of_date))
        else:
            report = build_current_report(session.ledger)
        LoggingReportSink().render(report)
        return report.model_dump(mode="json")

    @mcp.tool
    async def get_recent_activities() -> list[dict]:
        """Get the ten most recent ledger events, newest first."""
        session: LedgerSession = await get_session()
        return [
            activity.model_dump(mode="json") for activity in session.ledger.activities
        ]
