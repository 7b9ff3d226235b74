# ABOUTME: Member roster tools for Finebook
# ABOUTME: Add, deactivate and reactivate members and query their stats

import datetime as dt
from typing import TYPE_CHECKING

from finebook.commands import AddMember, DeactivateMember, ReactivateMember
from finebook.periods import Period
from finebook.stats import FineStatus, member_stats, member_stats_as_of, team_stats
from finebook.types import MemberRole

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastmcp import FastMCP

    from finebook.client import LedgerSession


def register_member_tools(mcp: "FastMCP", get_session: "Callable") -> None:
    """Register member roster tools with the MCP server."""

    @mcp.tool
    async def list_members(include_inactive: bool = False) -> list[dict]:
        """
        List team members.

        Args:
            include_inactive: Also list deactivated members

        Returns:
            Members with id, display name, role, active flag and fine count
        """
        session: LedgerSession = await get_session()
        return [
            {
                "id": m.id,
                "name": m.display_name,
                "full_name": m.full_name,
                "role": m.role.value,
                "active": m.active,
                "fines": len(m.fines),
                "unpaid_fines": sum(1 for f in m.fines if not f.paid),
            }
            for m in session.ledger.members
            if include_inactive or m.active
        ]

    @mcp.tool
    async def add_member(
        name: str,
        surname: str,
        nickname: str | None = None,
        role: MemberRole = MemberRole.PLAYER,
    ) -> dict:
        """
        Register a new team member.

        Name and surname are required and must not match an active member.
        """
        session: LedgerSession = await get_session()
        return await session.apply(
            AddMember(name=name, surname=surname, nickname=nickname, role=role)
        )

    @mcp.tool
    async def deactivate_member(member_id: str) -> dict:
        """
        Deactivate a member. Their fines and donations stay in the ledger.
        """
        session: LedgerSession = await get_session()
        return await session.apply(DeactivateMember(member_id=member_id))

    @mcp.tool
    async def reactivate_member(member_id: str) -> dict:
        """Reactivate a previously deactivated member."""
        session: LedgerSession = await get_session()
        return await session.apply(ReactivateMember(member_id=member_id))

    @mcp.tool
    async def get_member_stats(
        member_id: str,
        period: Period = Period.MONTHLY,
        status: FineStatus = FineStatus.PAID,
    ) -> dict:
        """
        Get a member's fine, ICS and donation totals for the current period.

        Args:
            member_id: Member to summarize
            period: monthly (this calendar month) or seasonal (since August 1)
            status: paid (contribution = collected) or assigned (contribution = levied)

        Returns:
            Totals rounded to the cent
        """
        session: LedgerSession = await get_session()
        return member_stats(session.ledger, member_id, period, status).model_dump()

    @mcp.tool
    async def get_member_stats_as_of(member_id: str, cutoff: str) -> dict:
        """
        Get a member's totals as they stood at the end of a past date.

        Args:
            member_id: Member to summarize
            cutoff: Date in YYYY-MM-DD format

        Returns:
            Assigned, paid, unpaid and donated amounts at the cutoff
        """
        session: LedgerSession = await get_session()
        cutoff_date = dt.date.fromisoformat(cutoff)
        return {
            "cutoff": cutoff_date.isoformat(),
            **member_stats_as_of(session.ledger, member_id, cutoff_date).model_dump(),
        }

    @mcp.tool
    async def get_team_stats() -> dict:
        """Count active players and staff, and members with unpaid fines."""
        session: LedgerSession = await get_session()
        return team_stats(session.ledger).model_dump()
