# ABOUTME: Cash reset and restore tools for Finebook
# ABOUTME: Wipe the ledger with a 30-minute recovery window, restore it, inspect storage

import math
from typing import TYPE_CHECKING

from finebook.commands import reset_cash, restore_cash
from finebook.reports import LoggingReportSink

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastmcp import FastMCP

    from finebook.client import LedgerSession


def register_maintenance_tools(mcp: "FastMCP", get_session: "Callable") -> None:
    """Register reset/restore tools with the MCP server."""

    @mcp.tool
    async def reset_cash_ledger(confirm: bool = False) -> dict:
        """
        Delete ALL fines (paid and unpaid) and all global donations.

        Members and categories are kept. The previous state can be restored
        with restore_cash_ledger within 30 minutes, once.

        Args:
            confirm: Must be true to proceed
        """
        if not confirm:
            return {
                "success": False,
                "error": "Pass confirm=true to wipe every fine and donation",
            }

        session: LedgerSession = await get_session()
        result = reset_cash(session.ledger, session.store, LoggingReportSink())
        saved = await session.commit()
        return {**result.model_dump(), "saved_durably": saved}

    @mcp.tool
    async def restore_cash_ledger() -> dict:
        """Restore the fines and donations removed by the last reset, if still within 30 minutes."""
        session: LedgerSession = await get_session()
        result = restore_cash(session.ledger, session.store)
        if not result.success:
            return result.model_dump()

        saved = await session.commit()
        return {**result.model_dump(), "saved_durably": saved}

    @mcp.tool
    async def get_recovery_status() -> dict:
        """Check whether a reset can still be undone, and for how many minutes."""
        session: LedgerSession = await get_session()
        store = session.store
        snapshot = store.pending_snapshot()
        if snapshot is None or snapshot.expires_at is None:
            return {"restorable": False}

        remaining = (snapshot.expires_at - store.now()).total_seconds()
        return {
            "restorable": True,
            "expires_at": snapshot.expires_at.isoformat(),
            "minutes_left": max(math.ceil(remaining / 60), 0),
        }

    @mcp.tool
    async def get_storage_info() -> dict:
        """Describe where the ledger is persisted."""
        session: LedgerSession = await get_session()
        info = getattr(session.store.backend, "info", None)
        return info() if info else {}
