# ABOUTME: MCP server entry point for Finebook
# ABOUTME: Configures FastMCP and registers the team cash ledger tools

import logging

from fastmcp import FastMCP

from finebook.client import get_session
from finebook.tools.fines import register_fine_tools
from finebook.tools.maintenance import register_maintenance_tools
from finebook.tools.members import register_member_tools
from finebook.tools.reports import register_report_tools

logger = logging.getLogger(__name__)


def create_server() -> FastMCP:
    """
    Create and configure the Finebook MCP server.

    Returns:
        Configured FastMCP server instance
    """
    mcp = FastMCP(
        name="finebook",
        instructions="""
Finebook keeps a sports team's internal cash ledger ("la cassa"): members
are fined under categories, pay their fines, and make free donations.
You can:

- Manage the roster (add, deactivate, reactivate members)
- Assign fines under micro categories and ICS fees for practice matches
- Mark fines paid or cancel a payment (by index from list_member_fines)
- Record donations from members or external donors
- Manage the two-level category tree (macro categories group priced micro ones)
- Get live totals, totals as of a past date, per-member and per-category stats
- Get rankings (contributors, categories, donations, ICS, paid) for the
  current month or season (seasons run August 1 to July 31)
- Build the monthly report (situation at the end of last month) or a
  current report (everything up to today or a chosen date)

Money rules:
- Donations always count as collected; they are never "unpaid"
- Assigned amounts exclude donations
- A fine paid after a report's cutoff date counts as unpaid in that report

reset_cash_ledger wipes ALL fines and global donations. It can be undone
with restore_cash_ledger within 30 minutes, once.
""",
    )

    # Register all tools with access to the session factory
    register_member_tools(mcp, get_session)
    register_fine_tools(mcp, get_session)
    register_report_tools(mcp, get_session)
    register_maintenance_tools(mcp, get_session)

    return mcp


def main() -> None:
    """Run the MCP server."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    server = create_server()
    server.run()


if __name__ == "__main__":
    main()
