# ABOUTME: Fine, ICS, donation and category tools for Finebook
# ABOUTME: Assign fines, toggle payments, record donations and manage categories

from typing import TYPE_CHECKING

from finebook.commands import (
    AddCategory,
    AddGlobalDonation,
    AssignFine,
    AssignICS,
    DeactivateCategory,
    EditCategory,
    ReactivateCategory,
    ToggleFinePayment,
)
from finebook.periods import Period
from finebook.stats import category_label, category_stats
from finebook.types import CategoryType

if TYPE_CHECKING:
    from collections.abc import Callable

    from fastmcp import FastMCP

    from finebook.client import LedgerSession


def register_fine_tools(mcp: "FastMCP", get_session: "Callable") -> None:
    """Register fine and category tools with the MCP server."""

    @mcp.tool
    async def list_member_fines(member_id: str) -> dict:
        """
        List a member's fines in assignment order.

        The index of each fine is what toggle_fine_payment expects.
        """
        session: LedgerSession = await get_session()
        member = session.ledger.find_member(member_id)
        if member is None:
            return {"error": f"Member {member_id} not found"}

        return {
            "member_id": member.id,
            "name": member.display_name,
            "fines": [
                {
                    "index": index,
                    "category": fine.category,
                    "label": category_label(session.ledger, fine.category),
                    "amount": fine.amount,
                    "date": fine.date.isoformat() if fine.date else None,
                    "paid": fine.paid,
                    "payment_date": fine.payment_date.isoformat() if fine.payment_date else None,
                    "description": fine.description,
                }
                for index, fine in enumerate(member.fines)
            ],
        }

    @mcp.tool
    async def assign_fine(
        category_key: str,
        member_ids: list[str],
        description: str | None = None,
    ) -> dict:
        """
        Assign a fine under a micro category to one or more members.

        The fine amount is the category's current price.
        """
        session: LedgerSession = await get_session()
        return await session.apply(
            AssignFine(category_key=category_key, member_ids=member_ids, description=description)
        )

    @mcp.tool
    async def assign_ics(member_ids: list[str]) -> dict:
        """
        Assign the ICS fee (lost or skipped practice match) to the given members.

        Records one ICS event and one ICS fine per member.
        """
        session: LedgerSession = await get_session()
        return await session.apply(AssignICS(member_ids=member_ids))

    @mcp.tool
    async def toggle_fine_payment(member_id: str, fine_index: int) -> dict:
        """
        Mark a fine as paid, or cancel its payment if it was already paid.

        Args:
            member_id: Member owning the fine
            fine_index: Index from list_member_fines
        """
        session: LedgerSession = await get_session()
        return await session.apply(ToggleFinePayment(member_id=member_id, fine_index=fine_index))

    @mcp.tool
    async def add_donation(
        amount: float,
        member_id: str | None = None,
        donor_name: str | None = None,
    ) -> dict:
        """
        Record a free donation.

        Pass member_id for a donation from a team member, or donor_name
        for an external donor.
        """
        session: LedgerSession = await get_session()
        return await session.apply(
            AddGlobalDonation(amount=amount, member_id=member_id, donor_name=donor_name)
        )

    @mcp.tool
    async def list_categories(include_inactive: bool = False) -> list[dict]:
        """List fine categories with their type, parent and price."""
        session: LedgerSession = await get_session()
        return [
            {
                "key": key,
                "name": category.name,
                "type": category.type.value,
                "parent_category": category.parent_category,
                "amount": category.amount,
                "description": category.description,
                "active": category.active,
                "deletable": category.deletable,
            }
            for key, category in session.ledger.categories.items()
            if include_inactive or category.active
        ]

    @mcp.tool
    async def add_category(
        name: str,
        category_type: CategoryType = CategoryType.MACRO,
        amount: float | None = None,
        parent_category: str | None = None,
    ) -> dict:
        """
        Create a category.

        Micro categories (type "subcategory") need a price and a parent
        macro category; macro categories (type "category") only group them.
        """
        session: LedgerSession = await get_session()
        return await session.apply(
            AddCategory(
                name=name, type=category_type, amount=amount, parent_category=parent_category
            )
        )

    @mcp.tool
    async def edit_category(category_key: str, name: str, amount: float | None = None) -> dict:
        """
        Rename a category and, for priced categories, change the price.

        Fines already assigned keep their original amount.
        """
        session: LedgerSession = await get_session()
        return await session.apply(
            EditCategory(category_key=category_key, name=name, amount=amount)
        )

    @mcp.tool
    async def deactivate_category(category_key: str) -> dict:
        """Deactivate a category. Historical fines keep referencing it. ICS cannot be deactivated."""
        session: LedgerSession = await get_session()
        return await session.apply(DeactivateCategory(category_key=category_key))

    @mcp.tool
    async def reactivate_category(category_key: str) -> dict:
        """Reactivate a previously deactivated category."""
        session: LedgerSession = await get_session()
        return await session.apply(ReactivateCategory(category_key=category_key))

    @mcp.tool
    async def get_category_stats(category_key: str, period: Period | None = None) -> dict:
        """
        Count and total the fines of a category.

        Args:
            category_key: Category to scan
            period: Optional monthly or seasonal window (default: all time)
        """
        session: LedgerSession = await get_session()
        return {
            "category_key": category_key,
            "label": category_label(session.ledger, category_key),
            **category_stats(session.ledger, category_key, period).model_dump(),
        }
