# ABOUTME: Write operations on the Finebook ledger
# ABOUTME: Tagged command models, their handlers, and the cash reset/restore flow

import datetime as dt
import logging
import math
import re
from collections.abc import Callable
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from finebook.activity import new_id, record_activity
from finebook.exceptions import (
    CategoryNotFoundError,
    FinebookError,
    MemberNotFoundError,
    RecoveryError,
    ValidationError,
)
from finebook.reports import ReportSink, build_deletion_report
from finebook.stats import category_label
from finebook.store import LedgerStore
from finebook.types import (
    ICS_CATEGORY_KEY,
    ActivityType,
    Category,
    CategoryType,
    Donation,
    Fine,
    ICSEvent,
    Ledger,
    Member,
    MemberRole,
    round_cents,
)

logger = logging.getLogger(__name__)

ICS_FINE_DESCRIPTION = "ICS - practice match lost/skipped"
DONATION_NOTE = "Offerta libera"

# Upper bound for a single donation or category price
MAX_AMOUNT = 1_000_000


class AddMember(BaseModel):
    kind: Literal["add_member"] = "add_member"
    name: str
    surname: str
    nickname: str | None = None
    role: MemberRole = MemberRole.PLAYER


class DeactivateMember(BaseModel):
    kind: Literal["deactivate_member"] = "deactivate_member"
    member_id: str


class ReactivateMember(BaseModel):
    kind: Literal["reactivate_member"] = "reactivate_member"
    member_id: str


class AssignFine(BaseModel):
    kind: Literal["assign_fine"] = "assign_fine"
    category_key: str
    member_ids: list[str]
    description: str | None = None


class AssignICS(BaseModel):
    kind: Literal["assign_ics"] = "assign_ics"
    member_ids: list[str]


class AddGlobalDonation(BaseModel):
    """A donation from a member (member_id) or an external donor (donor_name)."""

    kind: Literal["add_global_donation"] = "add_global_donation"
    amount: float
    member_id: str | None = None
    donor_name: str | None = None


class ToggleFinePayment(BaseModel):
    kind: Literal["toggle_fine_payment"] = "toggle_fine_payment"
    member_id: str
    fine_index: int


class AddCategory(BaseModel):
    kind: Literal["add_category"] = "add_category"
    name: str
    type: CategoryType = CategoryType.MACRO
    amount: float | None = None
    parent_category: str | None = None


class EditCategory(BaseModel):
    kind: Literal["edit_category"] = "edit_category"
    category_key: str
    name: str
    amount: float | None = None


class DeactivateCategory(BaseModel):
    kind: Literal["deactivate_category"] = "deactivate_category"
    category_key: str


class ReactivateCategory(BaseModel):
    kind: Literal["reactivate_category"] = "reactivate_category"
    category_key: str


Command = Annotated[
    AddMember
    | DeactivateMember
    | ReactivateMember
    | AssignFine
    | AssignICS
    | AddGlobalDonation
    | ToggleFinePayment
    | AddCategory
    | EditCategory
    | DeactivateCategory
    | ReactivateCategory,
    Field(discriminator="kind"),
]


class CommandResult(BaseModel):
    success: bool
    message: str = ""
    error: str | None = None


Handler = Callable[[Ledger, BaseModel, dt.datetime], str]

_HANDLERS: dict[type[BaseModel], Handler] = {}


def _handles(command_type: type[BaseModel]) -> Callable[[Handler], Handler]:
    def register(handler: Handler) -> Handler:
        _HANDLERS[command_type] = handler
        return handler

    return register


def dispatch(ledger: Ledger, command: Command, now: dt.datetime | None = None) -> CommandResult:
    """
    Apply a command to the ledger.

    Handlers validate everything before mutating, so a failed command
    leaves the ledger untouched.

    Args:
        ledger: Ledger to mutate in place
        command: One of the Command models
        now: Timestamp for dates and activities (default: now, UTC)

    Returns:
        CommandResult; domain errors are reported, not raised
    """
    handler = _HANDLERS[type(command)]
    now = now or dt.datetime.now(dt.timezone.utc)

    try:
        message = handler(ledger, command, now)
    except FinebookError as e:
        logger.info(f"Command {command.kind} rejected: {e}")
        return CommandResult(success=False, error=str(e))

    logger.debug(f"Command {command.kind} applied: {message}")
    return CommandResult(success=True, message=message)


def format_amount(amount: float | None) -> str:
    return f"€{amount or 0:g}"


def _get_member(ledger: Ledger, member_id: str) -> Member:
    member = ledger.find_member(member_id)
    if member is None:
        raise MemberNotFoundError(f"Member {member_id} not found")
    return member


def _get_members(ledger: Ledger, member_ids: list[str]) -> list[Member]:
    if not member_ids:
        raise ValidationError("Select at least one member")
    return [_get_member(ledger, member_id) for member_id in member_ids]


def _get_category(ledger: Ledger, key: str) -> Category:
    category = ledger.categories.get(key)
    if category is None:
        raise CategoryNotFoundError(f"Category {key} not found")
    return category


def _check_unique_name(ledger: Ledger, name: str, surname: str, exclude_id: str | None = None) -> None:
    for member in ledger.members:
        if (
            member.active
            and member.id != exclude_id
            and member.name.lower() == name.lower()
            and member.surname.lower() == surname.lower()
        ):
            raise ValidationError(f"Member {name} {surname} already exists")


def _is_valid_amount(amount: float | None) -> bool:
    """Finite, non-negative and within MAX_AMOUNT."""
    return amount is not None and math.isfinite(amount) and 0 <= amount <= MAX_AMOUNT


def category_key_for(name: str) -> str:
    """Key derived from a category name: lowercased, whitespace runs as underscores."""
    return re.sub(r"\s+", "_", name.strip().lower())


@_handles(AddMember)
def _add_member(ledger: Ledger, command: AddMember, now: dt.datetime) -> str:
    name = command.name.strip()
    surname = command.surname.strip()
    if not name or not surname:
        raise ValidationError("Name and surname are required")
    _check_unique_name(ledger, name, surname)

    member = Member(
        id=new_id(),
        name=name,
        surname=surname,
        nickname=(command.nickname or "").strip() or None,
        role=command.role,
    )
    ledger.members.append(member)
    record_activity(ledger, f"Member added: {member.full_name}", ActivityType.MEMBER, now)
    return f"{member.full_name} added"


@_handles(DeactivateMember)
def _deactivate_member(ledger: Ledger, command: DeactivateMember, now: dt.datetime) -> str:
    member = _get_member(ledger, command.member_id)
    member.active = False
    record_activity(ledger, f"Member deactivated: {member.full_name}", ActivityType.MEMBER, now)
    return f"{member.full_name} deactivated"


@_handles(ReactivateMember)
def _reactivate_member(ledger: Ledger, command: ReactivateMember, now: dt.datetime) -> str:
    member = _get_member(ledger, command.member_id)
    _check_unique_name(ledger, member.name, member.surname, exclude_id=member.id)
    member.active = True
    record_activity(ledger, f"Member reactivated: {member.full_name}", ActivityType.MEMBER, now)
    return f"{member.full_name} reactivated"


@_handles(AssignFine)
def _assign_fine(ledger: Ledger, command: AssignFine, now: dt.datetime) -> str:
    category = _get_category(ledger, command.category_key)
    if command.category_key == ICS_CATEGORY_KEY:
        raise ValidationError("ICS is assigned through assign_ics")
    if not category.is_leaf or category.amount is None:
        raise ValidationError(f"{category.name} is a macro category, select a micro category")
    if not category.active:
        raise ValidationError(f"Category {category.name} is inactive")
    members = _get_members(ledger, command.member_ids)

    description = (command.description or "").strip() or None
    note = f": {description}" if description else ""
    for member in members:
        member.fines.append(
            Fine(
                category=command.category_key,
                amount=category.amount,
                date=now.date(),
                paid=False,
                description=description,
            )
        )
        record_activity(
            ledger,
            f"Fine assigned: {member.full_name} - {category.name}{note}",
            ActivityType.FINE,
            now,
            category.amount,
        )

    return f"Fine of {format_amount(category.amount)} assigned to {len(members)} members"


@_handles(AssignICS)
def _assign_ics(ledger: Ledger, command: AssignICS, now: dt.datetime) -> str:
    members = _get_members(ledger, command.member_ids)
    amount = ledger.categories[ICS_CATEGORY_KEY].amount or 0

    ledger.ics_events.insert(
        0,
        ICSEvent(
            id=new_id(),
            date=now.date(),
            participants=len(members),
            members=[m.full_name for m in members],
        ),
    )
    for member in members:
        member.fines.append(
            Fine(
                category=ICS_CATEGORY_KEY,
                amount=amount,
                date=now.date(),
                paid=False,
                description=ICS_FINE_DESCRIPTION,
            )
        )
        record_activity(ledger, f"ICS assigned: {member.full_name}", ActivityType.ICS, now, amount)

    return f"ICS of {format_amount(amount)} assigned to {len(members)} members"


@_handles(AddGlobalDonation)
def _add_global_donation(ledger: Ledger, command: AddGlobalDonation, now: dt.datetime) -> str:
    if not _is_valid_amount(command.amount) or round_cents(command.amount) <= 0:
        raise ValidationError("Enter a valid amount")
    amount = round_cents(command.amount)

    if command.member_id:
        donor_name = _get_member(ledger, command.member_id).display_name
    else:
        donor_name = (command.donor_name or "").strip()
        if not donor_name:
            raise ValidationError("Enter the donor name")

    ledger.global_donations.append(
        Donation(
            id=new_id(),
            donor_name=donor_name,
            member_id=command.member_id or None,
            amount=amount,
            date=now.date(),
            note=DONATION_NOTE,
        )
    )
    record_activity(
        ledger, f"Donation received from {donor_name}", ActivityType.DONATION, now, amount
    )
    return f"Donation of {format_amount(amount)} from {donor_name} added"


@_handles(ToggleFinePayment)
def _toggle_fine_payment(ledger: Ledger, command: ToggleFinePayment, now: dt.datetime) -> str:
    member = _get_member(ledger, command.member_id)
    if not 0 <= command.fine_index < len(member.fines):
        raise ValidationError(f"{member.full_name} has no fine at index {command.fine_index}")

    fine = member.fines[command.fine_index]
    fine.paid = not fine.paid
    fine.payment_date = now.date() if fine.paid else None

    action = "Payment" if fine.paid else "Payment cancelled"
    label = category_label(ledger, fine.category)
    record_activity(
        ledger,
        f"{member.full_name} - {action} fine {label}",
        ActivityType.PAYMENT if fine.paid else ActivityType.FINE,
        now,
        fine.amount,
    )
    return f"{action} of {format_amount(fine.amount)} for {member.full_name}"


@_handles(AddCategory)
def _add_category(ledger: Ledger, command: AddCategory, now: dt.datetime) -> str:
    name = command.name.strip()
    if not name:
        raise ValidationError("Enter a valid name")
    key = category_key_for(name)
    if key in ledger.categories:
        raise ValidationError(f"Category {name} already exists")

    if command.type == CategoryType.MICRO:
        if not _is_valid_amount(command.amount):
            raise ValidationError("Enter a valid price")
        if not command.parent_category:
            raise ValidationError("Select a parent macro category")
        parent = _get_category(ledger, command.parent_category)
        if parent.type != CategoryType.MACRO or parent.is_leaf:
            raise ValidationError(f"{parent.name} is not a macro category")
        category = Category(
            name=name,
            amount=round_cents(command.amount),
            description=f"{format_amount(command.amount)} per {name.lower()}",
            type=CategoryType.MICRO,
            parent_category=command.parent_category,
        )
        detail = f" ({format_amount(category.amount)}) under {parent.name}"
    else:
        category = Category(name=name, type=CategoryType.MACRO)
        detail = ""

    ledger.categories[key] = category
    record_activity(ledger, f'Category "{name}" created{detail}', ActivityType.CATEGORY, now)
    return f"Category {name} added"


@_handles(EditCategory)
def _edit_category(ledger: Ledger, command: EditCategory, now: dt.datetime) -> str:
    category = _get_category(ledger, command.category_key)
    name = command.name.strip()
    if not name:
        raise ValidationError("Enter a valid name")
    if command.amount is not None and not _is_valid_amount(command.amount):
        raise ValidationError("Enter a valid price")

    update: dict = {"name": name}
    detail = ""
    if category.is_leaf:
        amount = category.amount if command.amount is None else round_cents(command.amount)
        unit = "partitella" if command.category_key == ICS_CATEGORY_KEY else name.lower()
        update["amount"] = amount
        update["description"] = f"{format_amount(amount)} per {unit}"
        detail = f" ({format_amount(amount)})"

    ledger.categories[command.category_key] = category.model_copy(update=update)
    record_activity(ledger, f'Category "{name}" edited{detail}', ActivityType.CATEGORY, now)
    return f"Category {name} updated"


@_handles(DeactivateCategory)
def _deactivate_category(ledger: Ledger, command: DeactivateCategory, now: dt.datetime) -> str:
    category = _get_category(ledger, command.category_key)
    if command.category_key == ICS_CATEGORY_KEY or not category.deletable:
        raise ValidationError(f"Category {category.name} cannot be deleted")

    category.active = False
    record_activity(
        ledger, f'Category "{category.name}" deactivated', ActivityType.CATEGORY, now
    )
    return f"Category {category.name} deactivated"


@_handles(ReactivateCategory)
def _reactivate_category(ledger: Ledger, command: ReactivateCategory, now: dt.datetime) -> str:
    category = _get_category(ledger, command.category_key)
    category.active = True
    record_activity(
        ledger, f'Category "{category.name}" reactivated', ActivityType.CATEGORY, now
    )
    return f"Category {category.name} reactivated"


def reset_cash(
    ledger: Ledger,
    store: LedgerStore,
    sink: ReportSink | None = None,
    now: dt.datetime | None = None,
) -> CommandResult:
    """
    Wipe every fine and global donation, keeping the prior state restorable.

    A deletion report is pushed to the sink first. Note that this removes
    all fines, paid or not, even though the operation is presented as
    deleting "assigned and paid" fines.

    Args:
        ledger: Ledger to clear in place
        store: Store that keeps the recovery snapshot
        sink: Optional report sink for the pre-reset summary
        now: Timestamp for the activity entry

    Returns:
        CommandResult summarizing what was removed
    """
    now = now or dt.datetime.now(dt.timezone.utc)

    report = build_deletion_report(ledger, now.date())
    if sink is not None:
        sink.render(report)

    snapshot = store.snapshot_for_deletion(ledger)
    store.clear_financial_state(ledger)
    snapshot = store.begin_recovery_window(snapshot)

    message = (
        f"Cash reset: {report.fines_count} fines ({format_amount(report.fines_amount)}) + "
        f"{report.donations_count} donations ({format_amount(report.donations_amount)})"
    )
    record_activity(ledger, message, ActivityType.FINE, now)
    logger.info(f"{message}, restorable until {snapshot.expires_at.isoformat()}")
    return CommandResult(success=True, message=message)


def restore_cash(
    ledger: Ledger,
    store: LedgerStore,
    now: dt.datetime | None = None,
) -> CommandResult:
    """Undo the last cash reset while its recovery window is open."""
    try:
        store.restore(ledger)
    except RecoveryError as e:
        logger.info(f"Restore rejected: {e}")
        return CommandResult(success=False, error=str(e))

    record_activity(ledger, "Deleted fines and donations restored", ActivityType.FINE, now)
    return CommandResult(success=True, message="Fines and donations restored")
