# ABOUTME: Pydantic models for the Finebook ledger
# ABOUTME: Defines Member, Fine, Donation, Category, Activity, Ledger and money helpers

import datetime as dt
from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

ICS_CATEGORY_KEY = "ics"

CENT = Decimal("0.01")


def to_decimal(amount: float | int | Decimal | None) -> Decimal:
    """Convert a stored float amount to Decimal using its shortest repr."""
    if amount is None:
        return Decimal("0.00")
    if isinstance(amount, Decimal):
        return amount
    return Decimal(str(amount))


def round_cents(amount: float | int | Decimal | None) -> float:
    """Round an amount to the cent, half away from zero."""
    return float(to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP))


def sum_cents(amounts: Iterable[float | int | Decimal | None]) -> float:
    """Sum amounts exactly and round the total to the cent."""
    return round_cents(sum((to_decimal(a) for a in amounts), Decimal("0")))


class MemberRole(str, Enum):
    PLAYER = "Giocatore"
    STAFF = "Staff"


class CategoryType(str, Enum):
    MACRO = "category"
    MICRO = "subcategory"


class ActivityType(str, Enum):
    FINE = "fine"
    ICS = "ics"
    PAYMENT = "payment"
    DONATION = "donation"
    MEMBER = "member"
    CATEGORY = "category"


class FinebookModel(BaseModel):
    """Base model mapping snake_case fields onto the camelCase JSON file."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Fine(FinebookModel):
    """A fine assigned to a member under a leaf category."""

    category: str
    amount: float
    date: dt.date | None = None
    paid: bool = False
    payment_date: dt.date | None = Field(
        default=None, description="Missing on a paid fine means paid on assignment"
    )
    description: str | None = None


class Donation(FinebookModel):
    """A voluntary donation, member-attributed or from an external donor."""

    id: str | int
    donor_name: str = ""
    member_id: str | None = None
    amount: float
    date: dt.date | None = None
    note: str | None = None


class Member(FinebookModel):
    """A team member (player or staff)."""

    id: str
    name: str
    surname: str
    nickname: str | None = None
    role: MemberRole = MemberRole.PLAYER
    active: bool = True
    fines: list[Fine] = Field(default_factory=list)
    donations: list[Donation] = Field(default_factory=list)

    @property
    def full_name(self) -> str:
        return f"{self.name} {self.surname}"

    @property
    def display_name(self) -> str:
        return self.nickname or self.full_name


class Category(FinebookModel):
    """A fine category; macro categories group micro (leaf) categories."""

    name: str
    amount: float | None = None
    description: str | None = None
    type: CategoryType = CategoryType.MACRO
    parent_category: str | None = None
    active: bool = True
    deletable: bool = True

    @property
    def is_leaf(self) -> bool:
        """Fines can only reference priced categories (micro ones and ICS)."""
        return self.type == CategoryType.MICRO or self.amount is not None


class ICSEvent(FinebookModel):
    """A group ICS assignment; the charges live on the members' fines."""

    id: str | int
    date: dt.date
    participants: int
    members: list[str] = Field(default_factory=list)


class Activity(FinebookModel):
    """An entry in the recent activity feed."""

    id: str | int
    description: str
    type: ActivityType
    date: dt.datetime
    amount: float | None = None


def default_ics_category() -> Category:
    return Category(
        name="ICS",
        amount=1,
        description="€1 per partitella",
        type=CategoryType.MACRO,
        parent_category=None,
        active=True,
        deletable=False,
    )


def default_categories() -> dict[str, Category]:
    return {ICS_CATEGORY_KEY: default_ics_category()}


class Ledger(FinebookModel):
    """The whole team cash ledger, as persisted in data.json."""

    members: list[Member] = Field(default_factory=list)
    categories: dict[str, Category] = Field(default_factory=default_categories)
    activities: list[Activity] = Field(default_factory=list)
    ics_events: list[ICSEvent] = Field(default_factory=list)
    global_donations: list[Donation] = Field(default_factory=list)
    last_updated: dt.datetime | None = None

    @model_validator(mode="after")
    def _ensure_ics_category(self) -> "Ledger":
        if ICS_CATEGORY_KEY not in self.categories:
            self.categories[ICS_CATEGORY_KEY] = default_ics_category()
        return self

    def find_member(self, member_id: str) -> Member | None:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def to_json(self) -> dict:
        """Serialize to the persisted camelCase JSON shape."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_json(cls, data: dict) -> "Ledger":
        return cls.model_validate(data)
