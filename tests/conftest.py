# ABOUTME: Pytest fixtures for Finebook tests
# ABOUTME: Provides sample ledgers, an in-memory backend and a controllable clock

import datetime as dt

import pytest

from finebook.store import LedgerStore
from finebook.types import (
    Category,
    CategoryType,
    Donation,
    Fine,
    Ledger,
    Member,
    MemberRole,
    default_categories,
)


class MemoryBackend:
    """In-memory persistence collaborator."""

    def __init__(self, data: dict | None = None, durable: bool = True) -> None:
        self.data = data
        self.durable = durable
        self.writes: list[dict] = []
        self.read_error: Exception | None = None
        self.write_error: Exception | None = None

    async def read_ledger(self) -> dict:
        if self.read_error:
            raise self.read_error
        return self.data if self.data is not None else Ledger().to_json()

    async def write_ledger(self, data: dict) -> bool:
        if self.write_error:
            raise self.write_error
        self.writes.append(data)
        self.data = data
        return self.durable


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: dt.datetime) -> None:
        self.current = start

    def __call__(self) -> dt.datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += dt.timedelta(**kwargs)


def make_member(member_id: str, name: str, surname: str, **kwargs) -> Member:
    return Member(id=member_id, name=name, surname=surname, **kwargs)


@pytest.fixture
def categories() -> dict[str, Category]:
    """ICS plus a 'Ritardi' macro category with two priced micro categories."""
    cats = default_categories()
    cats["ritardi"] = Category(name="Ritardi", type=CategoryType.MACRO)
    cats["multa"] = Category(
        name="Multa",
        amount=10,
        description="€10 per multa",
        type=CategoryType.MICRO,
        parent_category="ritardi",
    )
    cats["ritardo_allenamento"] = Category(
        name="Ritardo allenamento",
        amount=2.5,
        description="€2.5 per ritardo allenamento",
        type=CategoryType.MICRO,
        parent_category="ritardi",
    )
    return cats


@pytest.fixture
def ledger(categories) -> Ledger:
    """Two active players and one inactive staff member with some history."""
    mario = make_member(
        "m1",
        "Mario",
        "Rossi",
        nickname="Super Mario",
        fines=[
            Fine(category="multa", amount=10, date=dt.date(2025, 9, 3), paid=False),
            Fine(
                category="ics",
                amount=1,
                date=dt.date(2025, 9, 10),
                paid=True,
                payment_date=dt.date(2025, 9, 12),
            ),
        ],
    )
    luigi = make_member(
        "m2",
        "Luigi",
        "Verdi",
        fines=[
            Fine(
                category="ritardo_allenamento",
                amount=2.5,
                date=dt.date(2025, 9, 5),
                paid=True,
                payment_date=dt.date(2025, 10, 2),
            ),
        ],
    )
    anna = make_member(
        "m3",
        "Anna",
        "Bianchi",
        role=MemberRole.STAFF,
        active=False,
        fines=[Fine(category="multa", amount=10, date=dt.date(2025, 9, 1), paid=True)],
    )
    return Ledger(
        members=[mario, luigi, anna],
        categories=categories,
        global_donations=[
            Donation(id="d1", donor_name="Super Mario", member_id="m1", amount=5, date=dt.date(2025, 9, 20)),
            Donation(id="d2", donor_name="Bar Sport", member_id=None, amount=20, date=dt.date(2025, 9, 21)),
        ],
    )


@pytest.fixture
def backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(dt.datetime(2025, 9, 30, 12, 0, tzinfo=dt.timezone.utc))


@pytest.fixture
def store(backend, clock) -> LedgerStore:
    return LedgerStore(backend, clock=clock)
