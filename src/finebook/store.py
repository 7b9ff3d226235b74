# ABOUTME: Ledger store for Finebook
# ABOUTME: Loads/saves the ledger with fallbacks and keeps the post-reset recovery snapshot

import datetime as dt
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import pydantic

from finebook.exceptions import (
    BackupExpiredError,
    NoBackupAvailableError,
    PersistenceUnavailableError,
)
from finebook.types import Activity, Category, Donation, FinebookModel, Ledger, Member

logger = logging.getLogger(__name__)

RECOVERY_WINDOW = dt.timedelta(minutes=30)


class LedgerBackend(Protocol):
    """Persistence collaborator: durably reads and writes the ledger JSON."""

    async def read_ledger(self) -> dict: ...

    async def write_ledger(self, data: dict) -> bool: ...


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class SnapshotData(FinebookModel):
    members: list[Member]
    categories: dict[str, Category]
    activities: list[Activity]
    global_donations: list[Donation]


class Snapshot(FinebookModel):
    """A deep copy of the financial state taken before a full reset."""

    data: SnapshotData
    taken_at: dt.datetime
    expires_at: dt.datetime | None = None

    def is_expired(self, now: dt.datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at


class LedgerStore:
    """
    Owns the load/save round-trip and the recovery window.

    The ledger itself is owned by the caller; the store only holds the
    pending recovery snapshot, optionally mirrored to a backup file so it
    survives a restart.
    """

    def __init__(
        self,
        backend: LedgerBackend,
        clock: Callable[[], dt.datetime] = utc_now,
        backup_file: Path | None = None,
    ) -> None:
        self.backend = backend
        self._clock = clock
        self._backup_file = backup_file
        self._snapshot: Snapshot | None = None

    def now(self) -> dt.datetime:
        return self._clock()

    async def load(self) -> Ledger:
        """
        Load the persisted ledger.

        Any failure falls back to an empty ledger holding only the ICS category.
        """
        try:
            data = await self.backend.read_ledger()
            ledger = Ledger.from_json(data)
        except PersistenceUnavailableError as e:
            logger.error(f"Ledger storage unavailable, starting from an empty ledger: {e}")
            return Ledger()
        except pydantic.ValidationError as e:
            logger.error(f"Stored ledger is malformed, starting from an empty ledger: {e}")
            return Ledger()

        logger.info(
            f"Loaded ledger with {len(ledger.members)} members and "
            f"{len(ledger.categories)} categories"
        )
        return ledger

    async def save(self, ledger: Ledger) -> bool:
        """
        Persist the ledger.

        Returns:
            True if durably stored; False means the save only reached a
            fallback (or nothing) and should be retried later, not treated
            as fatal
        """
        try:
            durable = await self.backend.write_ledger(ledger.to_json())
        except PersistenceUnavailableError as e:
            logger.error(f"Failed to persist ledger: {e}")
            return False

        if not durable:
            logger.warning("Ledger saved locally only, durable storage unavailable")
        return durable

    def snapshot_for_deletion(self, ledger: Ledger) -> Snapshot:
        """Deep-copy members, categories, activities and global donations."""
        data = SnapshotData(
            members=[m.model_copy(deep=True) for m in ledger.members],
            categories={k: c.model_copy(deep=True) for k, c in ledger.categories.items()},
            activities=[a.model_copy(deep=True) for a in ledger.activities],
            global_donations=[d.model_copy(deep=True) for d in ledger.global_donations],
        )
        return Snapshot(data=data, taken_at=self.now())

    def begin_recovery_window(
        self,
        snapshot: Snapshot,
        ttl: dt.timedelta = RECOVERY_WINDOW,
    ) -> Snapshot:
        """Keep the snapshot restorable until now + ttl."""
        self._snapshot = snapshot.model_copy(update={"expires_at": self.now() + ttl})
        self._save_backup(self._snapshot)
        logger.info(f"Recovery window open until {self._snapshot.expires_at.isoformat()}")
        return self._snapshot

    def pending_snapshot(self) -> Snapshot | None:
        """
        The snapshot still restorable right now, if any.

        Expired snapshots are evicted as a side effect.
        """
        snapshot = self._snapshot or self._load_backup()
        if snapshot is None:
            return None
        if snapshot.is_expired(self.now()):
            self._discard()
            return None
        self._snapshot = snapshot
        return snapshot

    def restore(self, ledger: Ledger) -> Ledger:
        """
        Put the snapshotted state back into `ledger`, at most once.

        ICS events are not part of the snapshot and are left as they are.

        Raises:
            NoBackupAvailableError: No snapshot, or it was already restored
            BackupExpiredError: The recovery window has closed (snapshot discarded)
        """
        snapshot = self._snapshot or self._load_backup()
        if snapshot is None:
            raise NoBackupAvailableError("No backup available to restore")

        if snapshot.is_expired(self.now()):
            self._discard()
            raise BackupExpiredError("The backup has expired (recovery window closed)")

        data = snapshot.data.model_copy(deep=True)
        ledger.members = data.members
        ledger.categories = data.categories
        ledger.activities = data.activities
        ledger.global_donations = data.global_donations

        self._discard()
        logger.info(f"Restored ledger snapshot taken at {snapshot.taken_at.isoformat()}")
        return ledger

    def clear_financial_state(self, ledger: Ledger) -> None:
        """
        Remove every fine of every member, paid or not, and all global donations.

        Members, their own donation lists and categories are untouched.
        """
        for member in ledger.members:
            member.fines.clear()
        ledger.global_donations.clear()

    def _discard(self) -> None:
        self._snapshot = None
        if self._backup_file and self._backup_file.exists():
            self._backup_file.unlink()
            logger.debug("Removed backup file")

    def _save_backup(self, snapshot: Snapshot) -> None:
        """Mirror the snapshot to disk with restricted permissions."""
        if self._backup_file is None:
            return
        try:
            self._backup_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self._backup_file, "w", encoding="utf-8") as f:
                f.write(snapshot.model_dump_json(by_alias=True))
            self._backup_file.chmod(0o600)
        except OSError as e:
            logger.warning(f"Failed to write backup file, keeping snapshot in memory only: {e}")

    def _load_backup(self) -> Snapshot | None:
        if self._backup_file is None or not self._backup_file.exists():
            return None
        try:
            with open(self._backup_file, encoding="utf-8") as f:
                return Snapshot.model_validate(json.load(f))
        except (json.JSONDecodeError, OSError, pydantic.ValidationError) as e:
            logger.warning(f"Failed to load backup file: {e}")
            return None
