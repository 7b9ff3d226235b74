# ABOUTME: Ledger session management for Finebook tools
# ABOUTME: Loads the ledger once per process and writes it through after every mutation

import asyncio
import logging

from finebook.commands import Command, dispatch
from finebook.storage import LedgerStorage, StorageSettings
from finebook.store import LedgerStore
from finebook.types import Ledger

logger = logging.getLogger(__name__)

# Module-level session cache with lock for concurrent tool calls
_session: "LedgerSession | None" = None
_session_lock = asyncio.Lock()


class LedgerSession:
    """The loaded ledger together with the store that persists it."""

    def __init__(self, store: LedgerStore, ledger: Ledger) -> None:
        self.store = store
        self.ledger = ledger

    async def commit(self) -> bool:
        """Write the ledger through to storage; returns whether it is durably saved."""
        return await self.store.save(self.ledger)

    async def apply(self, command: Command) -> dict:
        """
        Dispatch a command and persist the ledger if it succeeded.

        Returns:
            The command result plus a saved_durably flag
        """
        result = dispatch(self.ledger, command)
        if not result.success:
            return result.model_dump()
        saved = await self.commit()
        return {**result.model_dump(), "saved_durably": saved}


async def get_session() -> LedgerSession:
    """
    Get or create the ledger session.

    Loads the ledger from storage on first call and returns the cached
    session on subsequent calls.

    Returns:
        LedgerSession shared by all tools
    """
    global _session

    async with _session_lock:
        if _session is None:
            logger.info("Loading ledger session")
            settings = StorageSettings.from_env()
            store = LedgerStore(LedgerStorage(settings), backup_file=settings.backup_file)
            _session = LedgerSession(store, await store.load())
        return _session


async def invalidate_session() -> None:
    """Drop the cached session so the next call reloads from storage."""
    global _session

    async with _session_lock:
        if _session:
            backend = _session.store.backend
            if isinstance(backend, LedgerStorage):
                await backend.close()
            _session = None
        logger.info("Invalidated ledger session")
