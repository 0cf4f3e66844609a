"""Pluggable ledger storage."""

from predik.config import Settings
from predik.database import Database
from predik.storage.base import LeaderboardWindow, LedgerStore, StoreSession
from predik.storage.memory import MemoryLedgerStore
from predik.storage.sql import SqlLedgerStore


def create_store(settings: Settings) -> LedgerStore:
    """Build the store selected by ``settings.storage_backend``."""
    if settings.storage_backend == "memory":
        return MemoryLedgerStore()
    database = Database.from_settings(settings)
    database.init()
    return SqlLedgerStore(database)


__all__ = [
    "LeaderboardWindow",
    "LedgerStore",
    "MemoryLedgerStore",
    "SqlLedgerStore",
    "StoreSession",
    "create_store",
]
