"""
Storage Services Package

Provides the abstract ledger storage interface and the SQLite implementation.
"""

from tijarati.services.storage.interface import (
    LedgerStorageInterface,
    NotFoundError,
    StoreConnectionError,
    StoreError,
)
from tijarati.services.storage.migrations import (
    LATEST_VERSION,
    MIGRATIONS,
    Migration,
    apply_migrations,
)
from tijarati.services.storage.sqlite_store import SQLiteLedgerStore

__all__ = [
    # Interface
    "LedgerStorageInterface",
    # Exceptions
    "NotFoundError",
    "StoreConnectionError",
    "StoreError",
    # Migrations
    "LATEST_VERSION",
    "MIGRATIONS",
    "Migration",
    "apply_migrations",
    # SQLite implementation
    "SQLiteLedgerStore",
]
