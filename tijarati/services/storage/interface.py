"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for ledger storage.
This allows us to:
1. Keep the dispatcher and import engine independent of SQLite
2. Use an in-memory database for testing
3. Swap the on-device database without touching business logic

The interface is intentionally small: full-record upserts, deletes, listing,
and two bulk operations that must be atomic.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from tijarati.errors import TijaratiError
from tijarati.models.ledger import Partner, Transaction


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Every method raises StoreError on I/O or constraint failure.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """
        Open the store and bring its schema up to date.

        Safe to call on every startup, including against a store created
        by an older version of the app.
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_transaction(self, tx: Transaction) -> None:
        """
        Insert or fully replace a transaction keyed by its id.

        Args:
            tx: The complete record (not a partial patch)
        """
        pass

    @abstractmethod
    async def get_transaction(self, tx_id: str) -> Optional[Transaction]:
        pass

    @abstractmethod
    async def get_all_transactions(self) -> list[Transaction]:
        """
        List every transaction.

        Returns:
            Transactions ordered by date, newest first
        """
        pass

    @abstractmethod
    async def delete_transaction(self, tx_id: str) -> Optional[str]:
        """
        Delete a transaction.

        Deleting an unknown id is a no-op.

        Returns:
            The reminder handle the deleted row referenced, if any.
            The caller is responsible for cancelling it.
        """
        pass

    @abstractmethod
    async def get_reminder_ids(self) -> list[str]:
        """All non-empty reminder handles referenced by stored transactions."""
        pass

    @abstractmethod
    async def detach_reminders(self, keep: Iterable[str] = ()) -> int:
        """
        Null out reminder handles that are no longer live.

        Args:
            keep: Handles that are still scheduled

        Returns:
            Number of rows updated
        """
        pass

    # -------------------------------------------------------------------------
    # Partners
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_partner(self, partner: Partner) -> int:
        """
        Insert or replace a partner.

        With an explicit id the row at that id is replaced; without one the
        store assigns the next id.

        Returns:
            The partner's id
        """
        pass

    @abstractmethod
    async def get_all_partners(self) -> list[Partner]:
        pass

    @abstractmethod
    async def delete_partner(self, partner_id: Optional[int]) -> bool:
        """
        Delete a partner by id.

        Returns:
            True if a row was removed
        """
        pass

    # -------------------------------------------------------------------------
    # Bulk operations (atomic)
    # -------------------------------------------------------------------------

    @abstractmethod
    async def clear_all(self) -> list[str]:
        """
        Delete every transaction and partner in one transaction.

        Also resets partner id assignment.

        Returns:
            Reminder handles referenced by the deleted transactions
        """
        pass

    @abstractmethod
    async def replace_all(
        self,
        partners: list[Partner],
        transactions: list[Transaction],
    ) -> list[str]:
        """
        Atomically replace the whole store.

        Deletes everything, inserts `partners` (explicit ids kept, others
        auto-assigned), inserts `transactions`, advances the partner id
        counter past the highest id, and commits. Any failure rolls back to
        the previous contents.

        The returned handles are about to be cancelled, so an inserted
        transaction that references one of them is written without it.

        Returns:
            Reminder handles referenced by the replaced transactions
        """
        pass


class StoreError(TijaratiError):
    """Base exception for storage operations."""
    pass


class NotFoundError(StoreError):
    """Entity not found in storage."""
    pass


class StoreConnectionError(StoreError):
    """Could not open the storage backend."""
    pass
