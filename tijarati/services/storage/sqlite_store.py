"""
SQLite Ledger Storage

DESIGN DECISION: A single on-device SQLite file is the store of record:
1. Works offline, no server
2. Real transactions, so import and clear are all-or-nothing
3. Survives app upgrades through additive migrations

Column names stay camelCase to match stores created by the older app.

Concurrency model:
- One connection, guarded by a lock; every call runs in a worker thread
- Single-record writes are one autocommitted statement each
- Bulk operations hold the lock for the whole BEGIN IMMEDIATE ... COMMIT,
  so no other write can interleave
"""

import asyncio
import json
import sqlite3
import threading
from typing import Any, Callable, Iterable, Optional, TypeVar

import structlog
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from tijarati.config import get_settings
from tijarati.models.ledger import Partner, Transaction
from tijarati.services.storage.interface import (
    LedgerStorageInterface,
    StoreConnectionError,
    StoreError,
)
from tijarati.services.storage.migrations import apply_migrations


logger = structlog.get_logger(__name__)

T = TypeVar("T")


TRANSACTION_COLUMNS = [
    "id",
    "type",
    "item",
    "amount",
    "quantity",
    "unitPrice",
    "pricingMode",
    "date",
    "isCredit",
    "clientName",
    "paidAmount",
    "isFullyPaid",
    "currency",
    "createdAt",
    "dueDate",
    "reminderId",
    "isInstallmentPlan",
    "installments",
    "isMock",
]

PARTNER_COLUMNS = [
    "name",
    "percent",
    "createdAt",
    "investedBase",
    "investedAt",
    "profitSchedule",
    "notes",
    "payouts",
    "isMock",
]

_UPSERT_TRANSACTION = (
    f"INSERT OR REPLACE INTO transactions ({', '.join(TRANSACTION_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in TRANSACTION_COLUMNS)})"
)
_INSERT_PARTNER = (
    f"INSERT INTO partners ({', '.join(PARTNER_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in PARTNER_COLUMNS)})"
)
_UPSERT_PARTNER_WITH_ID = (
    f"INSERT OR REPLACE INTO partners (id, {', '.join(PARTNER_COLUMNS)}) "
    f"VALUES (?, {', '.join('?' for _ in PARTNER_COLUMNS)})"
)


def _dump_list(value: list) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return "[]"


def _is_busy(exc: BaseException) -> bool:
    """Lock contention from another process holding the file."""
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    message = str(exc).lower()
    return "locked" in message or "busy" in message


class SQLiteLedgerStore(LedgerStorageInterface):
    """
    SQLite implementation of ledger storage.

    Pass ":memory:" as db_path for an isolated throwaway store (tests).
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        busy_timeout_seconds: Optional[float] = None,
    ):
        settings = get_settings().store
        self._db_path = db_path or settings.db_path
        self._busy_timeout = (
            busy_timeout_seconds
            if busy_timeout_seconds is not None
            else settings.busy_timeout_seconds
        )
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    # -------------------------------------------------------------------------
    # Connection handling
    # -------------------------------------------------------------------------

    def _open(self) -> None:
        if self._conn is not None:
            return
        try:
            conn = sqlite3.connect(
                self._db_path,
                timeout=self._busy_timeout,
                check_same_thread=False,
                isolation_level=None,
            )
        except sqlite3.Error as e:
            raise StoreConnectionError(f"Failed to open store {self._db_path}: {e}")
        conn.row_factory = sqlite3.Row
        try:
            with self._lock:
                applied = apply_migrations(conn)
        except BaseException:
            conn.close()
            raise
        self._conn = conn
        logger.info("store_opened", db_path=self._db_path, migrations_applied=applied)

    async def initialize(self) -> None:
        try:
            await asyncio.to_thread(self._open)
        except sqlite3.Error as e:
            raise StoreError(f"Failed to migrate store: {e}")

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        if conn is not None:
            with self._lock:
                conn.close()

    @retry(
        retry=retry_if_exception(_is_busy),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _call(self, func: Callable[..., T], *args: Any) -> T:
        if self._conn is None:
            raise StoreError("Store is not initialized")
        with self._lock:
            return func(self._conn, *args)

    async def _run(self, action: str, func: Callable[..., T], *args: Any) -> T:
        try:
            return await asyncio.to_thread(self._call, func, *args)
        except (sqlite3.Error, OverflowError) as e:
            # OverflowError: an integer outside SQLite's signed 64-bit range
            raise StoreError(f"Failed to {action}: {e}")

    # -------------------------------------------------------------------------
    # Row mapping
    # -------------------------------------------------------------------------

    def _transaction_to_row(self, tx: Transaction) -> tuple:
        return (
            tx.id,
            tx.type,
            tx.item,
            tx.amount,
            tx.quantity,
            tx.unit_price,
            tx.pricing_mode,
            tx.date,
            int(tx.is_credit),
            tx.client_name,
            tx.paid_amount,
            int(tx.is_fully_paid),
            tx.currency,
            tx.created_at,
            tx.due_date,
            tx.reminder_id,
            int(tx.is_installment_plan),
            _dump_list(tx.installments),
            int(tx.is_mock),
        )

    def _partner_to_row(self, partner: Partner) -> tuple:
        return (
            partner.name,
            partner.percent,
            partner.created_at,
            partner.invested_base,
            partner.invested_at,
            partner.profit_schedule,
            partner.notes,
            _dump_list(partner.payouts),
            int(partner.is_mock),
        )

    def _row_to_transaction(self, row: sqlite3.Row) -> Optional[Transaction]:
        try:
            return Transaction.model_validate(dict(row))
        except ValueError as e:
            # Skip malformed rows
            logger.warning("transaction_row_skipped", row_id=row["id"], error=str(e))
            return None

    def _row_to_partner(self, row: sqlite3.Row) -> Optional[Partner]:
        try:
            return Partner.model_validate(dict(row))
        except ValueError as e:
            logger.warning("partner_row_skipped", row_id=row["id"], error=str(e))
            return None

    # -------------------------------------------------------------------------
    # Statement helpers (called with the lock held)
    # -------------------------------------------------------------------------

    def _write_transaction(self, conn: sqlite3.Connection, tx: Transaction) -> None:
        conn.execute(_UPSERT_TRANSACTION, self._transaction_to_row(tx))

    def _write_partner(self, conn: sqlite3.Connection, partner: Partner) -> int:
        if partner.id is not None:
            conn.execute(
                _UPSERT_PARTNER_WITH_ID,
                (partner.id, *self._partner_to_row(partner)),
            )
            return partner.id
        cursor = conn.execute(_INSERT_PARTNER, self._partner_to_row(partner))
        return cursor.lastrowid

    def _referenced_reminders(self, conn: sqlite3.Connection) -> list[str]:
        rows = conn.execute(
            "SELECT reminderId FROM transactions "
            "WHERE reminderId IS NOT NULL AND reminderId != ''"
        ).fetchall()
        return [row[0] for row in rows]

    def _advance_partner_sequence(self, conn: sqlite3.Connection) -> None:
        """Keep auto-assigned ids above every explicit id."""
        max_id = conn.execute("SELECT MAX(id) FROM partners").fetchone()[0]
        if max_id is None:
            return
        current = conn.execute(
            "SELECT seq FROM sqlite_sequence WHERE name = 'partners'"
        ).fetchone()
        if current is None:
            conn.execute(
                "INSERT INTO sqlite_sequence (name, seq) VALUES ('partners', ?)",
                (max_id,),
            )
        elif current[0] < max_id:
            conn.execute(
                "UPDATE sqlite_sequence SET seq = ? WHERE name = 'partners'",
                (max_id,),
            )

    def _in_transaction(
        self,
        conn: sqlite3.Connection,
        body: Callable[[sqlite3.Connection], T],
    ) -> T:
        conn.execute("BEGIN IMMEDIATE")
        try:
            result = body(conn)
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        return result

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def upsert_transaction(self, tx: Transaction) -> None:
        await self._run("save transaction", self._write_transaction, tx)

    async def get_transaction(self, tx_id: str) -> Optional[Transaction]:
        def query(conn: sqlite3.Connection) -> Optional[sqlite3.Row]:
            return conn.execute(
                "SELECT * FROM transactions WHERE id = ?", (tx_id,)
            ).fetchone()

        row = await self._run("get transaction", query)
        return self._row_to_transaction(row) if row is not None else None

    async def get_all_transactions(self) -> list[Transaction]:
        def query(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute(
                "SELECT * FROM transactions ORDER BY date DESC, createdAt DESC"
            ).fetchall()

        rows = await self._run("list transactions", query)
        return [tx for tx in map(self._row_to_transaction, rows) if tx is not None]

    async def delete_transaction(self, tx_id: str) -> Optional[str]:
        def delete(conn: sqlite3.Connection) -> Optional[str]:
            row = conn.execute(
                "SELECT reminderId FROM transactions WHERE id = ?", (tx_id,)
            ).fetchone()
            conn.execute("DELETE FROM transactions WHERE id = ?", (tx_id,))
            return row[0] if row is not None and row[0] else None

        return await self._run("delete transaction", delete)

    async def get_reminder_ids(self) -> list[str]:
        return await self._run("list reminders", self._referenced_reminders)

    async def detach_reminders(self, keep: Iterable[str] = ()) -> int:
        live = set(keep)

        def detach(conn: sqlite3.Connection) -> int:
            stale = [rid for rid in self._referenced_reminders(conn) if rid not in live]
            for rid in stale:
                conn.execute(
                    "UPDATE transactions SET reminderId = NULL WHERE reminderId = ?",
                    (rid,),
                )
            return len(stale)

        return await self._run("detach reminders", self._in_transaction, detach)

    # -------------------------------------------------------------------------
    # Partners
    # -------------------------------------------------------------------------

    async def upsert_partner(self, partner: Partner) -> int:
        return await self._run("save partner", self._write_partner, partner)

    async def get_all_partners(self) -> list[Partner]:
        def query(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return conn.execute("SELECT * FROM partners ORDER BY id").fetchall()

        rows = await self._run("list partners", query)
        return [p for p in map(self._row_to_partner, rows) if p is not None]

    async def delete_partner(self, partner_id: Optional[int]) -> bool:
        if partner_id is None:
            return False

        def delete(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute("DELETE FROM partners WHERE id = ?", (partner_id,))
            return cursor.rowcount > 0

        return await self._run("delete partner", delete)

    # -------------------------------------------------------------------------
    # Bulk operations
    # -------------------------------------------------------------------------

    async def clear_all(self) -> list[str]:
        def clear(conn: sqlite3.Connection) -> list[str]:
            reminders = self._referenced_reminders(conn)
            conn.execute("DELETE FROM transactions")
            conn.execute("DELETE FROM partners")
            conn.execute("DELETE FROM sqlite_sequence WHERE name = 'partners'")
            return reminders

        return await self._run("clear store", self._in_transaction, clear)

    async def replace_all(
        self,
        partners: list[Partner],
        transactions: list[Transaction],
    ) -> list[str]:
        def replace(conn: sqlite3.Connection) -> list[str]:
            reminders = self._referenced_reminders(conn)
            replaced = set(reminders)
            conn.execute("DELETE FROM transactions")
            conn.execute("DELETE FROM partners")
            for partner in partners:
                self._write_partner(conn, partner)
            for tx in transactions:
                if tx.reminder_id and tx.reminder_id in replaced:
                    tx = tx.model_copy(update={"reminder_id": None})
                self._write_transaction(conn, tx)
            self._advance_partner_sequence(conn)
            return reminders

        return await self._run("import snapshot", self._in_transaction, replace)
