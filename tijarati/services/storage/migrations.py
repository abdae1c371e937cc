"""
Schema Migrations

Ordered, additive steps applied against `PRAGMA user_version`.

Rules for adding a step:
- Append only; never edit or reorder an existing step
- Additive only (create-if-missing, add-column-if-missing)
- Each step must be idempotent: stores created by the older app have the
  tables and some of the columns but no version marker, so every step may
  run against a schema that already has part of what it adds
"""

import sqlite3
from typing import Callable, NamedTuple

import structlog


logger = structlog.get_logger(__name__)


class Migration(NamedTuple):
    version: int
    description: str
    apply: Callable[[sqlite3.Connection], None]


def table_columns(conn: sqlite3.Connection, table: str) -> set[str]:
    """Column names of `table` (empty if the table does not exist)."""
    return {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}


def add_column_if_missing(
    conn: sqlite3.Connection,
    table: str,
    column: str,
    declaration: str,
) -> bool:
    if column in table_columns(conn, table):
        return False
    conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {declaration}")
    return True


def _create_base_tables(conn: sqlite3.Connection) -> None:
    conn.execute(
        "CREATE TABLE IF NOT EXISTS transactions ("
        "id TEXT PRIMARY KEY, type TEXT, item TEXT, amount REAL, quantity REAL, "
        "date TEXT, isCredit INTEGER, clientName TEXT, paidAmount REAL, "
        "isFullyPaid INTEGER, currency TEXT, createdAt INTEGER, "
        "isMock INTEGER DEFAULT 0)"
    )
    conn.execute(
        "CREATE TABLE IF NOT EXISTS partners ("
        "id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, percent REAL, "
        "createdAt INTEGER, isMock INTEGER DEFAULT 0)"
    )


def _add_pricing_columns(conn: sqlite3.Connection) -> None:
    add_column_if_missing(conn, "transactions", "unitPrice", "REAL")
    add_column_if_missing(conn, "transactions", "pricingMode", "TEXT")


def _add_credit_columns(conn: sqlite3.Connection) -> None:
    add_column_if_missing(conn, "transactions", "isInstallmentPlan", "INTEGER DEFAULT 0")
    add_column_if_missing(conn, "transactions", "installments", "TEXT")
    add_column_if_missing(conn, "transactions", "dueDate", "TEXT")
    add_column_if_missing(conn, "transactions", "reminderId", "TEXT")
    add_column_if_missing(conn, "transactions", "isMock", "INTEGER DEFAULT 0")


def _add_partner_investment_columns(conn: sqlite3.Connection) -> None:
    add_column_if_missing(conn, "partners", "isMock", "INTEGER DEFAULT 0")
    add_column_if_missing(conn, "partners", "investedBase", "REAL")
    add_column_if_missing(conn, "partners", "investedAt", "TEXT")
    add_column_if_missing(conn, "partners", "profitSchedule", "TEXT")
    add_column_if_missing(conn, "partners", "notes", "TEXT")
    add_column_if_missing(conn, "partners", "payouts", "TEXT")


def _add_date_index(conn: sqlite3.Connection) -> None:
    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_transactions_date "
        "ON transactions (date DESC, createdAt DESC)"
    )


MIGRATIONS: list[Migration] = [
    Migration(1, "base transactions and partners tables", _create_base_tables),
    Migration(2, "transaction pricing columns", _add_pricing_columns),
    Migration(3, "transaction credit, installment and reminder columns", _add_credit_columns),
    Migration(4, "partner investment and payout columns", _add_partner_investment_columns),
    Migration(5, "transactions date index", _add_date_index),
]

LATEST_VERSION = MIGRATIONS[-1].version


def schema_version(conn: sqlite3.Connection) -> int:
    return conn.execute("PRAGMA user_version").fetchone()[0]


def apply_migrations(
    conn: sqlite3.Connection,
    migrations: list[Migration] = MIGRATIONS,
) -> list[int]:
    """
    Bring the schema up to the latest version.

    Each pending step runs in its own transaction together with the version
    bump, so a crash mid-way leaves the store at the last completed step.
    The connection must be in autocommit mode (isolation_level=None).

    Returns:
        Versions applied by this call (empty when already current)
    """
    current = schema_version(conn)
    applied = []

    for migration in migrations:
        if migration.version <= current:
            continue
        conn.execute("BEGIN IMMEDIATE")
        try:
            migration.apply(conn)
            # PRAGMA does not accept bound parameters
            conn.execute(f"PRAGMA user_version = {int(migration.version)}")
            conn.execute("COMMIT")
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        applied.append(migration.version)
        logger.info(
            "schema_migrated",
            version=migration.version,
            description=migration.description,
        )

    return applied
