from __future__ import annotations
import asyncio
import logging
import os
from contextlib import asynccontextmanager

import aiosqlite

from .errors import StoreUnavailableError

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      wallet TEXT UNIQUE,
      external_id TEXT UNIQUE,
      created_at INTEGER NOT NULL DEFAULT (strftime('%s','now'))
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS payments (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      wallet TEXT NOT NULL,
      tier TEXT NOT NULL,
      amount_base INTEGER NOT NULL,
      tx_sig TEXT,
      created_at INTEGER NOT NULL DEFAULT (strftime('%s','now'))
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS entitlements (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      wallet TEXT NOT NULL,
      tier TEXT NOT NULL,
      expires_at INTEGER NOT NULL,
      created_at INTEGER NOT NULL DEFAULT (strftime('%s','now'))
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS products (
      id TEXT PRIMARY KEY,
      title TEXT NOT NULL,
      price_base INTEGER NOT NULL,
      stock INTEGER NOT NULL DEFAULT 0 CHECK (stock >= 0),
      sold INTEGER NOT NULL DEFAULT 0 CHECK (sold >= 0)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS orders (
      id INTEGER PRIMARY KEY AUTOINCREMENT,
      sku TEXT NOT NULL,
      wallet TEXT,
      amount_base INTEGER NOT NULL,
      tx_sig TEXT NOT NULL,
      created_at INTEGER NOT NULL DEFAULT (strftime('%s','now'))
    );
    """,
]

# Stores written by the Telegram-era bot use these column names
LEGACY_COLUMNS = [
    ("users", "telegram_id", "external_id"),
    ("products", "usdc_base", "price_base"),
    ("products", "physical", "is_physical"),
]

PRODUCT_COLUMNS = [
    ("description", "TEXT"),
    ("image_url", "TEXT"),
    ("is_physical", "INTEGER NOT NULL DEFAULT 0"),
]

REQUIRED_COLUMNS = {
    "users": {"id", "wallet", "external_id", "created_at"},
    "payments": {"id", "wallet", "tier", "amount_base", "tx_sig", "created_at"},
    "entitlements": {"id", "wallet", "tier", "expires_at", "created_at"},
    "products": {"id", "title", "price_base", "stock", "sold", "description", "image_url", "is_physical"},
    "orders": {"id", "sku", "wallet", "amount_base", "tx_sig", "created_at"},
}

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_payments_wallet ON payments(wallet, created_at);",
    "CREATE INDEX IF NOT EXISTS idx_entitlements_wallet_tier ON entitlements(wallet, tier, expires_at);",
    "CREATE INDEX IF NOT EXISTS idx_entitlements_wallet ON entitlements(wallet, expires_at);",
    "CREATE INDEX IF NOT EXISTS idx_orders_tx_sig ON orders(tx_sig);",
    "CREATE INDEX IF NOT EXISTS idx_orders_wallet ON orders(wallet, created_at);",
]


class Database:
    """Single shared SQLite handle.

    Statements from concurrent tasks are serialized on one lock. The task that
    opened ``transaction()`` runs its statements without taking the lock again,
    so nothing from another task can land inside its transaction.
    """

    def __init__(self, path: str):
        self.path = path
        self.conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._tx_task: asyncio.Task | None = None

    async def connect(self):
        if self.conn is not None:
            return
        try:
            if self.path != ":memory:":
                parent = os.path.dirname(os.path.abspath(self.path))
                os.makedirs(parent, exist_ok=True)
            self.conn = await aiosqlite.connect(self.path)
            self.conn.row_factory = aiosqlite.Row
            await self.conn.execute("PRAGMA journal_mode=WAL;")
            await self.conn.execute("PRAGMA foreign_keys=ON;")
            await self.conn.execute("PRAGMA synchronous=NORMAL;")
            await self.conn.commit()
        except (aiosqlite.Error, OSError) as e:
            logger.error("Could not open store at %s: %s", self.path, e)
            raise StoreUnavailableError(f"Could not open store at {self.path}: {e}") from e

    async def close(self):
        if self.conn:
            await self.conn.close()
            self.conn = None

    def _owns_tx(self) -> bool:
        return self._tx_task is not None and self._tx_task is asyncio.current_task()

    async def _write(self, fn):
        if self._owns_tx():
            return await fn()
        async with self._lock:
            try:
                result = await fn()
                await self.conn.commit()
                return result
            except Exception:
                # a failed statement leaves the implicit transaction open
                if self.conn.in_transaction:
                    await self.conn.rollback()
                raise

    async def execute(self, sql: str, params=()) -> int:
        """Execute a statement and return the affected row count."""
        assert self.conn

        async def run():
            cur = await self.conn.execute(sql, params)
            return cur.rowcount
        return await self._write(run)

    async def insert(self, sql: str, params=()) -> int:
        """Execute an INSERT and return the new rowid."""
        assert self.conn

        async def run():
            cur = await self.conn.execute(sql, params)
            return cur.lastrowid
        return await self._write(run)

    @asynccontextmanager
    async def transaction(self):
        """BEGIN on enter, COMMIT on success, ROLLBACK on exception.

        Nested use from the owning task joins the outer transaction.
        """
        assert self.conn
        if self._owns_tx():
            yield self
            return
        async with self._lock:
            self._tx_task = asyncio.current_task()
            try:
                await self.conn.execute("BEGIN")
                yield self
                await self.conn.commit()
            except BaseException:
                await self.conn.rollback()
                raise
            finally:
                self._tx_task = None

    async def fetchone(self, sql: str, params=()):
        assert self.conn
        if self._owns_tx():
            return await self._fetchone(sql, params)
        async with self._lock:
            return await self._fetchone(sql, params)

    async def fetchall(self, sql: str, params=()):
        assert self.conn
        if self._owns_tx():
            return await self._fetchall(sql, params)
        async with self._lock:
            return await self._fetchall(sql, params)

    async def _fetchone(self, sql: str, params):
        cur = await self.conn.execute(sql, params)
        row = await cur.fetchone()
        await cur.close()
        return row

    async def _fetchall(self, sql: str, params):
        cur = await self.conn.execute(sql, params)
        rows = await cur.fetchall()
        await cur.close()
        return rows

    async def _columns(self, table: str) -> set[str]:
        rows = await self.fetchall(f"PRAGMA table_info({table});")
        return {r["name"] for r in rows}

    async def _ensure_column(self, table: str, col: str, ddl: str):
        """Add column if missing (SQLite)."""
        if col not in await self._columns(table):
            logger.info("Adding column %s.%s", table, col)
            await self.execute(f"ALTER TABLE {table} ADD COLUMN {col} {ddl};")

    async def _rename_column(self, table: str, old: str, new: str):
        existing = await self._columns(table)
        if old in existing and new not in existing:
            logger.info("Renaming column %s.%s to %s", table, old, new)
            await self.execute(f"ALTER TABLE {table} RENAME COLUMN {old} TO {new};")

    async def migrate(self):
        """Create tables and indexes. Safe to run on every start.

        Raises StoreUnavailableError if a table still lacks a required column
        afterwards.
        """
        try:
            async with self.transaction():
                for ddl in SCHEMA:
                    await self.execute(ddl)
                for table, old, new in LEGACY_COLUMNS:
                    await self._rename_column(table, old, new)
                for col, ddl in PRODUCT_COLUMNS:
                    await self._ensure_column("products", col, ddl)
                for table, required in REQUIRED_COLUMNS.items():
                    missing = required - await self._columns(table)
                    if missing:
                        raise StoreUnavailableError(
                            f"Table {table} is missing columns: {', '.join(sorted(missing))}"
                        )
                for ddl in INDEXES:
                    await self.execute(ddl)
        except aiosqlite.Error as e:
            logger.exception("Database migration failed")
            raise StoreUnavailableError(f"Schema creation failed: {e}") from e
        logger.info("Schema ready at %s", self.path)
