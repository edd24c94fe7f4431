from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Optional

from .errors import require_non_negative

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Product:
    id: str
    title: str
    price_base: int
    stock: int
    sold: int
    description: Optional[str]
    image_url: Optional[str]
    is_physical: bool

    @classmethod
    def from_row(cls, row) -> "Product":
        return cls(
            row["id"],
            row["title"],
            int(row["price_base"]),
            int(row["stock"]),
            int(row["sold"]),
            row["description"],
            row["image_url"],
            bool(row["is_physical"]),
        )


@dataclass(frozen=True)
class Order:
    id: int
    sku: str
    wallet: Optional[str]
    amount_base: int
    tx_sig: str
    created_at: int

    @classmethod
    def from_row(cls, row) -> "Order":
        return cls(int(row["id"]), row["sku"], row["wallet"], int(row["amount_base"]), row["tx_sig"], int(row["created_at"]))


class Marketplace:
    """Product catalog with stock counters and an append-only order log."""

    def __init__(self, db):
        self.db = db

    async def upsert_product(self, sku: str, title: str, price_base: int, stock: int = 0,
                             description: str | None = None, image_url: str | None = None,
                             is_physical: bool = False):
        """Insert or replace a product's mutable fields. ``sold`` is left alone."""
        price_base = require_non_negative("price_base", price_base)
        stock = require_non_negative("stock", stock)
        await self.db.execute(
            """
            INSERT INTO products(id,title,price_base,stock,description,image_url,is_physical)
            VALUES(?,?,?,?,?,?,?)
            ON CONFLICT(id) DO UPDATE SET
              title=excluded.title,
              price_base=excluded.price_base,
              stock=excluded.stock,
              description=excluded.description,
              image_url=excluded.image_url,
              is_physical=excluded.is_physical
            """,
            (sku, title, price_base, stock, description, image_url, 1 if is_physical else 0)
        )

    async def list_products(self) -> list[Product]:
        rows = await self.db.fetchall("SELECT * FROM products ORDER BY rowid ASC")
        return [Product.from_row(r) for r in rows]

    async def get_product(self, sku: str) -> Product | None:
        row = await self.db.fetchone("SELECT * FROM products WHERE id=?", (sku,))
        return Product.from_row(row) if row else None

    async def decrement_stock(self, sku: str) -> int:
        """Take one unit. Returns rows changed: 0 means sold out or unknown sku."""
        return await self.db.execute(
            "UPDATE products SET stock = stock - 1, sold = sold + 1 WHERE id=? AND stock > 0",
            (sku,)
        )

    async def record_order(self, sku: str, amount_base: int, tx_sig: str, wallet: str | None = None) -> int:
        amount_base = require_non_negative("amount_base", amount_base)
        return await self.db.insert(
            "INSERT INTO orders(sku,wallet,amount_base,tx_sig) VALUES(?,?,?,?)",
            (sku, wallet, amount_base, tx_sig)
        )

    async def get_order(self, order_id: int) -> Order | None:
        row = await self.db.fetchone("SELECT * FROM orders WHERE id=?", (int(order_id),))
        return Order.from_row(row) if row else None

    async def get_order_by_tx(self, tx_sig: str, sku: str | None = None) -> Order | None:
        if sku is None:
            row = await self.db.fetchone(
                "SELECT * FROM orders WHERE tx_sig=? ORDER BY id ASC LIMIT 1", (tx_sig,)
            )
        else:
            row = await self.db.fetchone(
                "SELECT * FROM orders WHERE tx_sig=? AND sku=? ORDER BY id ASC LIMIT 1", (tx_sig, sku)
            )
        return Order.from_row(row) if row else None

    async def orders_for(self, wallet: str, limit: int = 20) -> list[Order]:
        rows = await self.db.fetchall(
            "SELECT * FROM orders WHERE wallet=? ORDER BY created_at DESC, id DESC LIMIT ?",
            (wallet, int(limit))
        )
        return [Order.from_row(r) for r in rows]

    async def fulfill_order(self, sku: str, amount_base: int, tx_sig: str,
                            wallet: str | None = None) -> Order | None:
        """Take one unit and log the order in a single transaction.

        Replaying a ``tx_sig`` already fulfilled for ``sku`` returns the
        existing order without touching stock. Returns None when out of stock.
        """
        async with self.db.transaction():
            existing = await self.get_order_by_tx(tx_sig, sku)
            if existing:
                return existing
            if not await self.decrement_stock(sku):
                logger.warning("Order for %s (tx %s) rejected: out of stock", sku, tx_sig)
                return None
            order_id = await self.record_order(sku, amount_base, tx_sig, wallet)
            order = await self.get_order(order_id)
        logger.info("Fulfilled order %s for %s (tx %s)", order_id, sku, tx_sig)
        return order
