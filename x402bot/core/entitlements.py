from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .errors import require_non_negative
from .identity import IdentityStore
from .utility import now_ts

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EntitlementStatus:
    active: bool
    wallet: str
    tier: Optional[str]
    expires_at: Optional[int]
    seconds_left: int


@dataclass(frozen=True)
class Payment:
    id: int
    wallet: str
    tier: str
    amount_base: int
    tx_sig: Optional[str]
    created_at: int


class EntitlementLedger:
    """Payments audit log plus time-boxed tier grants keyed by wallet.

    Grants are append-only rows. The effective expiry of a wallet (or a
    wallet+tier pair) is the largest ``expires_at`` among its rows, and a new
    grant always starts from ``max(now, effective expiry)`` so time already
    bought is never lost.
    """

    def __init__(self, db, identities: IdentityStore | None = None,
                 clock: Callable[[], int] = now_ts):
        self.db = db
        self.identities = identities or IdentityStore(db)
        self.clock = clock

    async def record_payment(self, wallet: str, tier: str, amount_base: int,
                             tx_sig: str | None = None) -> int:
        amount_base = require_non_negative("amount_base", amount_base)
        return await self.db.insert(
            "INSERT INTO payments(wallet,tier,amount_base,tx_sig) VALUES(?,?,?,?)",
            (wallet, tier, amount_base, tx_sig or None)
        )

    async def effective_expiry(self, wallet: str, tier: str | None = None) -> int | None:
        if tier is None:
            row = await self.db.fetchone(
                "SELECT MAX(expires_at) AS e FROM entitlements WHERE wallet=?",
                (wallet,)
            )
        else:
            row = await self.db.fetchone(
                "SELECT MAX(expires_at) AS e FROM entitlements WHERE wallet=? AND tier=?",
                (wallet, tier)
            )
        return int(row["e"]) if row and row["e"] is not None else None

    async def grant_or_extend(self, wallet: str, tier: str, duration_seconds: int) -> int:
        """Grant ``tier`` or stack ``duration_seconds`` onto what is left of it."""
        duration_seconds = require_non_negative("duration_seconds", duration_seconds)
        async with self.db.transaction():
            now = self.clock()
            current = await self.effective_expiry(wallet, tier)
            base = max(now, current or 0)
            expires_at = base + duration_seconds
            await self.db.execute(
                "INSERT INTO entitlements(wallet,tier,expires_at) VALUES(?,?,?)",
                (wallet, tier, expires_at)
            )
        return expires_at

    async def status_for(self, wallet: str) -> EntitlementStatus:
        # Furthest expiry wins across tiers, not the most recently granted one.
        row = await self.db.fetchone(
            """
            SELECT tier, expires_at FROM entitlements
            WHERE wallet=?
            ORDER BY expires_at DESC, id DESC
            LIMIT 1
            """,
            (wallet,)
        )
        if not row:
            return EntitlementStatus(False, wallet, None, None, 0)
        expires_at = int(row["expires_at"])
        left = max(0, expires_at - self.clock())
        return EntitlementStatus(left > 0, wallet, row["tier"], expires_at, left)

    async def purchase_tier(self, wallet: str, tier: str, amount_base: int,
                            duration_seconds: int, tx_sig: str | None = None) -> int:
        """Record a verified payment and grant the tier it paid for, atomically."""
        async with self.db.transaction():
            await self.identities.ensure_identity(wallet)
            await self.record_payment(wallet, tier, amount_base, tx_sig)
            expires_at = await self.grant_or_extend(wallet, tier, duration_seconds)
        logger.info("Wallet %s bought %s until %s (tx %s)", wallet, tier, expires_at, tx_sig)
        return expires_at

    async def payments_for(self, wallet: str, limit: int = 20) -> list[Payment]:
        rows = await self.db.fetchall(
            """
            SELECT id, wallet, tier, amount_base, tx_sig, created_at
            FROM payments
            WHERE wallet=?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
            """,
            (wallet, int(limit))
        )
        return [
            Payment(int(r["id"]), r["wallet"], r["tier"], int(r["amount_base"]), r["tx_sig"], int(r["created_at"]))
            for r in rows
        ]
