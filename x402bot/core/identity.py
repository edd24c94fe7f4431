from __future__ import annotations
import logging
from dataclasses import dataclass

from .errors import IdentityConflictError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    id: int
    wallet: str | None
    external_id: str | None
    created_at: int

    @classmethod
    def from_row(cls, row) -> "Identity":
        return cls(int(row["id"]), row["wallet"], row["external_id"], int(row["created_at"]))


class IdentityStore:
    """Maps wallets and platform user ids onto one user row each."""

    def __init__(self, db):
        self.db = db

    async def ensure_identity(self, wallet: str):
        await self.db.execute(
            "INSERT INTO users(wallet) VALUES(?) ON CONFLICT(wallet) DO NOTHING",
            (wallet,)
        )

    async def link_wallet_to_external(self, wallet: str, external_id):
        """Upsert keyed on wallet; an existing external id is overwritten."""
        await self.db.execute(
            """
            INSERT INTO users(wallet, external_id) VALUES(?,?)
            ON CONFLICT(wallet) DO UPDATE SET external_id=excluded.external_id
            """,
            (wallet, str(external_id))
        )

    async def link_external_to_wallet(self, external_id, wallet: str):
        """Upsert keyed on external id; an existing wallet is overwritten."""
        await self.db.execute(
            """
            INSERT INTO users(external_id, wallet) VALUES(?,?)
            ON CONFLICT(external_id) DO UPDATE SET wallet=excluded.wallet
            """,
            (str(external_id), wallet)
        )

    async def find_by_wallet(self, wallet: str) -> Identity | None:
        row = await self.db.fetchone("SELECT * FROM users WHERE wallet=?", (wallet,))
        return Identity.from_row(row) if row else None

    async def find_by_external(self, external_id) -> Identity | None:
        row = await self.db.fetchone("SELECT * FROM users WHERE external_id=?", (str(external_id),))
        return Identity.from_row(row) if row else None

    async def resolve_identity(self, wallet: str, external_id, *, replace: bool = False) -> Identity:
        """Link ``wallet`` and ``external_id`` onto a single row.

        A bare row holding only the external id is merged into the wallet's row.
        If either side is already linked to a different counterpart this raises
        IdentityConflictError, unless ``replace`` is set: then the old link is
        detached and the new pair wins.
        """
        external_id = str(external_id)
        async with self.db.transaction():
            by_wallet = await self.find_by_wallet(wallet)
            by_ext = await self.find_by_external(external_id)

            if by_wallet and by_ext and by_wallet.id == by_ext.id:
                return by_wallet

            wallet_taken = by_wallet is not None and by_wallet.external_id not in (None, external_id)
            ext_taken = by_ext is not None and by_ext.wallet not in (None, wallet)
            if (wallet_taken or ext_taken) and not replace:
                logger.warning("Identity conflict linking %s to %s", wallet, external_id)
                raise IdentityConflictError(
                    wallet,
                    external_id,
                    linked_wallet=by_ext.wallet if ext_taken else None,
                    linked_external_id=by_wallet.external_id if wallet_taken else None,
                )

            if by_ext is not None:
                if by_ext.wallet is not None:
                    # keep the other wallet's row, drop only its link to this account
                    await self.db.execute("UPDATE users SET external_id=NULL WHERE id=?", (by_ext.id,))
                elif by_wallet is not None:
                    await self.db.execute("DELETE FROM users WHERE id=?", (by_ext.id,))
                else:
                    await self.db.execute("UPDATE users SET wallet=? WHERE id=?", (wallet, by_ext.id))
                    return await self.find_by_wallet(wallet)

            if by_wallet is not None:
                await self.db.execute("UPDATE users SET external_id=? WHERE id=?", (external_id, by_wallet.id))
            else:
                await self.db.execute(
                    "INSERT INTO users(wallet, external_id) VALUES(?,?)",
                    (wallet, external_id)
                )
            return await self.find_by_wallet(wallet)
