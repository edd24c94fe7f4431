"""Tests for wallet / platform account linking."""

import aiosqlite
import pytest

from x402bot.core.errors import IdentityConflictError

WALLET_A = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
WALLET_B = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


async def _count(db):
    row = await db.fetchone("SELECT COUNT(*) AS n FROM users")
    return row["n"]


@pytest.mark.asyncio
async def test_ensure_identity_is_idempotent(db, identities):
    """Calling ensure_identity twice leaves exactly one row."""
    await identities.ensure_identity(WALLET_A)
    await identities.ensure_identity(WALLET_A)

    assert await _count(db) == 1
    row = await identities.find_by_wallet(WALLET_A)
    assert row.wallet == WALLET_A
    assert row.external_id is None


@pytest.mark.asyncio
async def test_lookups_return_none_when_absent(identities):
    assert await identities.find_by_wallet(WALLET_A) is None
    assert await identities.find_by_external(42) is None


@pytest.mark.asyncio
async def test_link_wallet_to_external_attaches_to_existing_row(db, identities):
    await identities.ensure_identity(WALLET_A)
    await identities.link_wallet_to_external(WALLET_A, 1001)

    assert await _count(db) == 1
    row = await identities.find_by_external("1001")
    assert row.wallet == WALLET_A
    assert row.external_id == "1001"


@pytest.mark.asyncio
async def test_link_wallet_to_external_last_write_wins(identities):
    await identities.link_wallet_to_external(WALLET_A, 1001)
    await identities.link_wallet_to_external(WALLET_A, 1002)

    assert (await identities.find_by_wallet(WALLET_A)).external_id == "1002"
    assert await identities.find_by_external(1001) is None


@pytest.mark.asyncio
async def test_link_external_to_wallet_overwrites_wallet(identities):
    await identities.link_external_to_wallet(1001, WALLET_A)
    await identities.link_external_to_wallet(1001, WALLET_B)

    row = await identities.find_by_external(1001)
    assert row.wallet == WALLET_B
    assert await identities.find_by_wallet(WALLET_A) is None


@pytest.mark.asyncio
async def test_keyed_upserts_do_not_merge_rows(db, identities):
    """Upserting on the wallet key cannot fold in a separate external-only row."""
    await identities.ensure_identity(WALLET_A)
    await db.execute("INSERT INTO users(external_id) VALUES(?)", ("1001",))

    with pytest.raises(aiosqlite.IntegrityError):
        await identities.link_wallet_to_external(WALLET_A, 1001)

    assert await _count(db) == 2


@pytest.mark.asyncio
async def test_resolve_creates_single_row(db, identities):
    ident = await identities.resolve_identity(WALLET_A, 1001)

    assert ident.wallet == WALLET_A
    assert ident.external_id == "1001"
    assert await _count(db) == 1


@pytest.mark.asyncio
async def test_resolve_is_idempotent(db, identities):
    first = await identities.resolve_identity(WALLET_A, 1001)
    second = await identities.resolve_identity(WALLET_A, "1001")

    assert first == second
    assert await _count(db) == 1


@pytest.mark.asyncio
async def test_resolve_attaches_to_bare_wallet(db, identities):
    await identities.ensure_identity(WALLET_A)
    before = await identities.find_by_wallet(WALLET_A)

    ident = await identities.resolve_identity(WALLET_A, 1001)

    assert ident.id == before.id
    assert ident.external_id == "1001"
    assert await _count(db) == 1


@pytest.mark.asyncio
async def test_resolve_merges_bare_external_row(db, identities):
    """A row holding only the external id folds into the wallet's row."""
    await identities.ensure_identity(WALLET_A)
    wallet_row = await identities.find_by_wallet(WALLET_A)
    await db.execute("INSERT INTO users(external_id) VALUES(?)", ("1001",))
    assert await _count(db) == 2

    ident = await identities.resolve_identity(WALLET_A, 1001)

    assert ident.id == wallet_row.id
    assert ident.external_id == "1001"
    assert await _count(db) == 1


@pytest.mark.asyncio
async def test_resolve_fills_wallet_on_bare_external_row(db, identities):
    await db.execute("INSERT INTO users(external_id) VALUES(?)", ("1001",))
    ext_row = await identities.find_by_external(1001)

    ident = await identities.resolve_identity(WALLET_A, 1001)

    assert ident.id == ext_row.id
    assert ident.wallet == WALLET_A
    assert await _count(db) == 1


@pytest.mark.asyncio
async def test_resolve_conflict_raises_without_replace(db, identities):
    await identities.resolve_identity(WALLET_A, 1001)

    with pytest.raises(IdentityConflictError) as exc:
        await identities.resolve_identity(WALLET_B, 1001)

    assert exc.value.linked_wallet == WALLET_A
    assert (await identities.find_by_external(1001)).wallet == WALLET_A
    assert await identities.find_by_wallet(WALLET_B) is None
    assert await _count(db) == 1


@pytest.mark.asyncio
async def test_resolve_conflict_on_wallet_side(identities):
    await identities.resolve_identity(WALLET_A, 1001)

    with pytest.raises(IdentityConflictError) as exc:
        await identities.resolve_identity(WALLET_A, 2002)

    assert exc.value.linked_external_id == "1001"


@pytest.mark.asyncio
async def test_resolve_replace_moves_account_to_new_wallet(db, identities):
    """Relinking an account to a new wallet detaches it from the old one."""
    await identities.resolve_identity(WALLET_A, 1001)

    ident = await identities.resolve_identity(WALLET_B, 1001, replace=True)

    assert ident.wallet == WALLET_B
    assert ident.external_id == "1001"
    old = await identities.find_by_wallet(WALLET_A)
    assert old is not None
    assert old.external_id is None
    assert (await identities.find_by_external(1001)).wallet == WALLET_B


@pytest.mark.asyncio
async def test_resolve_replace_swaps_both_sides(db, identities):
    await identities.resolve_identity(WALLET_A, 1001)
    await identities.resolve_identity(WALLET_B, 2002)

    ident = await identities.resolve_identity(WALLET_A, 2002, replace=True)

    assert ident.wallet == WALLET_A
    assert ident.external_id == "2002"
    assert (await identities.find_by_wallet(WALLET_B)).external_id is None
    assert await identities.find_by_external(1001) is None
    assert await _count(db) == 2
