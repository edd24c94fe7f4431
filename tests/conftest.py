"""Shared fixtures: an isolated in-memory store per test and a fake clock."""

import pytest
import pytest_asyncio

from x402bot.core.db import Database
from x402bot.core.entitlements import EntitlementLedger
from x402bot.core.identity import IdentityStore
from x402bot.core.marketplace import Marketplace

T0 = 1_700_000_000


class FakeClock:
    """Callable clock returning a settable unix timestamp."""

    def __init__(self, now: int = T0):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int):
        self.now += seconds


@pytest_asyncio.fixture
async def db():
    """Create a migrated in-memory database."""
    database = Database(":memory:")
    await database.connect()
    await database.migrate()
    yield database
    await database.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def identities(db):
    return IdentityStore(db)


@pytest_asyncio.fixture
async def ledger(db, identities, clock):
    return EntitlementLedger(db, identities, clock=clock)


@pytest_asyncio.fixture
async def market(db):
    return Marketplace(db)
