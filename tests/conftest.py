"""Root conftest: shared test configuration and port fakes."""

import os

import pytest

# Settings read from env; never touch a real database or admin key
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ADMIN_API_KEY", "test-admin-key")
os.environ.setdefault("LOG_FORMAT", "text")

from diceit.services.game_service import GameService  # noqa: E402
from tests.fakes import FakeLedger, FakeStore, FixedRandomness  # noqa: E402


@pytest.fixture
def ledger():
    ledger = FakeLedger()
    for account in ("alice", "bob", "carol"):
        ledger.fund(account, "100")
    return ledger


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def randomness():
    return FixedRandomness(outcome=4)


@pytest.fixture
async def service(ledger, store, randomness):
    """GameService whose countdown never fires during a test."""
    svc = GameService(ledger, store, randomness, countdown_seconds=3600, stats=store)
    yield svc
    await svc.shutdown()
