"""API test fixtures: httpx client against the app with a fake-backed GameService.

Design Decisions:
    - ASGITransport does not run the lifespan, so app.state is set directly
      and the database singleton is patched for readiness checks
"""

import pytest
from httpx import ASGITransport, AsyncClient

import diceit.infrastructure.database as db_module
from diceit.db.base import Base
from diceit.infrastructure.database import DatabaseSessionManager
from diceit.main import app



@pytest.fixture
async def test_db_manager():
    manager = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    async with manager.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield manager
    await manager.dispose()


@pytest.fixture
async def client(service, test_db_manager):
    original_manager = db_module.db_manager
    db_module.db_manager = test_db_manager
    app.state.game_service = service

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    del app.state.game_service
    db_module.db_manager = original_manager
