"""DiceIt API: FastAPI application entry point.

Invariants:
    - Routes registered explicitly (no auto-discovery)
    - Global error handlers map DiceItError to structured JSON responses
    - CORS configured from settings (not hardcoded)
    - Database and GameService built on startup via the lifespan context
      manager; pending countdowns are cancelled on shutdown

Design Decisions:
    - One GameService per process on app.state: the round registry is
      in-memory, so the API must run as a single worker
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from diceit.api.error_handlers import register_error_handlers
from diceit.api.routes import health, rounds, users
from diceit.config import get_settings
from diceit.infrastructure.database import init_db
from diceit.infrastructure.observability import setup_logging
from diceit.infrastructure.sql_ledger import SqlLedger
from diceit.infrastructure.sql_round_store import SqlRoundStore
from diceit.services.game_service import GameService
from diceit.services.randomness import SystemRandomnessSource

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)
    db = init_db(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    store = SqlRoundStore(db)
    app.state.game_service = GameService(
        ledger=SqlLedger(db),
        store=store,
        randomness=SystemRandomnessSource(),
        fee_rate=settings.fee_rate,
        countdown_seconds=settings.round_countdown_seconds,
        stats=store,
    )
    logger.info("DiceIt API started")
    yield
    logger.info("DiceIt API shutting down")
    await app.state.game_service.shutdown()
    await db.dispose()


app = FastAPI(title="DiceIt API", version="1.0.0", lifespan=lifespan)

settings = get_settings()
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(rounds.router)
app.include_router(users.router)

register_error_handlers(app)
