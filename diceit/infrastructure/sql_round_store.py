"""SQL Round Store: RoundStore (and UserStatsReader) over the games, bets and users tables.

Invariants:
    - Every call is its own transaction (commit or rollback, never partial)
    - Unknown field names are rejected, not silently dropped
    - increment_user_stats is read-modify-write under a row lock; the store
      receives plain deltas and never relies on SQL-side arithmetic
    - DatabaseError is surfaced as PersistenceFailureError
"""

import logging
import uuid
from typing import TypeVar

from sqlalchemy import select
from sqlalchemy.orm import DeclarativeBase

from diceit.core.domain_types import AccountId, BetRef, RoundId
from diceit.core.errors import (
    AccountNotFoundError, DatabaseError, ErrorContext, PersistenceFailureError,
)
from diceit.core.round_stats import STAT_FIELDS
from diceit.infrastructure.database import DatabaseSessionManager
from diceit.infrastructure.sql_ledger import parse_account
from diceit.models.bet import Bet
from diceit.models.game import Game
from diceit.models.user import User

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=DeclarativeBase)


def _assign(obj: DeclarativeBase, fields: dict) -> None:
    columns = obj.__table__.columns.keys()
    unknown = set(fields) - set(columns)
    if unknown:
        raise ValueError(f"unknown {obj.__tablename__} fields: {sorted(unknown)}")
    for key, value in fields.items():
        setattr(obj, key, value)


def _uuid_fields(fields: dict, *keys: str) -> dict:
    out = dict(fields)
    for key in keys:
        if out.get(key) is not None:
            out[key] = uuid.UUID(str(out[key]))
    return out


class SqlRoundStore:
    """Audit/history persistence for rounds, bets and user stats."""

    def __init__(self, db: DatabaseSessionManager):
        self._db = db

    async def create_round(self, fields: dict) -> RoundId:
        game = Game()
        try:
            _assign(game, fields)
            async with self._db.session() as db:
                db.add(game)
                await db.commit()
        except (DatabaseError, ValueError) as e:
            raise PersistenceFailureError(
                str(e), "create_round", ErrorContext(group_key=fields.get("group_id")),
            ) from e
        return RoundId(str(game.id))

    async def update_round_aggregate(self, round_id: RoundId, fields: dict) -> None:
        await self._update(Game, round_id, fields, "update_round_aggregate")

    async def create_bet(self, fields: dict) -> BetRef:
        bet = Bet()
        try:
            _assign(bet, _uuid_fields(fields, "game_id", "user_id"))
            async with self._db.session() as db:
                db.add(bet)
                await db.commit()
        except (DatabaseError, ValueError) as e:
            raise PersistenceFailureError(
                str(e), "create_bet",
                ErrorContext(round_id=fields.get("game_id"), account=fields.get("user_id")),
            ) from e
        return BetRef(str(bet.id))

    async def update_bet(self, bet_ref: BetRef, fields: dict) -> None:
        await self._update(Bet, bet_ref, fields, "update_bet")

    async def increment_user_stats(self, account: AccountId, deltas: dict) -> None:
        unknown = set(deltas) - set(STAT_FIELDS)
        if unknown:
            raise PersistenceFailureError(
                f"unknown stat fields: {sorted(unknown)}", "increment_user_stats",
            )
        try:
            async with self._db.session() as db:
                user = (await db.execute(
                    select(User)
                    .where(User.id == parse_account(account))
                    .with_for_update(nowait=False),
                )).scalar_one_or_none()
                if user is None:
                    raise PersistenceFailureError(
                        f"user {account} not found", "increment_user_stats",
                    )
                for key, delta in deltas.items():
                    setattr(user, key, (getattr(user, key) or 0) + delta)
                await db.commit()
        except DatabaseError as e:
            raise PersistenceFailureError(
                e.message, "increment_user_stats", ErrorContext(account=account),
            ) from e

    async def get_user_stats(self, account: AccountId) -> dict:
        try:
            async with self._db.session() as db:
                user = await db.get(User, parse_account(account))
        except DatabaseError as e:
            raise PersistenceFailureError(
                e.message, "get_user_stats", ErrorContext(account=account),
            ) from e
        if user is None:
            raise AccountNotFoundError(account, ErrorContext(account=account))
        return {
            "username": user.username,
            **{key: getattr(user, key) for key in STAT_FIELDS},
        }

    async def _update(
        self, model: type[ModelT], record_id: str, fields: dict, operation: str,
    ) -> None:
        try:
            async with self._db.session() as db:
                obj = await db.get(model, uuid.UUID(str(record_id)))
                if obj is None:
                    raise PersistenceFailureError(
                        f"{model.__tablename__} {record_id} not found", operation,
                    )
                _assign(obj, fields)
                await db.commit()
        except (DatabaseError, ValueError) as e:
            raise PersistenceFailureError(str(e), operation) from e
