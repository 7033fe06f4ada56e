"""SQL Ledger: LedgerPort over the wallets table.

Invariants:
    - adjust_balance is one transaction: row lock, read, check, write, commit
    - A debit that would drive the balance negative raises InsufficientFundsError
      and leaves the row untouched
    - DatabaseError is surfaced as LedgerFailureError

Design Decisions:
    - SELECT ... FOR UPDATE on the wallet row (no-op on SQLite, used in tests)
"""

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from diceit.core.domain_types import AccountId, StakeUnit
from diceit.core.errors import (
    AccountNotFoundError, DatabaseError, ErrorContext, InsufficientFundsError,
    LedgerFailureError,
)
from diceit.infrastructure.database import DatabaseSessionManager
from diceit.models.wallet import Wallet

logger = logging.getLogger(__name__)

DEFAULT_CHAIN = "solana"


def _balance_column(unit: StakeUnit) -> str:
    return f"{unit.value.lower()}_balance"


def parse_account(account: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(account))
    except ValueError:
        raise AccountNotFoundError(account, ErrorContext(account=account)) from None


class SqlLedger:
    """Balances stored per unit on the user's wallet row."""

    def __init__(self, db: DatabaseSessionManager, chain: str = DEFAULT_CHAIN):
        self._db = db
        self.chain = chain

    async def get_balance(self, account: AccountId, unit: StakeUnit) -> Decimal:
        try:
            async with self._db.session() as db:
                wallet = await self._wallet(db, account)
                return Decimal(getattr(wallet, _balance_column(unit)))
        except DatabaseError as e:
            raise LedgerFailureError(e.message, ErrorContext(account=account)) from e

    async def adjust_balance(
        self, account: AccountId, unit: StakeUnit, delta: Decimal,
    ) -> None:
        column = _balance_column(unit)
        try:
            async with self._db.session() as db:
                wallet = await self._wallet(db, account, for_update=True)
                current = Decimal(getattr(wallet, column))
                new_balance = current + delta
                if new_balance < 0:
                    raise InsufficientFundsError(
                        unit.value, current, ErrorContext(account=account),
                    )
                setattr(wallet, column, new_balance)
                wallet.last_balance_update = datetime.now(timezone.utc)
                await db.commit()
        except DatabaseError as e:
            raise LedgerFailureError(e.message, ErrorContext(account=account)) from e

        logger.info(
            f"Ledger adjusted by {delta} {unit.value}",
            extra={"account": account, "unit": unit.value},
        )

    async def _wallet(
        self, db: AsyncSession, account: AccountId, for_update: bool = False,
    ) -> Wallet:
        query = select(Wallet).where(
            Wallet.user_id == parse_account(account),
            Wallet.chain == self.chain,
        )
        if for_update:
            query = query.with_for_update(nowait=False)
        wallet = (await db.execute(query)).scalar_one_or_none()
        if wallet is None:
            raise AccountNotFoundError(account, ErrorContext(account=account))
        return wallet
