"""Wallet ORM: custodial ledger balances per unit for one user.

Invariants:
    - One wallet per (user, chain)
    - Balances never go negative (enforced by SqlLedger.adjust_balance)
    - Column names follow <unit>_balance so adapters address them by StakeUnit
"""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Numeric, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from diceit.db.base import Base


class Wallet(Base):
    """Ledger balances for one user."""
    __tablename__ = "wallets"
    __table_args__ = (UniqueConstraint("user_id", "chain"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    chain: Mapped[str] = mapped_column(String(20), nullable=False, default="solana")
    address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    sol_balance: Mapped[Decimal] = mapped_column(
        Numeric(28, 9), nullable=False, default=Decimal(0),
    )
    usdc_balance: Mapped[Decimal] = mapped_column(
        Numeric(28, 9), nullable=False, default=Decimal(0),
    )
    last_balance_update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
