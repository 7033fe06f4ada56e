"""Initial schema: users, wallets, games, bets.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(28, 9)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("telegram_id", sa.BigInteger, nullable=True, unique=True),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("total_games", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_wins", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_wagered_sol", MONEY, nullable=False, server_default="0"),
        sa.Column("total_wagered_usdc", MONEY, nullable=False, server_default="0"),
        sa.Column("total_won_sol", MONEY, nullable=False, server_default="0"),
        sa.Column("total_won_usdc", MONEY, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "wallets",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("chain", sa.String(20), nullable=False, server_default="solana"),
        sa.Column("address", sa.String(64), nullable=True),
        sa.Column("sol_balance", MONEY, nullable=False, server_default="0"),
        sa.Column("usdc_balance", MONEY, nullable=False, server_default="0"),
        sa.Column("last_balance_update", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "chain"),
    )

    op.create_table(
        "games",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("group_id", sa.String(64), nullable=False),
        sa.Column("group_name", sa.String(200), nullable=True),
        sa.Column("dice_type", sa.String(10), nullable=True),
        sa.Column("dice_min", sa.Integer, nullable=False, server_default="1"),
        sa.Column("dice_max", sa.Integer, nullable=False),
        sa.Column("randomness_method", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("num_players", sa.Integer, nullable=False, server_default="0"),
        sa.Column("pot_sol", MONEY, nullable=False, server_default="0"),
        sa.Column("pot_usdc", MONEY, nullable=False, server_default="0"),
        sa.Column("dice_result", sa.Integer, nullable=True),
        sa.Column("winner_ids", sa.JSON, nullable=True),
        sa.Column("house_fee_sol", MONEY, nullable=True),
        sa.Column("house_fee_usdc", MONEY, nullable=True),
        sa.Column("house_residue_sol", MONEY, nullable=True),
        sa.Column("house_residue_usdc", MONEY, nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_games_group_id", "games", ["group_id"])

    op.create_table(
        "bets",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("game_id", UUID(as_uuid=True), sa.ForeignKey("games.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("chosen_number", sa.Integer, nullable=False),
        sa.Column("stake_amount", MONEY, nullable=False),
        sa.Column("token", sa.String(10), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("won", sa.Boolean, nullable=True),
        sa.Column("payout", MONEY, nullable=True),
        sa.Column("distance_from_result", sa.Integer, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_bets_game_id", "bets", ["game_id"])
    op.create_index("ix_bets_user_id", "bets", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_bets_user_id", table_name="bets")
    op.drop_index("ix_bets_game_id", table_name="bets")
    op.drop_table("bets")
    op.drop_index("ix_games_group_id", table_name="games")
    op.drop_table("games")
    op.drop_table("wallets")
    op.drop_table("users")
