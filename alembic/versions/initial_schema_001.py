"""Create positions, trades, assignment events, price history and journal tables.

Revision ID: initial_schema_001
Revises:
Create Date: 2026-10-18
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "initial_schema_001"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _table_exists(conn, table_name: str) -> bool:
    return sa.inspect(conn).has_table(table_name)


def upgrade() -> None:
    conn = op.get_bind()

    if not _table_exists(conn, "positions"):
        op.create_table(
            "positions",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("symbol", sa.String(10), nullable=False),
            sa.Column("strategy_type", sa.String(30), nullable=False),
            sa.Column("kind", sa.String(10), nullable=False),
            sa.Column("target_entry_price", sa.Float, nullable=False),
            sa.Column("target_quantity", sa.Integer, nullable=False),
            sa.Column("profit_target", sa.Float, nullable=False),
            sa.Column("stop_loss", sa.Float, nullable=False),
            sa.Column("position_thesis", sa.Text, nullable=False),
            sa.Column("created_date", sa.DateTime, nullable=False),
            sa.Column("status", sa.String(10), nullable=False),
            sa.Column("option_type", sa.String(4)),
            sa.Column("strike_price", sa.Float),
            sa.Column("expiration_date", sa.Date),
            sa.Column("premium_per_contract", sa.Float),
            sa.Column("profit_target_basis", sa.String(20)),
            sa.Column("stop_loss_basis", sa.String(20)),
            sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
            sa.Index("idx_positions_symbol", "symbol"),
            sa.Index("idx_positions_status", "status"),
            sa.Index("idx_positions_strategy", "strategy_type"),
        )

    if not _table_exists(conn, "trades"):
        op.create_table(
            "trades",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("position_id", sa.String(36), sa.ForeignKey("positions.id", ondelete="CASCADE"), nullable=False),
            sa.Column("sequence", sa.Integer, nullable=False),
            sa.Column("direction", sa.String(4), nullable=False),
            sa.Column("quantity", sa.Integer, nullable=False),
            sa.Column("price", sa.Float, nullable=False),
            sa.Column("timestamp", sa.DateTime, nullable=False),
            sa.Column("underlying", sa.String(32), nullable=False),
            sa.Column("notes", sa.Text),
            sa.Column("option_type", sa.String(4)),
            sa.Column("strike_price", sa.Float),
            sa.Column("expiration_date", sa.Date),
            sa.Column("premium_per_contract", sa.Float),
            sa.Column("occ_symbol", sa.String(21)),
            sa.Column("created_stock_position_id", sa.String(36)),
            sa.Column("cost_basis_adjustment", sa.Float),
            sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
            sa.UniqueConstraint("position_id", "sequence", name="uq_trades_position_sequence"),
            sa.Index("idx_trades_position", "position_id"),
            sa.Index("idx_trades_underlying", "underlying"),
            sa.Index("idx_trades_timestamp", "timestamp"),
        )

    if not _table_exists(conn, "assignment_events"):
        op.create_table(
            "assignment_events",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("option_position_id", sa.String(36), sa.ForeignKey("positions.id"), nullable=False),
            sa.Column("stock_position_id", sa.String(36), sa.ForeignKey("positions.id"), nullable=False),
            sa.Column("closing_trade_id", sa.String(36), sa.ForeignKey("trades.id"), nullable=False),
            sa.Column("assignment_date", sa.Date, nullable=False),
            sa.Column("contracts_assigned", sa.Integer, nullable=False),
            sa.Column("strike_price", sa.Float, nullable=False),
            sa.Column("premium_received_per_share", sa.Float, nullable=False),
            sa.Column("resulting_cost_basis", sa.Float, nullable=False),
            sa.Column("created_at", sa.DateTime, nullable=False),
            sa.UniqueConstraint("closing_trade_id", name="uq_assignment_closing_trade"),
            sa.Index("idx_assignment_option_position", "option_position_id"),
            sa.Index("idx_assignment_stock_position", "stock_position_id"),
        )

    if not _table_exists(conn, "price_history"):
        op.create_table(
            "price_history",
            sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
            sa.Column("underlying", sa.String(32), nullable=False),
            sa.Column("date", sa.Date, nullable=False),
            sa.Column("open", sa.Float),
            sa.Column("high", sa.Float),
            sa.Column("low", sa.Float),
            sa.Column("close", sa.Float, nullable=False),
            sa.Column("updated_at", sa.DateTime, server_default=sa.func.now()),
            sa.UniqueConstraint("underlying", "date", name="uq_price_history_underlying_date"),
            sa.Index("idx_price_history_underlying", "underlying"),
        )

    if not _table_exists(conn, "journal_entries"):
        op.create_table(
            "journal_entries",
            sa.Column("id", sa.String(36), primary_key=True),
            sa.Column("position_id", sa.String(36), sa.ForeignKey("positions.id", ondelete="CASCADE")),
            sa.Column("trade_id", sa.String(36)),
            sa.Column("entry_type", sa.String(30), nullable=False),
            sa.Column("fields", sa.Text, nullable=False),
            sa.Column("created_at", sa.DateTime, nullable=False),
            sa.Index("idx_journal_position", "position_id"),
        )


def downgrade() -> None:
    op.drop_table("journal_entries")
    op.drop_table("price_history")
    op.drop_table("assignment_events")
    op.drop_table("trades")
    op.drop_table("positions")
