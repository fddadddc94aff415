"""
SQLAlchemy 2.0 declarative models for the trade journal tables.

Positions own their trades; a trade row is append-only as far as its
economic columns go (see ``_reject_trade_rewrites``).  The ``status`` column
on positions is a cache for filtering and is rewritten on every write.
"""

import logging
from datetime import date as date_type, datetime
from typing import Any, Dict

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    event,
    func,
    inspect,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from tradejournal.errors import DataIntegrityError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Base class with to_dict() for JSON serialization
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    """Shared declarative base with a generic to_dict() helper."""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize all columns to a plain dict."""
        result = {}
        for col in self.__table__.columns:
            value = getattr(self, col.key)
            if isinstance(value, (datetime, date_type)):
                value = value.isoformat()
            result[col.key] = value
        return result


# ---------------------------------------------------------------------------
# Positions and trades
# ---------------------------------------------------------------------------

class PositionRecord(Base):
    __tablename__ = "positions"

    id = Column(String(36), primary_key=True)
    symbol = Column(String(10), nullable=False)
    strategy_type = Column(String(30), nullable=False)
    kind = Column(String(10), nullable=False)  # 'stock' or 'option'
    target_entry_price = Column(Float, nullable=False)
    target_quantity = Column(Integer, nullable=False)
    profit_target = Column(Float, nullable=False)
    stop_loss = Column(Float, nullable=False)
    position_thesis = Column(Text, nullable=False)
    created_date = Column(DateTime, nullable=False)
    status = Column(String(10), nullable=False, default="planned")  # cache only

    # option-only columns
    option_type = Column(String(4))
    strike_price = Column(Float)
    expiration_date = Column(Date)
    premium_per_contract = Column(Float)
    profit_target_basis = Column(String(20))
    stop_loss_basis = Column(String(20))

    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # relationships
    trades = relationship(
        "TradeRecord",
        back_populates="position",
        order_by="TradeRecord.sequence",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("idx_positions_symbol", "symbol"),
        Index("idx_positions_status", "status"),
        Index("idx_positions_strategy", "strategy_type"),
    )


class TradeRecord(Base):
    __tablename__ = "trades"

    id = Column(String(36), primary_key=True)
    position_id = Column(String(36), ForeignKey("positions.id", ondelete="CASCADE"), nullable=False)
    sequence = Column(Integer, nullable=False)
    direction = Column(String(4), nullable=False)  # 'buy' or 'sell'
    quantity = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    underlying = Column(String(32), nullable=False)
    notes = Column(Text)

    # option leg
    option_type = Column(String(4))
    strike_price = Column(Float)
    expiration_date = Column(Date)
    premium_per_contract = Column(Float)
    occ_symbol = Column(String(21))

    # assignment linkage
    created_stock_position_id = Column(String(36))
    cost_basis_adjustment = Column(Float)

    created_at = Column(DateTime, server_default=func.now())

    # relationships
    position = relationship("PositionRecord", back_populates="trades")

    __table_args__ = (
        UniqueConstraint("position_id", "sequence", name="uq_trades_position_sequence"),
        Index("idx_trades_position", "position_id"),
        Index("idx_trades_underlying", "underlying"),
        Index("idx_trades_timestamp", "timestamp"),
    )


# Columns that define a trade's economics; never rewritten once stored.
IMMUTABLE_TRADE_COLUMNS = (
    "position_id", "sequence", "direction", "quantity", "price", "timestamp", "underlying",
)


@event.listens_for(TradeRecord, "before_update")
def _reject_trade_rewrites(mapper, connection, target):
    state = inspect(target)
    changed = [
        name for name in IMMUTABLE_TRADE_COLUMNS
        if state.attrs[name].history.has_changes()
    ]
    if changed:
        logger.error("Rejected update of trade %s columns %s", target.id, changed)
        raise DataIntegrityError(
            f"Trade {target.id} is immutable; attempted to change {', '.join(changed)}"
        )


# ---------------------------------------------------------------------------
# Assignment events
# ---------------------------------------------------------------------------

class AssignmentEventRecord(Base):
    __tablename__ = "assignment_events"

    id = Column(String(36), primary_key=True)
    option_position_id = Column(String(36), ForeignKey("positions.id"), nullable=False)
    stock_position_id = Column(String(36), ForeignKey("positions.id"), nullable=False)
    closing_trade_id = Column(String(36), ForeignKey("trades.id"), nullable=False)
    assignment_date = Column(Date, nullable=False)
    contracts_assigned = Column(Integer, nullable=False)
    strike_price = Column(Float, nullable=False)
    premium_received_per_share = Column(Float, nullable=False)
    resulting_cost_basis = Column(Float, nullable=False)
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("closing_trade_id", name="uq_assignment_closing_trade"),
        Index("idx_assignment_option_position", "option_position_id"),
        Index("idx_assignment_stock_position", "stock_position_id"),
    )


# ---------------------------------------------------------------------------
# Collaborator tables: prices and journal
# ---------------------------------------------------------------------------

class PriceHistoryRecord(Base):
    __tablename__ = "price_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    underlying = Column(String(32), nullable=False)
    date = Column(Date, nullable=False)
    open = Column(Float)
    high = Column(Float)
    low = Column(Float)
    close = Column(Float, nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("underlying", "date", name="uq_price_history_underlying_date"),
        Index("idx_price_history_underlying", "underlying"),
    )


class JournalEntryRecord(Base):
    __tablename__ = "journal_entries"

    id = Column(String(36), primary_key=True)
    position_id = Column(String(36), ForeignKey("positions.id", ondelete="CASCADE"))
    trade_id = Column(String(36))
    entry_type = Column(String(30), nullable=False)
    fields = Column(Text, nullable=False)  # JSON array of {name, prompt, response}
    created_at = Column(DateTime, nullable=False)

    __table_args__ = (
        Index("idx_journal_position", "position_id"),
    )
