"""
Trade service: validated, serialized trade appends.

Each append holds the position's lock across its read-validate-write cycle,
so two appends to one position never interleave.  When an append closes
the position, the plan-vs-execution comparison is produced once and logged.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import List, Optional

from loguru import logger

from tradejournal.database.db_manager import DatabaseManager
from tradejournal.database.store import PositionStore
from tradejournal.domain.plan_vs_execution import PlanVsExecution
from tradejournal.domain.types import OptionPosition, Position, PositionStatus, Trade, TradeDirection
from tradejournal.domain.validators import validate_append
from tradejournal.errors import ValidationError
from tradejournal.services.locks import PositionLockRegistry
from tradejournal.services.position_service import PositionService


@dataclass(frozen=True)
class TradeAppendResult:
    position: Position
    trade: Trade
    previous_status: PositionStatus
    comparison: Optional[PlanVsExecution] = None


def normalize_timestamp(timestamp: Optional[datetime]) -> datetime:
    """Stored timestamps are naive local time; aware values are converted."""
    if timestamp is None:
        return datetime.now()
    if timestamp.tzinfo is not None:
        return timestamp.astimezone().replace(tzinfo=None)
    return timestamp


class TradeService:
    def __init__(self, db: DatabaseManager, positions: PositionService,
                 locks: Optional[PositionLockRegistry] = None):
        self.db = db
        self.positions = positions
        self.locks = locks or PositionLockRegistry()

    def _build_trade(self, position: Position, direction: TradeDirection, quantity: int, price: float,
                     timestamp: Optional[datetime], underlying: Optional[str], notes: Optional[str]) -> Trade:
        if isinstance(quantity, float) and quantity.is_integer():
            quantity = int(quantity)
        if underlying is None:
            underlying = position.instrument_id
        elif isinstance(underlying, str):
            underlying = underlying.strip().upper()
        return Trade(
            id=str(uuid.uuid4()),
            position_id=position.id,
            direction=direction,
            quantity=quantity,
            price=price,
            timestamp=normalize_timestamp(timestamp),
            underlying=underlying,
            sequence=position.next_sequence(),
            notes=notes,
            option=position.option_leg() if isinstance(position, OptionPosition) else None,
        )

    def add_trade(self, position_id: str, direction: TradeDirection, quantity: int, price: float,
                  timestamp: Optional[datetime] = None, underlying: Optional[str] = None,
                  notes: Optional[str] = None) -> TradeAppendResult:
        """
        Append one trade to a position.

        Args:
            position_id: Position receiving the trade
            direction: buy or sell
            quantity: Positive whole number of shares or contracts
            price: Execution price (zero only for exits)
            timestamp: Execution time, defaults to now
            underlying: Instrument id; defaults to the ticker, or the OCC symbol for options
            notes: Optional free text

        Returns:
            TradeAppendResult with the updated position and the stored trade

        Raises:
            NotFoundError: no such position
            ValidationError: the trade breaks a rule; nothing is stored
        """
        with self.locks.hold(position_id):
            with self.db.get_session() as session:
                store = PositionStore(session)
                position = store.require(position_id)
                previous = position.status

                trade = self._build_trade(position, direction, quantity, price, timestamp, underlying, notes)
                try:
                    validate_append(position, trade)
                except ValidationError as e:
                    logger.warning(f"Rejected {direction.value} {quantity} on {position_id}: {e.message}")
                    raise

                updated = replace(position, trades=[*position.trades, trade])
                store.update(updated)

        current = updated.status
        if current is not previous:
            logger.info(f"Position {position_id}: {previous.value} -> {current.value}")

        comparison = None
        if current is PositionStatus.CLOSED and previous is not PositionStatus.CLOSED:
            comparison = self.positions.compare_plan(updated)
            logger.info(
                f"Position {position_id} closed: realized {comparison.actual_profit:.2f} vs plan "
                f"{comparison.target_profit:.2f} ({comparison.overall_execution_quality.value})"
            )

        return TradeAppendResult(position=updated, trade=trade, previous_status=previous, comparison=comparison)

    def get_trades(self, position_id: str) -> List[Trade]:
        return list(self.positions.get_position(position_id).trades)
