"""Position service: plan creation, listing, metrics and plan-vs-execution lookup."""

import uuid
from dataclasses import dataclass
from datetime import date, datetime
from typing import Dict, List, Optional

from loguru import logger

from tradejournal import config
from tradejournal.database.db_manager import DatabaseManager
from tradejournal.database.store import PositionStore
from tradejournal.domain.fifo import PositionPnL, process_position_fifo
from tradejournal.domain.plan_vs_execution import PlanVsExecution, analyze
from tradejournal.domain.risk import PositionRiskMetrics, calculate_risk
from tradejournal.domain.types import (
    JournalEntry, JournalEntryType, JournalField, Position, PositionStatus,
)
from tradejournal.domain.validators import validate_position
from tradejournal.errors import ValidationError
from tradejournal.services.locks import PositionLockRegistry
from tradejournal.services.price_service import PriceService

PLAN_PROMPT = "Why are you taking this trade?"


@dataclass(frozen=True)
class PositionMetrics:
    position_id: str
    status: PositionStatus
    open_quantity: int
    pnl: PositionPnL
    risk: PositionRiskMetrics
    marks: Dict[str, Optional[float]]


class PositionService:
    def __init__(self, db: DatabaseManager, prices: PriceService,
                 tolerance: float = config.EXECUTION_TOLERANCE,
                 locks: Optional[PositionLockRegistry] = None):
        self.db = db
        self.prices = prices
        self.tolerance = tolerance
        self.locks = locks or PositionLockRegistry()

    def new_position_id(self) -> str:
        return str(uuid.uuid4())

    def create_position(self, position: Position, journal_notes: Optional[str] = None,
                        today: Optional[date] = None) -> Position:
        """
        Validate and store a new plan.  Positions are created without trades;
        the plan starts out ``planned``.  Optional notes become a
        ``position_plan`` journal entry in the same unit of work.
        """
        if position.trades:
            raise ValidationError(
                "New positions cannot carry trades; add them after the plan is created",
                field="trades", value=len(position.trades), constraint="empty",
            )
        validate_position(position, today=today)

        with self.db.get_session() as session:
            store = PositionStore(session)
            store.create(position)
            if journal_notes and journal_notes.strip():
                entry = JournalEntry(
                    id=str(uuid.uuid4()),
                    entry_type=JournalEntryType.POSITION_PLAN,
                    fields=[JournalField("thesis", PLAN_PROMPT, journal_notes.strip())],
                    created_at=datetime.now(),
                    position_id=position.id,
                )
                store.add_journal_entry(entry)
                position.journal_entry_ids.append(entry.id)

        logger.info(f"Planned {position.strategy_type.value} {position.symbol} ({position.id})")
        return position

    def get_position(self, position_id: str) -> Position:
        with self.db.get_session() as session:
            return PositionStore(session).require(position_id)

    def list_positions(self, status: Optional[PositionStatus] = None) -> List[Position]:
        with self.db.get_session() as session:
            return PositionStore(session).get_all(status)

    def delete_position(self, position_id: str) -> None:
        with self.locks.hold(position_id):
            with self.db.get_session() as session:
                PositionStore(session).delete(position_id)
        logger.info(f"Deleted position {position_id}")

    def get_metrics(self, position_id: str, as_of: Optional[date] = None) -> PositionMetrics:
        position = self.get_position(position_id)
        instruments = {t.underlying for t in position.trades}
        marks = self.prices.get_price_map(sorted(instruments), as_of)
        pnl = process_position_fifo(position, marks)

        if pnl.missing_prices:
            logger.debug(f"No closing price for {pnl.missing_prices}; unrealized P&L excludes them")

        return PositionMetrics(
            position_id=position.id,
            status=position.status,
            open_quantity=position.open_quantity,
            pnl=pnl,
            risk=calculate_risk(position),
            marks=marks,
        )

    def compare_plan(self, position: Position) -> Optional[PlanVsExecution]:
        """Plan-vs-execution for a closed position, None while it is not closed."""
        if position.status is not PositionStatus.CLOSED:
            return None
        return analyze(position, process_position_fifo(position, {}), self.tolerance)

    def get_plan_vs_execution(self, position_id: str) -> Optional[PlanVsExecution]:
        return self.compare_plan(self.get_position(position_id))
