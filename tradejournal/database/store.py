"""
Position store: persists whole Position aggregates (plan + trades) and the
records an assignment writes, mapping between ORM rows and domain values.

A store wraps one Session, so everything done through it between
``get_session()`` entering and exiting is one unit of work.
"""

import json
import logging
from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session, selectinload

from tradejournal.database.models import (
    AssignmentEventRecord,
    JournalEntryRecord,
    PositionRecord,
    TradeRecord,
)
from tradejournal.domain.assignment import AssignmentPlan
from tradejournal.domain.types import (
    AssignmentEvent,
    AssignmentLink,
    JournalEntry,
    JournalEntryType,
    JournalField,
    OptionLeg,
    OptionPosition,
    OptionType,
    Position,
    PositionStatus,
    PriceBasis,
    StockPosition,
    StrategyType,
    Trade,
    TradeDirection,
)
from tradejournal.errors import DataIntegrityError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_ECONOMIC_FIELDS = ("direction", "quantity", "price", "underlying", "sequence")


# ---------------------------------------------------------------------------
# Row <-> domain mapping
# ---------------------------------------------------------------------------

def record_to_trade(row: TradeRecord) -> Trade:
    option = None
    if row.option_type:
        option = OptionLeg(
            option_type=OptionType(row.option_type),
            strike_price=row.strike_price,
            expiration_date=row.expiration_date,
            occ_symbol=row.occ_symbol,
            premium_per_contract=row.premium_per_contract,
        )
    assignment = None
    if row.created_stock_position_id:
        assignment = AssignmentLink(
            created_stock_position_id=row.created_stock_position_id,
            cost_basis_adjustment=row.cost_basis_adjustment or 0.0,
        )
    return Trade(
        id=row.id,
        position_id=row.position_id,
        direction=TradeDirection(row.direction),
        quantity=row.quantity,
        price=row.price,
        timestamp=row.timestamp,
        underlying=row.underlying,
        sequence=row.sequence,
        notes=row.notes,
        option=option,
        assignment=assignment,
    )


def trade_to_record(trade: Trade) -> TradeRecord:
    row = TradeRecord(
        id=trade.id,
        position_id=trade.position_id,
        sequence=trade.sequence,
        direction=trade.direction.value,
        quantity=trade.quantity,
        price=trade.price,
        timestamp=trade.timestamp,
        underlying=trade.underlying,
        notes=trade.notes,
    )
    if trade.option is not None:
        row.option_type = trade.option.option_type.value
        row.strike_price = trade.option.strike_price
        row.expiration_date = trade.option.expiration_date
        row.premium_per_contract = trade.option.premium_per_contract
        row.occ_symbol = trade.option.occ_symbol
    _apply_linkage(row, trade)
    return row


def _apply_linkage(row: TradeRecord, trade: Trade) -> None:
    if trade.assignment is not None:
        row.created_stock_position_id = trade.assignment.created_stock_position_id
        row.cost_basis_adjustment = trade.assignment.cost_basis_adjustment


def record_to_position(row: PositionRecord, journal_entry_ids: Optional[List[str]] = None) -> Position:
    try:
        strategy_type = StrategyType(row.strategy_type)
    except ValueError:
        raise DataIntegrityError(f"Position {row.id} has unknown strategy type {row.strategy_type!r}")

    trades = []
    for trade_row in row.trades:
        try:
            trades.append(record_to_trade(trade_row))
        except ValueError:
            logger.error("Skipping unreadable trade %s on position %s", trade_row.id, row.id)

    common = dict(
        id=row.id,
        symbol=row.symbol,
        strategy_type=strategy_type,
        target_entry_price=row.target_entry_price,
        target_quantity=row.target_quantity,
        profit_target=row.profit_target,
        stop_loss=row.stop_loss,
        position_thesis=row.position_thesis,
        created_date=row.created_date,
        trades=trades,
        journal_entry_ids=list(journal_entry_ids or []),
    )

    if row.kind == "option":
        position = OptionPosition(
            **common,
            option_type=OptionType(row.option_type) if row.option_type else None,
            strike_price=row.strike_price,
            expiration_date=row.expiration_date,
            premium_per_contract=row.premium_per_contract,
            profit_target_basis=PriceBasis(row.profit_target_basis or PriceBasis.STOCK_PRICE.value),
            stop_loss_basis=PriceBasis(row.stop_loss_basis or PriceBasis.STOCK_PRICE.value),
        )
    else:
        position = StockPosition(**common)

    derived = position.status
    if row.status != derived.value:
        logger.warning(
            "Position %s stored status %r disagrees with derived %r; using derived",
            row.id, row.status, derived.value,
        )
    return position


def _apply_plan(row: PositionRecord, position: Position) -> None:
    row.symbol = position.symbol
    row.strategy_type = position.strategy_type.value
    row.kind = "option" if isinstance(position, OptionPosition) else "stock"
    row.target_entry_price = position.target_entry_price
    row.target_quantity = position.target_quantity
    row.profit_target = position.profit_target
    row.stop_loss = position.stop_loss
    row.position_thesis = position.position_thesis
    row.created_date = position.created_date
    row.status = position.status.value
    if isinstance(position, OptionPosition):
        row.option_type = position.option_type.value if position.option_type else None
        row.strike_price = position.strike_price
        row.expiration_date = position.expiration_date
        row.premium_per_contract = position.premium_per_contract
        row.profit_target_basis = position.profit_target_basis.value
        row.stop_loss_basis = position.stop_loss_basis.value


def record_to_event(row: AssignmentEventRecord) -> AssignmentEvent:
    return AssignmentEvent(
        id=row.id,
        option_position_id=row.option_position_id,
        stock_position_id=row.stock_position_id,
        closing_trade_id=row.closing_trade_id,
        assignment_date=row.assignment_date,
        contracts_assigned=row.contracts_assigned,
        strike_price=row.strike_price,
        premium_received_per_share=row.premium_received_per_share,
        resulting_cost_basis=row.resulting_cost_basis,
        created_at=row.created_at,
    )


def event_to_record(event: AssignmentEvent) -> AssignmentEventRecord:
    return AssignmentEventRecord(
        id=event.id,
        option_position_id=event.option_position_id,
        stock_position_id=event.stock_position_id,
        closing_trade_id=event.closing_trade_id,
        assignment_date=event.assignment_date,
        contracts_assigned=event.contracts_assigned,
        strike_price=event.strike_price,
        premium_received_per_share=event.premium_received_per_share,
        resulting_cost_basis=event.resulting_cost_basis,
        created_at=event.created_at,
    )


def record_to_journal(row: JournalEntryRecord) -> JournalEntry:
    fields = [
        JournalField(name=f.get("name", ""), prompt=f.get("prompt", ""), response=f.get("response", ""))
        for f in json.loads(row.fields or "[]")
    ]
    return JournalEntry(
        id=row.id,
        entry_type=JournalEntryType(row.entry_type),
        fields=fields,
        created_at=row.created_at,
        position_id=row.position_id,
        trade_id=row.trade_id,
    )


def journal_to_record(entry: JournalEntry) -> JournalEntryRecord:
    return JournalEntryRecord(
        id=entry.id,
        position_id=entry.position_id,
        trade_id=entry.trade_id,
        entry_type=entry.entry_type.value,
        fields=json.dumps([
            {"name": f.name, "prompt": f.prompt, "response": f.response} for f in entry.fields
        ]),
        created_at=entry.created_at,
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class PositionStore:
    """Aggregate persistence for positions, bound to one session."""

    def __init__(self, session: Session):
        self.session = session

    # -- reads ---------------------------------------------------------------

    def _load(self, position_id: str) -> Optional[PositionRecord]:
        stmt = (
            select(PositionRecord)
            .options(selectinload(PositionRecord.trades))
            .where(PositionRecord.id == position_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def _journal_ids(self, position_id: str) -> List[str]:
        stmt = (
            select(JournalEntryRecord.id)
            .where(JournalEntryRecord.position_id == position_id)
            .order_by(JournalEntryRecord.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def get(self, position_id: str) -> Optional[Position]:
        row = self._load(position_id)
        if row is None:
            return None
        return record_to_position(row, self._journal_ids(position_id))

    def require(self, position_id: str) -> Position:
        position = self.get(position_id)
        if position is None:
            raise NotFoundError(f"Position not found: {position_id}")
        return position

    def get_all(self, status: Optional[PositionStatus] = None) -> List[Position]:
        stmt = (
            select(PositionRecord)
            .options(selectinload(PositionRecord.trades))
            .order_by(PositionRecord.created_date.desc())
        )
        positions = [
            record_to_position(row, self._journal_ids(row.id))
            for row in self.session.execute(stmt).scalars()
        ]
        if status is not None:
            positions = [p for p in positions if p.status is status]
        return positions

    # -- writes --------------------------------------------------------------

    def create(self, position: Position) -> Position:
        if self.session.get(PositionRecord, position.id) is not None:
            raise DataIntegrityError(f"Position {position.id} already exists")

        row = PositionRecord(id=position.id)
        _apply_plan(row, position)
        row.trades = [trade_to_record(t) for t in position.trades]
        self.session.add(row)
        self.session.flush()
        logger.info("Created position %s (%s %s)", position.id, position.strategy_type.value, position.symbol)
        return position

    def update(self, position: Position) -> Position:
        """
        Persist the aggregate.  Stored trades are append-only: a trade may gain
        assignment linkage, but its economic fields never change and no stored
        trade may disappear from the collection.
        """
        row = self._load(position.id)
        if row is None:
            raise NotFoundError(f"Position not found: {position.id}")

        incoming = {t.id: t for t in position.trades}
        for stored in row.trades:
            trade = incoming.get(stored.id)
            if trade is None:
                raise DataIntegrityError(
                    f"Trade {stored.id} cannot be removed from position {position.id}"
                )
            if (trade.direction.value, trade.quantity, trade.price, trade.underlying, trade.sequence) != \
                    tuple(getattr(stored, f) for f in _ECONOMIC_FIELDS):
                raise DataIntegrityError(f"Trade {stored.id} is immutable")
            _apply_linkage(stored, trade)

        stored_ids = {t.id for t in row.trades}
        for trade in position.trades:
            if trade.id not in stored_ids:
                row.trades.append(trade_to_record(trade))

        previous = row.status
        _apply_plan(row, position)
        self.session.flush()

        if previous != row.status:
            logger.info("Position %s status %s -> %s", position.id, previous, row.status)
        return position

    def delete(self, position_id: str) -> None:
        row = self.session.get(PositionRecord, position_id)
        if row is None:
            raise NotFoundError(f"Position not found: {position_id}")
        if self.get_assignment_event(option_position_id=position_id) or \
                self.get_assignment_event(stock_position_id=position_id):
            raise ValidationError(
                f"Position {position_id} is linked to an assignment and cannot be deleted",
                field="id",
                value=position_id,
                constraint="not referenced by an assignment event",
            )
        self.session.delete(row)
        self.session.flush()
        logger.info("Deleted position %s", position_id)

    # -- assignment ----------------------------------------------------------

    def commit_assignment(self, plan: AssignmentPlan) -> None:
        """
        Stage every record of an assignment plan in this unit of work.

        Nothing is visible to other sessions until the surrounding
        ``get_session()`` block commits; any failure rolls all of it back.
        """
        self.update(plan.option_position)
        self.create(plan.stock_position)
        if plan.journal_entry is not None:
            self.session.add(journal_to_record(plan.journal_entry))
        self.session.add(event_to_record(plan.event))
        self.session.flush()

    def get_assignment_event(self, option_position_id: Optional[str] = None,
                             stock_position_id: Optional[str] = None) -> Optional[AssignmentEvent]:
        if option_position_id is None and stock_position_id is None:
            return None
        clauses = []
        if option_position_id is not None:
            clauses.append(AssignmentEventRecord.option_position_id == option_position_id)
        if stock_position_id is not None:
            clauses.append(AssignmentEventRecord.stock_position_id == stock_position_id)
        stmt = (
            select(AssignmentEventRecord)
            .where(or_(*clauses))
            .order_by(AssignmentEventRecord.created_at.desc())
        )
        row = self.session.execute(stmt).scalars().first()
        return record_to_event(row) if row else None

    # -- journal -------------------------------------------------------------

    def add_journal_entry(self, entry: JournalEntry) -> JournalEntry:
        self.session.add(journal_to_record(entry))
        self.session.flush()
        return entry

    def list_journal_entries(self, position_id: str) -> List[JournalEntry]:
        stmt = (
            select(JournalEntryRecord)
            .where(JournalEntryRecord.position_id == position_id)
            .order_by(JournalEntryRecord.created_at)
        )
        return [record_to_journal(row) for row in self.session.execute(stmt).scalars()]
