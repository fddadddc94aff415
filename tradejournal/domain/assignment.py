"""
Assignment Orchestrator

Turns an expired short put into a long stock position.  This module only
decides *what* gets written: it validates the request and pre-builds every
record (the $0 closing trade, the new stock position with its buy trade,
the assignment event, an optional journal entry).  Committing them as one
unit is the store's job.

Economics for N contracts at strike K with premium P received per share:

    total shares    = N x 100
    total cost      = shares x K
    cost basis      = K - P          (per share, net of premium)

The stock is bought at the strike; the premium reduces the basis and is
recorded on the closing trade as its cost-basis adjustment.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import List, Optional

from tradejournal.domain.options import effective_cost_basis, premium_per_share
from tradejournal.domain.types import (
    CONTRACT_MULTIPLIER, AssignmentEvent, AssignmentLink, JournalEntry, JournalEntryType,
    JournalField, OptionPosition, Position, PriceBasis, StockPosition, StrategyType, Trade,
    TradeDirection,
)
from tradejournal.domain.validators import (
    RuleViolation, raise_violations, validate_position, validate_trade,
)

logger = logging.getLogger(__name__)

ASSIGNMENT_NOTES_PROMPT = "What happened with this assignment, and what is the plan for the shares?"


@dataclass(frozen=True)
class AssignmentPreview:
    option_position_id: str
    contracts_assigned: int
    contracts_remaining: int
    strike_price: float
    premium_received_per_share: float
    resulting_cost_basis: float
    total_shares: int
    total_cost: float


@dataclass(frozen=True)
class AssignmentRequest:
    option_position_id: str
    contracts_assigned: int
    stock_position_thesis: str
    assignment_notes: str = ""
    stock_profit_target: Optional[float] = None
    stock_stop_loss: Optional[float] = None
    assignment_date: Optional[date] = None


@dataclass(frozen=True)
class AssignmentPlan:
    """Every record an assignment writes, ready to be committed together."""
    option_position: OptionPosition      # with the closing trade appended
    closing_trade: Trade
    stock_position: StockPosition        # with its buy trade
    stock_buy_trade: Trade
    event: AssignmentEvent
    journal_entry: Optional[JournalEntry] = None


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def _violations(position: Position, contracts: Optional[int], today: date) -> List[RuleViolation]:
    if not isinstance(position, OptionPosition):
        return [RuleViolation(
            "option_position_id", position.id, "option position",
            f"Position {position.id} is not an option position",
        )]

    violations: List[RuleViolation] = []

    if position.strategy_type != StrategyType.SHORT_PUT:
        violations.append(RuleViolation(
            "strategy_type", position.strategy_type.value, StrategyType.SHORT_PUT.value,
            f"Only {StrategyType.SHORT_PUT.value} positions can be assigned into stock",
        ))

    open_contracts = position.open_quantity
    if open_contracts <= 0:
        violations.append(RuleViolation(
            "open_quantity", open_contracts, "> 0", "Position has no open contracts",
        ))

    if position.expiration_date is None:
        violations.append(RuleViolation(
            "expiration_date", None, "required", "Position has no expiration date",
        ))
    elif today < position.expiration_date:
        violations.append(RuleViolation(
            "assignment_date", today.isoformat(), f">= {position.expiration_date.isoformat()}",
            f"Assignment is only possible on or after expiration ({position.expiration_date.isoformat()})",
            remediation="Wait until the expiration date, or close the position with a trade.",
        ))

    if contracts is not None:
        if isinstance(contracts, bool) or not isinstance(contracts, int) or contracts <= 0:
            violations.append(RuleViolation(
                "contracts_assigned", contracts, "positive whole number",
                "Contracts to assign must be a positive whole number",
            ))
        elif open_contracts > 0 and contracts > open_contracts:
            violations.append(RuleViolation(
                "contracts_assigned", contracts, f"<= {open_contracts}",
                f"Cannot assign {contracts} contracts; only {open_contracts} open",
            ))

    return violations


def validate_assignment(position: Position, contracts: Optional[int], today: Optional[date] = None) -> List[str]:
    """
    Check whether ``contracts`` of ``position`` can be assigned on ``today``.

    Returns:
        Error messages, empty when the assignment is allowed
    """
    return [v.message for v in _violations(position, contracts, today or date.today())]


# ---------------------------------------------------------------------------
# Preview
# ---------------------------------------------------------------------------

def preview_assignment(position: Position, contracts_to_assign: Optional[int] = None,
                       today: Optional[date] = None) -> AssignmentPreview:
    """Read-only economics of assigning ``contracts_to_assign`` (default: all open)."""
    today = today or date.today()
    raise_violations(_violations(position, contracts_to_assign, today))

    open_contracts = position.open_quantity
    contracts = contracts_to_assign if contracts_to_assign is not None else open_contracts

    premium = premium_per_share(
        position.trades, position.premium_per_contract, opening_side=position.entry_side,
    )
    shares = contracts * CONTRACT_MULTIPLIER

    return AssignmentPreview(
        option_position_id=position.id,
        contracts_assigned=contracts,
        contracts_remaining=open_contracts - contracts,
        strike_price=position.strike_price,
        premium_received_per_share=premium,
        resulting_cost_basis=effective_cost_basis(position.strike_price, premium),
        total_shares=shares,
        total_cost=shares * position.strike_price,
    )


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------

def _stock_target(requested: Optional[float], position: OptionPosition, name: str,
                  basis: PriceBasis) -> float:
    if requested is not None:
        return requested
    if basis == PriceBasis.STOCK_PRICE:
        return getattr(position, name)
    raise_violations([RuleViolation(
        f"stock_{name}", None, "required",
        f"stock_{name} is required: the option plan's {name} is not a stock price",
        remediation=f"Supply stock_{name} for the new stock position.",
    )])


def build_assignment(position: Position, request: AssignmentRequest, *, now: datetime,
                     stock_position_id: Optional[str] = None) -> AssignmentPlan:
    """
    Pre-build every record of an assignment.

    Args:
        position: Current state of the option position (read inside the unit of work)
        request: Caller input
        now: Timestamp stamped on every created record
        stock_position_id: Id for the new stock position, generated when omitted

    Returns:
        AssignmentPlan

    Raises:
        ValidationError: the position is not assignable or the request is incomplete
    """
    today = request.assignment_date or now.date()
    if request.option_position_id != position.id:
        raise_violations([RuleViolation(
            "option_position_id", request.option_position_id, position.id,
            "Request does not refer to this option position",
        )])

    preview = preview_assignment(position, request.contracts_assigned, today)

    stock_id = stock_position_id or _new_id()
    closing_trade = Trade(
        id=_new_id(),
        position_id=position.id,
        direction=position.exit_side,
        quantity=preview.contracts_assigned,
        price=0.0,
        timestamp=now,
        underlying=position.instrument_id,
        sequence=position.next_sequence(),
        notes="Assigned",
        option=position.option_leg(),
        assignment=AssignmentLink(
            created_stock_position_id=stock_id,
            cost_basis_adjustment=preview.premium_received_per_share,
        ),
    )
    validate_trade(closing_trade, position.entry_side)

    buy_trade = Trade(
        id=_new_id(),
        position_id=stock_id,
        direction=TradeDirection.BUY,
        quantity=preview.total_shares,
        price=preview.strike_price,
        timestamp=now,
        underlying=position.symbol,
        sequence=0,
        notes=f"Assigned from {position.occ_symbol}",
    )

    journal_entry = None
    if request.assignment_notes and request.assignment_notes.strip():
        journal_entry = JournalEntry(
            id=_new_id(),
            entry_type=JournalEntryType.OPTION_ASSIGNMENT,
            fields=[JournalField("assignment_notes", ASSIGNMENT_NOTES_PROMPT, request.assignment_notes.strip())],
            created_at=now,
            position_id=stock_id,
            trade_id=buy_trade.id,
        )

    stock_position = StockPosition(
        id=stock_id,
        symbol=position.symbol,
        strategy_type=StrategyType.LONG_STOCK,
        target_entry_price=preview.resulting_cost_basis,
        target_quantity=preview.total_shares,
        profit_target=_stock_target(request.stock_profit_target, position, "profit_target",
                                    position.profit_target_basis),
        stop_loss=_stock_target(request.stock_stop_loss, position, "stop_loss",
                                position.stop_loss_basis),
        position_thesis=request.stock_position_thesis,
        created_date=now,
        trades=[],
        journal_entry_ids=[journal_entry.id] if journal_entry else [],
    )
    validate_position(stock_position, today=today, max_quantity=None)
    validate_trade(buy_trade, stock_position.entry_side)
    stock_position.trades.append(buy_trade)

    event = AssignmentEvent(
        id=_new_id(),
        option_position_id=position.id,
        stock_position_id=stock_id,
        closing_trade_id=closing_trade.id,
        assignment_date=today,
        contracts_assigned=preview.contracts_assigned,
        strike_price=preview.strike_price,
        premium_received_per_share=preview.premium_received_per_share,
        resulting_cost_basis=preview.resulting_cost_basis,
        created_at=now,
    )

    logger.info(
        f"Built assignment of {preview.contracts_assigned} {position.occ_symbol} contracts "
        f"into {preview.total_shares} {position.symbol} shares @ {preview.strike_price} "
        f"(basis {preview.resulting_cost_basis:.2f})"
    )

    return AssignmentPlan(
        option_position=replace(position, trades=[*position.trades, closing_trade]),
        closing_trade=closing_trade,
        stock_position=stock_position,
        stock_buy_trade=buy_trade,
        event=event,
        journal_entry=journal_entry,
    )
