"""
Domain types for the trade journal.

A Position is a trade plan plus its realized trade history.  Stock and option
plans share the common plan fields; option-only fields live on
OptionPosition and nowhere else.  Trades are immutable values: the only way
to "change" one is to build a new value with ``dataclasses.replace``, and
only the assignment linkage is ever attached that way.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

# Shares delivered per standard equity option contract
CONTRACT_MULTIPLIER = 100


class TradeDirection(str, Enum):
    BUY = "buy"
    SELL = "sell"

    @property
    def opposite(self) -> "TradeDirection":
        return TradeDirection.SELL if self is TradeDirection.BUY else TradeDirection.BUY


class PositionStatus(str, Enum):
    PLANNED = "planned"
    OPEN = "open"
    CLOSED = "closed"


class OptionType(str, Enum):
    CALL = "call"
    PUT = "put"


class PriceBasis(str, Enum):
    """What a profit target / stop loss is measured against."""
    STOCK_PRICE = "stock_price"    # the underlying's price
    OPTION_PRICE = "option_price"  # the option premium


class InstrumentKind(str, Enum):
    STOCK = "stock"
    OPTION = "option"


class StrategyType(str, Enum):
    LONG_STOCK = "Long Stock"
    SHORT_PUT = "Short Put"


class JournalEntryType(str, Enum):
    POSITION_PLAN = "position_plan"
    TRADE_EXECUTION = "trade_execution"
    OPTION_ASSIGNMENT = "option_assignment"


@dataclass(frozen=True)
class StrategyDef:
    """Registry entry describing how a strategy is traded."""
    strategy_type: StrategyType
    instrument_kind: InstrumentKind
    entry_side: TradeDirection        # BUY for long strategies, SELL for short
    option_type: Optional[OptionType] = None

    @property
    def exit_side(self) -> TradeDirection:
        return self.entry_side.opposite

    @property
    def is_option(self) -> bool:
        return self.instrument_kind is InstrumentKind.OPTION


STRATEGIES: Dict[StrategyType, StrategyDef] = {
    StrategyType.LONG_STOCK: StrategyDef(
        StrategyType.LONG_STOCK, InstrumentKind.STOCK, TradeDirection.BUY,
    ),
    StrategyType.SHORT_PUT: StrategyDef(
        StrategyType.SHORT_PUT, InstrumentKind.OPTION, TradeDirection.SELL, OptionType.PUT,
    ),
}


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OptionLeg:
    """Contract details carried by an option trade."""
    option_type: OptionType
    strike_price: float
    expiration_date: date
    occ_symbol: str
    premium_per_contract: Optional[float] = None


@dataclass(frozen=True)
class AssignmentLink:
    """Records that a closing trade spawned a new position via assignment."""
    created_stock_position_id: str
    cost_basis_adjustment: float


@dataclass(frozen=True)
class Trade:
    id: str
    position_id: str
    direction: TradeDirection
    quantity: int
    price: float
    timestamp: datetime
    underlying: str                  # instrument id: ticker or OCC symbol
    sequence: int = 0                # insertion order within the position
    notes: Optional[str] = None
    option: Optional[OptionLeg] = None
    assignment: Optional[AssignmentLink] = None

    @property
    def is_buy(self) -> bool:
        return self.direction == TradeDirection.BUY

    @property
    def is_sell(self) -> bool:
        return self.direction == TradeDirection.SELL

    @property
    def is_option(self) -> bool:
        return self.option is not None

    def with_assignment(self, link: AssignmentLink) -> "Trade":
        return replace(self, assignment=link)


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------

@dataclass
class Position:
    id: str
    symbol: str
    strategy_type: StrategyType
    target_entry_price: float
    target_quantity: int
    profit_target: float
    stop_loss: float
    position_thesis: str
    created_date: datetime
    trades: List[Trade] = field(default_factory=list)
    journal_entry_ids: List[str] = field(default_factory=list)

    @property
    def strategy(self) -> StrategyDef:
        return STRATEGIES[self.strategy_type]

    @property
    def entry_side(self) -> TradeDirection:
        return self.strategy.entry_side

    @property
    def exit_side(self) -> TradeDirection:
        return self.strategy.exit_side

    @property
    def is_option(self) -> bool:
        return False

    @property
    def multiplier(self) -> int:
        return 1

    @property
    def instrument_id(self) -> str:
        """Identifier stamped on this position's trades as ``underlying``."""
        return self.symbol

    @property
    def status(self) -> PositionStatus:
        from tradejournal.domain.status import compute_status
        return compute_status(self.trades)

    @property
    def open_quantity(self) -> int:
        from tradejournal.domain.status import open_quantity
        return open_quantity(self.trades, self.entry_side)

    def next_sequence(self) -> int:
        return max((t.sequence for t in self.trades), default=-1) + 1

    def find_trade(self, trade_id: str) -> Optional[Trade]:
        return next((t for t in self.trades if t.id == trade_id), None)


@dataclass
class StockPosition(Position):
    pass


@dataclass
class OptionPosition(Position):
    option_type: Optional[OptionType] = None
    strike_price: Optional[float] = None
    expiration_date: Optional[date] = None
    premium_per_contract: Optional[float] = None
    profit_target_basis: PriceBasis = PriceBasis.STOCK_PRICE
    stop_loss_basis: PriceBasis = PriceBasis.STOCK_PRICE

    @property
    def is_option(self) -> bool:
        return True

    @property
    def multiplier(self) -> int:
        return CONTRACT_MULTIPLIER

    @property
    def occ_symbol(self) -> str:
        from tradejournal.domain.options import derive_occ_symbol
        return derive_occ_symbol(self.symbol, self.expiration_date, self.option_type, self.strike_price)

    @property
    def instrument_id(self) -> str:
        return self.occ_symbol

    def option_leg(self) -> OptionLeg:
        return OptionLeg(
            option_type=self.option_type,
            strike_price=self.strike_price,
            expiration_date=self.expiration_date,
            occ_symbol=self.occ_symbol,
            premium_per_contract=self.premium_per_contract,
        )


# ---------------------------------------------------------------------------
# Assignment and journal records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AssignmentEvent:
    id: str
    option_position_id: str
    stock_position_id: str
    closing_trade_id: str
    assignment_date: date
    contracts_assigned: int
    strike_price: float
    premium_received_per_share: float
    resulting_cost_basis: float
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class JournalField:
    name: str
    prompt: str
    response: str


@dataclass(frozen=True)
class JournalEntry:
    id: str
    entry_type: JournalEntryType
    fields: List[JournalField]
    created_at: datetime
    position_id: Optional[str] = None
    trade_id: Optional[str] = None
