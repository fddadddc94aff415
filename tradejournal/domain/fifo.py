"""
FIFO Matching Engine

Matches exit trades against the oldest open entry lots of one instrument and
reports realized P&L per exit, unrealized P&L at a mark price, and what is
still open.  The lot queue lives only for the duration of one call, so the
engine is a pure function of its inputs.

Long positions open lots with buys and close them with sells.  Passing
``entry_side=TradeDirection.SELL`` mirrors that for short positions (a short
put opens with a sell-to-open and closes with a buy-to-close).
"""

import logging
import math
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from tradejournal.domain.status import usable_quantity
from tradejournal.domain.types import Position, Trade, TradeDirection

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchedEntry:
    """One slice of an exit matched against one entry lot."""
    entry_trade_id: str
    matched_quantity: int
    entry_price: float
    exit_price: float
    pnl: float


@dataclass(frozen=True)
class TradePnL:
    trade_id: str
    pnl: float
    matched_quantity: int        # entries: 0; exits: the exit's full quantity
    unmatched_quantity: int = 0  # part of an exit that found no open lot
    matched_entries: List[MatchedEntry] = field(default_factory=list)


@dataclass(frozen=True)
class FIFOResult:
    trade_pnl: List[TradePnL]
    realized_pnl: float
    unrealized_pnl: float
    total_pnl: float
    open_quantity: int
    avg_open_cost: float
    is_fully_closed: bool

    @classmethod
    def empty(cls) -> "FIFOResult":
        return cls(
            trade_pnl=[], realized_pnl=0.0, unrealized_pnl=0.0, total_pnl=0.0,
            open_quantity=0, avg_open_cost=0.0, is_fully_closed=True,
        )

    def pnl_for(self, trade_id: str) -> Optional[TradePnL]:
        return next((p for p in self.trade_pnl if p.trade_id == trade_id), None)


@dataclass
class _OpenLot:
    trade_id: str
    price: float
    remaining: int


def _side(trade: Any) -> Optional[TradeDirection]:
    raw = getattr(trade, "direction", None)
    try:
        return TradeDirection(getattr(raw, "value", raw))
    except ValueError:
        return None


def _is_price(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _valid(trade: Any) -> bool:
    return (
        usable_quantity(getattr(trade, "quantity", None)) > 0
        and _is_price(getattr(trade, "price", None))
        and isinstance(getattr(trade, "timestamp", None), datetime)
    )


def _sort_key(trade: Trade) -> datetime:
    timestamp = trade.timestamp
    # aware timestamps compare as naive UTC so mixed logs still sort
    if timestamp.tzinfo is not None:
        return timestamp.astimezone(timezone.utc).replace(tzinfo=None)
    return timestamp


def _ordered(trades: List[Trade]) -> List[Trade]:
    # sorted() is stable: equal timestamps keep insertion order
    return sorted(trades, key=_sort_key)


def process_fifo(
    trades: Optional[List[Trade]],
    mark_price: Optional[float],
    *,
    entry_side: TradeDirection = TradeDirection.BUY,
    multiplier: int = 1,
) -> FIFOResult:
    """
    Run FIFO lot matching over one instrument's trades.

    Args:
        trades: Trades for a single instrument, in insertion order
        mark_price: Current price used to value what is still open; anything
            that is not a finite number leaves unrealized P&L at zero
        entry_side: Direction that opens lots (BUY for long, SELL for short)
        multiplier: Dollar multiplier per unit (100 for option contracts)

    Returns:
        FIFOResult with per-trade attribution in timestamp order
    """
    try:
        items = list(trades or [])
    except TypeError:
        logger.warning(f"Trade collection is not iterable ({type(trades).__name__}); returning empty result")
        return FIFOResult.empty()

    usable = []
    for trade in items:
        if _side(trade) is None or not _valid(trade):
            logger.warning(f"Skipping malformed trade {getattr(trade, 'id', '?')}")
            continue
        usable.append(trade)
    if not usable:
        return FIFOResult.empty()

    exit_side = entry_side.opposite
    # short lots profit when the exit price is below the entry price
    sign = 1 if entry_side is TradeDirection.BUY else -1

    lots = deque()
    trade_pnl: List[TradePnL] = []
    realized = 0.0

    for trade in _ordered(usable):
        side = _side(trade)
        if side is entry_side:
            lots.append(_OpenLot(trade.id, trade.price, trade.quantity))
            trade_pnl.append(TradePnL(trade_id=trade.id, pnl=0.0, matched_quantity=0))
            continue

        remaining = trade.quantity
        trade_total = 0.0
        slices: List[MatchedEntry] = []

        while remaining > 0 and lots:
            lot = lots[0]
            qty = min(remaining, lot.remaining)
            pnl = sign * (trade.price - lot.price) * qty * multiplier
            slices.append(MatchedEntry(
                entry_trade_id=lot.trade_id,
                matched_quantity=qty,
                entry_price=lot.price,
                exit_price=trade.price,
                pnl=pnl,
            ))
            trade_total += pnl
            lot.remaining -= qty
            remaining -= qty
            if lot.remaining == 0:
                lots.popleft()

        if remaining > 0:
            logger.warning(
                f"{exit_side.value} trade {trade.id} exceeds open lots by {remaining}; "
                f"unmatched quantity carries no P&L"
            )

        realized += trade_total
        trade_pnl.append(TradePnL(
            trade_id=trade.id,
            pnl=trade_total,
            matched_quantity=trade.quantity,
            unmatched_quantity=remaining,
            matched_entries=slices,
        ))

    open_quantity = sum(lot.remaining for lot in lots)
    if open_quantity > 0:
        avg_open_cost = sum(lot.price * lot.remaining for lot in lots) / open_quantity
        if _is_price(mark_price):
            unrealized = sign * (mark_price - avg_open_cost) * open_quantity * multiplier
        else:
            logger.debug(f"No usable mark price ({mark_price!r}); {open_quantity} open carries no unrealized P&L")
            unrealized = 0.0
    else:
        avg_open_cost = 0.0
        unrealized = 0.0

    return FIFOResult(
        trade_pnl=trade_pnl,
        realized_pnl=realized,
        unrealized_pnl=unrealized,
        total_pnl=realized + unrealized,
        open_quantity=open_quantity,
        avg_open_cost=avg_open_cost,
        is_fully_closed=open_quantity == 0,
    )


# ---------------------------------------------------------------------------
# Per-instrument wrapper
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PositionPnL:
    by_instrument: Dict[str, FIFOResult]
    realized_pnl: float
    unrealized_pnl: float
    total_pnl: float
    open_quantity: int
    is_fully_closed: bool
    missing_prices: List[str] = field(default_factory=list)


def group_trades_by_instrument(trades: List[Trade]) -> "OrderedDict[str, List[Trade]]":
    """Group trades by ``underlying``, keeping first-seen instrument order."""
    groups: "OrderedDict[str, List[Trade]]" = OrderedDict()
    for trade in trades or []:
        groups.setdefault(trade.underlying, []).append(trade)
    return groups


def process_position_fifo(position: Position, price_map: Mapping[str, Optional[float]]) -> PositionPnL:
    """
    Run the engine once per instrument of a position and sum the totals.

    Lots never cross instrument groups.  An instrument that is still open but
    has no mark in ``price_map`` contributes zero unrealized P&L and is
    listed in ``missing_prices``.
    """
    by_instrument: Dict[str, FIFOResult] = {}
    missing: List[str] = []

    for instrument, group in group_trades_by_instrument(position.trades).items():
        mark = price_map.get(instrument)
        result = process_fifo(
            group,
            mark,
            entry_side=position.entry_side,
            multiplier=position.multiplier,
        )
        if not _is_price(mark) and result.open_quantity > 0:
            missing.append(instrument)
        by_instrument[instrument] = result

    realized = sum(r.realized_pnl for r in by_instrument.values())
    unrealized = sum(r.unrealized_pnl for r in by_instrument.values())
    open_quantity = sum(r.open_quantity for r in by_instrument.values())

    if missing:
        logger.info(f"Position {position.id}: no mark price for {', '.join(missing)}")

    return PositionPnL(
        by_instrument=by_instrument,
        realized_pnl=realized,
        unrealized_pnl=unrealized,
        total_pnl=realized + unrealized,
        open_quantity=open_quantity,
        is_fully_closed=open_quantity == 0,
        missing_prices=missing,
    )
