"""
Position status calculator.

A position's lifecycle state is never stored as ground truth; it is always
derived from the trade log:

    no trades        -> planned
    net quantity 0   -> closed
    anything else    -> open

Only the sum of signed quantities matters, so any reordering of the same
trades yields the same status.  A negative net (more sold than bought) also
reads as ``open``; preventing that is the job of the append validator, not
of this calculator.

Every function here tolerates None, non-iterable input and records without a
recognizable direction instead of raising.
"""

import logging
from typing import Any, Iterable, List, Optional

from tradejournal.domain.types import PositionStatus

logger = logging.getLogger(__name__)

__all__ = ["compute_status", "net_quantity", "open_quantity", "signed_quantity", "usable_quantity"]


def _field(trade: Any, name: str) -> Any:
    if isinstance(trade, dict):
        return trade.get(name)
    return getattr(trade, name, None)


def _direction(trade: Any) -> Optional[str]:
    raw = _field(trade, "direction")
    if raw is None:
        raw = _field(trade, "trade_type")
    value = getattr(raw, "value", raw)
    if isinstance(value, str) and value.lower() in ("buy", "sell"):
        return value.lower()
    return None


def usable_quantity(raw: Any) -> int:
    """A positive ``int`` (bools excluded) is a quantity; anything else counts as 0.

    The FIFO engine applies the same rule, so both always agree on which
    trades move the position.
    """
    if isinstance(raw, bool) or not isinstance(raw, int) or raw <= 0:
        return 0
    return raw


def _quantity(trade: Any) -> int:
    return usable_quantity(_field(trade, "quantity"))


def _as_list(trades: Any) -> List[Any]:
    if trades is None or isinstance(trades, (str, bytes, dict)):
        return []
    try:
        return list(trades)
    except TypeError:
        logger.warning("Trade collection is not iterable (%s); treating as empty", type(trades).__name__)
        return []


def signed_quantity(trade: Any) -> float:
    """+quantity for a buy, -quantity for a sell, 0 for anything unrecognizable."""
    direction = _direction(trade)
    if direction == "buy":
        return _quantity(trade)
    if direction == "sell":
        return -_quantity(trade)
    return 0


def net_quantity(trades: Optional[Iterable[Any]]) -> float:
    """Σ buy quantities − Σ sell quantities."""
    return sum(signed_quantity(t) for t in _as_list(trades))


def open_quantity(trades: Optional[Iterable[Any]], entry_side: Any = "buy") -> float:
    """Quantity still open, measured in the position's own direction.

    Long positions enter with buys, so this equals ``net_quantity``; short
    positions enter with sells, so the sign is flipped.
    """
    side = getattr(entry_side, "value", entry_side)
    net = net_quantity(trades)
    return -net if side == "sell" else net


def compute_status(trades: Optional[Iterable[Any]]) -> PositionStatus:
    """Derive a position's lifecycle status from its trade log."""
    items = _as_list(trades)
    if not items:
        return PositionStatus.PLANNED
    if net_quantity(items) == 0:
        return PositionStatus.CLOSED
    return PositionStatus.OPEN
