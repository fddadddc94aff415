"""
Plan-vs-Execution Analyzer

Compares a closed position's plan (entry price, exit target, quantity)
against what was actually traded, and grades entry, exit and overall
execution as better / worse / on target.

Only meaningful once the position is closed; the exit figures of an open
position describe a partial exit and should not be shown.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from tradejournal.domain.fifo import FIFOResult, PositionPnL
from tradejournal.domain.types import Position, Trade, TradeDirection

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = 0.01
_NEAR_ZERO = 1e-9


class ExecutionQuality(str, Enum):
    BETTER = "better"
    WORSE = "worse"
    ON_TARGET = "on-target"


@dataclass(frozen=True)
class PlanVsExecution:
    target_entry_price: float
    actual_avg_entry_cost: float
    entry_price_delta: float
    entry_price_delta_pct: Optional[float]

    target_exit_price: float
    actual_avg_exit_price: float
    exit_price_delta: float
    exit_price_delta_pct: Optional[float]

    target_profit: float
    actual_profit: float
    profit_delta: float
    profit_delta_pct: Optional[float]

    entry_execution_quality: ExecutionQuality
    exit_execution_quality: ExecutionQuality
    overall_execution_quality: ExecutionQuality

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("entry_execution_quality", "exit_execution_quality", "overall_execution_quality"):
            data[key] = data[key].value
        return data


def _weighted_average(trades: List[Trade]) -> float:
    quantity = sum(t.quantity for t in trades)
    if quantity <= 0:
        return 0.0
    return sum(t.price * t.quantity for t in trades) / quantity


def _pct(delta: float, reference: float) -> Optional[float]:
    if abs(reference) < _NEAR_ZERO:
        return None
    return delta / abs(reference) * 100


def _grade(delta: float, tolerance: float, higher_is_better: bool) -> ExecutionQuality:
    if abs(delta) < tolerance:
        return ExecutionQuality.ON_TARGET
    if (delta > 0) == higher_is_better:
        return ExecutionQuality.BETTER
    return ExecutionQuality.WORSE


def planned_exit_price(position: Position) -> float:
    """
    The price the plan expected to exit at.

    Stock plans exit at their profit target.  Option targets are stated
    against the underlying or as a fraction of the premium-adjusted strike,
    not as an exit quote, so a short option plan aims to keep the whole
    premium and buy back at zero.
    """
    if position.is_option:
        return 0.0
    return position.profit_target


def analyze(position: Position, fifo_result: Union[FIFOResult, PositionPnL],
            tolerance: float = DEFAULT_TOLERANCE) -> PlanVsExecution:
    """
    Build the plan-vs-execution comparison for a closed position.

    Args:
        position: The position whose plan and trades are compared
        fifo_result: FIFO output for the same trades, per instrument or summed
            across instruments (realized P&L is taken from it)
        tolerance: Absolute $ band treated as on target for price deltas;
            the profit band is ``tolerance x planned quantity``

    Returns:
        PlanVsExecution
    """
    entry_side = position.entry_side
    long_side = entry_side is TradeDirection.BUY
    multiplier = position.multiplier

    entries = [t for t in position.trades if t.direction == entry_side]
    exits = [t for t in position.trades if t.direction == entry_side.opposite]

    actual_entry = _weighted_average(entries)
    actual_exit = _weighted_average(exits)

    target_entry = position.target_entry_price
    target_exit = planned_exit_price(position)

    entry_delta = actual_entry - target_entry
    exit_delta = actual_exit - target_exit

    sign = 1 if long_side else -1
    target_profit = sign * (target_exit - target_entry) * position.target_quantity * multiplier
    actual_profit = fifo_result.realized_pnl
    profit_delta = actual_profit - target_profit

    comparison = PlanVsExecution(
        target_entry_price=target_entry,
        actual_avg_entry_cost=actual_entry,
        entry_price_delta=entry_delta,
        entry_price_delta_pct=_pct(entry_delta, target_entry),
        target_exit_price=target_exit,
        actual_avg_exit_price=actual_exit,
        exit_price_delta=exit_delta,
        exit_price_delta_pct=_pct(exit_delta, target_exit),
        target_profit=target_profit,
        actual_profit=actual_profit,
        profit_delta=profit_delta,
        profit_delta_pct=_pct(profit_delta, target_profit),
        # long: paying less on entry is better; short: collecting more is
        entry_execution_quality=_grade(entry_delta, tolerance, higher_is_better=not long_side),
        exit_execution_quality=_grade(exit_delta, tolerance, higher_is_better=long_side),
        overall_execution_quality=_grade(
            profit_delta, tolerance * position.target_quantity * multiplier, higher_is_better=True,
        ),
    )

    logger.debug(
        f"Plan vs execution for {position.id}: entry {comparison.entry_execution_quality.value}, "
        f"exit {comparison.exit_execution_quality.value}, overall {comparison.overall_execution_quality.value}"
    )
    return comparison


# ---------------------------------------------------------------------------
# Display formatting
# ---------------------------------------------------------------------------

_QUALITY_COLOR = {
    ExecutionQuality.BETTER: "green",
    ExecutionQuality.WORSE: "red",
    ExecutionQuality.ON_TARGET: "gray",
}

_QUALITY_TEXT = {
    ExecutionQuality.BETTER: "Better than plan",
    ExecutionQuality.WORSE: "Worse than plan",
    ExecutionQuality.ON_TARGET: "On target",
}

_QUALITY_WORD = {
    ExecutionQuality.BETTER: "better",
    ExecutionQuality.WORSE: "worse",
    ExecutionQuality.ON_TARGET: "on target",
}


def _money(value: float) -> str:
    if value < 0:
        return f"-${abs(value):,.2f}"
    return f"${value:,.2f}"


def _delta(value: float, pct: Optional[float], quality: ExecutionQuality) -> str:
    sign = "+" if value > 0 else ""
    text = f"{sign}{_money(value)}"
    if pct is None:
        return text
    return f"{text} ({abs(pct):.1f}% {_QUALITY_WORD[quality]})"


def _section(target: str, actual: str, delta: str, quality: ExecutionQuality) -> Dict[str, str]:
    return {
        "target": target,
        "actual": actual,
        "delta": delta,
        "quality": _QUALITY_TEXT[quality],
        "quality_color": _QUALITY_COLOR[quality],
    }


def format_plan_vs_execution(comparison: PlanVsExecution) -> Dict[str, Dict[str, str]]:
    """Render a comparison as display strings (two-decimal money, quality colors)."""
    c = comparison
    return {
        "entry": _section(
            _money(c.target_entry_price),
            _money(c.actual_avg_entry_cost),
            _delta(c.entry_price_delta, c.entry_price_delta_pct, c.entry_execution_quality),
            c.entry_execution_quality,
        ),
        "exit": _section(
            _money(c.target_exit_price),
            _money(c.actual_avg_exit_price),
            _delta(c.exit_price_delta, c.exit_price_delta_pct, c.exit_execution_quality),
            c.exit_execution_quality,
        ),
        "overall": _section(
            _money(c.target_profit),
            _money(c.actual_profit),
            _delta(c.profit_delta, c.profit_delta_pct, c.overall_execution_quality),
            c.overall_execution_quality,
        ),
    }
