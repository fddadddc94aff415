"""Trade journal domain: plans, trades, FIFO P&L and assignment.

Public API:
    compute_status(trades) -> PositionStatus
    process_fifo(trades, mark_price) -> FIFOResult
    analyze(position, fifo_result) -> PlanVsExecution
    build_assignment(position, request, now=...) -> AssignmentPlan
"""

from .types import (
    OptionPosition, Position, PositionStatus, StockPosition, StrategyType, Trade, TradeDirection,
)
from .status import compute_status
from .fifo import process_fifo, process_position_fifo
from .plan_vs_execution import analyze
from .assignment import build_assignment

__all__ = [
    "OptionPosition", "Position", "PositionStatus", "StockPosition", "StrategyType", "Trade",
    "TradeDirection", "compute_status", "process_fifo", "process_position_fifo", "analyze",
    "build_assignment",
]
