"""Planned risk metrics for a position: capital at work, max profit, max loss."""

import math
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

from tradejournal.domain.options import option_basis_dollar_value
from tradejournal.domain.types import CONTRACT_MULTIPLIER, OptionPosition, Position, StrategyType


@dataclass(frozen=True)
class PositionRiskMetrics:
    total_investment: float
    max_profit: float
    max_loss: float
    risk_reward_ratio: str
    # dollar levels of the plan's targets; option-price targets are converted
    profit_target_value: Optional[float] = None
    stop_loss_value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _num(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0.0
    return float(value)


def format_risk_reward(max_profit: float, max_loss: float) -> str:
    """``1:x`` with x rounded to two decimals, ``0:0`` when either side is not positive."""
    if max_loss <= 0 or max_profit <= 0:
        return "0:0"
    ratio = round(max_profit / max_loss, 2)
    if ratio <= 0:
        return "0:0"
    formatted = str(int(ratio)) if ratio == int(ratio) else f"{ratio:.2f}"
    return f"1:{formatted}"


def calculate_risk(position: Position) -> PositionRiskMetrics:
    profit_value = _num(position.profit_target)
    stop_value = _num(position.stop_loss)

    if position.strategy_type == StrategyType.SHORT_PUT and isinstance(position, OptionPosition):
        strike = _num(position.strike_price)
        contracts = _num(position.target_quantity)
        premium = _num(position.premium_per_contract)

        total_investment = strike * contracts * CONTRACT_MULTIPLIER
        max_profit = premium * contracts * CONTRACT_MULTIPLIER
        max_loss = (strike - premium) * contracts * CONTRACT_MULTIPLIER

        # option-price targets are entered as a percentage of the premium-adjusted strike
        profit_value = option_basis_dollar_value(
            profit_value, position.profit_target_basis, strike, premium, percentage=True,
        )
        stop_value = option_basis_dollar_value(
            stop_value, position.stop_loss_basis, strike, premium, percentage=True,
        )
    else:
        entry = _num(position.target_entry_price)
        quantity = _num(position.target_quantity)

        total_investment = entry * quantity
        max_profit = (profit_value - entry) * quantity
        max_loss = (entry - stop_value) * quantity

    return PositionRiskMetrics(
        total_investment=total_investment,
        max_profit=max_profit,
        max_loss=max_loss,
        risk_reward_ratio=format_risk_reward(max_profit, max_loss),
        profit_target_value=profit_value,
        stop_loss_value=stop_value,
    )
