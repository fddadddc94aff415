"""
Validation rules applied before anything reaches the ledger.

Every check raises ``ValidationError`` naming the offending field, its value,
the violated constraint and, where one exists, how to fix it.  The pure
calculators never call into this module; it guards the append and plan
creation boundaries only.
"""

import logging
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, List, Optional

from tradejournal.domain.options import parse_occ_symbol
from tradejournal.domain.types import (
    OptionPosition, OptionType, Position, PositionStatus, StrategyType, Trade, TradeDirection,
)
from tradejournal.errors import ValidationError

logger = logging.getLogger(__name__)

SYMBOL_PATTERN = re.compile(r"^[A-Z]{1,5}$")
MAX_STRIKE = 1_000_000
MAX_QUANTITY = 10_000

REVERSE_REMEDIATION = (
    "To reverse a position, close it first, then open a new one in the opposite direction."
)


@dataclass(frozen=True)
class RuleViolation:
    field: str
    value: Any
    constraint: str
    message: str
    remediation: Optional[str] = None


def raise_violations(violations: List[RuleViolation]) -> None:
    """Raise one ValidationError for all violations, keyed on the first."""
    if not violations:
        return
    first = violations[0]
    raise ValidationError(
        first.message,
        field=first.field,
        value=first.value,
        constraint=first.constraint,
        remediation=first.remediation,
        errors=[v.message for v in violations],
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------

def check_symbol(symbol: Any, field: str = "symbol") -> Optional[RuleViolation]:
    if not isinstance(symbol, str) or not symbol.strip():
        return RuleViolation(field, symbol, "required", "Symbol is required")
    normalized = symbol.strip().upper()
    if not normalized.isalpha() or not normalized.isascii():
        return RuleViolation(field, symbol, "letters A-Z only", "Symbol must contain only letters A-Z")
    if not SYMBOL_PATTERN.match(normalized):
        return RuleViolation(field, symbol, "1-5 characters", "Symbol must be 1-5 characters")
    return None


def check_quantity(quantity: Any, field: str = "quantity",
                   maximum: Optional[int] = MAX_QUANTITY) -> Optional[RuleViolation]:
    if not _is_number(quantity):
        return RuleViolation(field, quantity, "number", "Quantity must be a number")
    if quantity != int(quantity):
        return RuleViolation(field, quantity, "whole number", "Quantity must be a whole number")
    if quantity <= 0:
        return RuleViolation(field, quantity, "> 0", "Quantity must be positive")
    if maximum is not None and quantity > maximum:
        return RuleViolation(
            field, quantity, f"<= {maximum}", "Quantity seems unreasonably high",
        )
    return None


def check_strike_price(strike: Any, field: str = "strike_price") -> Optional[RuleViolation]:
    if not _is_number(strike):
        return RuleViolation(field, strike, "number", "Strike price must be a number")
    if strike <= 0:
        return RuleViolation(field, strike, "> 0", "Strike price must be positive")
    if strike > MAX_STRIKE:
        return RuleViolation(
            field, strike, f"<= {MAX_STRIKE}", "Strike price seems unreasonably high",
        )
    try:
        exponent = Decimal(str(strike)).normalize().as_tuple().exponent
    except InvalidOperation:
        exponent = 0
    if isinstance(exponent, int) and exponent < -2:
        return RuleViolation(
            field, strike, "at most 2 decimal places",
            "Strike price cannot have more than 2 decimal places",
        )
    return None


def check_expiration_date(expiration: Any, today: Optional[date] = None,
                          field: str = "expiration_date") -> Optional[RuleViolation]:
    if isinstance(expiration, datetime):
        expiration = expiration.date()
    if not isinstance(expiration, date):
        return RuleViolation(field, expiration, "date", "Invalid date format")
    today = today or date.today()
    if expiration < today:
        return RuleViolation(
            field, expiration.isoformat(), f">= {today.isoformat()}",
            "Expiration date must be in the future",
        )
    return None


# ---------------------------------------------------------------------------
# Positions
# ---------------------------------------------------------------------------

def validate_position(position: Position, today: Optional[date] = None,
                      max_quantity: Optional[int] = MAX_QUANTITY) -> None:
    """
    Validate a new plan before it is stored.

    Checks the common plan fields for every strategy, plus the option-only
    fields for option strategies.  Raises ValidationError listing every
    failed rule.
    """
    violations: List[RuleViolation] = []

    symbol_issue = check_symbol(position.symbol)
    if symbol_issue:
        violations.append(symbol_issue)

    if not isinstance(position.strategy_type, StrategyType):
        violations.append(RuleViolation(
            "strategy_type", position.strategy_type,
            f"one of {[s.value for s in StrategyType]}", "Unknown strategy type",
        ))

    if not _is_number(position.target_entry_price) or position.target_entry_price <= 0:
        violations.append(RuleViolation(
            "target_entry_price", position.target_entry_price, "> 0",
            "target_entry_price must be positive",
        ))

    quantity_issue = check_quantity(position.target_quantity, field="target_quantity", maximum=max_quantity)
    if quantity_issue:
        violations.append(quantity_issue)

    for name in ("profit_target", "stop_loss"):
        value = getattr(position, name)
        if not _is_number(value) or value <= 0:
            violations.append(RuleViolation(name, value, "> 0", f"{name} must be positive"))

    if not isinstance(position.position_thesis, str) or not position.position_thesis.strip():
        violations.append(RuleViolation(
            "position_thesis", position.position_thesis, "non-empty", "position_thesis cannot be empty",
        ))

    strategy = position.strategy if isinstance(position.strategy_type, StrategyType) else None
    if strategy is not None and strategy.is_option:
        if not isinstance(position, OptionPosition):
            violations.append(RuleViolation(
                "strategy_type", position.strategy_type.value, "option position",
                f"{position.strategy_type.value} positions must carry option fields",
            ))
        else:
            violations.extend(_option_violations(position, today))

    raise_violations(violations)


def _option_violations(position: OptionPosition, today: Optional[date]) -> List[RuleViolation]:
    label = position.strategy_type.value
    violations: List[RuleViolation] = []

    if not isinstance(position.option_type, OptionType):
        violations.append(RuleViolation(
            "option_type", position.option_type, "call | put",
            f"Option type (call/put) is required for {label} positions",
        ))
    elif position.strategy.option_type and position.option_type is not position.strategy.option_type:
        violations.append(RuleViolation(
            "option_type", position.option_type.value, position.strategy.option_type.value,
            f"{label} positions must use {position.strategy.option_type.value} options",
        ))

    if position.strike_price is None:
        violations.append(RuleViolation(
            "strike_price", None, "required", f"Strike price is required for {label} positions",
        ))
    else:
        strike_issue = check_strike_price(position.strike_price)
        if strike_issue:
            violations.append(strike_issue)

    if position.expiration_date is None:
        violations.append(RuleViolation(
            "expiration_date", None, "required", f"Expiration date is required for {label} positions",
        ))
    else:
        expiration_issue = check_expiration_date(position.expiration_date, today)
        if expiration_issue:
            violations.append(expiration_issue)

    premium = position.premium_per_contract
    if premium is None:
        violations.append(RuleViolation(
            "premium_per_contract", None, "required",
            f"Premium per contract is required for {label} positions",
        ))
    elif not _is_number(premium):
        violations.append(RuleViolation(
            "premium_per_contract", premium, "number", "Premium per contract must be a number",
        ))
    elif premium < 0:
        violations.append(RuleViolation(
            "premium_per_contract", premium, ">= 0", "Premium per contract cannot be negative",
        ))

    return violations


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------

def validate_trade(trade: Trade, entry_side: TradeDirection = TradeDirection.BUY) -> None:
    """
    Validate a trade's own fields.

    Entry trades must have a strictly positive price; exit trades may be
    priced at zero (worthless or expired).
    """
    violations: List[RuleViolation] = []

    if not trade.position_id:
        violations.append(RuleViolation("position_id", trade.position_id, "required", "position_id is required"))

    if not isinstance(trade.direction, TradeDirection):
        violations.append(RuleViolation(
            "direction", trade.direction, "buy | sell", f"Invalid trade direction: {trade.direction!r}",
        ))

    quantity_issue = check_quantity(trade.quantity, maximum=None)
    if quantity_issue:
        violations.append(quantity_issue)
    elif not isinstance(trade.quantity, int):
        # status and FIFO only count int quantities
        violations.append(RuleViolation(
            "quantity", trade.quantity, "integer", "Trade quantity must be an integer",
        ))

    if not _is_number(trade.price):
        violations.append(RuleViolation("price", trade.price, "number", "Price must be a number"))
    elif trade.price < 0:
        violations.append(RuleViolation("price", trade.price, ">= 0", "Price cannot be negative"))
    elif trade.price == 0 and trade.direction == entry_side:
        violations.append(RuleViolation(
            "price", trade.price, "> 0 for entry trades",
            "Entry price must be positive",
            remediation="A zero price is only valid for exits (worthless or expired).",
        ))

    if not isinstance(trade.timestamp, datetime):
        violations.append(RuleViolation("timestamp", trade.timestamp, "datetime", "Invalid timestamp"))

    if not isinstance(trade.underlying, str) or not trade.underlying.strip():
        violations.append(RuleViolation("underlying", trade.underlying, "non-empty", "underlying cannot be empty"))

    raise_violations(violations)


def validate_exit_trade(position: Position, quantity: int) -> None:
    """Reject exits against planned or closed positions, and oversells."""
    status = position.status
    if status is PositionStatus.PLANNED:
        raise ValidationError(
            "Cannot exit a planned position. Add an entry trade first.",
            field="status",
            value=status.value,
            constraint="position must be open",
            remediation="Record the entry trade before recording an exit.",
        )

    open_quantity = position.open_quantity
    if status is PositionStatus.CLOSED:
        raise ValidationError(
            "Cannot exit a closed position (net quantity is already 0).",
            field="status",
            value=status.value,
            constraint="position must be open",
            remediation=REVERSE_REMEDIATION,
        )

    if quantity > open_quantity:
        raise ValidationError(
            f"Exit quantity ({quantity}) exceeds open quantity ({open_quantity}).",
            field="quantity",
            value=quantity,
            constraint=f"<= {open_quantity}",
            remediation=REVERSE_REMEDIATION,
        )


def validate_append(position: Position, trade: Trade) -> None:
    """Full check run before a trade is appended to ``position``."""
    validate_trade(trade, position.entry_side)
    if isinstance(position, OptionPosition):
        check_option_instrument(position, trade)
    else:
        check_stock_instrument(position, trade)
    if trade.direction == position.exit_side:
        validate_exit_trade(position, trade.quantity)
    elif position.status is PositionStatus.CLOSED:
        logger.info(f"Entry trade {trade.id} reopens closed position {position.id}")


def check_stock_instrument(position: Position, trade: Trade) -> None:
    """Stock trades must name the position's own ticker."""
    if trade.underlying != position.instrument_id:
        raise ValidationError(
            f"Trade instrument {trade.underlying} does not match position symbol {position.instrument_id}",
            field="underlying",
            value=trade.underlying,
            constraint=position.instrument_id,
            remediation=f"Record {trade.underlying} trades on a position for {trade.underlying}.",
        )


def check_option_instrument(position: OptionPosition, trade: Trade) -> None:
    """Option trades must name this position's contract by its OCC symbol."""
    try:
        parsed = parse_occ_symbol(trade.underlying)
    except ValueError as e:
        raise ValidationError(
            f"Option trades must carry an OCC symbol: {e}",
            field="underlying",
            value=trade.underlying,
            constraint="21-character OCC symbol",
        )
    if trade.underlying != position.occ_symbol:
        raise ValidationError(
            f"Trade contract {trade.underlying} does not match position contract {position.occ_symbol}",
            field="underlying",
            value=trade.underlying,
            constraint=position.occ_symbol,
            remediation=f"Record a separate position for {parsed.root} options with a different strike or expiration.",
        )
