"""
Option utilities: OCC symbols, premium per share, price-basis conversion.

OCC symbols are 21 characters: the root padded to six, the expiration as
YYMMDD, ``P``/``C`` and the strike x1000 as eight digits, e.g.
``AAPL  250117P00105000``.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Optional

from tradejournal.domain.types import (
    CONTRACT_MULTIPLIER, OptionType, PriceBasis, Trade, TradeDirection,
)

logger = logging.getLogger(__name__)

OCC_SYMBOL_LENGTH = 21


@dataclass(frozen=True)
class ParsedOccSymbol:
    root: str
    expiration: date
    option_type: OptionType
    strike: float


def derive_occ_symbol(symbol: str, expiration, option_type, strike: float) -> str:
    """
    Build the standardized OCC symbol for one contract.

    Args:
        symbol: Underlying ticker (at most six characters)
        expiration: Expiration as a date or an ISO ``YYYY-MM-DD`` string
        option_type: OptionType or "call"/"put"
        strike: Strike price in dollars

    Returns:
        21-character OCC symbol
    """
    if isinstance(expiration, str):
        expiration = datetime.strptime(expiration, "%Y-%m-%d").date()
    if isinstance(expiration, datetime):
        expiration = expiration.date()

    kind = OptionType(getattr(option_type, "value", option_type).lower())
    root = symbol.strip().upper()
    if not root or len(root) > 6:
        raise ValueError(f"Option root must be 1-6 characters: {symbol!r}")

    strike_thousandths = int(round(float(strike) * 1000))
    if strike_thousandths < 0 or strike_thousandths > 99_999_999:
        raise ValueError(f"Strike out of OCC range: {strike}")

    return (
        f"{root:<6}"
        f"{expiration.strftime('%y%m%d')}"
        f"{'P' if kind is OptionType.PUT else 'C'}"
        f"{strike_thousandths:08d}"
    )


def parse_occ_symbol(occ_symbol: str) -> ParsedOccSymbol:
    """Inverse of derive_occ_symbol. Raises ValueError on malformed input."""
    if not isinstance(occ_symbol, str) or len(occ_symbol) != OCC_SYMBOL_LENGTH:
        raise ValueError(f"OCC symbol must be {OCC_SYMBOL_LENGTH} characters: {occ_symbol!r}")

    root = occ_symbol[:6].strip()
    date_part = occ_symbol[6:12]
    type_part = occ_symbol[12]
    strike_part = occ_symbol[13:]

    if not root:
        raise ValueError(f"OCC symbol has no root: {occ_symbol!r}")
    if type_part not in ("P", "C"):
        raise ValueError(f"OCC option type must be P or C, got {type_part!r}")
    if not strike_part.isdigit():
        raise ValueError(f"OCC strike must be 8 digits, got {strike_part!r}")

    try:
        expiration = datetime.strptime(date_part, "%y%m%d").date()
    except ValueError:
        raise ValueError(f"OCC expiration is not a valid YYMMDD date: {date_part!r}")

    return ParsedOccSymbol(
        root=root,
        expiration=expiration,
        option_type=OptionType.PUT if type_part == "P" else OptionType.CALL,
        strike=int(strike_part) / 1000,
    )


def premium_per_share(
    trades: Iterable[Trade],
    fallback_per_contract: Optional[float] = None,
    opening_side: TradeDirection = TradeDirection.SELL,
) -> float:
    """
    Weighted-average premium received per share on the opening trades.

    Option trade prices are per-share quotes, so the total received is
    ``price x contracts x 100`` and dividing by ``contracts x 100`` leaves the
    weighted-average quote.  With no opening trades the plan's premium is
    used; plans record it as the per-share quote (3.00, not 300).
    """
    opening = [t for t in trades if t.direction == opening_side]
    contracts = sum(t.quantity for t in opening)
    if contracts > 0:
        total_premium = sum(t.price * t.quantity * CONTRACT_MULTIPLIER for t in opening)
        return total_premium / (contracts * CONTRACT_MULTIPLIER)
    if fallback_per_contract is not None:
        return float(fallback_per_contract)
    return 0.0


def effective_cost_basis(strike: float, premium_per_share_received: float) -> float:
    """Per-share cost of stock put to the writer, net of premium."""
    return strike - premium_per_share_received


def option_basis_dollar_value(
    value: float,
    basis: PriceBasis,
    strike: Optional[float] = None,
    premium: Optional[float] = None,
    percentage: bool = False,
) -> float:
    """
    Convert a target expressed against ``basis`` into a dollar figure.

    ``stock_price`` targets already are dollar prices of the underlying.
    ``option_price`` targets are fractions of the premium-adjusted strike
    (0.20 for 20%); pass ``percentage=True`` when the value is 20 rather than
    0.20.  Strike $100, premium $3, 20% gives $19.40.
    """
    if basis == PriceBasis.STOCK_PRICE:
        return value
    if strike is None or premium is None:
        logger.warning("option_price basis conversion without strike/premium; using 0")
        return 0.0
    fraction = value / 100 if percentage else value
    return (strike - premium) * fraction
