"""Pydantic request/response models for the trade journal API."""

from dataclasses import fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from tradejournal.domain.types import (
    STRATEGIES, JournalEntryType, OptionPosition, OptionType, Position, PriceBasis, StockPosition,
    StrategyType, TradeDirection,
)


class PositionCreate(BaseModel):
    symbol: str
    strategy_type: StrategyType = StrategyType.LONG_STOCK
    target_entry_price: float
    target_quantity: int
    profit_target: float
    stop_loss: float
    position_thesis: str
    journal_notes: Optional[str] = None

    # option plans only
    option_type: Optional[OptionType] = None
    strike_price: Optional[float] = None
    expiration_date: Optional[date] = None
    premium_per_contract: Optional[float] = None
    profit_target_basis: PriceBasis = PriceBasis.STOCK_PRICE
    stop_loss_basis: PriceBasis = PriceBasis.STOCK_PRICE

    def to_domain(self, position_id: str) -> Position:
        common = dict(
            id=position_id,
            symbol=self.symbol.strip().upper(),
            strategy_type=self.strategy_type,
            target_entry_price=self.target_entry_price,
            target_quantity=self.target_quantity,
            profit_target=self.profit_target,
            stop_loss=self.stop_loss,
            position_thesis=self.position_thesis,
            created_date=datetime.now(),
        )
        if STRATEGIES[self.strategy_type].is_option:
            return OptionPosition(
                **common,
                option_type=self.option_type,
                strike_price=self.strike_price,
                expiration_date=self.expiration_date,
                premium_per_contract=self.premium_per_contract,
                profit_target_basis=self.profit_target_basis,
                stop_loss_basis=self.stop_loss_basis,
            )
        return StockPosition(**common)


class TradeCreate(BaseModel):
    direction: TradeDirection
    quantity: int
    price: float
    timestamp: Optional[datetime] = None
    underlying: Optional[str] = None
    notes: Optional[str] = None


class AssignmentCreate(BaseModel):
    option_position_id: str
    contracts_assigned: int
    stock_position_thesis: str
    assignment_notes: str = ""
    stock_profit_target: Optional[float] = None
    stock_stop_loss: Optional[float] = None
    assignment_date: Optional[date] = None


class PriceCreate(BaseModel):
    underlying: str
    price_date: date
    close: float
    open: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None


class JournalFieldIn(BaseModel):
    name: str
    prompt: str = ""
    response: str


class JournalCreate(BaseModel):
    entry_type: JournalEntryType
    fields: List[JournalFieldIn] = Field(min_length=1)
    position_id: Optional[str] = None
    trade_id: Optional[str] = None


def jsonable(value: Any) -> Any:
    """Render dataclasses, enums and dates from the domain layer as plain JSON values."""
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return value


def position_out(position) -> Dict[str, Any]:
    """Position as JSON, including the derived fields a client shows."""
    data = jsonable(position)
    data["status"] = position.status.value
    data["open_quantity"] = position.open_quantity
    data["is_option"] = position.is_option
    if position.is_option:
        data["occ_symbol"] = position.occ_symbol
    return data
