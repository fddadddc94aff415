"""
Shared pytest fixtures and factory helpers for trade journal tests.

Each test gets a fresh temporary SQLite database (auto-cleaned by pytest).
"""

import itertools
from datetime import date, datetime

import pytest

from tradejournal.database.db_manager import DatabaseManager
from tradejournal.domain.options import derive_occ_symbol
from tradejournal.domain.types import (
    OptionLeg, OptionPosition, OptionType, PriceBasis, StockPosition, StrategyType, Trade,
    TradeDirection,
)
from tradejournal.services.assignment_service import AssignmentService
from tradejournal.services.journal_service import JournalService
from tradejournal.services.locks import PositionLockRegistry
from tradejournal.services.position_service import PositionService
from tradejournal.services.price_service import PriceService
from tradejournal.services.trade_service import TradeService

# A Friday well in the past, and a date after it for assignment
EXPIRATION = date(2025, 1, 17)
AFTER_EXPIRATION = date(2025, 1, 18)
BEFORE_EXPIRATION = date(2025, 1, 2)


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db(tmp_path):
    """Temporary SQLite database, fully initialized and auto-cleaned."""
    db_manager = DatabaseManager(db_url=f"sqlite:///{tmp_path / 'test.db'}")
    db_manager.initialize_database()
    return db_manager


@pytest.fixture
def locks():
    return PositionLockRegistry()


@pytest.fixture
def price_service(db):
    return PriceService(db)


@pytest.fixture
def journal_service(db):
    return JournalService(db)


@pytest.fixture
def position_service(db, price_service, locks):
    return PositionService(db, price_service, locks=locks)


@pytest.fixture
def trade_service(db, position_service, locks):
    return TradeService(db, position_service, locks=locks)


@pytest.fixture
def assignment_service(db, locks):
    return AssignmentService(db, locks=locks)


# ---------------------------------------------------------------------------
# Factory helpers
# ---------------------------------------------------------------------------

_ids = itertools.count(1)


def _next_id(prefix):
    return f"{prefix}-{next(_ids):04d}"


def make_stock_trade(
    *,
    id=None,
    position_id="pos-stock",
    direction=TradeDirection.BUY,
    quantity=100,
    price=50.0,
    timestamp=datetime(2024, 1, 1, 10, 0),
    underlying="AAPL",
    sequence=0,
    notes=None,
):
    """Build a stock Trade value."""
    return Trade(
        id=id or _next_id("trade"),
        position_id=position_id,
        direction=TradeDirection(direction),
        quantity=quantity,
        price=price,
        timestamp=timestamp,
        underlying=underlying,
        sequence=sequence,
        notes=notes,
    )


def make_option_trade(
    *,
    id=None,
    position_id="pos-option",
    direction=TradeDirection.SELL,
    quantity=5,
    price=3.00,
    timestamp=datetime(2025, 1, 2, 10, 0),
    symbol="AAPL",
    strike=100.0,
    expiration=EXPIRATION,
    option_type=OptionType.PUT,
    sequence=0,
):
    """Build an option Trade value carrying its contract leg."""
    occ = derive_occ_symbol(symbol, expiration, option_type, strike)
    return Trade(
        id=id or _next_id("trade"),
        position_id=position_id,
        direction=TradeDirection(direction),
        quantity=quantity,
        price=price,
        timestamp=timestamp,
        underlying=occ,
        sequence=sequence,
        option=OptionLeg(option_type, strike, expiration, occ, premium_per_contract=price),
    )


def make_stock_plan(
    *,
    id=None,
    symbol="AAPL",
    target_entry_price=50.0,
    target_quantity=100,
    profit_target=55.0,
    stop_loss=45.0,
    position_thesis="Breakout above resistance",
    created_date=datetime(2024, 1, 1, 9, 0),
    trades=None,
):
    """Build a Long Stock plan."""
    return StockPosition(
        id=id or _next_id("pos"),
        symbol=symbol,
        strategy_type=StrategyType.LONG_STOCK,
        target_entry_price=target_entry_price,
        target_quantity=target_quantity,
        profit_target=profit_target,
        stop_loss=stop_loss,
        position_thesis=position_thesis,
        created_date=created_date,
        trades=list(trades or []),
    )


def make_short_put_plan(
    *,
    id=None,
    symbol="AAPL",
    strike_price=100.0,
    expiration_date=EXPIRATION,
    premium_per_contract=3.00,
    target_entry_price=3.00,
    target_quantity=5,
    profit_target=110.0,
    stop_loss=90.0,
    profit_target_basis=PriceBasis.STOCK_PRICE,
    stop_loss_basis=PriceBasis.STOCK_PRICE,
    position_thesis="Happy to own AAPL at 97",
    created_date=datetime(2025, 1, 2, 9, 0),
    trades=None,
):
    """Build a Short Put plan."""
    return OptionPosition(
        id=id or _next_id("pos"),
        symbol=symbol,
        strategy_type=StrategyType.SHORT_PUT,
        target_entry_price=target_entry_price,
        target_quantity=target_quantity,
        profit_target=profit_target,
        stop_loss=stop_loss,
        position_thesis=position_thesis,
        created_date=created_date,
        trades=list(trades or []),
        option_type=OptionType.PUT,
        strike_price=strike_price,
        expiration_date=expiration_date,
        premium_per_contract=premium_per_contract,
        profit_target_basis=profit_target_basis,
        stop_loss_basis=stop_loss_basis,
    )
