"""
Tests for plan and trade validation rules.

Source: tradejournal/domain/validators.py
"""

from datetime import date, datetime

import pytest

from tradejournal.domain.types import OptionType, PositionStatus, TradeDirection
from tradejournal.domain.validators import (
    REVERSE_REMEDIATION, check_expiration_date, check_quantity, check_strike_price, check_symbol,
    validate_append, validate_exit_trade, validate_position, validate_trade,
)
from tradejournal.errors import ValidationError

from tests.conftest import (
    BEFORE_EXPIRATION, make_option_trade, make_short_put_plan, make_stock_plan, make_stock_trade,
)


def _open_position(quantity=100):
    position = make_stock_plan(id="pos-v")
    position.trades.append(make_stock_trade(position_id="pos-v", quantity=quantity))
    return position


# ---------------------------------------------------------------------------
# Field rules
# ---------------------------------------------------------------------------

class TestFieldRules:
    @pytest.mark.parametrize("symbol", ["AAPL", "f", "msft", " SPY "])
    def test_valid_symbols(self, symbol):
        assert check_symbol(symbol) is None

    @pytest.mark.parametrize("symbol,constraint", [
        ("", "required"),
        ("BRK.B", "letters A-Z only"),
        ("ABCDEF", "1-5 characters"),
        (None, "required"),
    ])
    def test_invalid_symbols(self, symbol, constraint):
        assert check_symbol(symbol).constraint == constraint

    @pytest.mark.parametrize("quantity", [0, -5, 1.5, "10"])
    def test_invalid_quantities(self, quantity):
        assert check_quantity(quantity) is not None

    def test_quantity_cap_is_optional(self):
        assert check_quantity(50_000) is not None
        assert check_quantity(50_000, maximum=None) is None

    def test_strike_allows_two_decimals(self):
        assert check_strike_price(102.5) is None
        assert check_strike_price(102.55) is None
        assert check_strike_price(102.555).constraint == "at most 2 decimal places"

    def test_strike_must_be_positive(self):
        assert check_strike_price(0).constraint == "> 0"

    def test_expiration_in_past_rejected(self):
        issue = check_expiration_date(date(2025, 1, 1), today=date(2025, 1, 2))
        assert issue.message == "Expiration date must be in the future"

    def test_expiration_today_allowed(self):
        assert check_expiration_date(date(2025, 1, 2), today=date(2025, 1, 2)) is None


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------

class TestValidatePosition:
    def test_valid_stock_plan(self):
        validate_position(make_stock_plan())

    def test_reports_every_failed_rule(self):
        plan = make_stock_plan(symbol="TOOLONG", target_quantity=0, position_thesis="  ")
        with pytest.raises(ValidationError) as exc:
            validate_position(plan)

        assert exc.value.field == "symbol"
        assert len(exc.value.errors) == 3

    def test_quantity_above_cap_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_position(make_stock_plan(target_quantity=10_001))
        assert exc.value.field == "target_quantity"

    def test_valid_short_put_plan(self):
        validate_position(make_short_put_plan(), today=BEFORE_EXPIRATION)

    def test_short_put_requires_put(self):
        plan = make_short_put_plan()
        plan.option_type = OptionType.CALL
        with pytest.raises(ValidationError) as exc:
            validate_position(plan, today=BEFORE_EXPIRATION)
        assert exc.value.field == "option_type"

    @pytest.mark.parametrize("field_name", ["strike_price", "expiration_date", "premium_per_contract"])
    def test_short_put_option_fields_required(self, field_name):
        plan = make_short_put_plan()
        setattr(plan, field_name, None)
        with pytest.raises(ValidationError) as exc:
            validate_position(plan, today=BEFORE_EXPIRATION)
        assert exc.value.field == field_name
        assert exc.value.constraint == "required"

    def test_negative_premium_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_position(make_short_put_plan(premium_per_contract=-1.0), today=BEFORE_EXPIRATION)
        assert exc.value.field == "premium_per_contract"

    def test_expired_option_plan_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_position(make_short_put_plan(), today=date(2025, 2, 1))
        assert exc.value.field == "expiration_date"


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------

class TestValidateTrade:
    def test_entry_at_zero_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_trade(make_stock_trade(price=0.0))
        assert exc.value.constraint == "> 0 for entry trades"

    def test_exit_at_zero_allowed(self):
        validate_trade(make_stock_trade(direction=TradeDirection.SELL, price=0.0))

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationError):
            validate_trade(make_stock_trade(direction=TradeDirection.SELL, price=-1.0))

    def test_quantity_has_no_upper_cap(self):
        validate_trade(make_stock_trade(quantity=500_000))

    def test_integral_float_quantity_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_trade(make_stock_trade(quantity=100.0))
        assert exc.value.constraint == "integer"

    def test_short_entry_side_requires_positive_sell(self):
        with pytest.raises(ValidationError):
            validate_trade(make_stock_trade(direction=TradeDirection.SELL, price=0.0), TradeDirection.SELL)


class TestValidateExit:
    def test_oversell_rejected(self):
        """Selling 150 against 100 open is rejected with a remediation"""
        position = _open_position(100)
        with pytest.raises(ValidationError) as exc:
            validate_exit_trade(position, 150)

        assert exc.value.message == "Exit quantity (150) exceeds open quantity (100)."
        assert exc.value.field == "quantity"
        assert exc.value.constraint == "<= 100"
        assert exc.value.remediation == REVERSE_REMEDIATION
        assert position.status is PositionStatus.OPEN
        assert len(position.trades) == 1

    def test_exit_up_to_open_quantity_allowed(self):
        validate_exit_trade(_open_position(100), 100)

    def test_exit_of_planned_position_rejected(self):
        with pytest.raises(ValidationError) as exc:
            validate_exit_trade(make_stock_plan(), 10)
        assert exc.value.message == "Cannot exit a planned position. Add an entry trade first."

    def test_exit_of_closed_position_rejected(self):
        position = _open_position(100)
        position.trades.append(make_stock_trade(position_id="pos-v", direction=TradeDirection.SELL, quantity=100))
        with pytest.raises(ValidationError) as exc:
            validate_exit_trade(position, 1)
        assert exc.value.message == "Cannot exit a closed position (net quantity is already 0)."


class TestValidateAppend:
    def test_append_checks_exit_rules(self):
        trade = make_stock_trade(position_id="pos-v", direction=TradeDirection.SELL, quantity=101)
        with pytest.raises(ValidationError):
            validate_append(_open_position(100), trade)

    def test_trade_on_other_ticker_rejected(self):
        trade = make_stock_trade(position_id="pos-v", direction=TradeDirection.SELL, quantity=100,
                                 underlying="MSFT")
        with pytest.raises(ValidationError) as exc:
            validate_append(_open_position(100), trade)
        assert exc.value.field == "underlying"
        assert exc.value.constraint == "AAPL"

    def test_reentry_on_closed_position_allowed(self):
        position = _open_position(100)
        position.trades.append(make_stock_trade(position_id="pos-v", direction=TradeDirection.SELL, quantity=100))
        validate_append(position, make_stock_trade(position_id="pos-v", quantity=10))

    def test_short_put_close_by_buy(self):
        position = make_short_put_plan(id="pos-option")
        position.trades.append(make_option_trade(quantity=5))
        validate_append(position, make_option_trade(direction=TradeDirection.BUY, quantity=5, price=0.0))

    def test_short_put_over_close_rejected(self):
        position = make_short_put_plan(id="pos-option")
        position.trades.append(make_option_trade(quantity=5))
        with pytest.raises(ValidationError) as exc:
            validate_append(position, make_option_trade(direction=TradeDirection.BUY, quantity=6, price=0.5))
        assert exc.value.constraint == "<= 5"

    def test_option_trade_must_match_contract(self):
        position = make_short_put_plan(id="pos-option")
        trade = make_option_trade(strike=95.0)
        with pytest.raises(ValidationError) as exc:
            validate_append(position, trade)
        assert exc.value.field == "underlying"

    def test_option_trade_needs_occ_symbol(self):
        position = make_short_put_plan(id="pos-option")
        trade = make_stock_trade(position_id="pos-option", direction=TradeDirection.SELL, price=3.0,
                                 quantity=5, timestamp=datetime(2025, 1, 2))
        with pytest.raises(ValidationError) as exc:
            validate_append(position, trade)
        assert exc.value.constraint == "21-character OCC symbol"
