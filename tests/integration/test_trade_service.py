"""
Tests for PositionService and TradeService against a real database.

Source: tradejournal/services/position_service.py, tradejournal/services/trade_service.py
"""

import threading
from datetime import date, datetime, timedelta, timezone

import pytest

from tradejournal.domain.plan_vs_execution import ExecutionQuality
from tradejournal.domain.types import PositionStatus, TradeDirection
from tradejournal.errors import NotFoundError, ValidationError
from tradejournal.services.trade_service import normalize_timestamp

from tests.conftest import BEFORE_EXPIRATION, make_short_put_plan, make_stock_plan, make_stock_trade

DAY1 = datetime(2024, 1, 1, 10, 0)
DAY2 = datetime(2024, 1, 2, 10, 0)


@pytest.fixture
def stock_plan(position_service):
    return position_service.create_position(make_stock_plan(id="pos-s"))


class TestCreatePosition:
    def test_new_plan_is_planned(self, position_service, stock_plan):
        loaded = position_service.get_position("pos-s")
        assert loaded.status is PositionStatus.PLANNED
        assert loaded.trades == []

    def test_journal_notes_become_plan_entry(self, position_service, journal_service):
        position = position_service.create_position(make_stock_plan(id="pos-j"), journal_notes="Earnings run-up")

        entries = journal_service.list_for_position("pos-j")
        assert len(entries) == 1
        assert entries[0].fields[0].response == "Earnings run-up"
        assert position.journal_entry_ids == [entries[0].id]

    def test_invalid_plan_not_stored(self, position_service):
        with pytest.raises(ValidationError):
            position_service.create_position(make_stock_plan(id="pos-bad", symbol="123"))
        with pytest.raises(NotFoundError):
            position_service.get_position("pos-bad")

    def test_plan_with_trades_rejected(self, position_service):
        plan = make_stock_plan(id="pos-t", trades=[make_stock_trade(position_id="pos-t")])
        with pytest.raises(ValidationError) as exc:
            position_service.create_position(plan)
        assert exc.value.field == "trades"

    def test_short_put_plan(self, position_service):
        position = position_service.create_position(make_short_put_plan(id="pos-sp"), today=BEFORE_EXPIRATION)
        assert position_service.get_position("pos-sp").occ_symbol == position.occ_symbol


class TestAddTrade:
    def test_status_transitions_planned_open_closed(self, trade_service, stock_plan):
        """Buy 100 @ 50, sell 100 @ 55"""
        first = trade_service.add_trade("pos-s", TradeDirection.BUY, 100, 50.0, DAY1)
        assert first.previous_status is PositionStatus.PLANNED
        assert first.position.status is PositionStatus.OPEN
        assert first.comparison is None

        second = trade_service.add_trade("pos-s", TradeDirection.SELL, 100, 55.0, DAY2)
        assert second.previous_status is PositionStatus.OPEN
        assert second.position.status is PositionStatus.CLOSED
        assert second.comparison.actual_profit == pytest.approx(500.0)
        assert second.comparison.overall_execution_quality is ExecutionQuality.ON_TARGET

    def test_oversell_rejected_without_side_effects(self, trade_service, position_service, stock_plan):
        trade_service.add_trade("pos-s", TradeDirection.BUY, 100, 50.0, DAY1)

        with pytest.raises(ValidationError) as exc:
            trade_service.add_trade("pos-s", TradeDirection.SELL, 150, 55.0, DAY2)

        assert exc.value.message == "Exit quantity (150) exceeds open quantity (100)."
        position = position_service.get_position("pos-s")
        assert len(position.trades) == 1
        assert position.status is PositionStatus.OPEN

    def test_exit_from_planned_rejected(self, trade_service, stock_plan):
        with pytest.raises(ValidationError):
            trade_service.add_trade("pos-s", TradeDirection.SELL, 10, 55.0, DAY1)

    def test_unknown_position(self, trade_service):
        with pytest.raises(NotFoundError):
            trade_service.add_trade("nope", TradeDirection.BUY, 1, 1.0)

    def test_trades_keep_insertion_sequence(self, trade_service, stock_plan):
        trade_service.add_trade("pos-s", TradeDirection.BUY, 10, 50.0, DAY2)
        trade_service.add_trade("pos-s", TradeDirection.BUY, 10, 51.0, DAY1)

        trades = trade_service.get_trades("pos-s")
        assert [t.sequence for t in trades] == [0, 1]
        assert [t.price for t in trades] == [50.0, 51.0]

    def test_defaults_underlying_to_symbol(self, trade_service, stock_plan):
        result = trade_service.add_trade("pos-s", TradeDirection.BUY, 10, 50.0)
        assert result.trade.underlying == "AAPL"

    def test_underlying_is_normalized(self, trade_service, stock_plan):
        result = trade_service.add_trade("pos-s", TradeDirection.BUY, 10, 50.0, underlying=" aapl ")
        assert result.trade.underlying == "AAPL"

    def test_exit_named_in_lowercase_matches_the_lot(self, trade_service, position_service, stock_plan):
        trade_service.add_trade("pos-s", TradeDirection.BUY, 100, 50.0, DAY1)
        closed = trade_service.add_trade("pos-s", TradeDirection.SELL, 100, 55.0, DAY2, underlying="aapl")

        assert closed.position.status is PositionStatus.CLOSED
        assert closed.comparison.actual_profit == pytest.approx(500.0)
        metrics = position_service.get_metrics("pos-s")
        assert metrics.pnl.open_quantity == 0
        assert metrics.pnl.realized_pnl == pytest.approx(500.0)

    def test_exit_on_other_ticker_rejected(self, trade_service, position_service, stock_plan):
        trade_service.add_trade("pos-s", TradeDirection.BUY, 100, 50.0, DAY1)
        with pytest.raises(ValidationError) as exc:
            trade_service.add_trade("pos-s", TradeDirection.SELL, 100, 55.0, DAY2, underlying="MSFT")

        assert exc.value.field == "underlying"
        position = position_service.get_position("pos-s")
        assert position.status is PositionStatus.OPEN
        assert len(position.trades) == 1

    def test_whole_float_quantity_is_stored_as_int(self, trade_service, position_service, stock_plan):
        trade_service.add_trade("pos-s", TradeDirection.BUY, 100, 50.0, DAY1)
        closed = trade_service.add_trade("pos-s", TradeDirection.SELL, 100.0, 55.0, DAY2)

        assert type(closed.trade.quantity) is int
        assert closed.position.status is PositionStatus.CLOSED
        assert closed.comparison.actual_profit == pytest.approx(500.0)
        assert position_service.get_metrics("pos-s").pnl.open_quantity == 0

    def test_fractional_quantity_rejected(self, trade_service, stock_plan):
        with pytest.raises(ValidationError):
            trade_service.add_trade("pos-s", TradeDirection.BUY, 10.5, 50.0, DAY1)

    def test_option_trades_carry_contract(self, trade_service, position_service):
        position_service.create_position(make_short_put_plan(id="pos-sp"), today=BEFORE_EXPIRATION)
        opened = trade_service.add_trade("pos-sp", TradeDirection.SELL, 5, 3.00, datetime(2025, 1, 2, 10, 0))
        closed = trade_service.add_trade("pos-sp", TradeDirection.BUY, 5, 0.0, datetime(2025, 1, 17, 16, 0))

        assert opened.trade.underlying == "AAPL  250117P00100000"
        assert opened.trade.option.strike_price == 100.0
        assert closed.position.status is PositionStatus.CLOSED
        assert closed.comparison.actual_profit == pytest.approx(1500.0)

    def test_concurrent_exits_cannot_oversell(self, trade_service, position_service, stock_plan):
        trade_service.add_trade("pos-s", TradeDirection.BUY, 100, 50.0, DAY1)
        errors = []

        def sell():
            try:
                trade_service.add_trade("pos-s", TradeDirection.SELL, 60, 55.0, DAY2)
            except ValidationError as e:
                errors.append(e)

        threads = [threading.Thread(target=sell) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(errors) == 1
        assert position_service.get_position("pos-s").open_quantity == 40


class TestNormalizeTimestamp:
    def test_naive_kept(self):
        assert normalize_timestamp(DAY1) == DAY1

    def test_aware_converted_to_naive_local(self):
        aware = datetime(2024, 1, 1, 15, 0, tzinfo=timezone(timedelta(hours=5)))
        result = normalize_timestamp(aware)
        assert result.tzinfo is None
        assert result == aware.astimezone().replace(tzinfo=None)


class TestMetrics:
    def test_unrealized_from_latest_close(self, trade_service, position_service, price_service, stock_plan):
        trade_service.add_trade("pos-s", TradeDirection.BUY, 100, 50.0, DAY1)
        price_service.record_close("AAPL", date(2024, 1, 2), 52.0)
        price_service.record_close("AAPL", date(2024, 1, 3), 53.0)

        metrics = position_service.get_metrics("pos-s")
        assert metrics.pnl.unrealized_pnl == pytest.approx(300.0)
        assert metrics.marks == {"AAPL": 53.0}

        earlier = position_service.get_metrics("pos-s", as_of=date(2024, 1, 2))
        assert earlier.pnl.unrealized_pnl == pytest.approx(200.0)

    def test_no_price_means_no_unrealized(self, trade_service, position_service, stock_plan):
        trade_service.add_trade("pos-s", TradeDirection.BUY, 100, 50.0, DAY1)
        metrics = position_service.get_metrics("pos-s")

        assert metrics.pnl.unrealized_pnl == 0
        assert metrics.pnl.missing_prices == ["AAPL"]
        assert metrics.risk.risk_reward_ratio == "1:1"


class TestPlanVsExecution:
    def test_none_while_open(self, trade_service, position_service, stock_plan):
        trade_service.add_trade("pos-s", TradeDirection.BUY, 100, 50.0, DAY1)
        assert position_service.get_plan_vs_execution("pos-s") is None

    def test_available_once_closed(self, trade_service, position_service, stock_plan):
        trade_service.add_trade("pos-s", TradeDirection.BUY, 100, 49.0, DAY1)
        trade_service.add_trade("pos-s", TradeDirection.SELL, 100, 56.0, DAY2)

        comparison = position_service.get_plan_vs_execution("pos-s")
        assert comparison.entry_execution_quality is ExecutionQuality.BETTER
        assert comparison.profit_delta == pytest.approx(200.0)


class TestDeletePosition:
    def test_delete(self, position_service, stock_plan):
        position_service.delete_position("pos-s")
        with pytest.raises(NotFoundError):
            position_service.get_position("pos-s")

    def test_delete_waits_for_the_position_lock(self, position_service, locks, stock_plan):
        deleter = threading.Thread(target=position_service.delete_position, args=("pos-s",))
        with locks.hold("pos-s"):
            deleter.start()
            deleter.join(timeout=0.2)
            assert deleter.is_alive()
            assert position_service.get_position("pos-s").id == "pos-s"
        deleter.join()

        with pytest.raises(NotFoundError):
            position_service.get_position("pos-s")
        assert locks.active_ids() == []
