"""
Tests for the assignment orchestrator: validation, preview and plan building.

Source: tradejournal/domain/assignment.py
"""

from datetime import datetime

import pytest

from tradejournal.domain.assignment import (
    AssignmentRequest, build_assignment, preview_assignment, validate_assignment,
)
from tradejournal.domain.types import (
    JournalEntryType, PositionStatus, PriceBasis, StrategyType, TradeDirection,
)
from tradejournal.errors import ValidationError

from tests.conftest import (
    AFTER_EXPIRATION, BEFORE_EXPIRATION, EXPIRATION, make_option_trade, make_short_put_plan,
    make_stock_plan,
)

NOW = datetime(2025, 1, 18, 9, 30)


def _open_short_put(contracts=5, premium=3.00, **kwargs):
    position = make_short_put_plan(id="pos-option", **kwargs)
    position.trades.append(make_option_trade(quantity=contracts, price=premium))
    return position


def _request(contracts=5, **kwargs):
    fields = dict(
        option_position_id="pos-option",
        contracts_assigned=contracts,
        stock_position_thesis="Holding assigned shares for covered calls",
    )
    fields.update(kwargs)
    return AssignmentRequest(**fields)


class TestValidateAssignment:
    def test_open_short_put_after_expiration_is_valid(self):
        assert validate_assignment(_open_short_put(), 5, AFTER_EXPIRATION) == []

    def test_on_expiration_day_is_valid(self):
        assert validate_assignment(_open_short_put(), 5, EXPIRATION) == []

    def test_before_expiration_rejected(self):
        errors = validate_assignment(_open_short_put(), 5, BEFORE_EXPIRATION)
        assert errors == ["Assignment is only possible on or after expiration (2025-01-17)"]

    def test_stock_position_rejected(self):
        errors = validate_assignment(make_stock_plan(id="pos-stock"), 1, AFTER_EXPIRATION)
        assert errors == ["Position pos-stock is not an option position"]

    def test_planned_option_has_no_open_contracts(self):
        errors = validate_assignment(make_short_put_plan(), 1, AFTER_EXPIRATION)
        assert "Position has no open contracts" in errors

    def test_too_many_contracts_rejected(self):
        errors = validate_assignment(_open_short_put(contracts=5), 6, AFTER_EXPIRATION)
        assert errors == ["Cannot assign 6 contracts; only 5 open"]

    @pytest.mark.parametrize("contracts", [0, -1, 2.5, True])
    def test_contracts_must_be_positive_whole_number(self, contracts):
        errors = validate_assignment(_open_short_put(), contracts, AFTER_EXPIRATION)
        assert errors == ["Contracts to assign must be a positive whole number"]

    def test_all_failures_listed(self):
        errors = validate_assignment(make_short_put_plan(), 3, BEFORE_EXPIRATION)
        assert len(errors) == 2


class TestPreview:
    def test_full_assignment_economics(self):
        """5 contracts at strike 100, 3.00 received → basis 97, 500 shares, 50,000 cost"""
        preview = preview_assignment(_open_short_put(), 5, AFTER_EXPIRATION)

        assert preview.premium_received_per_share == pytest.approx(3.00)
        assert preview.resulting_cost_basis == pytest.approx(97.00)
        assert preview.total_shares == 500
        assert preview.total_cost == pytest.approx(50000.0)
        assert preview.contracts_remaining == 0

    def test_defaults_to_all_open_contracts(self):
        preview = preview_assignment(_open_short_put(contracts=4), today=AFTER_EXPIRATION)
        assert preview.contracts_assigned == 4

    def test_partial_assignment(self):
        preview = preview_assignment(_open_short_put(contracts=5), 2, AFTER_EXPIRATION)

        assert preview.total_shares == 200
        assert preview.contracts_remaining == 3

    def test_invalid_preview_raises(self):
        with pytest.raises(ValidationError) as exc:
            preview_assignment(_open_short_put(), 5, BEFORE_EXPIRATION)
        assert exc.value.field == "assignment_date"
        assert exc.value.remediation is not None


class TestBuildAssignment:
    def test_builds_every_record(self):
        position = _open_short_put()
        plan = build_assignment(position, _request(assignment_date=AFTER_EXPIRATION), now=NOW)

        closing = plan.closing_trade
        assert closing.direction is TradeDirection.BUY
        assert closing.price == 0.0
        assert closing.quantity == 5
        assert closing.sequence == 1
        assert closing.assignment.created_stock_position_id == plan.stock_position.id
        assert closing.assignment.cost_basis_adjustment == pytest.approx(3.00)
        assert plan.option_position.status is PositionStatus.CLOSED

        stock = plan.stock_position
        assert stock.strategy_type is StrategyType.LONG_STOCK
        assert stock.symbol == "AAPL"
        assert stock.target_entry_price == pytest.approx(97.00)
        assert stock.target_quantity == 500
        assert stock.status is PositionStatus.OPEN
        assert stock.trades == [plan.stock_buy_trade]
        assert plan.stock_buy_trade.quantity == 500
        assert plan.stock_buy_trade.price == pytest.approx(100.0)

        event = plan.event
        assert event.option_position_id == "pos-option"
        assert event.stock_position_id == stock.id
        assert event.closing_trade_id == closing.id
        assert event.assignment_date == AFTER_EXPIRATION
        assert event.resulting_cost_basis == pytest.approx(97.00)

    def test_input_position_is_not_mutated(self):
        position = _open_short_put()
        build_assignment(position, _request(assignment_date=AFTER_EXPIRATION), now=NOW)

        assert len(position.trades) == 1
        assert position.status is PositionStatus.OPEN

    def test_partial_assignment_leaves_option_open(self):
        plan = build_assignment(_open_short_put(), _request(contracts=2), now=NOW)

        assert plan.option_position.status is PositionStatus.OPEN
        assert plan.option_position.open_quantity == 3
        assert plan.stock_position.target_quantity == 200

    def test_stock_targets_inherited_from_stock_basis_plan(self):
        plan = build_assignment(_open_short_put(), _request(), now=NOW)

        assert plan.stock_position.profit_target == 110.0
        assert plan.stock_position.stop_loss == 90.0

    def test_explicit_stock_targets_win(self):
        plan = build_assignment(_open_short_put(), _request(stock_profit_target=120.0, stock_stop_loss=85.0), now=NOW)

        assert plan.stock_position.profit_target == 120.0
        assert plan.stock_position.stop_loss == 85.0

    def test_option_basis_targets_need_stock_targets(self):
        position = _open_short_put(profit_target_basis=PriceBasis.OPTION_PRICE, profit_target=50.0)
        with pytest.raises(ValidationError) as exc:
            build_assignment(position, _request(), now=NOW)
        assert exc.value.field == "stock_profit_target"

    def test_notes_become_journal_entry(self):
        plan = build_assignment(_open_short_put(), _request(assignment_notes="  Assigned at expiry  "), now=NOW)

        entry = plan.journal_entry
        assert entry.entry_type is JournalEntryType.OPTION_ASSIGNMENT
        assert entry.position_id == plan.stock_position.id
        assert entry.fields[0].response == "Assigned at expiry"
        assert plan.stock_position.journal_entry_ids == [entry.id]

    def test_blank_notes_write_no_journal_entry(self):
        plan = build_assignment(_open_short_put(), _request(assignment_notes="   "), now=NOW)
        assert plan.journal_entry is None

    def test_mismatched_request_rejected(self):
        with pytest.raises(ValidationError):
            build_assignment(_open_short_put(), _request(option_position_id="other"), now=NOW)

    def test_before_expiration_rejected(self):
        with pytest.raises(ValidationError):
            build_assignment(_open_short_put(), _request(), now=datetime(2025, 1, 10, 9, 30))

    def test_assigned_quantity_may_exceed_plan_cap(self):
        position = make_short_put_plan(id="pos-option", target_quantity=150)
        position.trades.append(make_option_trade(quantity=150))
        plan = build_assignment(position, _request(contracts=150), now=NOW)

        assert plan.stock_position.target_quantity == 15000
        assert plan.event.contracts_assigned == 150
