"""Assignment entry points: preview, validate, complete and look up assignments."""

import uuid
from datetime import date, datetime
from typing import Dict, List, Optional, Union

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from tradejournal.database.db_manager import DatabaseManager
from tradejournal.database.store import PositionStore
from tradejournal.domain.assignment import (
    AssignmentPlan, AssignmentPreview, AssignmentRequest, build_assignment, preview_assignment,
    validate_assignment,
)
from tradejournal.domain.types import AssignmentEvent
from tradejournal.errors import TransactionError
from tradejournal.services.locks import PositionLockRegistry


class AssignmentService:
    def __init__(self, db: DatabaseManager, locks: Optional[PositionLockRegistry] = None):
        self.db = db
        self.locks = locks or PositionLockRegistry()

    def preview(self, option_position_id: str, contracts_to_assign: Optional[int] = None,
                today: Optional[date] = None) -> AssignmentPreview:
        with self.db.get_session() as session:
            position = PositionStore(session).require(option_position_id)
        return preview_assignment(position, contracts_to_assign, today)

    def validate(self, option_position_id: str, contracts_to_assign: Optional[int],
                 today: Optional[date] = None) -> Dict[str, Union[bool, List[str]]]:
        with self.db.get_session() as session:
            position = PositionStore(session).require(option_position_id)
        errors = validate_assignment(position, contracts_to_assign, today)
        return {"valid": not errors, "errors": errors}

    def complete(self, request: AssignmentRequest, now: Optional[datetime] = None) -> AssignmentPlan:
        """
        Close the assigned contracts and open the resulting stock position,
        all in one unit of work.

        Raises:
            NotFoundError: the option position does not exist
            ValidationError: the position is not assignable; nothing is written
            TransactionError: the commit failed and was rolled back
        """
        now = now or datetime.now()
        option_id = request.option_position_id
        stock_id = str(uuid.uuid4())

        with self.locks.hold(option_id, stock_id):
            try:
                with self.db.get_session() as session:
                    store = PositionStore(session)
                    position = store.require(option_id)
                    plan = build_assignment(position, request, now=now, stock_position_id=stock_id)
                    store.commit_assignment(plan)
            except SQLAlchemyError as e:
                logger.error(f"Assignment of {option_id} rolled back: {e}")
                raise TransactionError(
                    f"Assignment of position {option_id} could not be committed; nothing was changed",
                    cause=e,
                ) from e

        logger.info(
            f"Assigned {plan.event.contracts_assigned} contracts of {option_id} into stock position "
            f"{plan.stock_position.id} ({plan.stock_buy_trade.quantity} shares, "
            f"basis {plan.event.resulting_cost_basis:.2f})"
        )
        return plan

    def get_assignment_by_option_position(self, option_position_id: str) -> Optional[AssignmentEvent]:
        with self.db.get_session() as session:
            return PositionStore(session).get_assignment_event(option_position_id=option_position_id)

    def get_assignment_by_stock_position(self, stock_position_id: str) -> Optional[AssignmentEvent]:
        with self.db.get_session() as session:
            return PositionStore(session).get_assignment_event(stock_position_id=stock_position_id)
