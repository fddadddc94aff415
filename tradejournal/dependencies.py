"""Singleton instances shared across routers and services."""

from tradejournal import config
from tradejournal.database.db_manager import DatabaseManager
from tradejournal.services.assignment_service import AssignmentService
from tradejournal.services.journal_service import JournalService
from tradejournal.services.locks import PositionLockRegistry
from tradejournal.services.position_service import PositionService
from tradejournal.services.price_service import PriceService
from tradejournal.services.trade_service import TradeService

db = DatabaseManager(db_url=config.DATABASE_URL)

# One registry for every writer, so trade appends, deletes and assignments on the
# same position serialize against each other.
position_locks = PositionLockRegistry()

price_service = PriceService(db)
journal_service = JournalService(db)
position_service = PositionService(db, price_service, tolerance=config.EXECUTION_TOLERANCE, locks=position_locks)
trade_service = TradeService(db, position_service, locks=position_locks)
assignment_service = AssignmentService(db, locks=position_locks)
