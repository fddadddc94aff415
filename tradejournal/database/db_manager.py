"""
Database Manager for Trade Journal
Owns engine initialization and hands out units of work.
"""

import logging
import time
from typing import Optional

from tradejournal.database.engine import get_engine, get_session, init_engine
from tradejournal.database.models import Base

logger = logging.getLogger(__name__)


class DatabaseManager:
    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url
        self._initialized = False
        # Note: initialize_database() is called explicitly by the FastAPI lifespan

    def ensure_initialized(self):
        """Ensure database is initialized (for scripts and tests)"""
        if not self._initialized:
            self.initialize_database()

    def initialize_database(self):
        """Create the engine and any missing tables"""
        start_time = time.time()
        logger.info("Starting database initialization...")
        init_engine(self.db_url)
        Base.metadata.create_all(get_engine())
        self._initialized = True
        logger.info(f"Database initialization completed in {time.time() - start_time:.2f}s")

    def get_session(self):
        """Unit of work: commits on clean exit, rolls back on exception."""
        self.ensure_initialized()
        return get_session()
