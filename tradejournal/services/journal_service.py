"""Journal linkage: stores free-text entries against a position and/or trade."""

import uuid
from datetime import datetime
from typing import Dict, List, Optional

from loguru import logger

from tradejournal.database.db_manager import DatabaseManager
from tradejournal.database.store import PositionStore
from tradejournal.domain.types import JournalEntry, JournalEntryType, JournalField
from tradejournal.errors import NotFoundError, ValidationError


class JournalService:
    def __init__(self, db: DatabaseManager):
        self.db = db

    def create_entry(self, entry_type: JournalEntryType, fields: List[Dict[str, str]],
                     position_id: Optional[str] = None, trade_id: Optional[str] = None) -> JournalEntry:
        if not fields:
            raise ValidationError("A journal entry needs at least one field", field="fields", value=[], constraint="non-empty")

        entry = JournalEntry(
            id=str(uuid.uuid4()),
            entry_type=entry_type,
            fields=[
                JournalField(name=f.get("name", ""), prompt=f.get("prompt", ""), response=f.get("response", ""))
                for f in fields
            ],
            created_at=datetime.now(),
            position_id=position_id,
            trade_id=trade_id,
        )

        with self.db.get_session() as session:
            store = PositionStore(session)
            if position_id is not None:
                position = store.get(position_id)
                if position is None:
                    raise NotFoundError(f"Position not found: {position_id}")
                if trade_id is not None and position.find_trade(trade_id) is None:
                    raise NotFoundError(f"Trade {trade_id} not found on position {position_id}")
            store.add_journal_entry(entry)

        logger.info(f"Journal entry {entry.id} ({entry_type.value}) for position {position_id}")
        return entry

    def list_for_position(self, position_id: str) -> List[JournalEntry]:
        with self.db.get_session() as session:
            return PositionStore(session).list_journal_entries(position_id)
