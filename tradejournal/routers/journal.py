"""Journal entry routes."""

from fastapi import APIRouter

from tradejournal.dependencies import journal_service
from tradejournal.schemas import JournalCreate, jsonable

router = APIRouter()


@router.post("/api/journal", status_code=201)
async def create_journal_entry(body: JournalCreate):
    entry = journal_service.create_entry(
        body.entry_type,
        [f.model_dump() for f in body.fields],
        position_id=body.position_id,
        trade_id=body.trade_id,
    )
    return jsonable(entry)


@router.get("/api/positions/{position_id}/journal")
async def list_journal_entries(position_id: str):
    return {"entries": jsonable(journal_service.list_for_position(position_id))}
