"""Option assignment routes."""

from datetime import date
from typing import Optional

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool

from tradejournal.dependencies import assignment_service
from tradejournal.domain.assignment import AssignmentRequest
from tradejournal.errors import NotFoundError
from tradejournal.schemas import AssignmentCreate, jsonable, position_out

router = APIRouter()


@router.get("/api/assignments/{option_position_id}/preview")
async def preview_assignment(option_position_id: str, contracts: Optional[int] = None,
                             as_of: Optional[date] = None):
    """Economics of assigning the given contracts (default: all open), without writing anything"""
    preview = assignment_service.preview(option_position_id, contracts, as_of)
    return jsonable(preview)


@router.get("/api/assignments/{option_position_id}/validate")
async def validate_assignment(option_position_id: str, contracts: Optional[int] = None,
                              as_of: Optional[date] = None):
    return assignment_service.validate(option_position_id, contracts, as_of)


@router.post("/api/assignments", status_code=201)
async def complete_assignment(body: AssignmentCreate):
    """Close the assigned contracts and open the resulting stock position atomically"""
    request = AssignmentRequest(**body.model_dump())
    plan = await run_in_threadpool(assignment_service.complete, request)
    return {
        "event": jsonable(plan.event),
        "option_position": position_out(plan.option_position),
        "stock_position": position_out(plan.stock_position),
        "journal_entry_id": plan.journal_entry.id if plan.journal_entry else None,
    }


@router.get("/api/assignments/by-option/{position_id}")
async def get_assignment_by_option(position_id: str):
    event = assignment_service.get_assignment_by_option_position(position_id)
    if event is None:
        raise NotFoundError(f"No assignment recorded for option position {position_id}")
    return jsonable(event)


@router.get("/api/assignments/by-stock/{position_id}")
async def get_assignment_by_stock(position_id: str):
    event = assignment_service.get_assignment_by_stock_position(position_id)
    if event is None:
        raise NotFoundError(f"No assignment recorded for stock position {position_id}")
    return jsonable(event)
