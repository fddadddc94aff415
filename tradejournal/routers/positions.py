"""Position routes: plans, metrics and plan-vs-execution."""

from datetime import date
from typing import Optional

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool
from loguru import logger

from tradejournal.dependencies import position_service
from tradejournal.domain.plan_vs_execution import format_plan_vs_execution
from tradejournal.domain.types import PositionStatus
from tradejournal.schemas import PositionCreate, jsonable, position_out

router = APIRouter()


@router.post("/api/positions", status_code=201)
async def create_position(body: PositionCreate):
    """Create a trade plan; it starts out planned with no trades"""
    position = body.to_domain(position_service.new_position_id())
    created = await run_in_threadpool(position_service.create_position, position, body.journal_notes)
    return position_out(created)


@router.get("/api/positions")
async def list_positions(status: Optional[PositionStatus] = None):
    """List positions, optionally filtered by derived status"""
    positions = position_service.list_positions(status)
    logger.info(f"/api/positions: Returning {len(positions)} positions")
    return {"positions": [position_out(p) for p in positions]}


@router.get("/api/positions/{position_id}")
async def get_position(position_id: str):
    return position_out(position_service.get_position(position_id))


@router.delete("/api/positions/{position_id}")
async def delete_position(position_id: str):
    position_service.delete_position(position_id)
    return {"message": "Position deleted"}


@router.get("/api/positions/{position_id}/metrics")
async def get_position_metrics(position_id: str, as_of: Optional[date] = None):
    """Realized/unrealized P&L at the latest known close, plus planned risk"""
    metrics = position_service.get_metrics(position_id, as_of)
    return jsonable(metrics)


@router.get("/api/positions/{position_id}/plan-vs-execution")
async def get_plan_vs_execution(position_id: str):
    """Plan-vs-execution for a closed position; null while the position is still open"""
    comparison = position_service.get_plan_vs_execution(position_id)
    if comparison is None:
        return {"position_id": position_id, "comparison": None, "display": None}
    return {
        "position_id": position_id,
        "comparison": comparison.to_dict(),
        "display": format_plan_vs_execution(comparison),
    }
