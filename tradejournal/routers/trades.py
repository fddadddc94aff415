"""Trade routes: append-only trade log per position."""

from fastapi import APIRouter
from fastapi.concurrency import run_in_threadpool

from tradejournal.dependencies import trade_service
from tradejournal.schemas import TradeCreate, jsonable, position_out

router = APIRouter()


@router.post("/api/positions/{position_id}/trades", status_code=201)
async def add_trade(position_id: str, body: TradeCreate):
    """Append a trade; rejected trades leave the position untouched"""
    result = await run_in_threadpool(
        trade_service.add_trade,
        position_id,
        body.direction,
        body.quantity,
        body.price,
        body.timestamp,
        body.underlying,
        body.notes,
    )
    return {
        "trade": jsonable(result.trade),
        "position": position_out(result.position),
        "previous_status": result.previous_status.value,
        "plan_vs_execution": result.comparison.to_dict() if result.comparison else None,
    }


@router.get("/api/positions/{position_id}/trades")
async def get_trades(position_id: str):
    trades = trade_service.get_trades(position_id)
    return {"trades": jsonable(trades)}
