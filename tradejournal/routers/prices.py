"""Daily closing price routes."""

from datetime import date
from typing import Optional

from fastapi import APIRouter

from tradejournal.dependencies import price_service
from tradejournal.schemas import PriceCreate

router = APIRouter()


@router.post("/api/prices", status_code=201)
async def record_price(body: PriceCreate):
    if body.open is None and body.high is None and body.low is None:
        return price_service.record_close(body.underlying, body.price_date, body.close)
    return price_service.record_price(
        body.underlying, body.price_date, body.close, open_=body.open, high=body.high, low=body.low,
    )


@router.get("/api/prices/{underlying}/latest")
async def get_latest_close(underlying: str, as_of: Optional[date] = None):
    """Latest close on or before as_of; close is null when no price is known"""
    return {
        "underlying": underlying.upper(),
        "as_of": as_of.isoformat() if as_of else None,
        "close": price_service.get_latest_close(underlying, as_of),
    }
