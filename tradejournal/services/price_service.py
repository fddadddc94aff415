"""Price lookup: stores daily OHLC rows and answers with the latest close."""

from datetime import date, datetime
from typing import Dict, Iterable, Optional

from loguru import logger
from sqlalchemy import select

from tradejournal.database.db_manager import DatabaseManager
from tradejournal.database.models import PriceHistoryRecord
from tradejournal.errors import ValidationError


def _check_ohlc(open_: Optional[float], high: Optional[float], low: Optional[float], close: float) -> None:
    if close is None or close < 0:
        raise ValidationError("Close price must be zero or positive", field="close", value=close, constraint=">= 0")
    for name, value in (("open", open_), ("high", high), ("low", low)):
        if value is not None and value < 0:
            raise ValidationError(f"{name} price cannot be negative", field=name, value=value, constraint=">= 0")
    if high is not None and low is not None and low > high:
        raise ValidationError("Low price cannot exceed high price", field="low", value=low, constraint=f"<= {high}")
    if high is not None:
        for name, value in (("open", open_), ("close", close)):
            if value is not None and value > high:
                raise ValidationError(
                    f"{name} price cannot exceed high price", field=name, value=value, constraint=f"<= {high}",
                )
    if low is not None:
        for name, value in (("open", open_), ("close", close)):
            if value is not None and value < low:
                raise ValidationError(
                    f"{name} price cannot be below low price", field=name, value=value, constraint=f">= {low}",
                )


class PriceService:
    def __init__(self, db: DatabaseManager):
        self.db = db

    def record_price(self, underlying: str, price_date: date, close: float,
                     open_: Optional[float] = None, high: Optional[float] = None,
                     low: Optional[float] = None) -> Dict:
        """Insert or replace the OHLC row for ``underlying`` on ``price_date``."""
        if not underlying or not underlying.strip():
            raise ValidationError("underlying is required", field="underlying", value=underlying, constraint="non-empty")
        _check_ohlc(open_, high, low, close)
        key = underlying.strip().upper()

        with self.db.get_session() as session:
            row = session.execute(
                select(PriceHistoryRecord).where(
                    PriceHistoryRecord.underlying == key,
                    PriceHistoryRecord.date == price_date,
                )
            ).scalar_one_or_none()
            if row is None:
                row = PriceHistoryRecord(underlying=key, date=price_date)
                session.add(row)
            row.open = open_
            row.high = high
            row.low = low
            row.close = close
            row.updated_at = datetime.now()
            session.flush()
            logger.info(f"Recorded {key} close {close} for {price_date.isoformat()}")
            return row.to_dict()

    def record_close(self, underlying: str, price_date: date, close: float) -> Dict:
        return self.record_price(underlying, price_date, close)

    def get_latest_close(self, underlying: str, as_of: Optional[date] = None) -> Optional[float]:
        """Latest closing price on or before ``as_of``; None when nothing is known."""
        if not underlying:
            return None
        stmt = select(PriceHistoryRecord.close).where(PriceHistoryRecord.underlying == underlying.strip().upper())
        if as_of is not None:
            stmt = stmt.where(PriceHistoryRecord.date <= as_of)
        stmt = stmt.order_by(PriceHistoryRecord.date.desc()).limit(1)

        with self.db.get_session() as session:
            return session.execute(stmt).scalar_one_or_none()

    def get_price_map(self, underlyings: Iterable[str], as_of: Optional[date] = None) -> Dict[str, Optional[float]]:
        return {u: self.get_latest_close(u, as_of) for u in dict.fromkeys(underlyings)}
