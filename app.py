#!/usr/bin/env python3

"""
Trade Journal Web Application
Plans, trades, FIFO P&L and option assignment over a local database
"""

from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from tradejournal import __version__, config
from tradejournal.dependencies import db
from tradejournal.errors import TradeJournalError, TransactionError
from tradejournal.routers import assignments, health, journal, positions, prices, trades

# Configure logging
logger.add(
    f"{config.LOG_DIR}/tradejournal_{{time}}.log",
    rotation=config.LOG_ROTATION,
    retention=config.LOG_RETENTION,
    level=config.LOG_LEVEL,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    db.initialize_database()
    logger.info("Trade Journal database ready")
    yield


app = FastAPI(
    title="Trade Journal",
    description="Personal Trading Journal and Analytics",
    version=__version__,
    lifespan=lifespan,
)

# Add CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TradeJournalError)
async def trade_journal_error_handler(request: Request, exc: TradeJournalError):
    if isinstance(exc, TransactionError) or exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(health.router)
app.include_router(positions.router)
app.include_router(trades.router)
app.include_router(assignments.router)
app.include_router(prices.router)
app.include_router(journal.router)


if __name__ == "__main__":
    logger.info(f"Starting Trade Journal on http://{config.HOST}:{config.PORT}")
    uvicorn.run(
        "app:app",
        host=config.HOST,
        port=config.PORT,
        reload=True,
        log_level=config.LOG_LEVEL.lower(),
    )
