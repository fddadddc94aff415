"""Health check route."""

from datetime import datetime

from fastapi import APIRouter

from tradejournal import __version__

router = APIRouter()


@router.get("/api/health")
async def health_check():
    """Simple health check endpoint"""
    return {"status": "ok", "service": "Trade Journal", "version": __version__,
            "timestamp": datetime.now().isoformat()}
