"""Health check endpoints for the tubefeed API."""

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from tubefeed.db.session import get_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def health_check():
    """Liveness check; the process is up."""
    return {"ok": True}


@router.get("/readyz")
async def readiness_check(db: AsyncSession = Depends(get_session)):
    """
    Readiness check.

    Returns 503 until the database answers a trivial query.
    """
    try:
        await db.execute(text("SELECT 1"))
    except Exception:
        logger.error("Readiness check failed: database unreachable", exc_info=True)
        raise HTTPException(status_code=503, detail="Database unavailable")
    return {"ok": True}
