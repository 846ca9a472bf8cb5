"""Endpoints that pull new uploads into stored videos."""

from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from slowapi import Limiter
from slowapi.util import get_remote_address

from tubefeed.api.dependencies import get_refresh_driver
from tubefeed.auth.session import require_user
from tubefeed.db.models import User
from tubefeed.feed.refresh import RefreshDriver, RefreshResult, UnknownChannel

router = APIRouter(prefix="/api/channels", tags=["refresh"])
limiter = Limiter(key_func=get_remote_address)


class BackfillRequest(BaseModel):
    """Request model for a historical fetch."""

    months: int = Field(default=1, ge=1, le=24)


def _single_result(result: RefreshResult) -> dict:
    """Turn a single-channel result into a response, raising on failure."""
    if result.quota_exceeded:
        raise HTTPException(
            status_code=429,
            detail="YouTube API quota exceeded. Please try again tomorrow.",
        )
    if not result.ok:
        raise HTTPException(status_code=502, detail="Failed to fetch videos")

    return {
        "channel_id": result.channel_id,
        "new_count": result.new_count,
        "latest_published_at": (
            result.latest_published_at.isoformat() if result.latest_published_at else None
        ),
        "quota_exceeded": False,
    }


@router.post("/refresh")
@limiter.limit("10/minute")
async def refresh_all_channels(
    request: Request,
    user: User = Depends(require_user),
    driver: RefreshDriver = Depends(get_refresh_driver),
):
    """
    Refresh every enabled channel in parallel.

    Channels that fail are listed in ``failed``; they never fail the request.
    """
    summary = await driver.refresh_all(user.id)
    return {
        "total_new": summary.total_new,
        "channels": summary.channels,
        "failed": summary.failed,
        "quota_exceeded": summary.quota_exceeded,
    }


@router.post("/{channel_id}/refresh")
@limiter.limit("30/minute")
async def refresh_channel(
    request: Request,
    channel_id: str,
    user: User = Depends(require_user),
    driver: RefreshDriver = Depends(get_refresh_driver),
):
    """Fetch uploads newer than the newest stored video of one channel."""
    try:
        result = await driver.refresh_channel(user.id, channel_id)
    except UnknownChannel:
        raise HTTPException(status_code=404, detail="Channel not found")
    return _single_result(result)


@router.post("/{channel_id}/backfill")
@limiter.limit("10/minute")
async def backfill_channel(
    request: Request,
    channel_id: str,
    body: BackfillRequest,
    user: User = Depends(require_user),
    driver: RefreshDriver = Depends(get_refresh_driver),
):
    """Fetch a channel's uploads from the last ``months`` months."""
    since = datetime.now(timezone.utc) - timedelta(days=30 * body.months)
    try:
        result = await driver.backfill_channel(user.id, channel_id, since)
    except UnknownChannel:
        raise HTTPException(status_code=404, detail="Channel not found")
    return _single_result(result)
