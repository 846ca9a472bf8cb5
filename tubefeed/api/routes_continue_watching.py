"""Continue-watching endpoints for the tubefeed API."""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import Field
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from tubefeed.api.routes_watch_later import VideoSnapshot, snapshot_dict
from tubefeed.auth.session import require_user
from tubefeed.db import crud
from tubefeed.db.models import ContinueWatching, User
from tubefeed.db.session import get_session

router = APIRouter(prefix="/api/continue-watching", tags=["continue-watching"])
limiter = Limiter(key_func=get_remote_address)


class ProgressRequest(VideoSnapshot):
    """Video snapshot plus the playback position."""

    position_seconds: int = Field(default=0, ge=0)


def _progress_dict(row: ContinueWatching) -> dict:
    return {
        **snapshot_dict(row),
        "position_seconds": row.position_seconds,
        "last_watched_at": row.last_watched_at.isoformat(),
    }


@router.get("")
@limiter.limit("120/minute")
async def list_continue_watching(
    request: Request,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """List up to 50 partially watched videos, most recent first."""
    items = await crud.list_continue_watching(db, user.id)
    return {"items": [_progress_dict(it) for it in items]}


@router.post("")
@limiter.limit("120/minute")
async def save_progress(
    request: Request,
    body: ProgressRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Record playback progress; repeated calls move the video to the top."""
    body.validate_required()
    video = body.model_dump(exclude={"position_seconds"})
    item = await crud.upsert_continue_watching(
        db, user.id, video, position_seconds=body.position_seconds
    )
    return _progress_dict(item)


@router.delete("/{video_id}", status_code=204)
@limiter.limit("60/minute")
async def remove_continue_watching(
    request: Request,
    video_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Remove a video from continue watching."""
    if not await crud.remove_continue_watching(db, user.id, video_id):
        raise HTTPException(status_code=404, detail="Video not found in Continue Watching")
