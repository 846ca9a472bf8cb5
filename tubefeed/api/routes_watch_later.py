"""Watch-later endpoints for the tubefeed API."""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from tubefeed.auth.session import require_user
from tubefeed.db import crud
from tubefeed.db.models import User, WatchLater
from tubefeed.db.session import get_session

router = APIRouter(prefix="/api/watch-later", tags=["watch-later"])
limiter = Limiter(key_func=get_remote_address)


class VideoSnapshot(BaseModel):
    """Video metadata saved alongside watch state, so lists render offline."""

    video_id: str
    channel_id: str
    channel_title: str
    title: str
    description: str = ""
    thumbnail: str = ""
    published_at: str
    duration: str = ""
    is_short: bool = False

    def validate_required(self) -> None:
        """Reject blank identity fields.

        Raises:
            HTTPException: 400 if video_id, channel_id or title is blank
        """
        for name in ("video_id", "channel_id", "title"):
            if not getattr(self, name).strip():
                raise HTTPException(status_code=400, detail=f"{name} cannot be empty")


def snapshot_dict(row) -> dict:
    """Serialize a watch-state row's video snapshot."""
    return {
        "video_id": row.video_id,
        "channel_id": row.channel_id,
        "channel_title": row.channel_title,
        "title": row.title,
        "description": row.description or "",
        "thumbnail": row.thumbnail or "",
        "published_at": row.published_at,
        "duration": row.duration or "",
        "is_short": row.is_short,
    }


def _watch_later_dict(row: WatchLater) -> dict:
    return {**snapshot_dict(row), "in_watch_later": True}


@router.get("")
@limiter.limit("120/minute")
async def list_watch_later(
    request: Request,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """List saved videos, most recently saved first."""
    items = await crud.list_watch_later(db, user.id)
    return {"items": [_watch_later_dict(it) for it in items]}


@router.post("", status_code=201)
@limiter.limit("60/minute")
async def add_watch_later(
    request: Request,
    body: VideoSnapshot,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """
    Save a video for later.

    Raises:
        HTTPException: 400 for blank fields, 409 if already saved
    """
    body.validate_required()
    item = await crud.add_watch_later(db, user.id, body.model_dump())
    if item is None:
        raise HTTPException(status_code=409, detail="Already in Watch Later")
    return _watch_later_dict(item)


@router.delete("/{video_id}", status_code=204)
@limiter.limit("60/minute")
async def remove_watch_later(
    request: Request,
    video_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Remove a video from watch later."""
    if not await crud.remove_watch_later(db, user.id, video_id):
        raise HTTPException(status_code=404, detail="Video not found in Watch Later")
