"""Not-interested endpoints for the tubefeed API.

Videos listed here are filtered out of every feed page.
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from tubefeed.auth.session import require_user
from tubefeed.db import crud
from tubefeed.db.models import User
from tubefeed.db.session import get_session

router = APIRouter(prefix="/api/not-interested", tags=["not-interested"])
limiter = Limiter(key_func=get_remote_address)


class NotInterestedRequest(BaseModel):
    """Request model for hiding a video."""

    video_id: str


@router.get("")
@limiter.limit("120/minute")
async def list_not_interested(
    request: Request,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """List hidden video IDs."""
    video_ids = await crud.get_not_interested_ids(db, user.id)
    return {"video_ids": sorted(video_ids)}


@router.post("", status_code=201)
@limiter.limit("60/minute")
async def mark_not_interested(
    request: Request,
    body: NotInterestedRequest,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Hide a video from the feeds. Marking twice is harmless."""
    if not body.video_id.strip():
        raise HTTPException(status_code=400, detail="video_id cannot be empty")

    await crud.add_not_interested(db, user.id, body.video_id)
    return {"video_id": body.video_id}


@router.delete("/{video_id}", status_code=204)
@limiter.limit("60/minute")
async def unmark_not_interested(
    request: Request,
    video_id: str,
    user: User = Depends(require_user),
    db: AsyncSession = Depends(get_session),
):
    """Show a hidden video again."""
    if not await crud.remove_not_interested(db, user.id, video_id):
        raise HTTPException(status_code=404, detail="Video not found in Not Interested")
