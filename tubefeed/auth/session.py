"""Session cookie verification and the current-user dependency.

Sign-in happens elsewhere; this service only trusts the signed session
cookie it is handed and resolves it to a user.
"""

import logging
import time
from typing import Annotated

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response
from jose import JWTError, jwt
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from tubefeed.config import get_settings
from tubefeed.db import crud
from tubefeed.db.models import User
from tubefeed.db.session import get_session

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
limiter = Limiter(key_func=get_remote_address)

SESSION_COOKIE = "tubefeed_sess"
SESSION_TTL_SECONDS = 86400 * 7  # 7 days


def create_session_token(user_id: str) -> str:
    """Create a signed JWT session token containing the user ID."""
    settings = get_settings()
    now = int(time.time())
    payload = {"sub": user_id, "iat": now, "exp": now + SESSION_TTL_SECONDS}
    return jwt.encode(payload, settings.app_secret_key, algorithm="HS256")


def verify_session_token(token: str) -> str | None:
    """Verify a session token and return the user ID, or None if invalid."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.app_secret_key, algorithms=["HS256"])
        return payload.get("sub")
    except JWTError:
        return None


async def require_user(
    session_cookie: Annotated[str | None, Cookie(alias=SESSION_COOKIE)] = None,
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    FastAPI dependency that requires a valid authenticated user.

    Raises:
        HTTPException: 401 if the session is missing, invalid, or the user
            no longer exists
    """
    if not session_cookie:
        raise HTTPException(status_code=401, detail="Not authenticated")

    user_id = verify_session_token(session_cookie)
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid session")

    user = await crud.get_user_by_id(db, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    return user


@router.post("/logout")
@limiter.limit("20/minute")
async def logout(request: Request, response: Response):
    """Clear the session cookie."""
    ip_address = request.client.host if request.client else "unknown"
    logger.info(f"Logout from ip={ip_address}")
    response.delete_cookie(key=SESSION_COOKIE, httponly=True, samesite="lax")
    return {"message": "Logged out successfully"}
