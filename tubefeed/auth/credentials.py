"""Per-user YouTube access tokens with transparent refresh."""

import logging
from datetime import datetime, timedelta, timezone

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from tubefeed.auth.tokens import decrypt_token, encrypt_token, validate_encryption_key
from tubefeed.config import get_settings
from tubefeed.db import crud
from tubefeed.db.models import User

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"

# Treat tokens this close to expiry as already expired
EXPIRY_LEEWAY = timedelta(seconds=60)


async def _exchange_refresh_token(refresh_token: str) -> tuple[str, int] | None:
    """Exchange a refresh token for a new access token.

    Returns:
        Tuple of (access_token, expires_in_seconds), or None on failure
    """
    settings = get_settings()

    async with httpx.AsyncClient(timeout=15) as client:
        response = await client.post(
            TOKEN_URL,
            data={
                "client_id": settings.google_client_id,
                "client_secret": settings.google_client_secret,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )

    if response.status_code != 200:
        logger.warning(f"Failed to refresh access token: HTTP {response.status_code}")
        return None

    data = response.json()
    return data["access_token"], int(data.get("expires_in", 3600))


async def get_user_access_token(db: AsyncSession, user: User) -> str | None:
    """Return a usable access token for the user, refreshing it if expired.

    Any failure (no stored tokens, bad key, refresh rejected, network error)
    yields None so the caller can fall back to the shared API key.
    """
    settings = get_settings()
    try:
        key = validate_encryption_key(settings.token_enc_key)
    except ValueError:
        logger.error("Invalid encryption key configuration", exc_info=True)
        return None

    now = datetime.now(timezone.utc).replace(tzinfo=None)

    if user.access_token_enc and user.access_token_expires_at:
        if user.access_token_expires_at - EXPIRY_LEEWAY > now:
            try:
                return decrypt_token(key, user.access_token_enc)
            except Exception:
                logger.error("Failed to decrypt access token", exc_info=True)

    if not user.refresh_token_enc:
        return None

    try:
        refresh_token = decrypt_token(key, user.refresh_token_enc)
        exchanged = await _exchange_refresh_token(refresh_token)
    except Exception:
        logger.error(f"Failed to refresh access token for user {user.id}", exc_info=True)
        return None

    if exchanged is None:
        return None

    access_token, expires_in = exchanged
    await crud.update_user_access_token(
        db, user, encrypt_token(key, access_token), now + timedelta(seconds=expires_in)
    )
    return access_token
