"""Tests for session cookies, token encryption and access-token refresh."""

import base64
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI, HTTPException
from httpx import ASGITransport, AsyncClient

from tubefeed.auth.credentials import TOKEN_URL, get_user_access_token
from tubefeed.auth.session import (
    SESSION_COOKIE,
    create_session_token,
    require_user,
    router as auth_router,
    verify_session_token,
)
from tubefeed.auth.tokens import decrypt_token, encrypt_token, validate_encryption_key
from tubefeed.config import Settings

KEY = b"0" * 32


@pytest.fixture
def mock_settings():
    """Create mock settings."""
    settings = MagicMock(spec=Settings)
    settings.app_secret_key = "test-secret-key-for-jwt-signing"
    settings.token_enc_key = base64.b64encode(KEY).decode()
    settings.google_client_id = "test-client-id"
    settings.google_client_secret = "test-client-secret"
    return settings


def utcnow_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Token encryption


def test_encrypt_decrypt_token():
    """Test AES-GCM encryption and decryption of tokens."""
    encrypted = encrypt_token(KEY, "refresh_token_abc123")

    assert encrypted != b"refresh_token_abc123"
    assert len(encrypted) > 12
    assert decrypt_token(KEY, encrypted) == "refresh_token_abc123"


def test_invalid_key_length():
    with pytest.raises(ValueError, match="must be exactly 32 bytes"):
        encrypt_token(b"short_key", "token")


def test_validate_base64_key():
    assert validate_encryption_key(base64.b64encode(KEY).decode()) == KEY
    with pytest.raises(ValueError, match="base64"):
        validate_encryption_key("not base64!!")


def test_decrypt_with_short_blob():
    with pytest.raises(ValueError, match="too short"):
        decrypt_token(KEY, b"short")


def test_decrypt_with_wrong_key():
    encrypted = encrypt_token(KEY, "token")
    with pytest.raises(Exception):  # cryptography.exceptions.InvalidTag
        decrypt_token(b"1" * 32, encrypted)


# Session tokens


def test_create_verify_session_token(mock_settings):
    with patch("tubefeed.auth.session.get_settings", return_value=mock_settings):
        token = create_session_token("user-123")
        assert verify_session_token(token) == "user-123"
        assert verify_session_token("invalid.token.here") is None


def test_verify_token_with_wrong_secret(mock_settings):
    other = MagicMock(spec=Settings)
    other.app_secret_key = "another-secret"

    with patch("tubefeed.auth.session.get_settings", return_value=mock_settings):
        token = create_session_token("user-123")
    with patch("tubefeed.auth.session.get_settings", return_value=other):
        assert verify_session_token(token) is None


@pytest.mark.asyncio
async def test_require_user_with_valid_session(db_session, test_user, mock_settings):
    with patch("tubefeed.auth.session.get_settings", return_value=mock_settings):
        token = create_session_token(test_user.id)
        user = await require_user(session_cookie=token, db=db_session)

    assert user.id == test_user.id


@pytest.mark.asyncio
async def test_require_user_rejections(db_session, test_user, mock_settings):
    with patch("tubefeed.auth.session.get_settings", return_value=mock_settings):
        ghost = create_session_token("no-such-user")

        for cookie in (None, "garbage", ghost):
            with pytest.raises(HTTPException) as exc_info:
                await require_user(session_cookie=cookie, db=db_session)
            assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_logout_clears_cookie():
    app = FastAPI()
    app.include_router(auth_router)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post("/auth/logout")

    assert response.status_code == 200
    assert SESSION_COOKIE in response.headers["set-cookie"]


# Access-token provider


def mock_token_endpoint(status_code: int, json_data: dict):
    """Patch httpx.AsyncClient so POST returns the given response."""
    mock_resp = MagicMock()
    mock_resp.status_code = status_code
    mock_resp.json = MagicMock(return_value=json_data)

    patcher = patch("httpx.AsyncClient")
    mock_client_class = patcher.start()
    mock_client = AsyncMock()
    mock_client.post = AsyncMock(return_value=mock_resp)
    mock_client.__aenter__.return_value = mock_client
    mock_client.__aexit__.return_value = None
    mock_client_class.return_value = mock_client
    return patcher, mock_client


@pytest.mark.asyncio
async def test_valid_access_token_is_reused(db_session, test_user, mock_settings):
    user = await db_session.merge(test_user)
    user.access_token_enc = encrypt_token(KEY, "live-token")
    user.access_token_expires_at = utcnow_naive() + timedelta(hours=1)
    await db_session.commit()

    patcher, mock_client = mock_token_endpoint(200, {})
    try:
        with patch("tubefeed.auth.credentials.get_settings", return_value=mock_settings):
            token = await get_user_access_token(db_session, user)
    finally:
        patcher.stop()

    assert token == "live-token"
    mock_client.post.assert_not_called()


@pytest.mark.asyncio
async def test_expired_access_token_is_refreshed(db_session, test_user, mock_settings):
    user = await db_session.merge(test_user)
    user.refresh_token_enc = encrypt_token(KEY, "refresh-token")
    user.access_token_enc = encrypt_token(KEY, "stale-token")
    user.access_token_expires_at = utcnow_naive() + timedelta(seconds=30)
    await db_session.commit()

    patcher, mock_client = mock_token_endpoint(
        200, {"access_token": "fresh-token", "expires_in": 3599}
    )
    try:
        with patch("tubefeed.auth.credentials.get_settings", return_value=mock_settings):
            token = await get_user_access_token(db_session, user)
    finally:
        patcher.stop()

    assert token == "fresh-token"
    call = mock_client.post.call_args
    assert call[0][0] == TOKEN_URL
    assert call[1]["data"]["grant_type"] == "refresh_token"
    assert call[1]["data"]["refresh_token"] == "refresh-token"
    assert decrypt_token(KEY, user.access_token_enc) == "fresh-token"
    assert user.access_token_expires_at > utcnow_naive() + timedelta(minutes=55)


@pytest.mark.asyncio
async def test_rejected_refresh_returns_none(db_session, test_user, mock_settings):
    user = await db_session.merge(test_user)
    user.refresh_token_enc = encrypt_token(KEY, "revoked")
    await db_session.commit()

    patcher, _ = mock_token_endpoint(400, {"error": "invalid_grant"})
    try:
        with patch("tubefeed.auth.credentials.get_settings", return_value=mock_settings):
            assert await get_user_access_token(db_session, user) is None
    finally:
        patcher.stop()


@pytest.mark.asyncio
async def test_no_stored_tokens_returns_none(db_session, test_user, mock_settings):
    user = await db_session.merge(test_user)
    with patch("tubefeed.auth.credentials.get_settings", return_value=mock_settings):
        assert await get_user_access_token(db_session, user) is None


@pytest.mark.asyncio
async def test_bad_encryption_key_returns_none(db_session, test_user, mock_settings):
    mock_settings.token_enc_key = "too-short"
    user = await db_session.merge(test_user)
    user.refresh_token_enc = encrypt_token(KEY, "refresh-token")

    with patch("tubefeed.auth.credentials.get_settings", return_value=mock_settings):
        assert await get_user_access_token(db_session, user) is None
