"""Authentication module for tubefeed."""

from tubefeed.auth.credentials import get_user_access_token
from tubefeed.auth.session import require_user, router

__all__ = ["get_user_access_token", "require_user", "router"]
