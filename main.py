"""tubefeed - main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from tubefeed.api import (
    channels_router,
    continue_watching_router,
    feed_router,
    health_router,
    me_router,
    not_interested_router,
    refresh_router,
    watch_later_router,
)
from tubefeed.auth.session import router as auth_router
from tubefeed.config import get_settings
from tubefeed.db.session import dispose_engine, init_models
from tubefeed.logging import setup_logging

logger = logging.getLogger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        # API only; nothing here should ever be framed or load resources
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'"
        )

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Configure logging and the database on startup, release it on shutdown."""
    setup_logging()
    await init_models()
    logger.info("tubefeed started")
    yield
    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="tubefeed",
        description="Merged videos and shorts feeds from the YouTube channels you pick",
        version="1.0.0",
        lifespan=lifespan,
    )

    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.add_middleware(SecurityHeadersMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept"],
    )

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(me_router)
    app.include_router(channels_router)
    app.include_router(refresh_router)
    app.include_router(feed_router)
    app.include_router(watch_later_router)
    app.include_router(continue_watching_router)
    app.include_router(not_interested_router)

    return app


app = create_app()


def main():
    """Entry point for running the application."""
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=get_settings().env == "dev",
    )


if __name__ == "__main__":
    main()
