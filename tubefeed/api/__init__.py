"""API routers for tubefeed."""

from tubefeed.api.routes_channels import router as channels_router
from tubefeed.api.routes_continue_watching import router as continue_watching_router
from tubefeed.api.routes_feed import router as feed_router
from tubefeed.api.routes_health import router as health_router
from tubefeed.api.routes_me import router as me_router
from tubefeed.api.routes_not_interested import router as not_interested_router
from tubefeed.api.routes_refresh import router as refresh_router
from tubefeed.api.routes_watch_later import router as watch_later_router

__all__ = [
    "channels_router",
    "continue_watching_router",
    "feed_router",
    "health_router",
    "me_router",
    "not_interested_router",
    "refresh_router",
    "watch_later_router",
]
