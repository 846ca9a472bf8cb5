"""Logging configuration for tubefeed."""

import json
import logging
import sys
from datetime import datetime, timezone

from tubefeed.config import get_settings

# Per-request client logs from these would drown out the feed logs
QUIET_LOGGERS = ("httpx", "httpcore", "aiosqlite")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, timestamped in UTC."""

    def format(self, record: logging.LogRecord) -> str:
        base = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            base["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(base)


def setup_logging() -> None:
    """Configure root logging for the current environment.

    Production gets JSON lines; development gets a readable single-line
    format. The level comes from ``YT_LOG_LEVEL``.
    """
    settings = get_settings()
    handler = logging.StreamHandler(sys.stdout)

    if settings.env == "prod":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s")
        )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(settings.log_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
