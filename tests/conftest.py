"""Shared fixtures and fakes for tubefeed tests."""

import base64
import os
from datetime import datetime, timedelta, timezone

import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

# Required settings must exist before anything calls get_settings()
os.environ.setdefault("YT_APP_SECRET_KEY", "test-secret-key")
os.environ.setdefault("YT_TOKEN_ENC_KEY", base64.b64encode(b"0" * 32).decode())
os.environ.setdefault("YT_GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("YT_GOOGLE_CLIENT_SECRET", "test-client-secret")
os.environ.setdefault("YT_YOUTUBE_API_KEY", "test-api-key")

from tubefeed.db.models import Base, User  # noqa: E402
from tubefeed.youtube.models import Video, VideoPage  # noqa: E402

BASE_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def at(hours: float) -> datetime:
    """A timestamp ``hours`` after BASE_TIME."""
    return BASE_TIME + timedelta(hours=hours)


def make_video(
    video_id: str,
    published: datetime,
    channel_id: str = "UC_test",
    duration: str = "PT10M",
    is_short: bool | None = None,
) -> Video:
    """Helper to create a Video for testing."""
    if is_short is None:
        is_short = duration in ("PT30S", "PT1M", "PT2M59S", "PT3M")
    return Video(
        video_id=video_id,
        channel_id=channel_id,
        channel_title=f"Channel {channel_id}",
        title=f"Video {video_id}",
        published_at=published,
        duration=duration,
        is_short=is_short,
    )


class FakeSourceClient:
    """In-memory stand-in for YouTubeClient.list_page.

    ``pages`` maps a channel ID to its pages, newest first. A page entry may
    be an exception instance, which is raised when that page is requested.
    Cursors are "p1", "p2", ... and the last page returns no cursor.
    """

    def __init__(self, pages: dict[str, list]):
        self.pages = pages
        self.calls: list[tuple[str, str | None, str | None]] = []

    async def list_page(
        self,
        channel_id: str,
        page_size: int = 20,
        cursor: str | None = None,
        playlist_id: str | None = None,
    ) -> VideoPage:
        self.calls.append((channel_id, cursor, playlist_id))
        index = int(cursor[1:]) if cursor else 0
        page = self.pages[channel_id][index]
        if isinstance(page, Exception):
            raise page
        has_next = index + 1 < len(self.pages[channel_id])
        return VideoPage(
            playlist_id=f"UU{channel_id[2:]}",
            videos=list(page),
            next_cursor=f"p{index + 1}" if has_next else None,
        )

    def calls_for(self, channel_id: str) -> list[tuple[str, str | None, str | None]]:
        return [c for c in self.calls if c[0] == channel_id]


@pytest_asyncio.fixture
async def db_engine(tmp_path):
    """Create a file-backed SQLite database so separate sessions share data."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def sessionmaker(db_engine):
    """Session factory bound to the test database."""
    return async_sessionmaker(db_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(sessionmaker):
    """A single database session for CRUD tests."""
    async with sessionmaker() as session:
        yield session


@pytest_asyncio.fixture
async def test_user(sessionmaker):
    """Create a test user in the database."""
    async with sessionmaker() as db:
        user = User(
            id="test-user-123",
            google_sub="google-sub-123",
            email="test@example.com",
            display_name="Test User",
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
    return user
