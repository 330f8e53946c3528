"""Pytest configuration and shared fixtures."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from podbridge.backends.base import Backend
from podbridge.cache import TTLCache, cached_operation
from podbridge.errors import NoPlayableStream
from podbridge.models import ChannelInfo, MediaItem, Page
from podbridge.streams import StreamVariant

BASE_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    """A manually advanced clock for cache tests."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeBackend(Backend):
    """In-memory back-end serving a fixed item listing with offset paging."""

    name = "fake"
    title = "Fake"

    def __init__(
        self,
        cache: TTLCache,
        items: list[MediaItem],
        page_size: int = 2,
        unplayable: set[str] | None = None,
        image: str | None = "https://img.example.com/channel.jpg",
    ) -> None:
        super().__init__(cache)
        self.items = items
        self.page_size = page_size
        self.unplayable = unplayable or set()
        self.image = image
        self.failures: dict[str, Exception] = {}
        self.calls = {"fetch_channel_info": 0, "list_items": 0, "probe_stream": 0}

    def _maybe_fail(self, operation: str) -> None:
        self.calls[operation] += 1
        if operation in self.failures:
            raise self.failures[operation]

    @cached_operation()
    async def fetch_channel_info(self, channel_id: str) -> ChannelInfo:
        self._maybe_fail("fetch_channel_info")
        return ChannelInfo(
            title=f"{channel_id} (via Fake)",
            link=f"https://fake.example.com/{channel_id}",
            description="A fake channel",
            author=channel_id,
            categories=["Music"],
            image=self.image,
        )

    @cached_operation()
    async def list_items(self, channel_id: str, cursor: str | None = None) -> Page:
        self._maybe_fail("list_items")
        start = int(cursor) if cursor else 0
        end = start + self.page_size
        return Page(
            items=self.items[start:end],
            next_cursor=str(end) if end < len(self.items) else None,
        )

    @cached_operation()
    async def probe_stream(self, item_id: str) -> StreamVariant:
        self._maybe_fail("probe_stream")
        if item_id in self.unplayable:
            raise NoPlayableStream(f"No playable stream for {item_id}")
        return StreamVariant(
            format_id="140",
            url=f"https://cdn.example.com/{item_id}.m4a?expire=123",
            mime_type='audio/mp4; codecs="mp4a.40.2"',
            container="m4a",
            audio_codec="mp4a.40.2",
            video_codec="none",
            protocol="https",
            bitrate=128.0,
            filesize=4096,
        )


class StubExtractor:
    """Stands in for YtDlpExtractor, serving canned info dicts per URL."""

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def extract(self, url: str, **options: Any) -> dict[str, Any]:
        self.calls.append((url, options))
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(**options)
        return response


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> TTLCache:
    return TTLCache(ttl=60, clock=clock)


@pytest.fixture
def make_item() -> Callable[..., MediaItem]:
    """Factory for items published one hour apart (item-0 is the newest)."""

    def _make_item(index: int, updated_hours: float | None = None, **overrides: Any) -> MediaItem:
        published = BASE_TIME - timedelta(hours=index)
        data = {
            "id": f"item-{index}",
            "title": f"Item {index}",
            "link": f"https://fake.example.com/items/{index}",
            "description": f"Description of item {index}",
            "published_at": published,
            "updated_at": published + timedelta(hours=updated_hours) if updated_hours else None,
            "duration": 600,
        }
        data.update(overrides)
        return MediaItem(**data)

    return _make_item


@pytest.fixture
def make_backend(cache: TTLCache, make_item) -> Callable[..., FakeBackend]:
    """Factory for a FakeBackend with ``count`` items."""

    def _make_backend(count: int = 5, **kwargs: Any) -> FakeBackend:
        items = kwargs.pop("items", None)
        if items is None:
            items = [make_item(i) for i in range(count)]
        return FakeBackend(cache, items, **kwargs)

    return _make_backend


@pytest.fixture
def youtube_formats() -> list[dict[str, Any]]:
    """A trimmed-down yt-dlp format list of a YouTube video (worst to best)."""
    return [
        {
            "format_id": "139",
            "url": "https://rr1.googlevideo.com/139",
            "ext": "m4a",
            "acodec": "mp4a.40.5",
            "vcodec": "none",
            "protocol": "https",
            "abr": 48.8,
            "filesize": 1_000_000,
        },
        {
            "format_id": "251",
            "url": "https://rr1.googlevideo.com/251",
            "ext": "webm",
            "acodec": "opus",
            "vcodec": "none",
            "protocol": "https",
            "abr": 160.1,
            "filesize": 3_000_000,
        },
        {
            "format_id": "140",
            "url": "https://rr1.googlevideo.com/140",
            "ext": "m4a",
            "acodec": "mp4a.40.2",
            "vcodec": "none",
            "protocol": "https",
            "abr": 129.5,
            "filesize": 2_500_000,
        },
        {
            "format_id": "18",
            "url": "https://rr1.googlevideo.com/18",
            "ext": "mp4",
            "acodec": "mp4a.40.2",
            "vcodec": "avc1.42001E",
            "protocol": "https",
            "tbr": 500.0,
        },
        {
            "format_id": "hls-96",
            "url": "https://manifest.googlevideo.com/96.m3u8",
            "ext": "mp4",
            "acodec": "mp4a.40.2",
            "vcodec": "avc1.640028",
            "protocol": "m3u8_native",
            "tbr": 5000.0,
        },
    ]


@pytest.fixture
def make_extractor() -> Callable[..., StubExtractor]:
    """Factory for a StubExtractor serving the given responses."""
    return StubExtractor
