"""The YouTube back-end.

It uses yt-dlp to retrieve the channel (a channel or a playlist) and its
items (videos). Listings use flat extraction so that one page costs a
single request; streams are resolved per video when the enclosure is
needed.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

from podbridge.backends.base import Backend
from podbridge.backends.ytdlp import YtDlpExtractor
from podbridge.cache import TTLCache, cached_operation
from podbridge.errors import UpstreamUnavailable
from podbridge.models import ChannelInfo, MediaItem, Page
from podbridge.streams import StreamVariant, select_best_stream, variants_from_info

SITE_BASE_URL = "https://www.youtube.com"
DEFAULT_PAGE_SIZE = 50

# IDs with these prefixes are playlists; anything else is a channel
PLAYLIST_PREFIXES = ("PL", "OLAK", "RDCLAK")


def is_playlist_id(channel_id: str) -> bool:
    return channel_id.startswith(PLAYLIST_PREFIXES)


def best_thumbnail(thumbnails: list[dict[str, Any]] | None) -> str | None:
    """Pick the largest thumbnail, preferring square ones (avatars over banners)."""
    candidates = [tn for tn in thumbnails or [] if tn.get("url")]
    if not candidates:
        return None

    def area(tn: dict[str, Any]) -> int:
        return (tn.get("width") or 0) * (tn.get("height") or 0)

    square = [tn for tn in candidates if tn.get("width") and tn.get("width") == tn.get("height")]
    return max(square or candidates, key=area)["url"]


def published_at(entry: dict[str, Any], fallback: datetime) -> datetime:
    """Determine the publish time of a listing entry."""
    for field in ("timestamp", "release_timestamp"):
        if entry.get(field):
            return datetime.fromtimestamp(entry[field], tz=UTC)

    upload_date = entry.get("upload_date")
    if upload_date:
        try:
            return datetime.strptime(upload_date, "%Y%m%d").replace(tzinfo=UTC)
        except ValueError:
            pass

    # Flat listings often lack dates
    return fallback


class YouTubeBackend(Backend):
    """Back-end for YouTube channels and playlists."""

    name = "youtube"
    title = "YouTube"

    def __init__(
        self,
        cache: TTLCache,
        extractor: YtDlpExtractor,
        site_base_url: str = SITE_BASE_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        super().__init__(cache)
        self.extractor = extractor
        self.site_base_url = site_base_url.rstrip("/")
        self.page_size = page_size
        # Per channel, the time the first page was last listed
        self._listed_at: dict[str, datetime] = {}

    def channel_url(self, channel_id: str) -> str:
        if is_playlist_id(channel_id):
            return f"{self.site_base_url}/playlist?list={channel_id}"
        if channel_id.startswith("@"):
            return f"{self.site_base_url}/{channel_id}"
        return f"{self.site_base_url}/channel/{channel_id}"

    def listing_url(self, channel_id: str) -> str:
        if is_playlist_id(channel_id):
            return self.channel_url(channel_id)
        return f"{self.channel_url(channel_id)}/videos"

    def video_url(self, video_id: str) -> str:
        return f"{self.site_base_url}/watch?v={video_id}"

    @cached_operation()
    async def fetch_channel_info(self, channel_id: str) -> ChannelInfo:
        info = await self.extractor.extract(
            self.listing_url(channel_id), extract_flat="in_playlist", playlistend=1
        )

        if is_playlist_id(channel_id):
            title = info.get("title")
            author = info.get("channel") or info.get("uploader")
        else:
            title = info.get("channel") or info.get("uploader") or info.get("title")
            author = title
        if not title:
            raise UpstreamUnavailable(f"YouTube returned no title for {channel_id}")

        return ChannelInfo(
            title=f"{title} (via YouTube)",
            link=self.channel_url(channel_id),
            description=info.get("description") or "",
            author=author,
            categories=["TV & Film"],
            image=best_thumbnail(info.get("thumbnails")),
        )

    @cached_operation()
    async def list_items(self, channel_id: str, cursor: str | None = None) -> Page:
        # The cursor is the 1-based index of the first entry of the page
        start = int(cursor) if cursor else 1
        end = start + self.page_size - 1
        info = await self.extractor.extract(
            self.listing_url(channel_id),
            extract_flat="in_playlist",
            playliststart=start,
            playlistend=end,
        )
        entries = info.get("entries") or []

        # Undated entries count down one second per listing position from a
        # per-channel anchor; only a refetch of the first page moves it
        if start == 1 or channel_id not in self._listed_at:
            self._listed_at[channel_id] = datetime.now(UTC)
        anchor = self._listed_at[channel_id]

        items = [
            self._to_item(entry, anchor - timedelta(seconds=start + offset - 1))
            for offset, entry in enumerate(entries)
            if entry.get("id") and entry.get("ie_key", "Youtube") == "Youtube"
        ]

        total = info.get("playlist_count")
        exhausted = len(entries) < self.page_size or (total is not None and end >= total)
        return Page(items=items, next_cursor=None if exhausted else str(end + 1))

    @cached_operation()
    async def probe_stream(self, item_id: str) -> StreamVariant:
        self.logger.info("Determining direct URL", video_id=item_id)
        info = await self.extractor.extract(self.video_url(item_id))
        return select_best_stream(variants_from_info(info))

    def _to_item(self, entry: dict[str, Any], fallback: datetime) -> MediaItem:
        link = self.video_url(entry["id"])
        duration = entry.get("duration")

        return MediaItem(
            id=entry["id"],
            title=entry.get("title") or entry["id"],
            link=link,
            description=f"Taken from YouTube: {link}",
            published_at=published_at(entry, fallback),
            duration=int(duration) if duration is not None else None,
            image=best_thumbnail(entry.get("thumbnails")),
        )
