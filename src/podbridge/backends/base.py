"""The capability interface every content back-end implements.

A back-end provides two kinds of objects: channels and their (content)
items. It must be able to retrieve a channel's metadata, list its items page
by page, and resolve a playable enclosure for an item, both when building a
feed and later when a podcast client follows a download link.
"""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from pathlib import PurePosixPath

import structlog

from podbridge.cache import TTLCache, cached_operation
from podbridge.errors import NoPlayableStream, NotFound
from podbridge.models import ChannelInfo, Enclosure, MediaItem, Page
from podbridge.streams import StreamVariant, estimated_length, extension_for, sanitize_mime_type

logger = structlog.get_logger(__name__)


class Backend(ABC):
    """Base class for content back-ends.

    Subclasses set ``name`` (the service token used in URLs) and ``title``
    and implement the upstream operations. Upstream results are memoized in
    the injected cache; keys are prefixed with the back-end name.
    """

    name: str
    title: str

    def __init__(self, cache: TTLCache) -> None:
        self.cache = cache
        self.logger = logger.bind(component="backend", backend=self.name)

    @abstractmethod
    async def fetch_channel_info(self, channel_id: str) -> ChannelInfo:
        """Retrieve the metadata of a channel.

        Raises:
            NotFound: If the channel does not exist upstream.
            RateLimited: If the upstream platform throttles the request.
            UpstreamUnavailable: On network or parsing failures.
        """

    @abstractmethod
    async def list_items(self, channel_id: str, cursor: str | None = None) -> Page:
        """Retrieve one page of a channel's items, newest first.

        Args:
            channel_id: The channel to list.
            cursor: Cursor of the page to fetch; None for the first page.

        Returns:
            The page; its ``next_cursor`` is None once the listing is exhausted.
        """

    @abstractmethod
    async def probe_stream(self, item_id: str) -> StreamVariant:
        """Inspect the streams of an item and return the best enclosure stream.

        Raises:
            NoPlayableStream: If none of the streams qualifies.
        """

    def file_for(self, item_id: str, mime_type: str) -> str:
        """Return the download file path for an item."""
        return f"{item_id}.{extension_for(mime_type)}"

    def item_id_for(self, file: str) -> str:
        """Return the item ID a download file path refers to.

        Raises:
            NotFound: If the path does not name a file with an extension.
        """
        path = PurePosixPath(file)
        if not path.stem or not path.suffix:
            raise NotFound(f"Not a download file: {file!r}")
        return str(path.with_suffix(""))

    @cached_operation(key=lambda item: item.id)
    async def resolve_enclosure(self, item: MediaItem) -> Enclosure:
        """Resolve the enclosure of an item.

        Raises:
            NoPlayableStream: If the item has no playable stream or is unavailable.
        """
        try:
            variant = await self.probe_stream(item.id)
        except NotFound as e:
            raise NoPlayableStream(f"Item {item.id} is unavailable: {e.message}") from e

        mime_type = sanitize_mime_type(variant.mime_type or "")
        return Enclosure(
            url=variant.url,
            mime_type=mime_type,
            length=variant.filesize or estimated_length(item.duration, variant.bitrate),
            file=self.file_for(item.id, mime_type),
        )

    async def resolve_download(self, file: str) -> str:
        """Resolve a download file path to the current direct stream URL."""
        variant = await self.probe_stream(self.item_id_for(file))
        return variant.url

    async def iter_pages(self, channel_id: str) -> AsyncIterator[Page]:
        """Lazily yield the pages of a channel until the listing is exhausted."""
        cursor = None
        while True:
            page = await self.list_items(channel_id, cursor)
            yield page

            if page.next_cursor is None or page.next_cursor == cursor:
                return
            cursor = page.next_cursor
