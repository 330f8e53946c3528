"""Feed assembly: from a back-end's listing to an ordered feed document.

The assembler pages through a channel's items until it has enough of them,
resolves an enclosure for every retained item and orders the result
newest first. Items without a playable stream are left out of the feed;
every other failure aborts the build.
"""

import asyncio

import structlog

from podbridge.backends import Backend, BackendRegistry
from podbridge.errors import InvalidLimit, NoPlayableStream
from podbridge.models import FeedDocument, FeedItem, MediaItem, ServiceIdentifier

logger = structlog.get_logger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 250


def parse_limit(
    limit: int | str | None,
    default: int = DEFAULT_LIMIT,
    maximum: int = MAX_LIMIT,
) -> int:
    """Validate a requested item limit.

    Args:
        limit: Requested limit; None selects the default.
        default: Limit used when none is requested.
        maximum: Upper bound; larger limits are clamped to it.

    Returns:
        The effective limit.

    Raises:
        InvalidLimit: If the limit is non-numeric or not positive.
    """
    if limit is None:
        return default

    if isinstance(limit, bool):
        raise InvalidLimit(limit)
    if isinstance(limit, str):
        try:
            value = int(limit.strip())
        except ValueError:
            raise InvalidLimit(limit) from None
    elif isinstance(limit, int):
        value = limit
    else:
        raise InvalidLimit(limit)

    if value <= 0:
        raise InvalidLimit(limit)
    return min(value, maximum)


class FeedAssembler:
    """Builds feed documents for (service, channel) identifiers."""

    def __init__(
        self,
        registry: BackendRegistry,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: int = MAX_LIMIT,
        resolve_concurrency: int = 4,
    ) -> None:
        """Initialize the assembler.

        Args:
            registry: Registry to look up back-ends in.
            default_limit: Item limit when the caller gives none.
            max_limit: Upper bound on the item limit.
            resolve_concurrency: Enclosures resolved in parallel per feed.
        """
        self.registry = registry
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.resolve_concurrency = resolve_concurrency
        self.logger = logger.bind(component="feed_assembler")

    async def build_feed(
        self,
        identifier: ServiceIdentifier,
        limit: int | str | None = None,
    ) -> FeedDocument:
        """Build the feed for a channel.

        Args:
            identifier: Service and channel to build the feed for.
            limit: Maximum number of items in the feed.

        Returns:
            FeedDocument: The feed, items ordered newest first.

        Raises:
            InvalidLimit: If the limit is invalid (before any network call).
            UnknownService: If the service is not registered (before any network call).
            NotFound, RateLimited, UpstreamUnavailable: On upstream failures.
        """
        item_limit = parse_limit(limit, self.default_limit, self.max_limit)
        backend = self.registry.get(identifier.service)
        log = self.logger.bind(service=identifier.service, channel_id=identifier.channel_id)

        log.info("Building feed", limit=item_limit)
        channel = await backend.fetch_channel_info(identifier.channel_id)
        items = await self._collect_items(backend, identifier.channel_id, item_limit)
        feed_items = await self._resolve_enclosures(backend, items)

        # Stable, so items with equal timestamps keep their upstream order
        feed_items.sort(key=lambda feed_item: feed_item.item.effective_at, reverse=True)

        log.info(
            "Built feed",
            item_count=len(feed_items),
            dropped=len(items) - len(feed_items),
        )

        return FeedDocument(
            service=identifier.service,
            title=channel.title,
            link=channel.link,
            description=channel.description,
            author=channel.author,
            categories=channel.categories,
            image=channel.image,
            items=feed_items,
        )

    async def _collect_items(self, backend: Backend, channel_id: str, limit: int) -> list[MediaItem]:
        """Page through the listing until ``limit`` items or the end of it."""
        items: list[MediaItem] = []
        seen: set[str] = set()

        pages = backend.iter_pages(channel_id)
        try:
            async for page in pages:
                for item in page.items:
                    # Offset paging can repeat items when new ones are published meanwhile
                    if item.id not in seen:
                        seen.add(item.id)
                        items.append(item)
                if len(items) >= limit:
                    break
        finally:
            await pages.aclose()

        return items[:limit]

    async def _resolve_enclosures(self, backend: Backend, items: list[MediaItem]) -> list[FeedItem]:
        """Resolve enclosures concurrently, dropping items without a playable stream."""
        semaphore = asyncio.Semaphore(self.resolve_concurrency)

        async def resolve(item: MediaItem) -> FeedItem | None:
            async with semaphore:
                try:
                    enclosure = await backend.resolve_enclosure(item)
                except NoPlayableStream as e:
                    self.logger.warning("Dropping item without playable stream", item_id=item.id, error=e.message)
                    return None
            return FeedItem(item=item, enclosure=enclosure)

        # The first abort cancels the remaining resolutions
        try:
            async with asyncio.TaskGroup() as group:
                tasks = [group.create_task(resolve(item)) for item in items]
        except ExceptionGroup as errors:
            raise errors.exceptions[0] from None

        return [task.result() for task in tasks if task.result() is not None]
