"""The Mixcloud back-end.

It uses the Mixcloud API to retrieve the channel (user) and items
(cloudcasts). Streams are resolved with yt-dlp from the cloudcast page.
See also: https://www.mixcloud.com/developers/
"""

from typing import Any

import httpx
from pydantic import AwareDatetime, BaseModel, Field, HttpUrl, ValidationError

from podbridge.backends.base import Backend
from podbridge.backends.ytdlp import YtDlpExtractor
from podbridge.cache import TTLCache, cached_operation
from podbridge.errors import NotFound, RateLimited, UpstreamUnavailable
from podbridge.models import ChannelInfo, MediaItem, Page
from podbridge.streams import StreamVariant, select_best_stream, variants_from_info

API_BASE_URL = "https://api.mixcloud.com"
SITE_BASE_URL = "https://www.mixcloud.com"
DEFAULT_PAGE_SIZE = 50


class Pictures(BaseModel):
    """A collection of different sizes/variants of a picture."""

    large: HttpUrl | None = None


class User(BaseModel):
    """A Mixcloud user (response)."""

    name: str
    biog: str = ""
    pictures: Pictures = Field(default_factory=Pictures)
    url: HttpUrl


class Tag(BaseModel):
    """A Mixcloud cloudcast tag."""

    name: str
    url: HttpUrl


class Cloudcast(BaseModel):
    """A Mixcloud cloudcast."""

    key: str
    name: str
    slug: str
    url: HttpUrl
    pictures: Pictures = Field(default_factory=Pictures)
    tags: list[Tag] = Field(default_factory=list)
    created_time: AwareDatetime
    updated_time: AwareDatetime | None = None
    audio_length: int | None = None


class Paging(BaseModel):
    """The Mixcloud paging info."""

    next: str | None = None


class CloudcastsResponse(BaseModel):
    """The Mixcloud cloudcasts response."""

    data: list[Cloudcast]
    paging: Paging = Field(default_factory=Paging)


class MixcloudBackend(Backend):
    """Back-end for Mixcloud users and their cloudcasts."""

    name = "mixcloud"
    title = "Mixcloud"

    def __init__(
        self,
        cache: TTLCache,
        client: httpx.AsyncClient,
        extractor: YtDlpExtractor,
        api_base_url: str = API_BASE_URL,
        site_base_url: str = SITE_BASE_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        """Initialize the Mixcloud back-end.

        Args:
            cache: Cache for upstream results.
            client: Shared HTTP client for API calls.
            extractor: yt-dlp extractor used to resolve streams.
            api_base_url: Base URL of the Mixcloud API.
            site_base_url: Base URL of the Mixcloud website.
            page_size: Cloudcasts requested per API call.
        """
        super().__init__(cache)
        self.client = client
        self.extractor = extractor
        self.api_base_url = api_base_url.rstrip("/")
        self.site_base_url = site_base_url.rstrip("/")
        self.page_size = page_size

    @cached_operation()
    async def fetch_channel_info(self, channel_id: str) -> ChannelInfo:
        # For Mixcloud a channel ID is some user name
        payload = await self._get_json(f"{self.api_base_url}/{channel_id}/")
        user = self._validate(User, payload)

        return ChannelInfo(
            title=f"{user.name} (via Mixcloud)",
            link=user.url,
            description=user.biog,
            author=user.name,
            categories=["Music"],
            image=user.pictures.large,
        )

    @cached_operation()
    async def list_items(self, channel_id: str, cursor: str | None = None) -> Page:
        # The cursor is the offset into the user's cloudcasts
        offset = int(cursor) if cursor else 0
        payload = await self._get_json(
            f"{self.api_base_url}/{channel_id}/cloudcasts/",
            params={"limit": self.page_size, "offset": offset},
        )
        response = self._validate(CloudcastsResponse, payload)

        next_cursor = None
        if response.paging.next and response.data:
            next_cursor = str(offset + len(response.data))

        return Page(
            items=[self._to_item(cloudcast) for cloudcast in response.data],
            next_cursor=next_cursor,
        )

    @cached_operation()
    async def probe_stream(self, item_id: str) -> StreamVariant:
        self.logger.info("Determining direct URL", key=item_id)
        info = await self.extractor.extract(f"{self.site_base_url}{item_id}")
        return select_best_stream(variants_from_info(info))

    def file_for(self, item_id: str, mime_type: str) -> str:
        # Cloudcast keys look like "/user/slug/"
        return super().file_for(item_id.strip("/"), mime_type)

    def item_id_for(self, file: str) -> str:
        return f"/{super().item_id_for(file)}/"

    def _to_item(self, cloudcast: Cloudcast) -> MediaItem:
        return MediaItem(
            id=cloudcast.key,
            title=cloudcast.name,
            link=cloudcast.url,
            description=f"Taken from Mixcloud: {cloudcast.url}",
            published_at=cloudcast.created_time,
            updated_at=cloudcast.updated_time,
            duration=cloudcast.audio_length,
            image=cloudcast.pictures.large,
            keywords=[tag.name for tag in cloudcast.tags],
            categories={tag.name: tag.url for tag in cloudcast.tags},
        )

    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET a Mixcloud API URL and decode the JSON body.

        Raises:
            NotFound: On 404 responses.
            RateLimited: On 429 or Mixcloud's RateLimitException error payload.
            UpstreamUnavailable: On network errors and other failures.
        """
        self.logger.info("Retrieving from Mixcloud", url=url, params=params)
        try:
            response = await self.client.get(url, params=params)
        except httpx.RequestError as e:
            raise UpstreamUnavailable(f"Failed to reach Mixcloud: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = None

        error = payload.get("error") if isinstance(payload, dict) else None
        if not isinstance(error, dict):
            error = {}

        if response.status_code == 429 or error.get("type") == "RateLimitException":
            retry_after = error.get("retry_after") or response.headers.get("Retry-After")
            raise RateLimited(
                "Mixcloud rate limit exceeded",
                retry_after=int(retry_after) if str(retry_after or "").isdigit() else None,
            )

        if response.status_code == 404:
            raise NotFound(f"Not found on Mixcloud: {url}")

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise UpstreamUnavailable(f"Mixcloud API error: {e}") from e

        if payload is None:
            raise UpstreamUnavailable(f"Mixcloud returned invalid JSON for {url}")
        return payload

    @staticmethod
    def _validate(model: type[BaseModel], payload: Any) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise UpstreamUnavailable(f"Unexpected Mixcloud response: {e}") from e
