"""Canonical feed models shared by all back-ends.

Back-ends translate their upstream responses into these models; the feed
assembler combines them into a :class:`FeedDocument` which the RSS
renderer serializes.
"""

from datetime import datetime

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, HttpUrl, computed_field


class ServiceIdentifier(BaseModel):
    """A (service, identifier) pair naming one feed."""

    model_config = ConfigDict(frozen=True)

    service: str = Field(description="Back-end token, e.g. 'mixcloud'")
    channel_id: str = Field(min_length=1, description="User, channel or playlist ID")

    def __str__(self) -> str:
        return f"{self.service}/{self.channel_id}"


class ChannelInfo(BaseModel):
    """Channel-level metadata used as the feed header."""

    title: str
    link: HttpUrl
    description: str = ""
    author: str | None = None
    categories: list[str] = Field(
        default_factory=list, description="Categories; the first is the main one"
    )
    image: HttpUrl | None = Field(default=None, description="Image/logo/avatar of the channel")


class MediaItem(BaseModel):
    """A single content item of a channel."""

    id: str = Field(description="Upstream item ID, used as the non-permalink GUID")
    title: str
    link: HttpUrl
    description: str | None = None
    published_at: AwareDatetime
    updated_at: AwareDatetime | None = None
    duration: int | None = Field(default=None, ge=0, description="Duration in seconds")
    image: HttpUrl | None = None
    keywords: list[str] = Field(default_factory=list)
    categories: dict[str, HttpUrl] = Field(
        default_factory=dict, description="Category names and their domain URLs"
    )

    @computed_field
    @property
    def effective_at(self) -> datetime:
        """The timestamp used for ordering: updated if known, else published."""
        return self.updated_at or self.published_at


class Enclosure(BaseModel):
    """The resolved, downloadable media of an item."""

    url: str = Field(description="Direct stream URL")
    mime_type: str = Field(description="Parameterless MIME type")
    length: int | None = Field(default=None, ge=0, description="Length in bytes, if known")
    file: str = Field(description="Download path handled by the /download endpoint")


class Page(BaseModel):
    """One page of items as returned by a back-end listing call."""

    items: list[MediaItem]
    next_cursor: str | None = None


class FeedItem(BaseModel):
    """An item paired with its resolved enclosure."""

    item: MediaItem
    enclosure: Enclosure


class FeedDocument(BaseModel):
    """A complete feed, ready for serialization."""

    service: str
    title: str
    link: HttpUrl
    description: str = ""
    author: str | None = None
    categories: list[str] = Field(default_factory=list)
    image: HttpUrl | None = None
    items: list[FeedItem] = Field(default_factory=list, description="Newest first")

    @computed_field
    @property
    def last_build_date(self) -> datetime | None:
        """The most recent effective timestamp among the items."""
        if not self.items:
            return None
        return max(feed_item.item.effective_at for feed_item in self.items)
