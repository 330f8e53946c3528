"""Serializes feed documents to RSS 2.0 with iTunes podcast extensions."""

from urllib.parse import quote

from feedgen.ext.base import BaseEntryExtension, BaseExtension
from feedgen.feed import FeedGenerator
from feedgen.util import xml_elem

from podbridge import __version__
from podbridge.models import FeedDocument, FeedItem

GENERATOR = "podbridge"
ITUNES_NS = "http://www.itunes.com/dtds/podcast-1.0.dtd"

# The iTunes categories our back-ends use; feedgen rejects unknown ones
ITUNES_CATEGORIES = frozenset({"Music", "TV & Film"})


def _is_itunes_image(url: str | None) -> bool:
    # feedgen only accepts iTunes images ending in .jpg or .png
    return bool(url) and url.lower().endswith((".jpg", ".png"))


class KeywordsExtension(BaseExtension):
    """Feed half of the keywords extension; feedgen requires one."""

    def extend_ns(self) -> dict[str, str]:
        return {"itunes": ITUNES_NS}


class KeywordsEntryExtension(BaseEntryExtension):
    """Adds ``itunes:keywords`` to items; feedgen's podcast extension lacks it."""

    def __init__(self) -> None:
        self.__keywords: list[str] = []

    def extend_ns(self) -> dict[str, str]:
        return {"itunes": ITUNES_NS}

    def extend_rss(self, entry):
        if self.__keywords:
            keywords = xml_elem(f"{{{ITUNES_NS}}}keywords", entry)
            keywords.text = ", ".join(self.__keywords)
        return entry

    def keywords(self, keywords: list[str] | None = None) -> list[str]:
        if keywords is not None:
            self.__keywords = list(keywords)
        return self.__keywords


def enclosure_url(feed_item: FeedItem, service: str, public_url: str | None) -> str:
    """Return the URL a podcast client downloads an item from.

    With a public URL configured this is the (stable) download endpoint of
    this service, which redirects to the current stream URL. Without one
    the resolved stream URL is used directly.
    """
    if not public_url:
        return feed_item.enclosure.url
    return f"{public_url.rstrip('/')}/download/{service}/{quote(feed_item.enclosure.file, safe='/')}"


def render_rss(document: FeedDocument, public_url: str | None = None) -> bytes:
    """Render a feed document as an RSS podcast feed.

    Args:
        document: The feed to render; items are written in document order.
        public_url: Base URL of this service for enclosure download links.

    Returns:
        The pretty-printed RSS XML.
    """
    fg = FeedGenerator()
    fg.load_extension("podcast")
    fg.register_extension("keywords", KeywordsExtension, KeywordsEntryExtension, atom=False)

    link = str(document.link)
    image = str(document.image) if document.image else None

    fg.title(document.title)
    fg.link(href=link, rel="alternate")
    # RSS requires a non-empty channel description
    fg.description(document.description or document.title)
    fg.generator(GENERATOR, version=__version__)
    for category in document.categories[:1]:
        fg.category(term=category)
    if document.last_build_date is not None:
        fg.lastBuildDate(document.last_build_date)
    if image:
        fg.image(url=image, title=document.title, link=link)

    fg.podcast.itunes_explicit("no")
    fg.podcast.itunes_summary(document.description or document.title)
    if document.author:
        fg.podcast.itunes_author(document.author)
    itunes_categories = [{"cat": cat} for cat in document.categories if cat in ITUNES_CATEGORIES]
    if itunes_categories:
        fg.podcast.itunes_category(itunes_categories)
    if _is_itunes_image(image):
        fg.podcast.itunes_image(image)

    for feed_item in document.items:
        item = feed_item.item
        fe = fg.add_entry(order="append")
        fe.title(item.title)
        fe.link(href=str(item.link))
        if item.description:
            fe.description(item.description)
            fe.podcast.itunes_subtitle(item.description)
        fe.guid(item.id, permalink=False)
        fe.pubDate(item.effective_at)
        for name, domain in item.categories.items():
            fe.category(term=name, scheme=str(domain))
        fe.enclosure(
            enclosure_url(feed_item, document.service, public_url),
            str(feed_item.enclosure.length or 0),
            feed_item.enclosure.mime_type,
        )
        if item.duration is not None:
            fe.podcast.itunes_duration(item.duration)
        item_image = str(item.image) if item.image else None
        if _is_itunes_image(item_image):
            fe.podcast.itunes_image(item_image)
        fe.keywords.keywords(item.keywords)

    return fg.rss_str(pretty=True)
