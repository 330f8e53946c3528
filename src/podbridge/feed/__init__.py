"""Feed assembly and RSS serialization."""

from podbridge.feed.assembler import FeedAssembler, parse_limit
from podbridge.feed.rss import render_rss

__all__ = ["FeedAssembler", "parse_limit", "render_rss"]
