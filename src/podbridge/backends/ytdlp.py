"""Async wrapper around yt-dlp metadata extraction.

yt-dlp is blocking, so every extraction runs in a worker thread to keep the
event loop free for other requests.
"""

import asyncio
import re
from typing import Any

import structlog
import yt_dlp
from yt_dlp.utils import DownloadError, ExtractorError

from podbridge.errors import NotFound, PodbridgeError, RateLimited, UpstreamUnavailable

logger = structlog.get_logger(__name__)

DEFAULT_OPTIONS: dict[str, Any] = {
    "quiet": True,
    "no_warnings": True,
    "skip_download": True,
    "noprogress": True,
}

_RATE_LIMITED = re.compile(r"HTTP Error 429|Too Many Requests|rate.?limit", re.IGNORECASE)
_NOT_FOUND = re.compile(
    r"HTTP Error 404|does not exist|Video unavailable|Private video|has been removed",
    re.IGNORECASE,
)


def translate_error(url: str, error: Exception) -> PodbridgeError:
    """Map a yt-dlp error to the podbridge error taxonomy."""
    message = str(error)
    if _RATE_LIMITED.search(message):
        return RateLimited(f"Rate limited while extracting {url}: {message}")
    if _NOT_FOUND.search(message):
        return NotFound(f"Not found: {url}: {message}")
    return UpstreamUnavailable(f"Extraction failed for {url}: {message}")


class YtDlpExtractor:
    """Extracts info dicts (metadata and stream formats) using yt-dlp."""

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        """Initialize the extractor.

        Args:
            options: Extra yt-dlp options applied to every extraction.
        """
        self.options = {**DEFAULT_OPTIONS, **(options or {})}
        self.logger = logger.bind(component="ytdlp")

    async def extract(self, url: str, **options: Any) -> dict[str, Any]:
        """Extract the info dict for a URL without downloading anything.

        Args:
            url: Page URL of a video, track, channel or playlist.
            **options: Per-call yt-dlp options (e.g. ``extract_flat``).

        Returns:
            The sanitized (JSON-compatible) info dict.

        Raises:
            NotFound, RateLimited, UpstreamUnavailable: Translated yt-dlp errors.
        """
        self.logger.info("Extracting info", url=url)
        return await asyncio.to_thread(self._extract, url, {**self.options, **options})

    def _extract(self, url: str, options: dict[str, Any]) -> dict[str, Any]:
        try:
            with yt_dlp.YoutubeDL(options) as ydl:
                info = ydl.extract_info(url, download=False)
        except (DownloadError, ExtractorError) as e:
            raise translate_error(url, e) from e

        if info is None:
            raise UpstreamUnavailable(f"Extraction returned nothing for {url}")

        return yt_dlp.YoutubeDL.sanitize_info(info)
