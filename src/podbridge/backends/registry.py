"""Maps service tokens to back-end instances."""

from collections.abc import Iterable, Mapping
from types import MappingProxyType

import httpx

from podbridge.backends.base import Backend
from podbridge.backends.mixcloud import MixcloudBackend
from podbridge.backends.youtube import YouTubeBackend
from podbridge.backends.ytdlp import YtDlpExtractor
from podbridge.cache import TTLCache
from podbridge.config import Settings
from podbridge.errors import UnknownService


class BackendRegistry:
    """An immutable mapping from service token to back-end instance."""

    def __init__(self, backends: Iterable[Backend]) -> None:
        registered: dict[str, Backend] = {}
        for backend in backends:
            if backend.name in registered:
                raise ValueError(f"Duplicate back-end: {backend.name}")
            registered[backend.name] = backend
        self._backends: Mapping[str, Backend] = MappingProxyType(registered)

    def __contains__(self, service: object) -> bool:
        return service in self._backends

    @property
    def services(self) -> list[str]:
        return sorted(self._backends)

    def get(self, service: str) -> Backend:
        """Return the back-end for a service token.

        Raises:
            UnknownService: If no back-end is registered under the token.
        """
        try:
            return self._backends[service]
        except KeyError:
            raise UnknownService(service) from None


def build_registry(
    settings: Settings,
    cache: TTLCache,
    http_client: httpx.AsyncClient | None = None,
    extractor: YtDlpExtractor | None = None,
) -> BackendRegistry:
    """Create the registry of all supported back-ends.

    Args:
        settings: Application settings.
        cache: Cache shared by all back-ends.
        http_client: HTTP client for API calls (created if None; the caller
            owns closing it).
        extractor: yt-dlp extractor (created if None).
    """
    extractor = extractor or YtDlpExtractor()
    http_client = http_client or httpx.AsyncClient(
        timeout=settings.mixcloud.timeout_seconds, follow_redirects=True
    )

    return BackendRegistry(
        [
            MixcloudBackend(
                cache,
                http_client,
                extractor,
                api_base_url=settings.mixcloud.api_base_url,
                site_base_url=settings.mixcloud.site_base_url,
                page_size=settings.mixcloud.page_size,
            ),
            YouTubeBackend(
                cache,
                extractor,
                site_base_url=settings.youtube.site_base_url,
                page_size=settings.youtube.page_size,
            ),
        ]
    )
