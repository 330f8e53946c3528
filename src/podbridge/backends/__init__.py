"""Content back-ends for the supported media services."""

from podbridge.backends.base import Backend
from podbridge.backends.mixcloud import MixcloudBackend
from podbridge.backends.registry import BackendRegistry, build_registry
from podbridge.backends.youtube import YouTubeBackend
from podbridge.backends.ytdlp import YtDlpExtractor

__all__ = [
    "Backend",
    "BackendRegistry",
    "MixcloudBackend",
    "YouTubeBackend",
    "YtDlpExtractor",
    "build_registry",
]
