"""Tests for the back-end registry."""

import httpx
import pytest

from podbridge.backends import BackendRegistry, MixcloudBackend, YouTubeBackend, build_registry
from podbridge.config import Settings
from podbridge.errors import UnknownService


class TestBackendRegistry:
    """Tests for BackendRegistry."""

    def test_get_registered_backend(self, make_backend):
        backend = make_backend()
        registry = BackendRegistry([backend])

        assert registry.get("fake") is backend
        assert "fake" in registry
        assert registry.services == ["fake"]

    def test_unknown_service(self, make_backend):
        registry = BackendRegistry([make_backend()])

        with pytest.raises(UnknownService) as exc_info:
            registry.get("soundcloud")

        assert exc_info.value.status_code == 404
        assert "soundcloud" in exc_info.value.message
        assert "soundcloud" not in registry

    def test_lookup_is_case_sensitive(self, make_backend):
        registry = BackendRegistry([make_backend()])

        with pytest.raises(UnknownService):
            registry.get("FAKE")

    def test_duplicate_names_are_rejected(self, make_backend):
        with pytest.raises(ValueError, match="Duplicate"):
            BackendRegistry([make_backend(), make_backend()])


class TestBuildRegistry:
    """Tests for assembling the default registry."""

    @pytest.mark.asyncio
    async def test_registers_all_backends(self, cache):
        settings = Settings(mixcloud={"page_size": 20}, youtube={"page_size": 30})

        async with httpx.AsyncClient() as client:
            registry = build_registry(settings, cache, http_client=client)

            assert registry.services == ["mixcloud", "youtube"]
            mixcloud = registry.get("mixcloud")
            youtube = registry.get("youtube")
            assert isinstance(mixcloud, MixcloudBackend)
            assert isinstance(youtube, YouTubeBackend)
            assert mixcloud.client is client
            assert mixcloud.page_size == 20
            assert youtube.page_size == 30
            # Back-ends share the cache and the extractor
            assert mixcloud.cache is youtube.cache is cache
            assert mixcloud.extractor is youtube.extractor
