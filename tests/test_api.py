"""Tests for the FastAPI feed service."""

from unittest.mock import patch

import feedparser
import pytest
from fastapi.testclient import TestClient

from podbridge.api import app
from podbridge.backends import BackendRegistry
from podbridge.config import Settings
from podbridge.errors import NotFound, RateLimited, UpstreamUnavailable
from podbridge.feed import FeedAssembler


@pytest.fixture
def backend(make_backend):
    return make_backend(count=5, unplayable={"item-3"})


@pytest.fixture
def client(backend):
    import podbridge.api as api_module

    api_module._assembler = FeedAssembler(BackendRegistry([backend]), default_limit=3)
    yield TestClient(app)
    api_module._assembler = None


class TestIndex:
    def test_usage(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert "/feed/<service>/<id>" in response.text
        assert "fake" in response.text


class TestFeed:
    def test_feed(self, client):
        response = client.get("/feed/fake/chan")
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/rss+xml")

        parsed = feedparser.parse(response.content)
        assert parsed.feed.title == "chan (via Fake)"
        assert [entry.id for entry in parsed.entries] == ["item-0", "item-1", "item-2"]

    def test_limit(self, client):
        response = client.get("/feed/fake/chan?limit=5")
        assert response.status_code == 200

        parsed = feedparser.parse(response.content)
        # item-3 has no playable stream
        assert [entry.id for entry in parsed.entries] == ["item-0", "item-1", "item-2", "item-4"]

    def test_large_limit_is_clamped(self, client):
        response = client.get("/feed/fake/chan?limit=100000")
        assert response.status_code == 200

    @pytest.mark.parametrize("limit", ["abc", "0", "-3"])
    def test_invalid_limit(self, client, backend, limit):
        response = client.get(f"/feed/fake/chan?limit={limit}")
        assert response.status_code == 422
        assert response.json()["error"] == "InvalidLimit"
        assert sum(backend.calls.values()) == 0

    def test_unknown_service(self, client):
        response = client.get("/feed/soundcloud/chan")
        assert response.status_code == 404
        assert response.json() == {"error": "UnknownService", "message": "Unsupported back-end: soundcloud"}

    def test_channel_not_found(self, client, backend):
        backend.failures["fetch_channel_info"] = NotFound("No such user: chan")
        response = client.get("/feed/fake/chan")
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_rate_limited(self, client, backend):
        backend.failures["list_items"] = RateLimited("Slow down", retry_after=60)
        response = client.get("/feed/fake/chan")
        assert response.status_code == 429
        assert response.headers["retry-after"] == "60"

    def test_upstream_unavailable(self, client, backend):
        backend.failures["fetch_channel_info"] = UpstreamUnavailable("Connection reset")
        response = client.get("/feed/fake/chan")
        assert response.status_code == 502
        assert response.json()["message"] == "Connection reset"

    def test_public_url_enclosures(self, client):
        settings = Settings(public_url="https://pods.example.org")
        with patch("podbridge.api.get_settings", return_value=settings):
            response = client.get("/feed/fake/chan")

        entry = feedparser.parse(response.content).entries[0]
        assert entry.enclosures[0].href == "https://pods.example.org/download/fake/item-0.m4a"


class TestDownload:
    def test_redirects_to_stream(self, client):
        response = client.get("/download/fake/item-1.m4a", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == "https://cdn.example.com/item-1.m4a?expire=123"

    def test_unplayable_item(self, client):
        response = client.get("/download/fake/item-3.m4a", follow_redirects=False)
        assert response.status_code == 404
        assert response.json()["error"] == "NoPlayableStream"

    def test_unknown_service(self, client):
        response = client.get("/download/soundcloud/item-1.m4a", follow_redirects=False)
        assert response.status_code == 404

    def test_shares_cached_probe_with_feed(self, client, backend):
        client.get("/feed/fake/chan")
        client.get("/download/fake/item-0.m4a", follow_redirects=False)
        assert backend.calls["probe_stream"] == 3

    @pytest.mark.parametrize("path", ["/download/fake/", "/download/fake/item-1"])
    def test_missing_file_name(self, client, backend, path):
        response = client.get(path, follow_redirects=False)

        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"
        assert backend.calls["probe_stream"] == 0


class TestLifespan:
    def test_restart_builds_fresh_assembler(self):
        import podbridge.api as api_module

        with TestClient(app):
            first = api_module.get_assembler()
            client = api_module._http_client

        assert client.is_closed
        assert api_module._assembler is None
        assert api_module._cache is None

        with TestClient(app):
            second = api_module.get_assembler()
            assert second is not first
            assert not api_module._http_client.is_closed
