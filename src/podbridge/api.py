"""FastAPI application serving podcast feeds and enclosure downloads."""

import asyncio
import contextlib
from collections.abc import AsyncIterator

import httpx
import structlog
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from podbridge import __version__
from podbridge.backends import build_registry
from podbridge.cache import TTLCache
from podbridge.config import get_settings
from podbridge.errors import PodbridgeError, RateLimited
from podbridge.feed import FeedAssembler, render_rss
from podbridge.logging import setup_logging
from podbridge.models import ServiceIdentifier

logger = structlog.get_logger(__name__)

RSS_MEDIA_TYPE = "application/rss+xml"

_cache: TTLCache | None = None
_http_client: httpx.AsyncClient | None = None
_assembler: FeedAssembler | None = None


def get_cache() -> TTLCache:
    global _cache
    if _cache is None:
        _cache = TTLCache(ttl=get_settings().feed.cache_ttl_seconds)
    return _cache


def get_assembler() -> FeedAssembler:
    global _assembler, _http_client
    if _assembler is None:
        settings = get_settings()
        _http_client = httpx.AsyncClient(
            timeout=settings.mixcloud.timeout_seconds, follow_redirects=True
        )
        registry = build_registry(settings, get_cache(), http_client=_http_client)
        _assembler = FeedAssembler(
            registry,
            default_limit=settings.feed.default_limit,
            max_limit=settings.feed.max_limit,
            resolve_concurrency=settings.feed.resolve_concurrency,
        )
    return _assembler


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Set up logging and the cache sweeper; tear down the shared state on shutdown."""
    global _cache, _http_client, _assembler
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_format=settings.json_logs)

    sweeper = asyncio.create_task(get_cache().run_sweeper(settings.feed.cache_sweep_interval_seconds))
    try:
        yield
    finally:
        sweeper.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweeper
        if _http_client is not None:
            await _http_client.aclose()
        # The next startup builds a fresh client, cache and assembler
        _cache = _http_client = _assembler = None


app = FastAPI(
    title="Podbridge",
    description="Podcast feeds for services that don't offer them",
    version=__version__,
    lifespan=lifespan,
)


@app.exception_handler(PodbridgeError)
async def handle_podbridge_error(request: Request, exc: PodbridgeError) -> JSONResponse:
    """Translate core errors into HTTP responses."""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log("Request failed", path=request.url.path, error=type(exc).__name__, message=exc.message)

    headers = {}
    if isinstance(exc, RateLimited) and exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": type(exc).__name__, "message": exc.message},
        headers=headers,
    )


@app.get("/", response_class=PlainTextResponse)
def index() -> str:
    """Explain the usage."""
    base_url = get_settings().public_url or ""
    services = ", ".join(get_assembler().registry.services)
    return (
        "Podbridge provides podcast feeds for services that don't offer them.\n\n"
        f"Feed URL:     {base_url}/feed/<service>/<id>?limit=<n>\n"
        f"Services:     {services}\n"
    )


@app.get("/feed/{service}/{channel_id}")
async def get_feed(
    service: str,
    channel_id: str,
    limit: str | None = Query(default=None, description="Maximum number of items"),
) -> Response:
    """Get the RSS feed of a channel on a back-end."""
    with structlog.contextvars.bound_contextvars(service=service, channel_id=channel_id):
        identifier = ServiceIdentifier(service=service, channel_id=channel_id)
        document = await get_assembler().build_feed(identifier, limit)
        content = render_rss(document, public_url=get_settings().public_url)

    return Response(content=content, media_type=RSS_MEDIA_TYPE)


@app.get("/download/{service}/{file:path}")
async def get_download(service: str, file: str) -> RedirectResponse:
    """Redirect to the current stream URL of a downloaded item."""
    with structlog.contextvars.bound_contextvars(service=service, file=file):
        backend = get_assembler().registry.get(service)
        url = await backend.resolve_download(file)

    return RedirectResponse(url, status_code=307)
