"""Command-line interface for Podbridge.

Provides commands for building feeds locally and running the web service.
"""

import argparse
import asyncio
import sys
from pathlib import Path

import httpx

from podbridge.backends import build_registry
from podbridge.cache import TTLCache
from podbridge.config import Settings, get_settings
from podbridge.errors import PodbridgeError
from podbridge.feed import FeedAssembler, render_rss
from podbridge.logging import setup_logging
from podbridge.models import ServiceIdentifier


async def build_feed_xml(settings: Settings, service: str, channel_id: str, limit: int | None) -> bytes:
    """Build and render a single feed with a throwaway cache and client."""
    cache = TTLCache(ttl=settings.feed.cache_ttl_seconds)
    async with httpx.AsyncClient(timeout=settings.mixcloud.timeout_seconds, follow_redirects=True) as client:
        registry = build_registry(settings, cache, http_client=client)
        assembler = FeedAssembler(
            registry,
            default_limit=settings.feed.default_limit,
            max_limit=settings.feed.max_limit,
            resolve_concurrency=settings.feed.resolve_concurrency,
        )
        document = await assembler.build_feed(ServiceIdentifier(service=service, channel_id=channel_id), limit)

    print(f"\nFeed: {document.title}", file=sys.stderr)
    print(f"Items: {len(document.items)}\n", file=sys.stderr)
    return render_rss(document, public_url=settings.public_url)


def cmd_feed(args: argparse.Namespace) -> int:
    """Build the feed of a channel and print or save it."""
    settings = get_settings()
    setup_logging(log_level="WARNING" if args.quiet else settings.log_level)

    try:
        xml = asyncio.run(build_feed_xml(settings, args.service, args.channel_id, args.limit))
    except PodbridgeError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    if args.output:
        output_path = Path(args.output)
        output_path.write_bytes(xml)
        print(f"Saved feed to: {output_path}", file=sys.stderr)
    else:
        sys.stdout.write(xml.decode("utf-8"))

    return 0


async def list_services(settings: Settings) -> list[tuple[str, str]]:
    """Return (token, title) pairs of all registered back-ends."""
    async with httpx.AsyncClient() as client:
        registry = build_registry(settings, TTLCache(), http_client=client)
        return [(service, registry.get(service).title) for service in registry.services]


def cmd_services(args: argparse.Namespace) -> int:
    """List the supported services."""
    services = asyncio.run(list_services(get_settings()))

    print("\nSupported services:")
    for service, title in services:
        print(f"  {service:<10} {title}")

    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the FastAPI server."""
    import uvicorn

    host = args.host
    port = args.port
    print(f"\nStarting Podbridge on {host}:{port}")
    uvicorn.run("podbridge.api:app", host=host, port=port, reload=args.reload)
    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="podbridge",
        description="Podcast feeds for services that don't offer them",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # feed command
    feed_parser = subparsers.add_parser("feed", help="Build the RSS feed of a channel")
    feed_parser.add_argument("service", help="Service (e.g. mixcloud, youtube)")
    feed_parser.add_argument("channel_id", help="User, channel or playlist ID")
    feed_parser.add_argument("--limit", "-n", type=int, help="Max items in the feed")
    feed_parser.add_argument("--output", "-o", help="Output XML file path")
    feed_parser.add_argument("--quiet", "-q", action="store_true", help="Only log warnings")
    feed_parser.set_defaults(func=cmd_feed)

    # services command
    sv_list_parser = subparsers.add_parser("services", help="List the supported services")
    sv_list_parser.set_defaults(func=cmd_services)

    # serve command
    sv_parser = subparsers.add_parser("serve", help="Start the feed web service")
    sv_parser.add_argument("--host", default="127.0.0.1", help="Host to bind (default: 127.0.0.1)")
    sv_parser.add_argument("--port", "-p", type=int, default=8000, help="Port (default: 8000)")
    sv_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    sv_parser.set_defaults(func=cmd_serve)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
