"""Logging configuration using structlog.

JSON lines in production, colored console output in development. Logs go
to stderr so that ``podbridge feed`` can write the RSS document to stdout.
"""

import logging
import sys

import structlog

# Libraries that log every request or extraction step at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "yt_dlp")


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = False,
) -> None:
    """Configure structured logging for the application.

    Request-scoped fields (service, channel_id) bound through
    ``structlog.contextvars`` are merged into every event.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
        json_format: Render JSON lines (production) instead of console output.
    """
    level = getattr(logging, log_level.upper())
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.ExtraAdder(),
    ]
    if json_format:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
