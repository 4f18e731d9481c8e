from __future__ import annotations

import logging
import sys
from typing import Any, Callable, MutableMapping, cast

import structlog

from sync_guesty.config import LOG_FORMAT, LOG_LEVEL

# Type alias for structlog processor
Processor = Callable[[Any, str, MutableMapping[str, Any]], Any]

SERVICE_NAME = "sync-guesty"

# Libraries whose INFO output drowns the sync events
QUIET_LOGGERS = ("urllib3", "requests", "sqlalchemy.engine", "alembic", "uvicorn.access")


def _add_service(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> Any:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def setup_logging(log_format: str | None = None) -> None:
    """
    Configure stdlib logging and structlog for the whole process.

    Every event carries ``service``, an ISO UTC timestamp, the level and any
    context bound with structlog.contextvars (the request id, for instance).

    Args:
        log_format: "json" or "console"; defaults to LOG_FORMAT from config
    """
    fmt = log_format or LOG_FORMAT

    logging.basicConfig(
        format="[%(asctime)s] %(levelname)s in %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        level=LOG_LEVEL,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer = cast(
        Processor,
        structlog.processors.JSONRenderer()
        if fmt == "json"
        else structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()),
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if fmt == "json":
        # Tracebacks become a string field instead of a multi-line dump
        processors.append(structlog.processors.format_exc_info)
    processors.append(renderer)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(LOG_LEVEL)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
