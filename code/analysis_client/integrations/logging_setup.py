"""structlog configuration for the analysis client and its demo backend.

Local environments get coloured console output, everything else one JSON
object per line. Every event carries ``service``, ``env`` and ``version``,
plus any job context bound with :func:`job_context`.

    from analysis_client.integrations.logging_setup import configure_logging
    configure_logging()

    log = structlog.get_logger(__name__)
    log.info("job_poll_tick", status="processing", progress=40)
"""
from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, MutableMapping

import structlog

from analysis_client import __version__
from analysis_client.config import settings

_QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "uvicorn.access")


def configure_logging(level: str | None = None, pretty: bool | None = None) -> None:
    """Install the processor chain. Call once per process (the CLI does).

    ``level`` overrides ``LOG_LEVEL``; ``pretty`` overrides the choice made
    from ``ENVIRONMENT``.
    """
    level_name = (level or settings.LOG_LEVEL or "INFO").upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(numeric_level)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(numeric_level)
        root.addHandler(handler)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if pretty is None:
        pretty = settings.is_local

    structlog.configure(
        processors=_build_processors(pretty),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.get_logger(__name__).debug("logging_configured", level=level_name, pretty=pretty)


@contextmanager
def job_context(job_id: str) -> Iterator[None]:
    """Bind ``job_id`` to every event logged inside the block.

    Context variables are copied per asyncio task, so a binding made inside
    a poller task never leaks into other jobs.
    """
    with structlog.contextvars.bound_contextvars(job_id=job_id):
        yield


def _build_processors(pretty: bool) -> list:
    renderer = structlog.dev.ConsoleRenderer(colors=True) if pretty else structlog.processors.JSONRenderer()
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        renderer,
    ]


def _add_service_context(
    logger: Any,
    method: str,
    event_dict: MutableMapping[str, Any],
) -> MutableMapping[str, Any]:
    """Unified service tags, matching the ones sent with metrics."""
    event_dict.setdefault("service", settings.DD_SERVICE)
    event_dict.setdefault("env", settings.DD_ENV)
    event_dict.setdefault("version", __version__)
    return event_dict
