"""Structured logging shared by the cache, dedupe and generation modules."""

import logging
import sys
from typing import Optional

import structlog

# Per-request HTTP lines from the LLM client drown out the generation events
_NOISY_LOGGERS = ("httpx", "httpcore")


def _renderer(json_logs: bool):
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def configure_logging(level: str = "INFO", json_logs: Optional[bool] = None) -> None:
    """
    Route structlog events and stdlib records to stderr at ``level``.

    JSON lines are emitted whenever stderr is not a terminal, unless
    ``json_logs`` forces one mode.
    """
    if json_logs is None:
        json_logs = not sys.stderr.isatty()

    logging.basicConfig(
        format="%(message)s", stream=sys.stderr, level=level.upper(), force=True
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(json_logs),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
