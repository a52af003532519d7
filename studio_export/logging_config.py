"""studio-export logging configuration.

studio-export logs through structlog. Stdlib loggers are routed through the
same processor chain so that third-party output (playwright, asyncio) is
rendered consistently. Module code only ever calls `get_logger(__name__)` and
logs with %-style arguments.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

import structlog

LOG_LEVEL_ENV = "STUDIO_EXPORT_LOG_LEVEL"

_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.PositionalArgumentsFormatter(),
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
]


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.stdlib.get_logger(name)


def setup_logging(level: Optional[str] = None, json_format: bool = False) -> None:
    """Configure studio-export logging.

    Args:
        level: Optional override for `STUDIO_EXPORT_LOG_LEVEL`.
        json_format: Render JSON lines instead of the console format.
    """
    if level:
        os.environ[LOG_LEVEL_ENV] = level
    level_name = os.environ.get(LOG_LEVEL_ENV, "INFO").upper()
    log_level = _LEVEL_MAP.get(level_name, logging.INFO)

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    renderers: list[structlog.types.Processor]
    if json_format:
        renderers = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())]

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_SHARED_PROCESSORS,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *renderers,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(log_level)
