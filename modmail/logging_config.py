"""Modmail logging configuration.

Modules log through ``get_logger(__name__)`` with ``%s``-style positional
arguments. Records are rendered by structlog on top of stdlib logging, so
discord.py's own loggers end up in the same stream.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, cast

import structlog
from structlog.typing import FilteringBoundLogger

_LEVEL_ENV = "MODMAIL_LOG_LEVEL"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure modmail logging.

    Args:
        level: Optional override for ``MODMAIL_LOG_LEVEL``.
    """
    if level:
        os.environ[_LEVEL_ENV] = level
    level_name = os.getenv(_LEVEL_ENV, "INFO").upper()
    numeric_level = logging.getLevelName(level_name)
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=numeric_level, force=True)
    # discord.py is chatty at INFO (gateway heartbeats, resumes)
    logging.getLogger("discord").setLevel(max(numeric_level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    return cast(FilteringBoundLogger, structlog.get_logger(name))
