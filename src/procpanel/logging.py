"""Structlog configuration for procpanel.

Console output goes to stderr so it never mixes with command output on
stdout. It is human-readable by default and JSON Lines when
``logging.json`` is set. An optional rotating file always receives JSON.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from procpanel.config import Config

# Processors applied to both structlog and foreign (stdlib) log records
_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.TimeStamper(fmt="iso", utc=False, key="ts"),
    structlog.processors.add_log_level,
    structlog.stdlib.add_logger_name,
]


def _formatter(json: bool) -> structlog.stdlib.ProcessorFormatter:
    renderer: structlog.types.Processor
    if json:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
        foreign_pre_chain=_SHARED_PROCESSORS,
    )


def configure(config: Config) -> None:
    """Configure structlog and stdlib logging from the application config.

    Args:
        config: Application config; only the [logging] section is used.
    """
    settings = config.logging
    level = getattr(logging, settings.level, logging.WARNING)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_formatter(settings.json))
    root.addHandler(console)

    if settings.file:
        file_handler = logging.handlers.RotatingFileHandler(
            settings.file,
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(_formatter(json=True))
        root.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_SHARED_PROCESSORS,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
