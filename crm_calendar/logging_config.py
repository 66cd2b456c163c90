"""
Structured logging for the calendar core, using structlog over stdlib logging.

Modules keep plain ``logging.getLogger(__name__)`` loggers; this module only
decides how their records are rendered. Console output by default, JSON lines
when CRM_CALENDAR_LOG_FORMAT=json or ``logging.json: true`` is configured.

Usage:
    from crm_calendar.logging_config import setup_logging
    setup_logging(config.logging)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from crm_calendar.config import LoggingConfig


def setup_logging(settings: LoggingConfig | None = None) -> None:
    # Environment wins over the config file so operators can turn up verbosity
    level = os.environ.get("CRM_CALENDAR_LOG_LEVEL") or (settings.level if settings else "INFO")
    env_format = os.environ.get("CRM_CALENDAR_LOG_FORMAT", "").lower()
    if env_format:
        json_output = env_format == "json"
    else:
        json_output = bool(settings and settings.json_output)

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    # Request lines from the HTTP server are noise at INFO
    logging.getLogger("uvicorn.access").setLevel(max(numeric_level, logging.WARNING))


__all__ = ["setup_logging"]
