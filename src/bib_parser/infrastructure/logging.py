"""Логирование (JSON через structlog)."""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog

from bib_parser.settings import get_settings


def configure_logging(level: str | None = None, stream: TextIO | None = None) -> None:
    """Настраивает stdlib logging + structlog.

    `stream` нужен CLI: там stdout занят результатом разбора, логи уходят в stderr.
    """
    level_name = (level or get_settings().log_level).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stdout,
        level=numeric_level,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
