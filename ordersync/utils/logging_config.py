"""Structured logging setup for the order sync engine."""

import logging
import sys
from enum import Enum
from logging.handlers import RotatingFileHandler
from typing import Any

import structlog
from pydantic import BaseModel

from ordersync.models.config import LoggingConfig

_LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
_LOG_FILE_BACKUPS = 5


def render_sync_values(
    logger: Any, method_name: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Turn enum members and pydantic models into plain JSON values.

    Lets call sites log error kinds, partition keys and descriptors as they
    are, e.g. log.info("order_fetch_failed", error_kind=error.kind).
    """
    for key, value in event_dict.items():
        if isinstance(value, Enum):
            event_dict[key] = value.value
        elif isinstance(value, BaseModel):
            event_dict[key] = value.model_dump(mode="json")
    return event_dict


def configure_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure structlog and the standard library root logger.

    Entries carry level, logger name, ISO UTC timestamp, the call site with
    its thread (the command worker and remote-call threads are named), and
    any context bound with structlog.contextvars, such as the owner of the
    sync in progress.

    Args:
        config: Logging section of the app config (defaults if None)
    """
    config = config or LoggingConfig()
    level = getattr(logging, config.log_level)

    logging.basicConfig(format="%(message)s", level=level, stream=sys.stdout)
    logging.root.setLevel(level)

    if config.log_file:
        file_handler = RotatingFileHandler(
            config.log_file, maxBytes=_LOG_FILE_MAX_BYTES, backupCount=_LOG_FILE_BACKUPS
        )
        file_handler.setLevel(level)
        logging.root.addHandler(file_handler)

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
                structlog.processors.CallsiteParameter.THREAD_NAME,
            ],
        ),
        render_sync_values,
        structlog.processors.format_exc_info,
    ]
    if config.json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
