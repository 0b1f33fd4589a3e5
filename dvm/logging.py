# SPDX-License-Identifier: LGPL-2.1-only
# Copyright (c) 2026 Akshat Kotpalliwar (alias IntegerAlex)

"""
DVM Logging - structlog configuration for the append-only log sink.

Every event becomes exactly one line of the form

    2026-01-31 14:05:09 - backup_started volume=pgdata path=/backups/...

written to the configured log file, and echoed to stderr in verbose mode.
Error-level events carry an ``ERROR: `` prefix after the separator.
"""

import logging
import sys
from typing import Any

import structlog

from dvm.config import DVMConfig

LOGGER_NAME = "dvm"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

_ERROR_LEVELS = {"error", "critical", "exception"}


def _format_value(value: Any) -> str:
    text = str(value)
    if not text or any(ch.isspace() for ch in text):
        return repr(text)
    return text


def render_log_line(
    logger: Any, method_name: str, event_dict: structlog.typing.EventDict
) -> str:
    """Render an event dict as ``{timestamp} - {message}``."""
    timestamp = event_dict.pop("timestamp", "")
    event = str(event_dict.pop("event", ""))
    level = event_dict.pop("level", method_name)
    exc = event_dict.pop("exception", None)

    parts = [event]
    parts.extend(f"{key}={_format_value(value)}" for key, value in event_dict.items())
    message = " ".join(parts)

    if level in _ERROR_LEVELS:
        message = f"ERROR: {message}"
    if exc:
        # Keep one line per event
        message = f"{message} exception={_format_value(exc.replace(chr(10), ' | '))}"

    return f"{timestamp} - {message}"


def _shared_processors() -> list:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt=TIMESTAMP_FORMAT, utc=False),
    ]


def _formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=_shared_processors(),
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            render_log_line,
        ],
    )


def configure_logging(config: DVMConfig) -> logging.Logger:
    """
    Route structlog output to the log file (and stderr when verbose).

    Safe to call more than once: handlers installed by a previous call
    are replaced.

    Args:
        config: DVM configuration

    Returns:
        The stdlib logger that owns the handlers
    """
    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger(LOGGER_NAME)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    file_handler = logging.FileHandler(config.log_file, mode="a", encoding="utf-8")
    file_handler.setFormatter(_formatter())
    root.addHandler(file_handler)

    if config.verbose:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(_formatter())
        root.addHandler(console)

    root.setLevel(logging.INFO)
    root.propagate = False
    return root
