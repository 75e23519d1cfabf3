"""
Logging configuration using structlog.

Every module logs through `get_logger(__name__)`. Records pass through the
stdlib bridge so third-party loggers share the same renderers.
"""

import sys
import logging
from typing import Any
from pathlib import Path

import structlog
from structlog.types import Processor


# Keys whose values never reach a log sink (upload URLs are presigned)
REDACT_PATTERNS = (
    "token",
    "api_key",
    "apikey",
    "secret",
    "password",
    "upload_url",
    "presigned",
)

# Chatty at DEBUG on every telemetry append
_QUIET_LOGGERS = ("filelock",)


def redact_secrets(
    logger: logging.Logger, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask string values stored under secret-looking keys."""
    for key, value in list(event_dict.items()):
        if key == "event" or not isinstance(value, str):
            continue
        lowered = key.lower()
        if any(pattern in lowered for pattern in REDACT_PATTERNS):
            event_dict[key] = "[REDACTED]"
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_secrets,
    ]


def _handler(handler: logging.Handler, renderer: Processor, pre_chain: list[Processor]) -> logging.Handler:
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain)
    )
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
) -> None:
    """
    Configure structlog for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional path to a JSON-lines log file
    """
    numeric_level = getattr(logging, level.upper())
    processors = _shared_processors()

    structlog.configure(
        processors=processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handlers = [
        _handler(
            logging.StreamHandler(sys.stderr),
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
            processors,
        )
    ]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            _handler(logging.FileHandler(log_file), structlog.processors.JSONRenderer(), processors)
        )

    root_logger = logging.getLogger()
    root_logger.handlers = handlers
    root_logger.setLevel(numeric_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.INFO))


def bind_conversation(tab_id: str, conversation_id: str | None = None) -> None:
    """Attach conversation identifiers to every log line of the current task."""
    structlog.contextvars.bind_contextvars(
        tab_id=tab_id,
        conversation_id=conversation_id,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance."""
    return structlog.get_logger(name)
