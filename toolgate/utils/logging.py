"""
Structured logging for toolgate.

Wraps structlog with:
- JSON output for production, console output for development
- Call/session context tracking through contextvars
- Redaction of sensitive keys (code payloads can carry secrets)

Usage:
    from toolgate.utils.logging import get_logger

    logger = get_logger(__name__)
    logger.info("permission_check", category="file_system", status="pending")
"""

import logging
import os
import sys
from contextvars import ContextVar

import structlog
from structlog.types import FilteringBoundLogger

# Context variables for call tracking
call_id_var: ContextVar[str | None] = ContextVar("call_id", default=None)
session_id_var: ContextVar[str | None] = ContextVar("session_id", default=None)


SENSITIVE_KEYS = {
    "password",
    "api_key",
    "secret",
    "authorization",
    "apikey",
    "access_token",
    "refresh_token",
}

# Keys that look sensitive but are safe to print
ALLOWED_KEYS = {
    "tokens",
    "total_tokens",
}


def filter_sensitive_data(
    logger: FilteringBoundLogger, method_name: str, event_dict: dict
) -> dict:
    """Redact values whose key names look like credentials."""
    for key in list(event_dict.keys()):
        if key in ALLOWED_KEYS:
            continue
        if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
            event_dict[key] = "***REDACTED***"
    return event_dict


def add_context(
    logger: FilteringBoundLogger, method_name: str, event_dict: dict
) -> dict:
    """Attach call/session identifiers bound for the current task."""
    if call_id := call_id_var.get():
        event_dict.setdefault("call_id", call_id)
    if session_id := session_id_var.get():
        event_dict.setdefault("session_id", session_id)
    return event_dict


def configure_logging(
    log_level: str = "INFO", json_logs: bool = False, log_file: str | None = None
) -> None:
    """
    Configure structlog processors and renderers.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output JSON lines
        log_file: Optional file path to also write logs to
    """
    log_level = os.getenv("LOG_LEVEL", log_level).upper()
    json_logs = os.getenv("LOG_JSON", str(json_logs)).lower() in ("true", "1", "yes")

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level),
    )

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, log_level))
        logging.getLogger().addHandler(file_handler)

    processors = [
        structlog.contextvars.merge_contextvars,
        add_context,
        filter_sensitive_data,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=False,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "toolgate") -> FilteringBoundLogger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically __name__ of the module)
    """
    return structlog.get_logger(name)


def set_call_context(
    call_id: str | None = None,
    session_id: str | None = None,
) -> None:
    """Bind call/session identifiers to every log entry of the current task."""
    if call_id:
        call_id_var.set(call_id)
    if session_id:
        session_id_var.set(session_id)


def clear_call_context() -> None:
    call_id_var.set(None)
    session_id_var.set(None)


configure_logging()

logger = get_logger("toolgate")


__all__ = [
    "get_logger",
    "configure_logging",
    "set_call_context",
    "clear_call_context",
    "logger",
]
