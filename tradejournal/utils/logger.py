from __future__ import annotations

import logging
import os
import sys
from typing import Any, Optional

import structlog

from tradejournal.utils.config import Settings, get_settings

SENSITIVE_KEYS = frozenset({"password", "password_hash", "token", "jwt_secret", "secret"})


def _log_handlers(log_file: str) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode="a"))
    return handlers


def setup_logging(settings: Optional[Settings] = None) -> None:
    """JSON logs to stdout and, when log_file is set, to that file.

    Safe to call more than once. Root handlers are only installed when
    the root logger has none, while structlog always takes the new level.
    """
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format="%(message)s", level=level,
                            handlers=_log_handlers(settings.log_file))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def sanitize_log_data(data: dict[str, Any]) -> dict[str, Any]:
    """Copy of data with credentials redacted, recursing into nested dicts."""
    sanitized = {}
    for key, value in data.items():
        if key.lower() in SENSITIVE_KEYS:
            sanitized[key] = "***REDACTED***"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_log_data(value)
        else:
            sanitized[key] = value
    return sanitized
