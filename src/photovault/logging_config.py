"""
Structured logging for photovault.

All modules log through structlog on top of the standard library root
logger. Development renders human-readable lines; every other environment
renders one JSON object per event. Credentials never reach the renderer:
``redact_sensitive_fields`` masks them, including inside nested context
dicts such as the one error handling attaches.
"""

import logging
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog

APP_NAME = "photovault"

LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

DEVELOPMENT_ENVIRONMENTS = ("development", "dev", "local")

SENSITIVE_FIELDS = frozenset({"password", "password_hash", "access_token", "token", "jwt_secret"})
REDACTED = "[REDACTED]"


def get_log_level() -> int:
    """Level from ``LOG_LEVEL``; unknown names fall back to INFO."""
    return LOG_LEVELS.get(os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)


def get_environment_name() -> str:
    return os.getenv("ENVIRONMENT", "development").lower()


def is_development_environment() -> bool:
    return get_environment_name() in DEVELOPMENT_ENVIRONMENTS


def _redact(values: dict[str, Any]) -> dict[str, Any]:
    for key, value in values.items():
        if key in SENSITIVE_FIELDS:
            values[key] = REDACTED
        elif isinstance(value, dict):
            values[key] = _redact(dict(value))
    return values


def redact_sensitive_fields(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Replace credential values in a log entry before it is rendered."""
    return _redact(event_dict)


def add_app_context(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("app", APP_NAME)
    event_dict.setdefault("environment", get_environment_name())
    return event_dict


def configure_structured_logging() -> None:
    """
    Configure structlog and the standard library root logger.

    Safe to call more than once; the Streamlit entry point and the batch
    CLI both call it at start-up.
    """
    log_level = get_log_level()
    is_dev = is_development_environment()
    use_colors = is_dev and sys.stderr.isatty()

    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stderr)
    logging.getLogger().setLevel(log_level)

    renderer: Any = structlog.dev.ConsoleRenderer(colors=use_colors) if is_dev else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            add_app_context,
            redact_sensitive_fields,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.get_logger("photovault.logging").info(
        "logging_configured",
        log_level=logging.getLevelName(log_level),
        colors_enabled=use_colors,
    )


def get_logger(name: str | None = None) -> Any:
    return structlog.get_logger(name or APP_NAME)


@contextmanager
def user_context(user_id: str | None, **values: Any) -> Iterator[None]:
    """Attach ``user_id`` (and any extra values) to every event logged inside the block."""
    with structlog.contextvars.bound_contextvars(user_id=user_id, **values):
        yield


def log_user_action(user_id: str, action: str, **context: Any) -> None:
    """Record something a user did (upload, delete, sign-in...)."""
    get_logger("photovault.user_actions").info("user_action", user_id=user_id, action=action, **context)


def log_error(error: Exception, context: dict[str, Any] | None = None) -> None:
    """
    Log an exception with its type, message and traceback.

    Args:
        error: Exception that occurred
        context: Extra fields merged into the event
    """
    fields = {"error_type": type(error).__name__, "error_message": str(error), **(context or {})}
    get_logger("photovault.errors").error("error_occurred", exc_info=error, **fields)


def log_security_event(event_type: str, user_id: str | None = None, **context: Any) -> None:
    """Log a denied or suspicious access at WARNING level on the security logger."""
    get_logger("photovault.security").warning("security_event", event_type=event_type, user_id=user_id, **context)
