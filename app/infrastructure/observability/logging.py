"""
Structured logging setup for the scheduling assistant.
Provides JSON-formatted logs with consistent fields for production monitoring.
"""

import logging
import sys
from typing import Any, Literal

import structlog
from structlog.stdlib import LoggerFactory

TransitionOutcome = Literal["attempted", "succeeded", "failed"]


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output for production.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _drop_secret_fields,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


_SECRET_FIELDS = frozenset({"access_token", "refresh_token", "client_secret", "code"})


def _drop_secret_fields(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask raw credentials if a caller ever passes them as log fields."""
    for key in _SECRET_FIELDS.intersection(event_dict):
        value = event_dict[key]
        event_dict[key] = f"{str(value)[:6]}..." if value else value
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_transition(
    component: str,
    transition: str,
    outcome: TransitionOutcome,
    reason: str | None = None,
    **fields: Any,
) -> None:
    """
    Emit one structured event for a state transition.

    Connection and sync code calls this at each transition (attempted, succeeded,
    failed-with-reason) instead of narrating control flow.
    """
    logger = get_logger(component)

    log_data = {
        "component": component,
        "transition": transition,
        "outcome": outcome,
        **fields,
    }
    if reason:
        log_data["reason"] = reason

    message = f"{component}.{transition}.{outcome}"
    if outcome == "failed":
        logger.warning(message, **log_data)
    else:
        logger.info(message, **log_data)


def log_request(method: str, path: str, status_code: int, duration_ms: float, user_id: str = None):
    """Log HTTP requests with consistent fields."""
    logger = get_logger("http")

    log_data = {
        "method": method,
        "path": path,
        "status_code": status_code,
        "duration_ms": duration_ms,
        "event_kind": "http_request",
    }

    if user_id:
        log_data["user_id"] = user_id

    if status_code >= 400:
        logger.warning("HTTP request failed", **log_data)
    else:
        logger.info("HTTP request completed", **log_data)
