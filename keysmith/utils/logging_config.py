"""
Structured JSON logging for keysmith.

Every module logs through ``structlog.get_logger(__name__)`` with snake_case
event names. ``configure_logging`` is called once by the CLI; library users
may call it or configure structlog themselves.

Events are written to stderr because stdout carries command output that
shells evaluate (``keysmith credentials env``). Secret values never belong in
an event; ``redact_secrets`` replaces them if one slips through.
"""

import sys
from collections.abc import MutableMapping
from typing import Any, TextIO

import structlog

REDACTED = "**redacted**"

SECRET_FIELDS = frozenset(
    {
        "secret_access_key",
        "session_token",
        "awsSecretAccessKey",
        "secure:awsSecretAccessKey",
    }
)


def redact_secrets(logger: Any, method_name: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """structlog processor masking known secret fields."""
    for key in SECRET_FIELDS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def configure_logging(log_level: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure structured logging with JSON output.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Output stream, stderr when omitted
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level.upper()),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(stream if stream is not None else sys.stderr),
        cache_logger_on_first_use=True,
    )
