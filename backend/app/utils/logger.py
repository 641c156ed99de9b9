# app/utils/logger.py

import logging
import sys
import structlog
from app.core.config import settings

# Event keys that may carry codes, plaintext or sealed data
SENSITIVE_KEYS = frozenset({
    "anon_code",
    "recipient_code",
    "sender_name",
    "message",
    "message_text",
    "body",
    "ciphertext",
    "token",
    "key",
    "pepper",
    "salt",
})
REDACTED = "[redacted]"


def redact_sensitive(logger, method_name, event_dict):
    for key in SENSITIVE_KEYS.intersection(event_dict):
        event_dict[key] = REDACTED
    return event_dict


def setup_logger():
    """
    Configure structured logging for the service.
    Sensitive keys are masked before any renderer sees them;
    production renders JSON, development renders to the console.
    """
    shared_processors = [
        structlog.contextvars.merge_contextvars,
        redact_sensitive,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.ENVIRONMENT == "production":
        renderers = [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=shared_processors + renderers,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # pymongo and uvicorn log through stdlib
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=settings.LOG_LEVEL.upper(),
    )
