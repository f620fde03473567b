"""
Structured logging configuration using structlog.

JSON lines in production, coloured console output in development.
Request context (request id, method, path) is merged in from contextvars
bound by the request middleware.
"""

import logging
import sys

import structlog

from ticketpay.core.config import get_settings

# Keys that must never reach a log sink, whatever the caller binds.
REDACTED_KEYS = frozenset({"salt", "secret", "hash_string", "authorization"})


def redact_secrets(logger, method_name, event_dict):
    for key in REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "**********"
    return event_dict


def setup_logging() -> None:
    settings = get_settings()
    production = settings.ENVIRONMENT == "production"

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=production),
        structlog.processors.StackInfoRenderer(),
        redact_secrets,
    ]

    if production:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str = __name__) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
