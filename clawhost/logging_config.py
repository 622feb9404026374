"""structlog configuration shared by the API and the CLI.

Call `setup_logging()` once at process start, then log snake_case events with
key/value context:

    logger = get_logger(__name__)
    logger.info("machine_started", app_name=app_name, machine_id=machine_id)

Arguments left as None fall back to SERVICE_NAME, LOG_FORMAT and LOG_LEVEL.
"""

import logging
import os
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor

REDACTED = "***"

# Event keys whose values are credentials and must never reach log sinks
SECRET_KEYS = frozenset(
    {
        "gateway_token",
        "api_key",
        "ai_api_key",
        "api_token",
        "bot_token",
        "app_token",
        "authorization",
        "secrets",
    }
)

# Libraries that log every request at INFO; the request middleware covers that
NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine")

REQUEST_CONTEXT_KEYS = ("correlation_id", "method", "path")


def redact_secrets(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    for key in event_dict.keys() & SECRET_KEYS:
        event_dict[key] = REDACTED
    return event_dict


def _renderer(log_format: str) -> Processor:
    if log_format == "json":
        return structlog.processors.JSONRenderer(sort_keys=False)
    return structlog.dev.ConsoleRenderer(
        colors=sys.stdout.isatty(), exception_formatter=structlog.dev.plain_traceback
    )


def setup_logging(
    service_name: str | None = None,
    log_format: Literal["json", "console"] | None = None,
    log_level: str | None = None,
) -> None:
    """Configure stdlib logging and structlog.

    Args:
        service_name: Bound as `service` on every event ("api", "cli").
        log_format: "json" for log shipping, "console" for a terminal.
        log_level: DEBUG, INFO, WARNING or ERROR.
    """
    service_name = service_name or os.getenv("SERVICE_NAME", "clawhost")
    log_format = log_format or os.getenv("LOG_FORMAT", "console")
    log_level = (log_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    level = getattr(logging, log_level, logging.INFO)

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _renderer(log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)
    get_logger(__name__).debug("logging_configured", log_format=log_format, log_level=log_level)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(correlation_id: str, method: str, path: str) -> None:
    """Attach request identity to every event logged while handling it."""
    structlog.contextvars.bind_contextvars(
        correlation_id=correlation_id, method=method, path=path
    )


def clear_request_context() -> None:
    structlog.contextvars.unbind_contextvars(*REQUEST_CONTEXT_KEYS)


def get_correlation_id() -> str | None:
    return structlog.contextvars.get_contextvars().get("correlation_id")
