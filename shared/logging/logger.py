"""
Logger Implementation
=====================

structlog configuration for SiteGate services.

Every entry carries the service name, an ISO timestamp and whatever
request context the HTTP middleware bound (request id, method, path).
Session tokens and PINs are masked before rendering. Production renders
JSON lines; development renders coloured console output.

Version: 0.1.0
"""

import datetime
import logging
import sys
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger


if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger


_SERVICE_NAME = "sitegate"
_VERSION = "0.1.0"

_MASK = "***REDACTED***"
_MASKED_KEYS = frozenset(
    {
        "password",
        "pin",
        "secret",
        "token",
        "access_token",
        "authorization",
        "api_key",
    }
)

# Libraries whose INFO chatter drowns out workflow events
_QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "sqlalchemy.engine", "redis")


def _stamp_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service", _SERVICE_NAME)
    event_dict.setdefault("version", _VERSION)
    event_dict["timestamp"] = datetime.datetime.now(datetime.UTC).isoformat()
    return event_dict


def _is_masked(key: str) -> bool:
    key = key.lower()
    return key in _MASKED_KEYS or key.endswith("_secret")


def _mask(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _MASK if _is_masked(k) else _mask(v) for k, v in value.items()}
    return value


def _mask_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Mask credentials, including inside nested detail dicts."""
    return _mask(event_dict)


def _processors(json_logs: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        _stamp_service,
        _mask_secrets,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    processors.append(
        structlog.processors.format_exc_info if json_logs else structlog.dev.set_exc_info
    )
    return processors


def _renderer(json_logs: bool) -> Processor:
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(
        colors=True,
        exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=10),
    )


def setup_logging(
    log_level: str = "INFO",
    json_logs: bool = False,
    service_name: str = "sitegate",
) -> None:
    """
    Route stdlib and structlog output through one structured handler.

    Args:
        log_level: Root level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Render JSON lines instead of console output
        service_name: Value of the `service` key on every entry
    """
    global _SERVICE_NAME
    _SERVICE_NAME = service_name

    level = getattr(logging, log_level.upper())
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    processors = _processors(json_logs)
    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_logs),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


def get_logger(name: str | None = None) -> "BoundLogger":
    """
    Get a structured logger.

    Example:
        logger = get_logger(__name__)
        logger.info("visit_checked_in", visit_id="v-1", access_status="unescorted")
    """
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind keys onto every entry logged later in this async context."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop everything bound with `bind_context`."""
    structlog.contextvars.clear_contextvars()
