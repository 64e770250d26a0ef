"""structlog setup shared by every callforge module.

Records from structlog and from plain stdlib loggers (httpx, for one) pass
through the same processor chain and end up on a single stderr handler,
rendered as JSON lines or as colored console output. Stdout is left to
the CLI so ``callforge inspect --format json`` can be piped.

Settings come from arguments first, then the environment:

    CALLFORGE_LOG_FORMAT    "json" or "console" (default)
    CALLFORGE_LOG_LEVEL     DEBUG, INFO (default), WARNING, ERROR
    CALLFORGE_SERVICE_NAME  bound as ``service`` on every record
    CALLFORGE_DEBUG         truthy to disable redaction in sanitize_for_logging

Example:
    >>> configure_logging(log_format="json", log_level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.info("callforge.builder.target", target="GitHub", operations=2)
"""

import logging
import os
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"
DEFAULT_SERVICE_NAME = "callforge"

ENV_LOG_FORMAT = "CALLFORGE_LOG_FORMAT"
ENV_LOG_LEVEL = "CALLFORGE_LOG_LEVEL"
ENV_SERVICE_NAME = "CALLFORGE_SERVICE_NAME"
ENV_DEBUG = "CALLFORGE_DEBUG"

REDACTED_PLACEHOLDER = "***REDACTED***"

# Matched as substrings of lower-cased keys
_SENSITIVE_KEY_PARTS = (
    "password",
    "passwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "credential",
    "auth",
    "cookie",
)

_TRUTHY = frozenset({"1", "true", "yes", "on"})

_logging_configured = False


@dataclass(frozen=True)
class LoggingSettings:
    """Resolved logging options."""

    log_format: str = DEFAULT_LOG_FORMAT
    log_level: str = DEFAULT_LOG_LEVEL
    service_name: str = DEFAULT_SERVICE_NAME

    @classmethod
    def resolve(
        cls,
        log_format: str | None = None,
        log_level: str | None = None,
        service_name: str | None = None,
    ) -> "LoggingSettings":
        env = os.environ
        return cls(
            log_format=(log_format or env.get(ENV_LOG_FORMAT) or DEFAULT_LOG_FORMAT).lower(),
            log_level=(log_level or env.get(ENV_LOG_LEVEL) or DEFAULT_LOG_LEVEL).upper(),
            service_name=service_name or env.get(ENV_SERVICE_NAME) or DEFAULT_SERVICE_NAME,
        )

    @property
    def level_number(self) -> int:
        level = logging.getLevelName(self.log_level)
        return level if isinstance(level, int) else logging.INFO


def is_debug_mode() -> bool:
    """Return True when CALLFORGE_DEBUG holds a truthy value."""
    return os.environ.get(ENV_DEBUG, "").strip().lower() in _TRUTHY


def _is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(part in lowered for part in _SENSITIVE_KEY_PARTS)


def _redact(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {
            k: REDACTED_PLACEHOLDER if _is_sensitive(str(k)) else _redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [_redact(item) for item in value]
    return value


def sanitize_for_logging(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with credential-looking fields redacted.

    Keys containing password, secret, token, api key, credential, auth or
    cookie (any case) are replaced with REDACTED_PLACEHOLDER, at any
    depth of nested mappings and lists. Used for form bodies and query
    maps before they are logged.

    Example:
        >>> sanitize_for_logging({"user": "ada", "password": "s3cret"})
        {'user': 'ada', 'password': '***REDACTED***'}
    """
    if is_debug_mode():
        return dict(data)
    return _redact(data) if data else {}


def _drop_empty_fields(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    # handlers pass optional fields (code, attempt) that are often None
    return {k: v for k, v in event_dict.items() if v is not None or k == "event"}


def _processor_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        _drop_empty_fields,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]


def _renderers(log_format: str) -> list[Processor]:
    if log_format == "json":
        return [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=False),
        ]
    return [
        structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )
    ]


def configure_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    service_name: str | None = None,
    force: bool = False,
) -> None:
    """Install the stderr handler and the structlog pipeline.

    Only the first call takes effect unless ``force`` is set.

    Args:
        log_format: "json" or "console"
        log_level: Minimum level name
        service_name: Value bound as ``service`` on every record
        force: Replace an existing configuration
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    settings = LoggingSettings.resolve(log_format, log_level, service_name)
    chain = _processor_chain()

    structlog.configure(
        processors=[*chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                *_renderers(settings.log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(settings.level_number)

    structlog.contextvars.bind_contextvars(service=settings.service_name)
    _logging_configured = True


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, configuring defaults on first use."""
    if not _logging_configured:
        configure_logging()
    return structlog.stdlib.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind values onto every record logged from the current context.

    Example:
        >>> bind_context(config_key="GitHub#contributors(str,str)")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()


__all__ = [
    "REDACTED_PLACEHOLDER",
    "LoggingSettings",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "is_debug_mode",
    "sanitize_for_logging",
]
