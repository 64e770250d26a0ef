"""Per-call request/response logging.

CallLogger is the logger the dispatch handlers talk to. It emits
structlog events whose detail depends on the configured LogLevel:

- BASIC: method, url, status, elapsed time
- HEADERS: plus request and response headers (credentials truncated)
- FULL: plus request and response bodies

At FULL the response body is read to be logged, so the response is
returned re-buffered; callers must use the returned response.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qsl

from callforge.models.constants import FORM_CONTENT_TYPE
from callforge.models.enums import LogLevel
from callforge.models.http import Request, Response
from callforge.observability.logging import get_logger, sanitize_for_logging
from callforge.utils.sanitization import sanitize_headers, sanitize_url

# Body bytes quoted in a FULL log record
MAX_LOGGED_BODY_BYTES = 4096


def _body_text(data: bytes | None, charset: str = "utf-8") -> str | None:
    if data is None:
        return None
    text = data[:MAX_LOGGED_BODY_BYTES].decode(charset, errors="replace")
    if len(data) > MAX_LOGGED_BODY_BYTES:
        text += f"... ({len(data)} bytes)"
    return text


def _request_body(request: Request) -> Any:
    # form fields may carry credentials: log them redacted
    content_type = request.header("Content-Type") or ""
    if request.body is not None and content_type.startswith(FORM_CONTENT_TYPE):
        return sanitize_for_logging(dict(parse_qsl(request.text() or "")))
    return _body_text(request.body, request.charset)


class CallLogger:
    """Structured logger for remote calls.

    Args:
        level: How much of each call to record
        name: Underlying structlog logger name

    Example:
        >>> call_logger = CallLogger(LogLevel.BASIC)
        >>> call_logger.log_retry("GitHub#contributors(str,str)", attempt=2)
    """

    def __init__(self, level: LogLevel = LogLevel.NONE, name: str = "callforge.call") -> None:
        self.level = level
        self._logger = get_logger(name)

    def _enabled(self, level: LogLevel) -> bool:
        return self.level is not LogLevel.NONE and self.level.includes(level)

    def log_request(self, config_key: str, request: Request) -> None:
        if not self._enabled(LogLevel.BASIC):
            return
        fields: dict[str, Any] = {
            "config_key": config_key,
            "method": request.method.value,
            "url": sanitize_url(request.url),
        }
        if self._enabled(LogLevel.HEADERS):
            fields["headers"] = sanitize_headers(request.headers)
        if self._enabled(LogLevel.FULL):
            fields["body"] = _request_body(request)
            fields["body_bytes"] = len(request.body) if request.body is not None else 0
        self._logger.info("callforge.call.request", **fields)

    def log_retry(self, config_key: str, attempt: int | None = None, **extra: Any) -> None:
        if not self._enabled(LogLevel.BASIC):
            return
        self._logger.info("callforge.call.retry", config_key=config_key, attempt=attempt, **extra)

    def log_io_exception(
        self, config_key: str, error: BaseException, elapsed_ms: float
    ) -> None:
        if not self._enabled(LogLevel.BASIC):
            return
        self._logger.warning(
            "callforge.call.io_error",
            config_key=config_key,
            error=type(error).__name__,
            message=str(error),
            elapsed_ms=round(elapsed_ms, 3),
        )

    def log_and_rebuffer_response(
        self, config_key: str, response: Response, elapsed_ms: float
    ) -> Response:
        """Log the response and return it (re-buffered at FULL level)."""
        if not self._enabled(LogLevel.BASIC):
            return response
        fields: dict[str, Any] = {
            "config_key": config_key,
            "status": response.status,
            "reason": response.reason,
            "elapsed_ms": round(elapsed_ms, 3),
        }
        if self._enabled(LogLevel.HEADERS):
            fields["headers"] = sanitize_headers(response.headers)
        if (
            self._enabled(LogLevel.FULL)
            and response.body is not None
            and response.status not in (204, 205)
        ):
            try:
                data = response.body.read()
            finally:
                response.body.close()
            fields["body"] = _body_text(data)
            fields["body_bytes"] = len(data)
            self._logger.info("callforge.call.response", **fields)
            return response.with_body(data)
        self._logger.info("callforge.call.response", **fields)
        return response
