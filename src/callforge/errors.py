"""Callforge Error Taxonomy.

This module defines the error hierarchy for callforge, providing
structured error handling with specific error codes and context
information.

Errors fall into five groups:
- Setup errors (ContractError, TemplateError): invalid contracts, raised
  while building handlers and never retried.
- Transport errors (TransportError): raised by Client implementations on
  I/O failure; the dispatch handler wraps them in RetryableError.
- Retryable errors (RetryableError): subject to the Retryer policy.
- Codec errors (EncodeError, DecodeError, ReadError).
- Protocol errors (HttpError and its per-status subclasses): produced by
  the error decoder for non-success responses.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from callforge.models.http import Request
    from callforge.models.enums import HttpMethod

# Maximum number of body characters quoted in an HttpError message
MAX_BODY_PREVIEW_CHARS = 400


class CallforgeError(Exception):
    """Base exception for all callforge errors.

    This is the root exception class that all callforge-specific errors
    inherit from. It provides a standardized way to handle engine errors
    with error codes and additional context.

    Attributes:
        code: Error code following the callforge:<area>/<kind> pattern
        message: Human-readable error message
        details: Optional additional error context
    """

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize to ``{code, message, details}`` dict."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ExceptionPropagationPolicy(str, Enum):
    """What the dispatch handler raises once the retryer gives up.

    NONE: raise the RetryableError itself
    UNWRAP: raise the RetryableError's cause when it has one
    """

    NONE = "none"
    UNWRAP = "unwrap"


class ContractError(CallforgeError):
    """Raised when a contract declaration is invalid.

    This error occurs at configuration time, for example when an
    operation declares two body parameters, two query maps, or no
    HTTP verb at all. It is never retried.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="callforge:contract/invalid",
            message=message,
            details=details or {},
        )


class TemplateError(CallforgeError):
    """Raised when a request template cannot be built or expanded."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="callforge:template/invalid",
            message=message,
            details=details or {},
        )


class EncodeError(CallforgeError):
    """Raised when a request body cannot be encoded."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            code="callforge:codec/encode",
            message=message,
            details=details or {},
        )


class TransportError(OSError):
    """Raised by Client implementations when the request could not be sent.

    The dispatch handler converts this into a RetryableError carrying the
    request and the original cause.
    """


class HttpError(CallforgeError):
    """Raised when a call fails with an HTTP-level outcome.

    Attributes:
        status: HTTP status code, or -1 when no response was received
        request: The request that produced this failure (if known)
        body: Raw response body (if read)
        headers: Response headers (if any)
    """

    code_suffix = "http"

    def __init__(
        self,
        status: int,
        message: str,
        request: Request | None = None,
        body: bytes | None = None,
        headers: dict[str, tuple[str, ...]] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details_dict: dict[str, Any] = {"status": status}
        if request is not None:
            details_dict["method"] = request.method.value
            details_dict["url"] = request.url
        if details:
            details_dict.update(details)
        super().__init__(
            code=f"callforge:call/{self.code_suffix}",
            message=message,
            details=details_dict,
        )
        self.status = status
        self.request = request
        self.body = body
        self.headers = headers or {}

    def content_utf8(self) -> str:
        """Return the response body decoded as UTF-8 (empty when absent)."""
        if not self.body:
            return ""
        return self.body.decode("utf-8", errors="replace")

    @classmethod
    def from_status(
        cls,
        status: int,
        message: str,
        request: Request | None = None,
        body: bytes | None = None,
        headers: dict[str, tuple[str, ...]] | None = None,
    ) -> HttpError:
        """Create the most specific HttpError subclass for ``status``.

        Example:
            >>> type(HttpError.from_status(404, "missing")).__name__
            'NotFoundError'
            >>> type(HttpError.from_status(418, "teapot")).__name__
            'ClientError'
        """
        error_cls = _STATUS_ERRORS.get(status)
        if error_cls is None:
            if 400 <= status < 500:
                error_cls = ClientError
            elif 500 <= status < 600:
                error_cls = ServerError
            else:
                error_cls = HttpError
        return error_cls(status, message, request=request, body=body, headers=headers)


class ClientError(HttpError):
    """4xx response."""

    code_suffix = "client_error"


class ServerError(HttpError):
    """5xx response."""

    code_suffix = "server_error"


class BadRequestError(ClientError):
    code_suffix = "bad_request"


class UnauthorizedError(ClientError):
    code_suffix = "unauthorized"


class ForbiddenError(ClientError):
    code_suffix = "forbidden"


class NotFoundError(ClientError):
    code_suffix = "not_found"


class MethodNotAllowedError(ClientError):
    code_suffix = "method_not_allowed"


class NotAcceptableError(ClientError):
    code_suffix = "not_acceptable"


class ConflictError(ClientError):
    code_suffix = "conflict"


class GoneError(ClientError):
    code_suffix = "gone"


class UnsupportedMediaTypeError(ClientError):
    code_suffix = "unsupported_media_type"


class TooManyRequestsError(ClientError):
    code_suffix = "too_many_requests"


class InternalServerError(ServerError):
    code_suffix = "internal_server_error"


class NotImplementedServerError(ServerError):
    code_suffix = "not_implemented"


class BadGatewayError(ServerError):
    code_suffix = "bad_gateway"


class ServiceUnavailableError(ServerError):
    code_suffix = "service_unavailable"


class GatewayTimeoutError(ServerError):
    code_suffix = "gateway_timeout"


_STATUS_ERRORS: dict[int, type[HttpError]] = {
    400: BadRequestError,
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    405: MethodNotAllowedError,
    406: NotAcceptableError,
    409: ConflictError,
    410: GoneError,
    415: UnsupportedMediaTypeError,
    429: TooManyRequestsError,
    500: InternalServerError,
    501: NotImplementedServerError,
    502: BadGatewayError,
    503: ServiceUnavailableError,
    504: GatewayTimeoutError,
}


class RetryableError(HttpError):
    """Raised when a call failed in a way the Retryer may retry.

    Produced for transport I/O failures (status -1) and by error decoders
    that recognize a retryable response (for example one carrying a
    Retry-After header).

    Attributes:
        method: HTTP method of the failed request
        retry_after: Epoch seconds before which a retry should not happen,
            or None to let the retryer pick the interval
    """

    code_suffix = "retryable"

    def __init__(
        self,
        status: int,
        message: str,
        method: HttpMethod | None = None,
        retry_after: float | None = None,
        request: Request | None = None,
        body: bytes | None = None,
        headers: dict[str, tuple[str, ...]] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(
            status, message, request=request, body=body, headers=headers, details=details
        )
        self.method = method
        self.retry_after = retry_after
        if cause is not None:
            self.__cause__ = cause


class DecodeError(HttpError):
    """Raised when a response body could not be decoded into the return type."""

    code_suffix = "decode"

    def __init__(
        self,
        status: int,
        message: str,
        request: Request | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(status, message, request=request)
        if cause is not None:
            self.__cause__ = cause


class ReadError(HttpError):
    """Raised when the response body could not be read from the transport."""

    code_suffix = "read"


def error_executing(request: Request, cause: BaseException) -> RetryableError:
    """Wrap a transport I/O failure into a retryable error.

    Args:
        request: The request that was being sent
        cause: The I/O failure raised by the transport

    Returns:
        RetryableError with status -1 carrying the request and cause
    """
    return RetryableError(
        -1,
        f"{cause.__class__.__name__} executing {request.method.value} {request.url}: {cause}",
        method=request.method,
        request=request,
        cause=cause,
    )


def error_reading(request: Request | None, status: int, cause: BaseException) -> ReadError:
    """Wrap a failure while reading a response body."""
    error = ReadError(
        status,
        f"{cause.__class__.__name__} reading response: {cause}",
        request=request,
    )
    error.__cause__ = cause
    return error


def annotate(error: BaseException, config_key: str, elapsed_ms: float | None = None) -> None:
    """Attach call diagnostics to a callforge error in place.

    Non-callforge exceptions are left untouched.
    """
    if not isinstance(error, CallforgeError):
        return
    error.details.setdefault("config_key", config_key)
    if elapsed_ms is not None:
        error.details.setdefault("elapsed_ms", round(elapsed_ms, 3))
