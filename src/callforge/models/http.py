"""Concrete HTTP request and response models.

Request and Options are immutable value objects produced per call.
Response wraps a transport-owned body stream: whoever holds it is
responsible for closing it, which is why Response is a context manager.

Example:
    >>> from callforge.models.http import Request, Response, BytesBody
    >>> from callforge.models.enums import HttpMethod
    >>> request = Request(method=HttpMethod.GET, url="https://api.example.com/ping")
    >>> with Response(status=200, body=BytesBody(b"pong"), request=request) as response:
    ...     response.body.read()
    b'pong'
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from typing import Callable

from pydantic import Field

from callforge.models.base import CallforgeBaseModel
from callforge.models.constants import (
    DEFAULT_CHARSET,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_READ_TIMEOUT,
)
from callforge.models.enums import HttpMethod

Headers = dict[str, tuple[str, ...]]


def normalize_headers(headers: Mapping[str, Iterable[str] | str] | None) -> Headers:
    """Return headers as an ordered ``name -> tuple of values`` dict."""
    if not headers:
        return {}
    result: Headers = {}
    for name, values in headers.items():
        if isinstance(values, str):
            result[name] = (values,)
        else:
            result[name] = tuple(values)
    return result


def find_header(headers: Headers, name: str) -> tuple[str, ...]:
    """Case-insensitive header lookup; empty tuple when absent."""
    lower = name.lower()
    for key, values in headers.items():
        if key.lower() == lower:
            return values
    return ()


class Options(CallforgeBaseModel):
    """Per-call transport settings.

    A handler uses its default Options unless one of the call arguments is
    an Options instance, in which case that one wins for the call.

    Attributes:
        connect_timeout: Seconds to wait for the connection
        read_timeout: Seconds to wait for response data
        follow_redirects: Whether the transport should follow 3xx responses
    """

    connect_timeout: float = Field(default=DEFAULT_CONNECT_TIMEOUT, gt=0)
    read_timeout: float = Field(default=DEFAULT_READ_TIMEOUT, gt=0)
    follow_redirects: bool = True


class Request(CallforgeBaseModel):
    """An immutable, fully expanded HTTP request ready for a transport."""

    method: HttpMethod
    url: str
    headers: Headers = Field(default_factory=dict)
    body: bytes | None = None
    charset: str = DEFAULT_CHARSET

    def header(self, name: str) -> str | None:
        """Return the first value of header ``name`` (case-insensitive)."""
        values = find_header(self.headers, name)
        return values[0] if values else None

    def text(self) -> str | None:
        """Return the body decoded with the request charset."""
        if self.body is None:
            return None
        return self.body.decode(self.charset, errors="replace")

    def __str__(self) -> str:
        return f"{self.method.value} {self.url}"


class ResponseBody:
    """A response body owned by a transport until closed.

    Subclasses provide ``length`` (None when unknown), ``read()`` and
    ``__iter__``. ``close()`` is idempotent.
    """

    def __init__(self) -> None:
        self._closed = False

    @property
    def length(self) -> int | None:
        raise NotImplementedError

    @property
    def closed(self) -> bool:
        return self._closed

    def read(self) -> bytes:
        raise NotImplementedError

    def __iter__(self) -> Iterator[bytes]:
        raise NotImplementedError

    def close(self) -> None:
        self._closed = True


class BytesBody(ResponseBody):
    """An in-memory body with a known length."""

    def __init__(self, data: bytes | str, charset: str = DEFAULT_CHARSET) -> None:
        super().__init__()
        self._data = data.encode(charset) if isinstance(data, str) else data

    @property
    def length(self) -> int:
        return len(self._data)

    def read(self) -> bytes:
        return self._data

    def __iter__(self) -> Iterator[bytes]:
        yield self._data


class StreamBody(ResponseBody):
    """A streamed body backed by a chunk iterator and a release callback.

    Args:
        chunks: Iterator producing the body in chunks
        length: Content length if advertised by the server
        on_close: Called once when the body is closed (releases the connection)
    """

    def __init__(
        self,
        chunks: Iterable[bytes],
        length: int | None = None,
        on_close: Callable[[], None] | None = None,
    ) -> None:
        super().__init__()
        self._chunks = iter(chunks)
        self._length = length
        self._on_close = on_close

    @property
    def length(self) -> int | None:
        return self._length

    def read(self) -> bytes:
        return b"".join(self)

    def __iter__(self) -> Iterator[bytes]:
        if self._closed:
            raise OSError("response body already closed")
        yield from self._chunks

    def close(self) -> None:
        if self._closed:
            return
        super().close()
        if self._on_close is not None:
            self._on_close()


class Response:
    """HTTP response returned by a Client.

    The body (if any) stays owned by the transport until ``close()``.
    Use the response as a context manager when it is handed to you
    unbuffered (raw Response return types with large or streamed bodies).

    Attributes:
        status: HTTP status code
        reason: Reason phrase (may be empty)
        headers: Ordered ``name -> tuple of values``
        body: ResponseBody or None when the response has no body
        request: The request that produced this response
    """

    def __init__(
        self,
        status: int,
        reason: str = "",
        headers: Mapping[str, Iterable[str] | str] | None = None,
        body: ResponseBody | None = None,
        request: Request | None = None,
    ) -> None:
        self.status = status
        self.reason = reason
        self.headers = normalize_headers(headers)
        self.body = body
        self.request = request

    def header(self, name: str) -> str | None:
        """Return the first value of header ``name`` (case-insensitive)."""
        values = find_header(self.headers, name)
        return values[0] if values else None

    def copy(self, *, body: ResponseBody | None = None, request: Request | None = None) -> Response:
        """Return a shallow copy, optionally replacing body or request."""
        return Response(
            status=self.status,
            reason=self.reason,
            headers=self.headers,
            body=body if body is not None else self.body,
            request=request if request is not None else self.request,
        )

    def with_body(self, data: bytes) -> Response:
        """Return a copy whose body is the given in-memory bytes."""
        return self.copy(body=BytesBody(data))

    def close(self) -> None:
        """Release the body (idempotent)."""
        if self.body is not None:
            self.body.close()

    def __enter__(self) -> Response:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Response(status={self.status}, request={self.request})"


def ensure_closed(response: Response | None) -> None:
    """Close ``response`` if present, ignoring a body that is already closed."""
    if response is not None and response.body is not None and not response.body.closed:
        response.body.close()
