"""Transport protocols and the httpx adapters.

The engine only talks to the ``Client`` / ``AsyncClient`` protocols. The
httpx adapters below are the stock implementations: they map Options to
``httpx.Timeout``, turn ``httpx.TransportError`` into TransportError and
wrap the httpx response body so that closing it releases the connection.

Example:
    >>> import httpx
    >>> from callforge.models.enums import HttpMethod
    >>> from callforge.models.http import Options, Request
    >>> transport = httpx.MockTransport(lambda r: httpx.Response(200, text="pong"))
    >>> with HttpxClient(transport=transport) as client:
    ...     response = client.execute(
    ...         Request(method=HttpMethod.GET, url="https://api.example.com/ping"), Options()
    ...     )
    ...     response.body.read()
    b'pong'
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol, runtime_checkable

import httpx

from callforge.errors import TransportError
from callforge.models.http import BytesBody, Options, Request, Response, StreamBody
from callforge.observability.logging import get_logger
from callforge.utils.sanitization import sanitize_url

logger = get_logger(__name__)


@runtime_checkable
class Client(Protocol):
    """Sends one request and returns the response.

    Raises:
        OSError: On I/O failure (TransportError or any OSError subclass)
    """

    def execute(self, request: Request, options: Options) -> Response: ...


@runtime_checkable
class AsyncClient(Protocol):
    async def execute(self, request: Request, options: Options) -> Response: ...


def _timeout(options: Options) -> httpx.Timeout:
    return httpx.Timeout(options.read_timeout, connect=options.connect_timeout)


def _build_request(
    client: httpx.Client | httpx.AsyncClient, request: Request, options: Options
) -> httpx.Request:
    headers = [(name, value) for name, values in request.headers.items() for value in values]
    return client.build_request(
        request.method.value,
        request.url,
        headers=headers,
        content=request.body,
        timeout=_timeout(options),
    )


def _content_length(response: httpx.Response) -> int | None:
    # Content-Length counts encoded bytes; iter_bytes() yields decoded ones
    if response.headers.get("content-encoding"):
        return None
    value = response.headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _headers(response: httpx.Response) -> dict[str, list[str]]:
    headers: dict[str, list[str]] = {}
    for name, value in response.headers.multi_items():
        headers.setdefault(name, []).append(value)
    return headers


def _chunks(response: httpx.Response) -> Iterator[bytes]:
    try:
        yield from response.iter_bytes()
    except httpx.TransportError as exc:
        raise TransportError(f"{type(exc).__name__} reading response body: {exc}") from exc


def _transport_error(request: Request, exc: httpx.TransportError) -> TransportError:
    logger.debug(
        "callforge.transport.send_failed",
        method=request.method.value,
        url=sanitize_url(request.url),
        error=type(exc).__name__,
    )
    return TransportError(
        f"{type(exc).__name__} on {request.method.value} {sanitize_url(request.url)}: {exc}"
    )


class HttpxClient:
    """Synchronous Client backed by ``httpx.Client``.

    Response bodies are streamed; the returned Response owns the httpx
    response until its body is closed.

    Args:
        client: Existing httpx client (not closed by this adapter)
        transport: httpx transport for a client created here (e.g. MockTransport)
    """

    def __init__(
        self,
        client: httpx.Client | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else httpx.Client(transport=transport)

    def execute(self, request: Request, options: Options) -> Response:
        httpx_request = _build_request(self._client, request, options)
        try:
            httpx_response = self._client.send(
                httpx_request, stream=True, follow_redirects=options.follow_redirects
            )
        except httpx.TransportError as exc:
            raise _transport_error(request, exc) from exc

        return Response(
            status=httpx_response.status_code,
            reason=httpx_response.reason_phrase,
            headers=_headers(httpx_response),
            body=StreamBody(
                _chunks(httpx_response),
                length=_content_length(httpx_response),
                on_close=httpx_response.close,
            ),
            request=request,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> HttpxClient:
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self.close()


class AsyncHttpxClient:
    """Asynchronous Client backed by ``httpx.AsyncClient``.

    The body is read in full before returning, so the Response never
    holds an open connection.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient(transport=transport)

    async def execute(self, request: Request, options: Options) -> Response:
        httpx_request = _build_request(self._client, request, options)
        try:
            httpx_response = await self._client.send(
                httpx_request, follow_redirects=options.follow_redirects
            )
        except httpx.TransportError as exc:
            raise _transport_error(request, exc) from exc

        return Response(
            status=httpx_response.status_code,
            reason=httpx_response.reason_phrase,
            headers=_headers(httpx_response),
            body=BytesBody(httpx_response.content),
            request=request,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> AsyncHttpxClient:
        return self

    async def __aexit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        await self.aclose()


__all__ = ["AsyncClient", "AsyncHttpxClient", "Client", "HttpxClient"]
