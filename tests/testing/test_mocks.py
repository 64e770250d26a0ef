"""Unit tests for MockClient (callforge.testing.mocks)."""

import time

import pytest

from callforge.models.enums import HttpMethod
from callforge.models.http import Options, Request
from callforge.testing.mocks import MockAsyncClient, MockClient, MockResponse, MockResponseBody


def make_request(path: str = "/ping") -> Request:
    return Request(method=HttpMethod.GET, url=f"http://localhost:9999{path}")


class TestMockClient:
    """Tests for MockClient scripted outcomes and request recording."""

    def test_queued_outcomes_are_consumed_in_order(self) -> None:
        """Queued responses come back one per call, then the default."""
        client = MockClient(MockResponse(200, b"default"))
        client.enqueue(MockResponse(201, b"first"), MockResponse(202, b"second"))

        statuses = [client.execute(make_request(), Options()).status for _ in range(3)]

        assert statuses == [201, 202, 200]
        assert len(client.requests) == 3
        assert len(client.options) == 3

    def test_queued_exception_is_raised(self) -> None:
        client = MockClient().enqueue(ConnectionResetError("reset"), MockResponse(200))

        with pytest.raises(ConnectionResetError):
            client.execute(make_request(), Options())
        assert client.execute(make_request(), Options()).status == 200

    def test_no_response_configured(self) -> None:
        client = MockClient()

        with pytest.raises(AssertionError, match="no response configured for GET"):
            client.execute(make_request(), Options())

    def test_set_response_headers_and_reason(self) -> None:
        client = MockClient()
        client.set_response(404, "missing", {"X-Trace": "abc"}, reason="Not Found")

        response = client.execute(make_request(), Options())

        assert response.status == 404
        assert response.reason == "Not Found"
        assert response.header("x-trace") == "abc"
        assert response.body is not None
        assert response.body.read() == b"missing"
        assert response.request == make_request()

    def test_response_without_body(self) -> None:
        client = MockClient(MockResponse(204, body=None))

        assert client.execute(make_request(), Options()).body is None

    def test_failure_is_raised_once(self) -> None:
        """set_failure raises on the next call only."""
        client = MockClient(MockResponse(200))
        client.set_failure(TimeoutError("slow"))

        with pytest.raises(TimeoutError):
            client.execute(make_request(), Options())
        assert client.execute(make_request(), Options()).status == 200

    def test_delay(self) -> None:
        client = MockClient(MockResponse(200))
        client.set_delay(0.05)

        start = time.perf_counter()
        client.execute(make_request(), Options())

        assert time.perf_counter() - start >= 0.05

    def test_negative_delay_is_clamped(self) -> None:
        client = MockClient(MockResponse(200))
        client.set_delay(-1)

        assert client._delay_seconds == 0.0

    def test_last_request(self) -> None:
        client = MockClient(MockResponse(200))
        client.execute(make_request("/a"), Options())
        client.execute(make_request("/b"), Options())

        assert client.last_request.url == "http://localhost:9999/b"

    def test_last_request_without_requests(self) -> None:
        with pytest.raises(AssertionError, match="no request was executed"):
            _ = MockClient().last_request

    def test_clear(self) -> None:
        client = MockClient(MockResponse(200)).enqueue(MockResponse(500))
        client.execute(make_request(), Options())
        client.set_failure(OSError())

        client.reset()

        assert client.requests == []
        assert client.responses == []
        with pytest.raises(AssertionError):
            client.execute(make_request(), Options())

    def test_each_response_has_fresh_body(self) -> None:
        client = MockClient(MockResponse(200, b"x"))

        first = client.execute(make_request(), Options())
        second = client.execute(make_request(), Options())

        assert first.body is not second.body


class TestMockAsyncClient:
    """Tests for the awaitable variant."""

    async def test_execute(self) -> None:
        client = MockAsyncClient(MockResponse(200, b"pong"))

        response = await client.execute(make_request(), Options())

        assert response.body is not None
        assert response.body.read() == b"pong"
        assert client.last_request == make_request()

    async def test_failure(self) -> None:
        client = MockAsyncClient()
        client.set_failure(ConnectionRefusedError())

        with pytest.raises(ConnectionRefusedError):
            await client.execute(make_request(), Options())


class TestMockResponseBody:
    """Tests for close-tracking bodies."""

    def test_read_counts_and_close(self) -> None:
        body = MockResponseBody("héllo")

        assert body.length == len("héllo".encode())
        assert body.read() == "héllo".encode()
        assert body.reads == 1
        body.close()
        body.close()
        assert body.closed
        assert body.close_count == 2

    def test_read_after_close(self) -> None:
        body = MockResponseBody(b"x")
        body.close()

        with pytest.raises(OSError, match="already closed"):
            body.read()

    def test_unknown_length(self) -> None:
        assert MockResponseBody(b"abc", known_length=False).length is None

    def test_read_error(self) -> None:
        body = MockResponseBody(b"abc", read_error=ConnectionResetError("cut"))

        with pytest.raises(ConnectionResetError):
            body.read()
