"""Callforge testing utilities for easier test authoring.

This package provides pytest fixtures, mock transports, and custom
assertions to reduce boilerplate when testing contracts and handlers.

Modules:
    fixtures: Pytest fixtures (mock_client, mock_async_client, builder)
              and the mock_api context manager.
    mocks: MockClient / MockAsyncClient with scripted responses and
           request recording, plus close-tracking bodies.
    assertions: Custom assertions (assert_request, assert_header,
              assert_all_closed).

Example:
    >>> from callforge.testing import MockClient, MockResponse
    >>> client = MockClient(MockResponse(200, b"pong"))
"""

from callforge.testing.assertions import assert_all_closed, assert_header, assert_request
from callforge.testing.mocks import MockAsyncClient, MockClient, MockResponse, MockResponseBody

__all__ = [
    "MockAsyncClient",
    "MockClient",
    "MockResponse",
    "MockResponseBody",
    "assert_all_closed",
    "assert_header",
    "assert_request",
]
