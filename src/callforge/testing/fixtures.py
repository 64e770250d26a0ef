"""Pytest fixtures and context managers for callforge tests.

This module provides shared fixtures and context managers to reduce
boilerplate when testing contracts and handlers against scripted
transports.

Fixtures (use with pytest):
    mock_client: Fresh MockClient for request/response tests.
    mock_async_client: Fresh MockAsyncClient for async handler tests.
    github_contract: The GitHub contract class used in examples.
    builder: CallforgeBuilder wired to the mock clients, decoding JSON, never retrying.

Context managers:
    mock_api(): Sync context manager yielding an ApiClient and its MockClient.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated

import pytest
from pydantic import BaseModel

from callforge.builder import ApiClient, Callforge, CallforgeBuilder
from callforge.codec import JsonDecoder
from callforge.contract.annotations import Param, headers, request_line
from callforge.testing.mocks import MockAsyncClient, MockClient
from callforge.transport.retry import NEVER_RETRY

DEFAULT_TEST_BASE_URL = "http://localhost:9999"


class Contributor(BaseModel):
    login: str
    contributions: int


class Issue(BaseModel):
    title: str
    body: str = ""


@headers("Accept: application/json")
class GitHub:
    """Small GitHub contract used across the test suite."""

    @request_line("GET /repos/{owner}/{repo}/contributors")
    def contributors(
        self,
        owner: Annotated[str, Param("owner")],
        repo: Annotated[str, Param("repo")],
    ) -> list[Contributor]: ...

    @request_line("POST /repos/{owner}/{repo}/issues")
    @headers("Content-Type: application/json")
    def create_issue(
        self,
        issue: Issue,
        owner: Annotated[str, Param("owner")],
        repo: Annotated[str, Param("repo")],
    ) -> None: ...


@pytest.fixture
def mock_client() -> MockClient:
    """Create a fresh MockClient for the test.

    Returns:
        A MockClient instance (cleared between tests via fresh fixture).
    """
    return MockClient()


@pytest.fixture
def mock_async_client() -> MockAsyncClient:
    """Create a fresh MockAsyncClient for the test."""
    return MockAsyncClient()


@pytest.fixture
def github_contract() -> type[GitHub]:
    """The GitHub contract class (contributors, create_issue)."""
    return GitHub


@pytest.fixture
def builder(mock_client: MockClient, mock_async_client: MockAsyncClient) -> CallforgeBuilder:
    """Builder using the mock transports, JsonDecoder and no retries.

    Returns:
        A CallforgeBuilder; configure it further and call target().
    """
    return (
        Callforge.builder()
        .client(mock_client)
        .async_client(mock_async_client)
        .decoder(JsonDecoder())
        .retryer(NEVER_RETRY)
    )


@contextmanager
def mock_api(
    api: type,
    base_url: str = DEFAULT_TEST_BASE_URL,
    client: MockClient | None = None,
) -> Iterator[tuple[ApiClient, MockClient]]:
    """Context manager that targets ``api`` at a MockClient for the scope.

    Responses are decoded with JsonDecoder. On exit, the mock client is
    cleared (requests and outcomes reset).

    Args:
        api: Contract class to target.
        base_url: Target URL (default: localhost:9999).
        client: MockClient to use (a new one by default).

    Yields:
        Tuple of the ApiClient and its MockClient.

    Example:
        >>> with mock_api(GitHub) as (github, transport):  # doctest: +SKIP
        ...     transport.set_response(200, b"[]")
        ...     github.invoke("contributors", "OpenFeign", "feign")
    """
    transport = client if client is not None else MockClient()
    api_client = (
        Callforge.builder()
        .client(transport)
        .decoder(JsonDecoder())
        .retryer(NEVER_RETRY)
        .target(api, base_url)
    )
    try:
        yield api_client, transport
    finally:
        transport.clear()


__all__ = [
    "DEFAULT_TEST_BASE_URL",
    "Contributor",
    "GitHub",
    "Issue",
    "builder",
    "github_contract",
    "mock_api",
    "mock_async_client",
    "mock_client",
]
