"""Shared pytest fixtures for callforge tests.

This module provides common fixtures used across multiple test modules,
reducing duplication and ensuring consistency in test data.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from callforge.observability.metrics import get_metrics, reset_metrics

# Load callforge.testing fixtures (mock_client, mock_async_client, github_contract, builder)
pytest_plugins = ["callforge.testing.fixtures"]


class FakeClock:
    """Deterministic clock for retry tests (epoch seconds)."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    """Clock frozen at a fixed epoch until advanced."""
    return FakeClock()


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Replace time.sleep in the retry module; returns the recorded intervals."""
    slept: list[float] = []
    monkeypatch.setattr("callforge.transport.retry.time.sleep", slept.append)
    return slept


@pytest.fixture(autouse=True)
def _isolate_metrics() -> Iterator[None]:
    """Give every test a fresh global metrics collector."""
    reset_metrics()
    get_metrics()
    yield
    reset_metrics()
