"""Observability module for callforge.

Structured logging, per-call logging and in-process metrics.

Example:
    >>> from callforge.observability import get_logger, get_metrics
    >>>
    >>> logger = get_logger(__name__)
    >>> logger.info("callforge.call.request", config_key="GitHub#contributors(str,str)")
    >>>
    >>> metrics = get_metrics()
    >>> metrics.increment_counter("callforge_calls_total", {"status": "200"})
"""

from callforge.observability.call_logger import CallLogger
from callforge.observability.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_debug_mode,
    sanitize_for_logging,
)
from callforge.observability.metrics import (
    MetricsCollector,
    get_metrics,
    reset_metrics,
)

__all__ = [
    "CallLogger",
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
    "get_metrics",
    "is_debug_mode",
    "reset_metrics",
    "MetricsCollector",
    "sanitize_for_logging",
]
