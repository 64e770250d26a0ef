"""In-process call metrics with Prometheus text export.

The dispatch handlers record into the process-wide collector returned by
``get_metrics()``; nothing is served over HTTP. Applications that expose
a metrics endpoint call ``export_prometheus()`` and return its text.

Series recorded by callforge:

    callforge_calls_total{status}               responses received
    callforge_call_errors_total{reason}         calls that raised, by exception type
    callforge_retries_total                     retry attempts
    callforge_operations_parsed_total{contract} operations parsed at build time
    callforge_call_duration_seconds{status}     time to response, per attempt

Example:
    >>> collector = MetricsCollector()
    >>> collector.increment_counter("callforge_calls_total", {"status": "200"})
    >>> collector.get_counter("callforge_calls_total", {"status": "200"})
    1.0
"""

from __future__ import annotations

import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import ClassVar

LabelKey = tuple[tuple[str, str], ...]

# Seconds; remote calls rarely finish under 5ms or take over 10s
DEFAULT_LATENCY_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted(labels.items())) if labels else ()


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


def _render_labels(key: LabelKey, *extra: tuple[str, str]) -> str:
    pairs = [*key, *extra]
    if not pairs:
        return ""
    return "{" + ",".join(f'{name}="{_escape(value)}"' for name, value in pairs) + "}"


class _Metric:
    kind: ClassVar[str]

    def __init__(self, name: str, help_text: str) -> None:
        self.name = name
        self.help_text = help_text
        self._lock = threading.Lock()

    def header(self) -> Iterator[str]:
        yield f"# HELP {self.name} {self.help_text}"
        yield f"# TYPE {self.name} {self.kind}"

    def samples(self) -> Iterator[str]:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class Counter(_Metric):
    """Monotonically increasing value per label combination."""

    kind = "counter"

    def __init__(self, name: str, help_text: str) -> None:
        super().__init__(name, help_text)
        self.values: dict[LabelKey, float] = {}

    def increment(self, labels: dict[str, str] | None = None, value: float = 1.0) -> None:
        key = _label_key(labels)
        with self._lock:
            self.values[key] = self.values.get(key, 0.0) + value

    def get(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self.values.get(_label_key(labels), 0.0)

    def samples(self) -> Iterator[str]:
        with self._lock:
            snapshot = dict(self.values)
        if not snapshot:
            yield f"{self.name} 0"
        for key, value in snapshot.items():
            yield f"{self.name}{_render_labels(key)} {value}"

    def clear(self) -> None:
        with self._lock:
            self.values.clear()


@dataclass
class HistogramSeries:
    """Observations for one label combination.

    ``buckets`` maps each upper bound to the number of observations less
    than or equal to it, so counts are cumulative as stored.
    """

    buckets: dict[float, float]
    total: float = 0.0
    count: float = 0.0

    @classmethod
    def empty(cls, bounds: tuple[float, ...]) -> HistogramSeries:
        return cls(buckets=dict.fromkeys(bounds, 0.0))


class Histogram(_Metric):
    """Distribution of observed values over fixed bucket bounds."""

    kind = "histogram"

    def __init__(
        self, name: str, help_text: str, buckets: tuple[float, ...] = DEFAULT_LATENCY_BUCKETS
    ) -> None:
        super().__init__(name, help_text)
        self.buckets = tuple(sorted(buckets))
        self.values: dict[LabelKey, HistogramSeries] = {}

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            series = self.values.setdefault(key, HistogramSeries.empty(self.buckets))
            for bound in self.buckets:
                if value <= bound:
                    series.buckets[bound] += 1.0
            series.total += value
            series.count += 1.0

    def get_count(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            series = self.values.get(_label_key(labels))
        return series.count if series is not None else 0.0

    def samples(self) -> Iterator[str]:
        with self._lock:
            snapshot = dict(self.values) or {(): HistogramSeries.empty(self.buckets)}
        for key, series in snapshot.items():
            for bound in self.buckets:
                labels = _render_labels(key, ("le", str(bound)))
                yield f"{self.name}_bucket{labels} {series.buckets.get(bound, 0.0)}"
            yield f"{self.name}_bucket{_render_labels(key, ('le', '+Inf'))} {series.count}"
            yield f"{self.name}_sum{_render_labels(key)} {series.total}"
            yield f"{self.name}_count{_render_labels(key)} {series.count}"

    def clear(self) -> None:
        with self._lock:
            self.values.clear()


@dataclass
class MetricsCollector:
    """Registry of named counters and histograms.

    Recording into an unregistered name is ignored, so handlers never
    fail because of metrics.
    """

    DEFAULT_COUNTERS: ClassVar[dict[str, str]] = {
        "callforge_calls_total": "Responses received, by status",
        "callforge_call_errors_total": "Calls that raised, by exception type",
        "callforge_retries_total": "Retry attempts",
        "callforge_operations_parsed_total": "Operations parsed from contracts, by contract",
    }
    DEFAULT_HISTOGRAMS: ClassVar[dict[str, str]] = {
        "callforge_call_duration_seconds": "Time from send to response, per attempt",
    }

    _counters: dict[str, Counter] = field(default_factory=dict)
    _histograms: dict[str, Histogram] = field(default_factory=dict)
    _started: float = field(default_factory=time.time)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __post_init__(self) -> None:
        for name, help_text in self.DEFAULT_COUNTERS.items():
            self.register_counter(name, help_text)
        for name, help_text in self.DEFAULT_HISTOGRAMS.items():
            self.register_histogram(name, help_text)

    def register_counter(self, name: str, help_text: str) -> None:
        """Add a counter; an existing one with the same name is kept."""
        with self._lock:
            self._counters.setdefault(name, Counter(name, help_text))

    def register_histogram(
        self, name: str, help_text: str, buckets: tuple[float, ...] = DEFAULT_LATENCY_BUCKETS
    ) -> None:
        """Add a histogram; an existing one with the same name is kept."""
        with self._lock:
            self._histograms.setdefault(name, Histogram(name, help_text, buckets))

    def increment_counter(
        self, name: str, labels: dict[str, str] | None = None, value: float = 1.0
    ) -> None:
        counter = self._counters.get(name)
        if counter is not None:
            counter.increment(labels, value)

    def observe_histogram(
        self, name: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        histogram = self._histograms.get(name)
        if histogram is not None:
            histogram.observe(value, labels)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> float:
        counter = self._counters.get(name)
        return counter.get(labels) if counter is not None else 0.0

    def get_histogram_count(self, name: str, labels: dict[str, str] | None = None) -> float:
        histogram = self._histograms.get(name)
        return histogram.get_count(labels) if histogram is not None else 0.0

    def _metrics(self) -> list[_Metric]:
        with self._lock:
            return [*self._counters.values(), *self._histograms.values()]

    def export_prometheus(self) -> str:
        """Render every metric in the Prometheus text exposition format."""
        lines: list[str] = []
        for metric in self._metrics():
            lines.extend(metric.header())
            lines.extend(metric.samples())
        lines.append("# HELP callforge_process_uptime_seconds Seconds since the collector started")
        lines.append("# TYPE callforge_process_uptime_seconds gauge")
        lines.append(f"callforge_process_uptime_seconds {time.time() - self._started:.3f}")
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Zero every series, keeping registrations."""
        for metric in self._metrics():
            metric.clear()


_collector: MetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    """Return the process-wide collector, creating it on first use."""
    global _collector
    with _collector_lock:
        if _collector is None:
            _collector = MetricsCollector()
        return _collector


def reset_metrics() -> None:
    """Zero the process-wide collector's series."""
    with _collector_lock:
        if _collector is not None:
            _collector.reset()


__all__ = [
    "DEFAULT_LATENCY_BUCKETS",
    "Counter",
    "Histogram",
    "HistogramSeries",
    "MetricsCollector",
    "get_metrics",
    "reset_metrics",
]
