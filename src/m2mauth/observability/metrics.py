"""m2mauth Metrics Collection.

Prometheus-compatible counters and histograms for key set retrieval,
token validation and token acquisition. Collected in-process; the host
application decides how (and whether) to expose ``export_prometheus()``.

Example:
    >>> from m2mauth.observability.metrics import get_metrics
    >>> metrics = get_metrics()
    >>> metrics.increment_counter("m2mauth_jwks_fetch_total", {"provider": "auth0"})
    >>> print(metrics.export_prometheus())
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import ClassVar

LabelKey = tuple[tuple[str, str], ...]

# Outbound calls carry a fixed 2 second timeout; buckets stop just past it.
DEFAULT_LATENCY_BUCKETS = (0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 2.5)


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted((labels or {}).items()))


def _format_labels(labels: LabelKey, extra: tuple[str, str] | None = None) -> str:
    pairs = [*labels, extra] if extra is not None else list(labels)
    if not pairs:
        return ""
    rendered = ",".join(
        '{}="{}"'.format(name, value.replace("\\", "\\\\").replace('"', '\\"')) for name, value in pairs
    )
    return "{" + rendered + "}"


@dataclass
class Counter:
    """A monotonically increasing counter, one series per label combination."""

    name: str
    help_text: str
    values: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def increment(self, labels: dict[str, str] | None = None, value: float = 1.0) -> None:
        key = _label_key(labels)
        with self._lock:
            self.values[key] = self.values.get(key, 0.0) + value

    def get(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self.values.get(_label_key(labels), 0.0)

    def clear(self) -> None:
        with self._lock:
            self.values.clear()

    def render(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} counter"]
        with self._lock:
            if not self.values:
                lines.append(f"{self.name} 0")
            lines.extend(f"{self.name}{_format_labels(key)} {value}" for key, value in self.values.items())
        return lines


@dataclass
class Histogram:
    """Cumulative-bucket histogram.

    Attributes:
        name: Metric name
        help_text: Human-readable description
        buckets: Upper bounds, ascending
        counts: Per label combination, observations at or below each bound
        sums: Per label combination, the sum of observed values
        totals: Per label combination, the number of observations
    """

    name: str
    help_text: str
    buckets: tuple[float, ...] = DEFAULT_LATENCY_BUCKETS
    counts: dict[LabelKey, dict[float, float]] = field(default_factory=dict)
    sums: dict[LabelKey, float] = field(default_factory=dict)
    totals: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            bucket_counts = self.counts.setdefault(key, dict.fromkeys(self.buckets, 0.0))
            for bound in self.buckets:
                if value <= bound:
                    bucket_counts[bound] += 1.0
            self.sums[key] = self.sums.get(key, 0.0) + value
            self.totals[key] = self.totals.get(key, 0.0) + 1.0

    def get_count(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self.totals.get(_label_key(labels), 0.0)

    def clear(self) -> None:
        with self._lock:
            self.counts.clear()
            self.sums.clear()
            self.totals.clear()

    def render(self) -> list[str]:
        lines = [f"# HELP {self.name} {self.help_text}", f"# TYPE {self.name} histogram"]
        with self._lock:
            for key, bucket_counts in self.counts.items():
                for bound in self.buckets:
                    lines.append(f"{self.name}_bucket{_format_labels(key, ('le', str(bound)))} {bucket_counts[bound]}")
                total = self.totals.get(key, 0.0)
                lines.append(f"{self.name}_bucket{_format_labels(key, ('le', '+Inf'))} {total}")
                lines.append(f"{self.name}_sum{_format_labels(key)} {self.sums.get(key, 0.0)}")
                lines.append(f"{self.name}_count{_format_labels(key)} {total}")
        return lines


class MetricsCollector:
    """Registry of the m2mauth metrics with Prometheus text export.

    Thread-safe; unknown metric names are ignored on write and read as zero.
    """

    DEFAULT_COUNTERS: ClassVar[dict[str, str]] = {
        "m2mauth_jwks_fetch_total": "Total number of JWKS documents fetched from providers",
        "m2mauth_jwks_fetch_errors_total": "Total number of failed JWKS fetches",
        "m2mauth_jwks_parse_total": "Total number of JWKS documents parsed into key sets",
        "m2mauth_token_validations_total": "Total number of per-provider token validations",
        "m2mauth_token_requests_total": "Total number of outbound access token requests",
    }

    DEFAULT_HISTOGRAMS: ClassVar[dict[str, str]] = {
        "m2mauth_http_request_duration_seconds": "Outbound HTTP request duration in seconds",
    }

    def __init__(self) -> None:
        self._counters = {name: Counter(name, help_text) for name, help_text in self.DEFAULT_COUNTERS.items()}
        self._histograms = {
            name: Histogram(name, help_text) for name, help_text in self.DEFAULT_HISTOGRAMS.items()
        }
        self._started = time.time()

    def increment_counter(self, name: str, labels: dict[str, str] | None = None, value: float = 1.0) -> None:
        counter = self._counters.get(name)
        if counter is not None:
            counter.increment(labels, value)

    def observe_histogram(self, name: str, value: float, labels: dict[str, str] | None = None) -> None:
        histogram = self._histograms.get(name)
        if histogram is not None:
            histogram.observe(value, labels)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> float:
        counter = self._counters.get(name)
        return counter.get(labels) if counter is not None else 0.0

    def get_histogram_count(self, name: str, labels: dict[str, str] | None = None) -> float:
        histogram = self._histograms.get(name)
        return histogram.get_count(labels) if histogram is not None else 0.0

    def export_prometheus(self) -> str:
        """Render every metric plus a process uptime gauge in text exposition format."""
        lines: list[str] = []
        for counter in self._counters.values():
            lines.extend(counter.render())
        for histogram in self._histograms.values():
            lines.extend(histogram.render())
        lines.append("# HELP m2mauth_process_uptime_seconds Time since collector start")
        lines.append("# TYPE m2mauth_process_uptime_seconds gauge")
        lines.append(f"m2mauth_process_uptime_seconds {time.time() - self._started:.3f}")
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Zero every metric. Useful for testing."""
        for counter in self._counters.values():
            counter.clear()
        for histogram in self._histograms.values():
            histogram.clear()


_metrics_collector: MetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    """Get the process-wide metrics collector."""
    global _metrics_collector
    with _collector_lock:
        if _metrics_collector is None:
            _metrics_collector = MetricsCollector()
        return _metrics_collector


def reset_metrics() -> None:
    """Reset the process-wide collector. Useful for testing."""
    with _collector_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset()
