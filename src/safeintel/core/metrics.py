# ─────────────────────────────────────────────────────────────────────
# SafeIntel — Metrics & Observability
# (C) 1998-2026 Miroslav Sotek. All rights reserved.
# License: GNU AGPL v3 | Commercial licensing available
# ─────────────────────────────────────────────────────────────────────
"""
Prometheus-style metrics collection for the build and query pipelines.

Usage::

    from safeintel.core.metrics import metrics

    metrics.inc("queries_total")
    with metrics.timer("query_duration_seconds"):
        ...
    print(metrics.prometheus_format())
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field

QUERY_DURATION_BUCKETS = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0)
SIMILARITY_BUCKETS = (0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0)
EMBED_BATCH_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0)
HISTOGRAM_MAX_SAMPLES = 100_000


@dataclass
class _Counter:
    """Monotonically increasing counter, optionally split by label."""

    value: float = 0.0
    labels: dict[str, float] = field(default_factory=dict)

    def inc(self, amount: float = 1.0, label: str = "") -> None:
        if label:
            self.labels[label] = self.labels.get(label, 0.0) + amount
        else:
            self.value += amount

    def total(self) -> float:
        return self.value + sum(self.labels.values())


@dataclass
class _Histogram:
    """Histogram with configurable bucket boundaries."""

    buckets: tuple[float, ...] = (0.1, 0.25, 0.5, 0.75, 0.9, 1.0)
    _values: list[float] = field(default_factory=list)
    max_samples: int = HISTOGRAM_MAX_SAMPLES

    def observe(self, value: float) -> None:
        self._values.append(value)
        if len(self._values) > self.max_samples:
            self._values = self._values[-(self.max_samples // 2) :]

    @property
    def count(self) -> int:
        return len(self._values)

    @property
    def total(self) -> float:
        return sum(self._values)

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0

    def quantile(self, q: float) -> float:
        if not self._values:
            return 0.0
        s = sorted(self._values)
        return s[int(q * (len(s) - 1))]

    def bucket_counts(self) -> dict[str, int]:
        result = {f"le_{b}": sum(1 for v in self._values if v <= b) for b in self.buckets}
        result["le_+Inf"] = len(self._values)
        return result


class MetricsCollector:
    """Thread-safe metrics collector with Prometheus-compatible output."""

    _METRIC_HELP: dict[str, str] = {
        "queries_total": "Questions answered, by resolution path",
        "exact_matches_total": "Questions resolved by the exact-match fast path",
        "no_match_total": "Questions with no matching record",
        "embedding_calls_total": "Embedding provider requests",
        "embed_retries_total": "Embedding batch retries during index builds",
        "upstream_errors_total": "Provider failures surfaced to callers",
        "suggestions_total": "Suggestion requests served",
        "http_requests_total": "HTTP requests by endpoint and status",
        "query_duration_seconds": "End-to-end question latency",
        "top_similarity": "Best semantic similarity per question",
        "embed_batch_seconds": "Embedding batch latency during builds",
    }

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._lock = threading.Lock()
        self._counters: dict[str, _Counter] = {
            "queries_total": _Counter(),
            "exact_matches_total": _Counter(),
            "no_match_total": _Counter(),
            "embedding_calls_total": _Counter(),
        }
        self._histograms: dict[str, _Histogram] = {
            "query_duration_seconds": _Histogram(buckets=QUERY_DURATION_BUCKETS),
            "top_similarity": _Histogram(buckets=SIMILARITY_BUCKETS),
            "embed_batch_seconds": _Histogram(buckets=EMBED_BATCH_BUCKETS),
        }

    def inc(self, name: str, amount: float = 1.0, label: str = "") -> None:
        """Increment a counter."""
        if not self.enabled:
            return
        with self._lock:
            if name not in self._counters:
                self._counters[name] = _Counter()
            self._counters[name].inc(amount, label)

    def observe(self, name: str, value: float) -> None:
        """Record a histogram observation."""
        if not self.enabled:
            return
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = _Histogram()
            self._histograms[name].observe(value)

    def timer(self, histogram_name: str) -> _Timer:
        """Context manager that records elapsed time to a histogram."""
        return _Timer(self, histogram_name)

    def get_metrics(self) -> dict:
        """Return all metrics as a plain dict."""
        with self._lock:
            result: dict = {"counters": {}, "histograms": {}}
            for name, c in self._counters.items():
                result["counters"][name] = {
                    "total": c.total(),
                    "labels": dict(c.labels),
                }
            for name, h in self._histograms.items():
                result["histograms"][name] = {
                    "count": h.count,
                    "total": h.total,
                    "mean": h.mean,
                    "p50": h.quantile(0.5),
                    "p90": h.quantile(0.9),
                    "p99": h.quantile(0.99),
                }
            return result

    def prometheus_format(self) -> str:
        """Render metrics in Prometheus text exposition format."""
        lines: list[str] = []
        with self._lock:
            for name, c in self._counters.items():
                fqn = f"safeintel_{name}"
                lines.append(f"# HELP {fqn} {self._METRIC_HELP.get(name, name)}")
                lines.append(f"# TYPE {fqn} counter")
                if c.labels:
                    for label, val in c.labels.items():
                        lines.append(f'{fqn}{{label="{label}"}} {val}')
                else:
                    lines.append(f"{fqn} {c.value}")
            for name, h in self._histograms.items():
                fqn = f"safeintel_{name}"
                lines.append(f"# HELP {fqn} {self._METRIC_HELP.get(name, name)}")
                lines.append(f"# TYPE {fqn} histogram")
                for bucket_name, count in h.bucket_counts().items():
                    le = bucket_name.replace("le_", "")
                    lines.append(f'{fqn}_bucket{{le="{le}"}} {count}')
                lines.append(f"{fqn}_count {h.count}")
                lines.append(f"{fqn}_sum {h.total}")
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Reset all metrics (for testing)."""
        with self._lock:
            for c in self._counters.values():
                c.value = 0.0
                c.labels.clear()
            for h in self._histograms.values():
                h._values.clear()


class _Timer:
    """Context manager for timing operations."""

    def __init__(self, collector: MetricsCollector, name: str) -> None:
        self._collector = collector
        self._name = name
        self._start = 0.0

    def __enter__(self) -> _Timer:
        self._start = time.monotonic()
        return self

    def __exit__(self, *args: object) -> None:
        self._collector.observe(self._name, time.monotonic() - self._start)


# Module-level singleton
metrics = MetricsCollector()
