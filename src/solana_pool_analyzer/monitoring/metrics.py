"""In-process metrics for pipeline runs, exportable in Prometheus text format."""

from __future__ import annotations

import math
import re
import threading
import time
from collections import defaultdict, deque
from contextlib import contextmanager
from statistics import mean
from typing import Deque, Dict, Iterator, List, MutableMapping, Optional

_METRIC_SANITIZE_RE = re.compile(r"[^a-zA-Z0-9_:]")
_QUANTILES = (("p50", 0.5), ("p90", 0.9), ("p99", 0.99))


def _sanitize_metric_name(name: str) -> str:
    """Map dotted names such as ``source.raydium.success`` to Prometheus names."""

    sanitized = _METRIC_SANITIZE_RE.sub("_", name) or "_"
    if sanitized[0].isdigit():
        sanitized = f"_{sanitized}"
    return sanitized


def _quantile(ordered: List[float], fraction: float) -> float:
    index = max(int(math.ceil(fraction * len(ordered))) - 1, 0)
    return float(ordered[min(index, len(ordered) - 1)])


class MetricsRegistry:
    """Counters, gauges and bounded sample windows guarded by one lock.

    Adapter tasks and worker threads record into the same registry, so every
    read and write goes through ``_lock``.
    """

    def __init__(self, *, max_hist_samples: int = 1024) -> None:
        self._lock = threading.RLock()
        self._max_samples = max_hist_samples
        self._counters: MutableMapping[str, float] = defaultdict(float)
        self._gauges: Dict[str, float] = {}
        self._samples: Dict[str, Deque[float]] = {}

    def increment(self, name: str, amount: float = 1.0) -> None:
        with self._lock:
            self._counters[name] += amount

    def get(self, name: str) -> float:
        with self._lock:
            return self._counters.get(name, 0.0)

    def gauge(self, name: str, value: float) -> None:
        with self._lock:
            self._gauges[name] = float(value)

    def get_gauge(self, name: str) -> Optional[float]:
        with self._lock:
            return self._gauges.get(name)

    def observe(self, name: str, value: float) -> None:
        with self._lock:
            window = self._samples.get(name)
            if window is None:
                window = self._samples[name] = deque(maxlen=self._max_samples)
            window.append(float(value))

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """Observe the wall time of the block under ``name``."""

        started = time.perf_counter()
        try:
            yield
        finally:
            self.observe(name, time.perf_counter() - started)

    def summary(self, name: str) -> Dict[str, float]:
        with self._lock:
            ordered = sorted(self._samples.get(name, ()))
        if not ordered:
            return {}
        stats = {"count": float(len(ordered)), "avg": mean(ordered)}
        for label, fraction in _QUANTILES:
            stats[label] = _quantile(ordered, fraction)
        return stats

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            counters = dict(self._counters)
            gauges = dict(self._gauges)
            names = list(self._samples)
        return {
            "counters": counters,
            "gauges": gauges,
            "histograms": {name: self.summary(name) for name in names},
        }

    def export_prometheus(self) -> str:
        snap = self.snapshot()
        lines: List[str] = []
        for kind in ("counter", "gauge"):
            for name, value in snap[f"{kind}s"].items():
                metric = _sanitize_metric_name(name)
                lines.append(f"# TYPE {metric} {kind}")
                lines.append(f"{metric} {value}")
        for name, stats in snap["histograms"].items():
            if not stats:
                continue
            metric = _sanitize_metric_name(name)
            lines.append(f"# TYPE {metric} summary")
            for label, fraction in _QUANTILES:
                lines.append(f'{metric}{{quantile="{fraction}"}} {stats[label]}')
            lines.append(f"{metric}_count {stats['count']}")
        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._samples.clear()


METRICS = MetricsRegistry()


__all__ = ["METRICS", "MetricsRegistry"]
