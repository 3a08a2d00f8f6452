"""
Minimal in-process metrics for the scheduling passes.

Counters and gauges without external dependencies, exported as a dict or in
Prometheus text format by the API.
"""

import threading
from dataclasses import dataclass, field


@dataclass
class Counter:
    """Thread-safe counter metric."""

    name: str
    description: str
    _value: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass
class Gauge:
    """Thread-safe gauge metric."""

    name: str
    description: str
    _value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def set(self, value: float) -> None:
        with self._lock:
            self._value = value

    @property
    def value(self) -> float:
        with self._lock:
            return self._value


class MetricsRegistry:
    """Central registry for all metrics."""

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, description: str = "") -> Counter:
        """Get or create a counter."""
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name, description)
            return self._counters[name]

    def gauge(self, name: str, description: str = "") -> Gauge:
        """Get or create a gauge."""
        with self._lock:
            if name not in self._gauges:
                self._gauges[name] = Gauge(name, description)
            return self._gauges[name]

    def to_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines: list[str] = []
        with self._lock:
            for kind, metrics in (("counter", self._counters), ("gauge", self._gauges)):
                for name in sorted(metrics):
                    metric = metrics[name]
                    if metric.description:
                        lines.append(f"# HELP {name} {metric.description}")
                    lines.append(f"# TYPE {name} {kind}")
                    lines.append(f"{name} {metric.value}")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, dict[str, float | int | str]]:
        result: dict[str, dict[str, float | int | str]] = {}
        with self._lock:
            for name, c in self._counters.items():
                result[name] = {"type": "counter", "value": c.value}
            for name, g in self._gauges.items():
                result[name] = {"type": "gauge", "value": g.value}
        return result


# Global registry instance
REGISTRY = MetricsRegistry()

moves_total = REGISTRY.counter("slotkeeper_moves_total", "Verified relocations")
moves_unverified = REGISTRY.counter(
    "slotkeeper_moves_unverified_total", "Relocations whose write could not be verified"
)
items_unplaced = REGISTRY.counter(
    "slotkeeper_items_unplaced_total", "Items for which no slot was found"
)
pass_failures = REGISTRY.counter("slotkeeper_pass_failures_total", "Pass phases that failed")
alerts_sent = REGISTRY.counter("slotkeeper_alerts_sent_total", "Operator messages posted")
