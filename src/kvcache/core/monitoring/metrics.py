"""
Cache Metrics Collection

Lightweight in-process metrics for cache hit rates, write failures and
disk I/O timings across all kvcache drivers.
"""

import logging
import time
import threading
from typing import Dict, List, Optional
from dataclasses import dataclass, field
from collections import deque
from enum import Enum


logger = logging.getLogger(__name__)


class MetricType(Enum):
    """Types of metrics that can be collected."""
    COUNTER = "counter"           # Incrementing values
    TIMER = "timer"              # Timing measurements


@dataclass
class MetricValue:
    """Container for a metric value with metadata."""
    value: float
    timestamp: float = field(default_factory=time.time)
    tags: Dict[str, str] = field(default_factory=dict)


@dataclass
class MetricSummary:
    """Summary statistics for a metric."""
    count: int = 0
    sum: float = 0.0
    min: float = float('inf')
    max: float = float('-inf')
    avg: float = 0.0
    p50: float = 0.0
    p95: float = 0.0


class Metric:
    """
    Base metric class for collecting and aggregating performance data.
    """

    def __init__(self, name: str, metric_type: MetricType,
                 description: str = "", max_samples: int = 1000):
        """
        Initialize metric.

        Args:
            name: Metric name
            metric_type: Type of metric
            description: Human-readable description
            max_samples: Maximum number of samples to keep
        """
        self.name = name
        self.type = metric_type
        self.description = description

        self._values = deque(maxlen=max_samples)
        self._lock = threading.Lock()

    def record(self, value: float, tags: Optional[Dict[str, str]] = None) -> None:
        """Record a new metric value."""
        with self._lock:
            self._values.append(MetricValue(value=value, tags=tags or {}))

    def increment(self, amount: float = 1.0, tags: Optional[Dict[str, str]] = None) -> None:
        """Increment counter metric."""
        if self.type != MetricType.COUNTER:
            raise ValueError("increment() only valid for COUNTER metrics")

        # Counters keep the running total as their latest sample
        current_total = self._values[-1].value if self._values else 0.0
        self.record(current_total + amount, tags)

    def time_block(self, tags: Optional[Dict[str, str]] = None) -> "TimerContext":
        """Context manager for timing code blocks."""
        if self.type != MetricType.TIMER:
            raise ValueError("time_block() only valid for TIMER metrics")

        return TimerContext(self, tags)

    @property
    def current(self) -> float:
        """Latest recorded value (running total for counters)."""
        with self._lock:
            return self._values[-1].value if self._values else 0.0

    def get_summary(self) -> MetricSummary:
        """Get summary statistics for the metric."""
        with self._lock:
            values = sorted(v.value for v in self._values)

        if not values:
            return MetricSummary()

        count = len(values)
        total = sum(values)
        return MetricSummary(
            count=count,
            sum=total,
            min=values[0],
            max=values[-1],
            avg=total / count,
            p50=self._percentile(values, 0.5),
            p95=self._percentile(values, 0.95),
        )

    def _percentile(self, sorted_values: List[float], percentile: float) -> float:
        """Calculate percentile from sorted values."""
        index = percentile * (len(sorted_values) - 1)
        lower_index = int(index)
        upper_index = min(lower_index + 1, len(sorted_values) - 1)

        if lower_index == upper_index:
            return sorted_values[lower_index]

        # Linear interpolation
        weight = index - lower_index
        return (sorted_values[lower_index] * (1 - weight) +
                sorted_values[upper_index] * weight)

    def clear(self) -> None:
        """Clear all metric values."""
        with self._lock:
            self._values.clear()


class TimerContext:
    """Context manager for timing operations."""

    def __init__(self, metric: Metric, tags: Optional[Dict[str, str]] = None):
        self.metric = metric
        self.tags = tags
        self.start_time: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.start_time is not None:
            self.metric.record(time.perf_counter() - self.start_time, self.tags)


class MetricsCollector:
    """
    Central metrics registry shared by every cache driver in the process.
    """

    def __init__(self):
        self._metrics: Dict[str, Metric] = {}
        self._lock = threading.Lock()

    def create_metric(self, name: str, metric_type: MetricType,
                      description: str = "") -> Metric:
        """
        Create a new metric, or return the existing one with that name.

        Args:
            name: Metric name (use dots for namespacing)
            metric_type: Type of metric
            description: Human-readable description
        """
        with self._lock:
            if name in self._metrics:
                return self._metrics[name]

            metric = Metric(name, metric_type, description)
            self._metrics[name] = metric

        logger.debug(f"Created metric: {name} ({metric_type.value})")
        return metric

    def get_metric(self, name: str) -> Optional[Metric]:
        """Get metric by name."""
        return self._metrics.get(name)

    def counter(self, name: str, description: str = "") -> Metric:
        """Create or get a counter metric."""
        return self.create_metric(name, MetricType.COUNTER, description)

    def timer(self, name: str, description: str = "") -> Metric:
        """Create or get a timer metric."""
        return self.create_metric(name, MetricType.TIMER, description)

    def increment(self, name: str, amount: float = 1.0,
                  tags: Optional[Dict[str, str]] = None) -> None:
        """Increment a counter metric by name."""
        metric = self._metrics.get(name)
        if metric and metric.type == MetricType.COUNTER:
            metric.increment(amount, tags)
        else:
            logger.warning(f"Attempted to increment unknown or non-counter metric: {name}")

    def time_operation(self, name: str, tags: Optional[Dict[str, str]] = None) -> TimerContext:
        """Time an operation using context manager."""
        metric = self.timer(name, f"Timer for {name}")
        return metric.time_block(tags)

    def clear_all(self) -> None:
        """Clear all metrics."""
        for metric in self._metrics.values():
            metric.clear()

        logger.info("Cleared all metrics")


# Global metrics collector instance
_global_collector = MetricsCollector()


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector instance."""
    return _global_collector
