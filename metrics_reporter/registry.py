"""
Read-only view of an in-process metric registry.

The reporter only reads metrics, it never aggregates them. This module
defines the five metric kinds it understands, the snapshot it consumes per
reporting cycle, and a small thread-safe registry for counters and gauges.
Histograms, meters and timers from any library can be registered as long as
they subclass (or are registered with) the matching abstract base class.
"""
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

MetricFilter = Callable[[str, Any], bool]


class MetricKind(Enum):
    GAUGE = 'gauge'
    COUNTER = 'counter'
    HISTOGRAM = 'histogram'
    METER = 'meter'
    TIMER = 'timer'


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time statistics of a histogram or timer."""
    min: float
    max: float
    mean: float
    stddev: float
    median: float
    p75: float
    p95: float
    p98: float
    p99: float
    p999: float


class Counter:
    """A thread-safe count that can be incremented and decremented."""

    def __init__(self, count: int = 0):
        self._count = count
        self._lock = threading.Lock()

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self._count += n

    def dec(self, n: int = 1) -> None:
        with self._lock:
            self._count -= n

    @property
    def count(self) -> int:
        return self._count


class Gauge:
    """A gauge whose value is read from a callable on every report."""

    def __init__(self, fn: Callable[[], Any]):
        self._fn = fn

    @property
    def value(self) -> Any:
        return self._fn()


class Histogram(ABC):
    """A distribution of values with a total count."""

    @property
    @abstractmethod
    def count(self) -> int:
        pass

    @abstractmethod
    def get_snapshot(self) -> Snapshot:
        pass


class Meter(ABC):
    """
    A count with moving-average rates.

    All rates are events per second; the reporter converts them to its
    configured rate unit.
    """

    @property
    @abstractmethod
    def count(self) -> int:
        pass

    @property
    @abstractmethod
    def m1_rate(self) -> float:
        pass

    @property
    @abstractmethod
    def m5_rate(self) -> float:
        pass

    @property
    @abstractmethod
    def m15_rate(self) -> float:
        pass

    @property
    @abstractmethod
    def mean_rate(self) -> float:
        pass


class Timer(Meter):
    """A meter of call rates combined with a histogram of durations in nanoseconds."""

    @abstractmethod
    def get_snapshot(self) -> Snapshot:
        pass


def kind_of(metric: Any) -> MetricKind:
    """
    Classify a metric into one of the five kinds.

    Timers are checked before meters since every timer is also a meter.

    Raises:
        TypeError: If the object is not a supported metric
    """
    if isinstance(metric, Gauge):
        return MetricKind.GAUGE
    if isinstance(metric, Counter):
        return MetricKind.COUNTER
    if isinstance(metric, Timer):
        return MetricKind.TIMER
    if isinstance(metric, Histogram):
        return MetricKind.HISTOGRAM
    if isinstance(metric, Meter):
        return MetricKind.METER
    raise TypeError(f"Unsupported metric type: {type(metric).__name__}")


def name(*parts: Optional[str]) -> str:
    """Join the non-empty parts of a metric name with dots."""
    return '.'.join(part for part in parts if part)


def allow_all(name: str, metric: Any) -> bool:
    return True


def prefix_filter(*prefixes: str) -> MetricFilter:
    """Build a filter that keeps metrics whose name starts with one of the prefixes."""
    def _filter(name: str, metric: Any) -> bool:
        return name.startswith(prefixes)
    return _filter


@dataclass
class RegistrySnapshot:
    """The metrics of one reporting cycle, grouped by kind and ordered by name."""
    gauges: Dict[str, Gauge] = field(default_factory=dict)
    counters: Dict[str, Counter] = field(default_factory=dict)
    histograms: Dict[str, Histogram] = field(default_factory=dict)
    meters: Dict[str, Meter] = field(default_factory=dict)
    timers: Dict[str, Timer] = field(default_factory=dict)

    def __len__(self) -> int:
        return (len(self.gauges) + len(self.counters) + len(self.histograms)
                + len(self.meters) + len(self.timers))


class MetricRegistry:
    """
    A named collection of metrics.

    Application code may register and update metrics from any thread; the
    reporter only calls snapshot().
    """

    def __init__(self):
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()

    def register(self, metric_name: str, metric: Any) -> Any:
        """
        Register a metric under a unique name.

        Args:
            metric_name (str): The metric name
            metric: A Gauge, Counter, Histogram, Meter or Timer

        Returns:
            The registered metric

        Raises:
            TypeError: If the metric kind is not supported
            ValueError: If the name is already taken
        """
        kind = kind_of(metric)
        with self._lock:
            if metric_name in self._metrics:
                raise ValueError(f"A metric named {metric_name} already exists")
            self._metrics[metric_name] = metric
        logger.debug("Registered %s: %s", kind.value, metric_name)
        return metric

    def counter(self, metric_name: str) -> Counter:
        """Get the counter registered under a name, creating it if needed."""
        with self._lock:
            existing = self._metrics.get(metric_name)
            if existing is None:
                existing = self._metrics[metric_name] = Counter()
        if not isinstance(existing, Counter):
            raise ValueError(f"{metric_name} is already used for a different type of metric")
        return existing

    def gauge(self, metric_name: str, fn: Callable[[], Any]) -> Gauge:
        """Register a gauge that reads its value from fn."""
        return self.register(metric_name, Gauge(fn))

    def remove(self, metric_name: str) -> bool:
        with self._lock:
            return self._metrics.pop(metric_name, None) is not None

    def names(self):
        with self._lock:
            return sorted(self._metrics)

    def snapshot(self, metric_filter: MetricFilter = allow_all) -> RegistrySnapshot:
        """
        Take a snapshot of the registered metrics.

        Args:
            metric_filter (callable): Predicate on (name, metric); metrics it rejects are left out

        Returns:
            RegistrySnapshot: Metrics grouped by kind, each group sorted by name
        """
        with self._lock:
            items = sorted(self._metrics.items())

        snapshot = RegistrySnapshot()
        groups = {
            MetricKind.GAUGE: snapshot.gauges,
            MetricKind.COUNTER: snapshot.counters,
            MetricKind.HISTOGRAM: snapshot.histograms,
            MetricKind.METER: snapshot.meters,
            MetricKind.TIMER: snapshot.timers,
        }
        for metric_name, metric in items:
            if metric_filter(metric_name, metric):
                groups[kind_of(metric)][metric_name] = metric
        return snapshot

    def __len__(self) -> int:
        return len(self._metrics)
