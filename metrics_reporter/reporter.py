"""
Reporter that flattens registry snapshots into samples and ships them to N9E.
"""
import logging
import threading
import time
from datetime import datetime
from typing import Any, Callable, Iterator, Optional, Tuple, Union

import pytz

from . import config
from .exceptions import ConfigurationError, TransportError
from .registry import (
    Counter,
    Gauge,
    Histogram,
    Meter,
    MetricFilter,
    MetricRegistry,
    RegistrySnapshot,
    Snapshot,
    Timer,
    allow_all,
    name,
)
from .sender import N9ESender, Sample
from .units import TimeUnit

logger = logging.getLogger(__name__)


class Clock:
    """Wall clock with millisecond resolution."""

    def get_time(self) -> int:
        return int(datetime.now(pytz.UTC).timestamp() * 1000)


def snapshot_values(snapshot: Snapshot, convert: Callable[[float], float]) -> Iterator[Tuple[str, Any]]:
    """Yield the (suffix, value) pairs of a distribution snapshot."""
    yield 'max', convert(snapshot.max)
    yield 'mean', convert(snapshot.mean)
    yield 'min', convert(snapshot.min)
    yield 'stddev', convert(snapshot.stddev)
    yield 'p50', convert(snapshot.median)
    yield 'p75', convert(snapshot.p75)
    yield 'p95', convert(snapshot.p95)
    yield 'p98', convert(snapshot.p98)
    yield 'p99', convert(snapshot.p99)
    yield 'p999', convert(snapshot.p999)


def metered_values(meter: Meter, convert_rate: Callable[[float], float]) -> Iterator[Tuple[str, Any]]:
    """Yield the count and the converted rates of a meter."""
    yield 'count', meter.count
    yield 'm1_rate', convert_rate(meter.m1_rate)
    yield 'm5_rate', convert_rate(meter.m5_rate)
    yield 'm15_rate', convert_rate(meter.m15_rate)
    yield 'mean_rate', convert_rate(meter.mean_rate)


def _unchanged(value: float) -> float:
    return value


class N9EReporter:
    """
    Periodically reports every metric of a registry to an N9E collector.

    Gauges are reported under their own name, every other kind under
    name.suffix (e.g. "jobs.count", "latency.p99"). All samples of one
    report share the same timestamp, in seconds.
    """

    # seconds stop() waits for the reporting thread
    stop_timeout = 5

    def __init__(
        self,
        registry: MetricRegistry,
        sender: N9ESender,
        clock: Optional[Clock] = None,
        prefix: Optional[str] = None,
        tags: Optional[str] = None,
        rate_unit: Union[TimeUnit, str, None] = None,
        duration_unit: Union[TimeUnit, str, None] = None,
        metric_filter: Optional[MetricFilter] = None
    ):
        """
        Initialize the reporter.

        Args:
            registry (MetricRegistry): Registry to take snapshots from
            sender (N9ESender): Sender that batches and delivers samples
            clock (Clock, optional): Source of the report timestamp
            prefix (str, optional): Prepended to every metric name. Defaults to config.PREFIX.
            tags (str, optional): Tag string attached to every sample. Defaults to config.TAGS.
            rate_unit (TimeUnit, optional): Unit meter rates are converted to. Defaults to config.RATE_UNIT.
            duration_unit (TimeUnit, optional): Unit timer durations are converted to. Defaults to config.DURATION_UNIT.
            metric_filter (callable, optional): Predicate on (name, metric) selecting what to report

        Raises:
            ConfigurationError: If a time unit is unknown
        """
        self.registry = registry
        self.sender = sender
        self.clock = clock or Clock()
        self.prefix = prefix if prefix is not None else config.PREFIX
        self.tags = tags if tags is not None else config.TAGS
        self.rate_unit = TimeUnit.parse(rate_unit or config.RATE_UNIT)
        self.duration_unit = TimeUnit.parse(duration_unit or config.DURATION_UNIT)
        self.metric_filter = metric_filter or allow_all

        self._rate_factor = self.rate_unit.seconds
        self._duration_factor = 1.0 / self.duration_unit.nanos

        self.running = False
        self.thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    def convert_rate(self, rate: float) -> float:
        return rate * self._rate_factor

    def convert_duration(self, duration: float) -> float:
        return duration * self._duration_factor

    def _name(self, *parts: str) -> str:
        return name(self.prefix, *parts)

    def flatten_gauge(self, gauge_name: str, gauge: Gauge) -> Iterator[Tuple[str, Any]]:
        value = gauge.value
        if value is not None:
            yield self._name(gauge_name), value

    def flatten_counter(self, counter_name: str, counter: Counter) -> Iterator[Tuple[str, Any]]:
        yield self._name(counter_name, 'count'), counter.count

    def flatten_histogram(self, histogram_name: str, histogram: Histogram) -> Iterator[Tuple[str, Any]]:
        yield self._name(histogram_name, 'count'), histogram.count
        for suffix, value in snapshot_values(histogram.get_snapshot(), _unchanged):
            yield self._name(histogram_name, suffix), value

    def flatten_meter(self, meter_name: str, meter: Meter) -> Iterator[Tuple[str, Any]]:
        for suffix, value in metered_values(meter, self.convert_rate):
            yield self._name(meter_name, suffix), value

    def flatten_timer(self, timer_name: str, timer: Timer) -> Iterator[Tuple[str, Any]]:
        # A timer is a histogram of durations plus a meter of calls
        for suffix, value in snapshot_values(timer.get_snapshot(), self.convert_duration):
            yield self._name(timer_name, suffix), value
        yield from self.flatten_meter(timer_name, timer)

    def flatten(self, snapshot: RegistrySnapshot, timestamp: int) -> Iterator[Sample]:
        """
        Expand a registry snapshot into samples.

        Kinds are processed in a fixed order: gauges, counters, histograms,
        meters, timers.

        Args:
            snapshot (RegistrySnapshot): The metrics to flatten
            timestamp (int): Epoch seconds shared by every sample

        Returns:
            Iterator[Sample]: The samples, metric by metric. A metric that
                fails to read is logged and skipped.
        """
        families = (
            (snapshot.gauges, self.flatten_gauge),
            (snapshot.counters, self.flatten_counter),
            (snapshot.histograms, self.flatten_histogram),
            (snapshot.meters, self.flatten_meter),
            (snapshot.timers, self.flatten_timer),
        )
        for metrics, flatten_one in families:
            for metric_name, metric in metrics.items():
                # read the whole metric first so a failing read emits nothing for it
                try:
                    values = list(flatten_one(metric_name, metric))
                except Exception as e:
                    logger.error("Error reading metric %s: %s", metric_name, str(e))
                    continue
                for sample_name, value in values:
                    yield Sample(sample_name, self.tags, value, timestamp)

    def report(self, snapshot: Optional[RegistrySnapshot] = None) -> None:
        """
        Run one reporting cycle.

        Transport errors end the cycle early and are logged, never raised;
        samples already delivered are not rolled back. Any other error also
        ends the cycle and drops the samples still buffered, so nothing of
        this cycle is sent by the next one.

        Args:
            snapshot (RegistrySnapshot, optional): Metrics to report. Defaults to a
                filtered snapshot of the registry.
        """
        try:
            if snapshot is None:
                snapshot = self.registry.snapshot(self.metric_filter)
            timestamp = int(self.clock.get_time() // 1000)

            for sample in self.flatten(snapshot, timestamp):
                self.sender.send(*sample)
            self.sender.flush()
        except TransportError as e:
            logger.warning("Unable to report to N9E at %s: %s", e.endpoint, e)
        except Exception as e:
            dropped = self.sender.discard()
            logger.error("Report to %s aborted, dropped %d pending samples: %s",
                         self.sender.url, dropped, str(e))

    def start(self, period: float, unit: Union[TimeUnit, str] = TimeUnit.SECONDS) -> None:
        """
        Start reporting at a fixed rate on a background thread.

        The first report happens one period after start. A report that runs
        past its slot delays the next one instead of overlapping it.

        Args:
            period (float): Time between reports
            unit (TimeUnit): Unit of period

        Raises:
            ConfigurationError: If period is not positive
        """
        if period <= 0:
            raise ConfigurationError(f"Reporting period must be positive, got {period}")
        if self.running:
            logger.warning("Reporter already running")
            return
        if self.thread is not None and self.thread.is_alive():
            logger.warning("Previous reporter thread is still running a report, not starting")
            return

        interval = period * TimeUnit.parse(unit).seconds
        self.running = True
        # each loop gets its own event so a lingering loop never sees a restart
        stop_event = self._stop_event = threading.Event()

        def report_loop():
            logger.info("Starting N9E report loop every %.2f seconds", interval)
            next_report_time = time.monotonic() + interval
            while not stop_event.wait(max(0.0, next_report_time - time.monotonic())):
                try:
                    self.report()
                except Exception as e:
                    logger.error("Error in report loop: %s", str(e))

                next_report_time += interval
                if next_report_time < time.monotonic():
                    logger.warning("Report took longer than interval. Next report will start immediately.")
                    next_report_time = time.monotonic()

        self.thread = threading.Thread(target=report_loop, name='n9e-reporter', daemon=True)
        self.thread.start()

    def stop(self) -> None:
        """Stop the reporting thread. Samples still buffered are not flushed."""
        if not self.running:
            logger.warning("Reporter not running")
            return

        logger.info("Stopping N9E reporter")
        self.running = False
        self._stop_event.set()

        if self.thread:
            self.thread.join(timeout=self.stop_timeout)
            if self.thread.is_alive():
                # keep the reference so start() can refuse to overlap it
                logger.warning("Reporter thread did not stop cleanly")
                return
            self.thread = None
