"""
Reports metrics from an in-process registry to an N9E collector.
"""
from .config import build_tags
from .exceptions import ConfigurationError, ReporterError, TransportError
from .registry import (
    Counter,
    Gauge,
    Histogram,
    Meter,
    MetricKind,
    MetricRegistry,
    RegistrySnapshot,
    Snapshot,
    Timer,
    allow_all,
    kind_of,
    name,
    prefix_filter,
)
from .reporter import Clock, N9EReporter
from .sender import LineEncoder, N9EEncoder, N9ESender, Sample
from .system_gauges import register_process_gauges
from .units import TimeUnit

__version__ = '0.1.0'

__all__ = [
    'Clock',
    'ConfigurationError',
    'Counter',
    'Gauge',
    'Histogram',
    'LineEncoder',
    'Meter',
    'MetricKind',
    'MetricRegistry',
    'N9EEncoder',
    'N9EReporter',
    'N9ESender',
    'RegistrySnapshot',
    'ReporterError',
    'Sample',
    'Snapshot',
    'Timer',
    'TimeUnit',
    'TransportError',
    'allow_all',
    'build_tags',
    'kind_of',
    'name',
    'prefix_filter',
    'register_process_gauges',
]
