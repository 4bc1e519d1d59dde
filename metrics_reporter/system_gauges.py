"""
Gauges describing the current process, backed by psutil.
"""
import logging
from typing import Any, Callable, List, Optional

import psutil

from .registry import MetricRegistry, name

logger = logging.getLogger(__name__)


def _safe(read: Callable[[], Any]) -> Callable[[], Any]:
    """Wrap a psutil reading so that failures report no value instead of raising."""
    def _read():
        try:
            return read()
        except psutil.Error as e:
            logger.debug("Could not read process metric: %s", str(e))
            return None
    return _read


def register_process_gauges(
    registry: MetricRegistry,
    prefix: str = 'process',
    process: Optional[psutil.Process] = None
) -> List[str]:
    """
    Register CPU, memory and thread gauges for a process.

    Args:
        registry (MetricRegistry): The registry to add the gauges to
        prefix (str): Name prefix for the gauges
        process (psutil.Process, optional): Process to observe. Defaults to the current process.

    Returns:
        list: Names of the registered gauges
    """
    process = process or psutil.Process()
    readings = {
        'cpu_percent': lambda: process.cpu_percent(interval=None),
        'memory_rss': lambda: process.memory_info().rss,
        'memory_percent': lambda: round(process.memory_percent(), 2),
        'num_threads': process.num_threads,
    }

    names = []
    for suffix, read in readings.items():
        gauge_name = name(prefix, suffix)
        registry.gauge(gauge_name, _safe(read))
        names.append(gauge_name)

    logger.debug("Registered process gauges: %s", names)
    return names
