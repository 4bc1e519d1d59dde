"""
Time units used to convert meter rates and timer durations.
"""
from enum import Enum

from .exceptions import ConfigurationError


class TimeUnit(Enum):
    """A time unit, valued by its length in nanoseconds."""

    NANOSECONDS = 1
    MICROSECONDS = 1_000
    MILLISECONDS = 1_000_000
    SECONDS = 1_000_000_000
    MINUTES = 60 * 1_000_000_000
    HOURS = 60 * 60 * 1_000_000_000
    DAYS = 24 * 60 * 60 * 1_000_000_000

    @property
    def nanos(self) -> int:
        return self.value

    @property
    def seconds(self) -> float:
        return self.value / TimeUnit.SECONDS.value

    @classmethod
    def parse(cls, name) -> 'TimeUnit':
        """
        Look up a unit by name, case-insensitively.

        Args:
            name (str or TimeUnit): Unit name such as "seconds" or "MILLISECONDS"

        Returns:
            TimeUnit: The matching unit

        Raises:
            ConfigurationError: If the name is not a known unit
        """
        if isinstance(name, cls):
            return name
        try:
            return cls[str(name).strip().upper()]
        except KeyError:
            raise ConfigurationError(f"Unknown time unit: {name}") from None
