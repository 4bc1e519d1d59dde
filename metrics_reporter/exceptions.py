"""
Exceptions raised by the metrics reporter.
"""
from typing import Optional


class ReporterError(Exception):
    """Base class for all reporter errors."""


class ConfigurationError(ReporterError, ValueError):
    """Raised at construction time when the reporter or sender is misconfigured."""


class TransportError(ReporterError):
    """
    Raised when a batch could not be delivered to the collector.

    Attributes:
        endpoint (str): URL the batch was sent to
        sample_count (int): Number of samples in the failed batch
        cause (Exception): The underlying error, if any
    """

    def __init__(self, endpoint: str, sample_count: int, cause: Optional[Exception] = None):
        self.endpoint = endpoint
        self.sample_count = sample_count
        self.cause = cause
        super().__init__(f"Failed to deliver {sample_count} samples to {endpoint}: {cause}")
