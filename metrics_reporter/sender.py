"""
Batching sender for delivering samples to an N9E collector.

Samples are buffered until the batch is full or flush() is called, then the
whole batch is posted in one request. Delivery is at-most-once: the batch is
dropped after every attempt, whether or not it succeeded.
"""
import json
import logging
import threading
from typing import Any, Callable, List, NamedTuple, Optional, Tuple
from urllib.parse import urlparse

import requests

from . import config
from .exceptions import ConfigurationError, TransportError

logger = logging.getLogger(__name__)


class Sample(NamedTuple):
    """One (name, tags, value, timestamp) tuple ready for transmission."""
    name: str
    tags: str
    value: Any
    timestamp: int


Encoder = Callable[[List[Sample]], Tuple[bytes, str]]


class N9EEncoder:
    """
    Encode a batch as the JSON array accepted by the N9E push API.

    Each sample becomes an object with "metric", "tags", "value" and
    "timestamp"; "endpoint" and "step" are added when configured.
    """

    content_type = 'application/json'

    def __init__(self, endpoint: Optional[str] = None, step: Optional[int] = None):
        self.endpoint = endpoint
        self.step = step

    def to_dict(self, sample: Sample) -> dict:
        item = {
            'metric': sample.name,
            'tags': sample.tags,
            'value': sample.value,
            'timestamp': sample.timestamp,
            'counterType': 'GAUGE',
        }
        if self.endpoint:
            item['endpoint'] = self.endpoint
        if self.step:
            item['step'] = self.step
        return item

    def __call__(self, samples: List[Sample]) -> Tuple[bytes, str]:
        body = json.dumps([self.to_dict(sample) for sample in samples], default=str)
        return body.encode('utf-8'), self.content_type


class LineEncoder:
    """Encode a batch as one "name value timestamp tags" line per sample."""

    content_type = 'text/plain; charset=utf-8'

    def __call__(self, samples: List[Sample]) -> Tuple[bytes, str]:
        lines = []
        for sample in samples:
            line = f"{sample.name} {sample.value} {sample.timestamp}"
            if sample.tags:
                line = f"{line} {sample.tags}"
            lines.append(line)
        return ('\n'.join(lines) + '\n').encode('utf-8'), self.content_type


def validate_url(url: str) -> str:
    """
    Check that url is an absolute http(s) URL with a host.

    Raises:
        ConfigurationError: If the URL is unusable
    """
    parsed = urlparse(url or '')
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        raise ConfigurationError(f"Invalid collector URL: {url!r}")
    return url


class N9ESender:
    """Buffers samples and posts them to the collector in batches."""

    def __init__(
        self,
        url: Optional[str] = None,
        batch_size: Optional[int] = None,
        encoder: Optional[Encoder] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the sender.

        Args:
            url (str, optional): Collector push URL. Defaults to config.SERVER_URL.
            batch_size (int, optional): Maximum number of buffered samples. Defaults to config.BATCH_SIZE.
            encoder (callable, optional): Serializes a batch to (body, content_type). Defaults to N9EEncoder().
            timeout (float, optional): Request timeout in seconds. Defaults to config.REQUEST_TIMEOUT.
            session (requests.Session, optional): HTTP session to post with

        Raises:
            ConfigurationError: If the URL or batch size is invalid
        """
        self.url = validate_url(url or config.SERVER_URL)
        self.batch_size = batch_size if batch_size is not None else config.BATCH_SIZE
        if not isinstance(self.batch_size, int) or self.batch_size <= 0:
            raise ConfigurationError(f"Batch size must be a positive integer, got {self.batch_size!r}")
        self.encoder = encoder or N9EEncoder()
        self.timeout = timeout or config.REQUEST_TIMEOUT
        self.session = session or requests.Session()

        self._batch: List[Sample] = []
        # send() flushes while holding the lock
        self._lock = threading.RLock()

    @property
    def pending(self) -> int:
        """Number of samples waiting for the next flush."""
        return len(self._batch)

    def send(self, name: str, tags: str, value: Any, timestamp: int) -> None:
        """
        Buffer one sample, flushing when the batch is full.

        Raises:
            TransportError: If the automatic flush fails
        """
        with self._lock:
            self._batch.append(Sample(name, tags, value, timestamp))
            if len(self._batch) >= self.batch_size:
                self.flush()

    def flush(self) -> None:
        """
        Post all buffered samples in a single request.

        The buffer is emptied before the request is made, so a failed batch
        is dropped rather than retried.

        Raises:
            TransportError: If encoding or delivery fails
        """
        with self._lock:
            if not self._batch:
                return
            batch, self._batch = self._batch, []

        try:
            body, content_type = self.encoder(batch)
        except (TypeError, ValueError) as e:
            raise TransportError(self.url, len(batch), e) from e

        try:
            response = self.session.post(
                self.url,
                data=body,
                headers={'Content-Type': content_type},
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise TransportError(self.url, len(batch), e) from e

        logger.debug("Sent %d samples to %s", len(batch), self.url)

    def discard(self) -> int:
        """Drop the buffered samples without sending them and return how many there were."""
        with self._lock:
            dropped = len(self._batch)
            self._batch = []
        return dropped

    def close(self) -> None:
        self.session.close()

    def __len__(self) -> int:
        return len(self._batch)

    def __repr__(self) -> str:
        return f"N9ESender(url={self.url!r}, batch_size={self.batch_size})"
