"""Shared test fixtures for all test modules."""
import json
from unittest.mock import MagicMock

import pytest
import requests

from metrics_reporter.registry import Histogram, Meter, MetricRegistry, Snapshot, Timer
from metrics_reporter.sender import N9ESender

TEST_URL = 'http://collector.test/api/collector/push?nid=1'


class FakeClock:
    """Clock frozen at a fixed time in milliseconds."""

    def __init__(self, millis: int = 1_700_000_000_123):
        self.millis = millis

    def get_time(self) -> int:
        return self.millis


class StaticHistogram(Histogram):
    def __init__(self, count, snapshot):
        self._count = count
        self._snapshot = snapshot

    @property
    def count(self):
        return self._count

    def get_snapshot(self):
        return self._snapshot


class StaticMeter(Meter):
    def __init__(self, count, m1_rate, m5_rate, m15_rate, mean_rate):
        self._count = count
        self._rates = (m1_rate, m5_rate, m15_rate, mean_rate)

    @property
    def count(self):
        return self._count

    @property
    def m1_rate(self):
        return self._rates[0]

    @property
    def m5_rate(self):
        return self._rates[1]

    @property
    def m15_rate(self):
        return self._rates[2]

    @property
    def mean_rate(self):
        return self._rates[3]


class StaticTimer(StaticMeter, Timer):
    def __init__(self, snapshot, count, m1_rate, m5_rate, m15_rate, mean_rate):
        super().__init__(count, m1_rate, m5_rate, m15_rate, mean_rate)
        self._snapshot = snapshot

    def get_snapshot(self):
        return self._snapshot


def posted_samples(session):
    """Decode the JSON bodies of every post made on a mocked session."""
    batches = []
    for call in session.post.call_args_list:
        batches.append(json.loads(call.kwargs['data'].decode('utf-8')))
    return batches


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def latency_snapshot():
    return Snapshot(min=1, max=50, mean=20, stddev=5, median=18,
                    p75=25, p95=40, p98=45, p99=48, p999=50)


@pytest.fixture
def session():
    """A requests session whose posts always succeed."""
    session = MagicMock(spec=requests.Session)
    session.post.return_value = MagicMock(spec=requests.Response)
    return session


@pytest.fixture
def failing_session():
    """A requests session whose posts always fail to connect."""
    session = MagicMock(spec=requests.Session)
    session.post.side_effect = requests.ConnectionError('connection refused')
    return session


@pytest.fixture
def sender_factory(session):
    def _make(batch_size=100, **kwargs):
        kwargs.setdefault('session', session)
        return N9ESender(url=TEST_URL, batch_size=batch_size, **kwargs)
    return _make


@pytest.fixture
def registry():
    return MetricRegistry()
