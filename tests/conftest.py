"""Global test configuration and fixtures."""

from datetime import datetime, timezone

import pytest

from tests.helpers import EPOCH_MS, FakeLocationSource, FakePushChannel, ManualClock
from trunklink.config import Settings
from trunklink.dispatcher import NotificationDispatcher
from trunklink.registry import SubscriberRegistry
from trunklink.state import AlertStateStore


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def store(clock):
    return AlertStateStore(clock=clock)


@pytest.fixture()
def registry():
    return SubscriberRegistry()


@pytest.fixture()
def channel():
    return FakePushChannel()


@pytest.fixture()
def source():
    return FakeLocationSource()


@pytest.fixture()
def dispatcher(channel, registry):
    return NotificationDispatcher(channel, registry)


@pytest.fixture()
def test_settings():
    """Settings isolated from the process environment."""
    return Settings(
        _env_file=None,
        push_channel="log",
        watch_enabled=False,
        initial_delay_seconds=0,
        poll_interval_seconds=0.01,
    )


@pytest.fixture()
def now():
    return datetime.fromtimestamp(EPOCH_MS / 1000, tz=timezone.utc)
