"""Test doubles and payload builders shared across the suites."""

import asyncio

from trunklink.datasource import DataSourceError, parse_entities
from trunklink.push import DestinationGoneError, PushDeliveryError

# 2024-01-01T00:00:00Z
EPOCH_MS = 1_704_067_200_000

UNIT_SQUARE = "0,0|0,1|1,1|1,0|"


class ManualClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: float = EPOCH_MS):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> None:
        self.now_ms += ms


class FakePushChannel:
    """Records deliveries; destinations can be set up to fail."""

    def __init__(self):
        self.sent: list[tuple[str, dict]] = []
        self.gone: set[str] = set()
        self.failing: set[str] = set()
        self.delay: float = 0.0

    async def send(self, destination, payload):
        if self.delay:
            await asyncio.sleep(self.delay)
        if destination in self.gone:
            raise DestinationGoneError("unregistered")
        if destination in self.failing:
            raise PushDeliveryError("service unavailable")
        self.sent.append((destination, payload))

    def titles(self) -> list[str]:
        return [payload["title"] for _, payload in self.sent]


class FakeLocationSource:
    """In-memory data source returning a mutable payload."""

    def __init__(self, payload=None):
        self.payload = payload if payload is not None else {}
        self.error: Exception | None = None
        self.fetches = 0
        self.events: list[str] = []
        self.delay: float = 0.0
        self.healthy = True
        self.closed = False

    async def fetch_entities(self):
        self.fetches += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return parse_entities(self.payload)

    async def watch(self):
        for event in self.events:
            yield event
        raise DataSourceError("stream closed")

    async def check_health(self):
        return self.healthy

    async def close(self):
        self.closed = True


def report(lat, lng, ts="2024-01-01T00:00:00Z", **extra):
    return {"latitude": lat, "longitude": lng, "timestamp": ts, **extra}


def elephant(*reports, geofence=None, livelocation=None):
    record = {}
    if reports:
        record["locations"] = {f"r{i}": r for i, r in enumerate(reports)}
    if geofence is not None:
        record["geofence"] = geofence
    if livelocation is not None:
        record["livelocation"] = livelocation
    return record
