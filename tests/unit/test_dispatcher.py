"""Unit tests for alert delivery."""

from datetime import datetime, timezone

import pytest

from trunklink.dispatcher import AlertHistory, NotificationDispatcher
from trunklink.models import (
    DeliveryOutcome,
    GeofenceAlert,
    GeofenceAlertKind,
    LocationReport,
    ProximityAlert,
    RunningAlert,
)

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)
LOCATION = LocationReport(latitude=7.1, longitude=80.1, timestamp=NOW)


def proximity(subscriber_id="a", entity_id="e1"):
    return ProximityAlert(
        subscriber_id=subscriber_id, entity_id=entity_id, distance_km=1.0, location=LOCATION
    )


def breach(entity_id="e1"):
    return GeofenceAlert(kind=GeofenceAlertKind.BREACH, entity_id=entity_id, location=LOCATION)


@pytest.fixture()
def subscribed(registry):
    for destination in ("a", "b", "c"):
        registry.subscribe(destination)
    return registry


class TestDelivery:
    """Test per-destination isolation."""

    @pytest.mark.asyncio()
    async def test_proximity_goes_to_its_subscriber_only(self, dispatcher, channel, subscribed):
        outcome = await dispatcher.dispatch(proximity("b"))

        assert [destination for destination, _ in channel.sent] == ["b"]
        assert outcome.attempted == 1
        assert outcome.succeeded == 1

    @pytest.mark.asyncio()
    async def test_proximity_for_unknown_subscriber_is_dropped(self, dispatcher, channel, subscribed):
        outcome = await dispatcher.dispatch(proximity("ghost"))

        assert channel.sent == []
        assert outcome.attempted == 0
        assert len(dispatcher.history) == 1

    @pytest.mark.asyncio()
    async def test_broadcast_reaches_everyone(self, dispatcher, channel, subscribed):
        outcome = await dispatcher.dispatch(breach())

        assert sorted(destination for destination, _ in channel.sent) == ["a", "b", "c"]
        assert outcome.succeeded == 3

    @pytest.mark.asyncio()
    async def test_running_alert_is_broadcast(self, dispatcher, channel, subscribed):
        alert = RunningAlert(entity_id="e1", location=LOCATION, timestamp=NOW)

        await dispatcher.dispatch(alert)

        assert channel.titles() == ["🏃 RUNNING DETECTED: E1"] * 3

    @pytest.mark.asyncio()
    async def test_gone_destination_is_removed(self, dispatcher, channel, subscribed):
        channel.gone.add("b")

        outcome = await dispatcher.dispatch(breach())

        assert "b" not in subscribed
        assert len(subscribed) == 2
        assert outcome.attempted == 3
        assert outcome.succeeded == 2
        assert outcome.failed == 1
        assert outcome.removed == 1

    @pytest.mark.asyncio()
    async def test_transient_failure_keeps_destination(self, dispatcher, channel, subscribed):
        channel.failing.add("a")

        outcome = await dispatcher.dispatch(breach())

        assert "a" in subscribed
        assert outcome.failed == 1
        assert outcome.removed == 0
        assert sorted(destination for destination, _ in channel.sent) == ["b", "c"]

    @pytest.mark.asyncio()
    async def test_unexpected_error_is_contained(self, registry, subscribed):
        class Exploding:
            async def send(self, destination, payload):
                if destination == "a":
                    raise RuntimeError("boom")

        dispatcher = NotificationDispatcher(Exploding(), registry)

        outcome = await dispatcher.dispatch(breach())

        assert outcome.succeeded == 2
        assert outcome.failed == 1
        assert "a" in registry

    @pytest.mark.asyncio()
    async def test_proximity_broadcast_mode(self, registry, channel, subscribed):
        dispatcher = NotificationDispatcher(channel, registry, proximity_broadcast=True)

        outcome = await dispatcher.dispatch(proximity("a"))

        assert outcome.attempted == 3
        bodies = {payload["body"] for _, payload in channel.sent}
        assert bodies == {"Elephant Within Perimeter. Seek Shelter and Stay Safe!"}

    @pytest.mark.asyncio()
    async def test_dispatch_all_merges_outcomes(self, dispatcher, channel, subscribed):
        outcome = await dispatcher.dispatch_all([proximity("a"), breach(), breach("e2")])

        assert outcome.attempted == 7
        assert outcome.succeeded == 7

    @pytest.mark.asyncio()
    async def test_dispatch_all_empty(self, dispatcher):
        outcome = await dispatcher.dispatch_all([])

        assert outcome.attempted == 0

    @pytest.mark.asyncio()
    async def test_notify_counts(self, dispatcher, channel, subscribed):
        channel.gone.add("c")

        outcome = await dispatcher.notify("Drill", "Practice evacuation")

        assert outcome.attempted == 3
        assert outcome.succeeded == 2
        assert channel.sent[0][1] == {"title": "Drill", "body": "Practice evacuation"}
        assert len(dispatcher.history) == 0


class TestHistory:
    """Test the bounded alert log."""

    @pytest.mark.asyncio()
    async def test_records_newest_first(self, dispatcher, subscribed):
        await dispatcher.dispatch(breach("e1"))
        await dispatcher.dispatch(breach("e2"))

        records = dispatcher.history.recent()

        assert [r.alert.entity_id for r in records] == ["e2", "e1"]
        assert records[0].outcome.succeeded == 3

    def test_bounded(self):
        history = AlertHistory(maxlen=2)
        for entity_id in ("e1", "e2", "e3"):
            history.record(breach(entity_id), outcome=DeliveryOutcome())

        assert len(history) == 2
        assert [r.alert.entity_id for r in history.recent(1)] == ["e3"]
