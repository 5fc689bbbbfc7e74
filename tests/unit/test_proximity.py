"""Unit tests for the proximity engine."""

import pytest

from tests.helpers import elephant, report
from trunklink.datasource import parse_entities
from trunklink.models import GeoPoint, Subscriber
from trunklink.proximity import ProximityEngine

FIVE_MINUTES_MS = 5 * 60 * 1000


@pytest.fixture()
def engine(store):
    return ProximityEngine(store)


@pytest.fixture()
def subscriber():
    return Subscriber(destination="token-1", location=GeoPoint(latitude=0, longitude=0))


@pytest.fixture()
def nearby():
    # roughly 1.1 km east of the subscriber
    return parse_entities({"e1": elephant(report(0, 0.01))})


class TestProximityEngine:
    """Test radius and cooldown behaviour."""

    def test_single_alert_within_radius(self, engine, subscriber, nearby):
        alerts = engine.evaluate([subscriber], nearby, radius_km=5, cooldown_ms=FIVE_MINUTES_MS)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.subscriber_id == "token-1"
        assert alert.entity_id == "e1"
        assert alert.distance_km == pytest.approx(1.11, abs=0.01)
        assert alert.location.longitude == 0.01

    def test_suppressed_during_cooldown(self, engine, subscriber, nearby, clock):
        engine.evaluate([subscriber], nearby)
        clock.advance(FIVE_MINUTES_MS - 1)

        assert engine.evaluate([subscriber], nearby) == []

    def test_alerts_again_after_cooldown(self, engine, subscriber, nearby, clock):
        engine.evaluate([subscriber], nearby)
        engine.evaluate([subscriber], nearby)
        clock.advance(FIVE_MINUTES_MS)

        assert len(engine.evaluate([subscriber], nearby)) == 1

    def test_no_alert_outside_radius(self, engine, subscriber):
        far = parse_entities({"e1": elephant(report(0, 0.1))})  # ~11 km

        assert engine.evaluate([subscriber], far) == []

    def test_radius_is_inclusive(self, engine, subscriber, nearby):
        distance = engine.evaluate([subscriber], nearby, cooldown_ms=0)[0].distance_km

        assert len(engine.evaluate([subscriber], nearby, radius_km=distance, cooldown_ms=0)) == 1

    def test_leaving_radius_does_not_reset_cooldown(self, engine, subscriber, nearby, clock):
        far = parse_entities({"e1": elephant(report(0, 0.1))})

        engine.evaluate([subscriber], nearby)
        clock.advance(60_000)
        engine.evaluate([subscriber], far)
        clock.advance(60_000)

        assert engine.evaluate([subscriber], nearby) == []

    def test_subscriber_without_location_is_skipped(self, engine, nearby):
        assert engine.evaluate([Subscriber(destination="nowhere")], nearby) == []

    def test_unresolvable_elephant_is_skipped(self, engine, subscriber):
        entities = parse_entities(
            {
                "e1": {"locations": {"r1": {"lat": 0}}},
                "e2": {},
                "e3": elephant(report(0, 0.02)),
            }
        )

        alerts = engine.evaluate([subscriber], entities)

        assert [a.entity_id for a in alerts] == ["e3"]

    def test_cooldown_is_per_subscriber_and_elephant(self, engine, subscriber):
        other = Subscriber(destination="token-2", location=GeoPoint(latitude=0, longitude=0.005))
        entities = parse_entities(
            {"e1": elephant(report(0, 0.01)), "e2": elephant(report(0.01, 0))}
        )

        first = engine.evaluate([subscriber, other], entities)
        second = engine.evaluate([subscriber, other], entities)

        assert len(first) == 4
        assert {(a.subscriber_id, a.entity_id) for a in first} == {
            ("token-1", "e1"),
            ("token-1", "e2"),
            ("token-2", "e1"),
            ("token-2", "e2"),
        }
        assert second == []

    def test_legacy_location_is_evaluated(self, engine, subscriber):
        entities = parse_entities({"e1": {"livelocation": {"lat": 0, "lng": 0.01}}})

        assert len(engine.evaluate([subscriber], entities)) == 1

    def test_uses_constructor_defaults(self, store, subscriber, nearby):
        engine = ProximityEngine(store, radius_km=1.0)

        assert engine.evaluate([subscriber], nearby) == []
