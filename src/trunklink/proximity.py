"""Proximity alerting between subscribers and elephants"""

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone

import structlog

from .geo import distance_km
from .models import ProximityAlert, Subscriber, TrackedEntity
from .resolver import locate_entity
from .state import AlertStateStore, proximity_key

logger = structlog.get_logger(__name__)

DEFAULT_RADIUS_KM = 5.0
DEFAULT_COOLDOWN_MS = 5 * 60 * 1000


class ProximityEngine:
    """Alerts each subscriber at most once per cooldown window per elephant"""

    def __init__(
        self,
        store: AlertStateStore,
        radius_km: float = DEFAULT_RADIUS_KM,
        cooldown_ms: float = DEFAULT_COOLDOWN_MS,
    ):
        self.store = store
        self.radius_km = radius_km
        self.cooldown_ms = cooldown_ms

    def evaluate(
        self,
        subscribers: Iterable[Subscriber],
        entities: Mapping[str, TrackedEntity],
        radius_km: float | None = None,
        cooldown_ms: float | None = None,
    ) -> list[ProximityAlert]:
        """Emit an alert for every subscriber/elephant pair inside the radius"""
        radius_km = self.radius_km if radius_km is None else radius_km
        cooldown_ms = self.cooldown_ms if cooldown_ms is None else cooldown_ms
        now = datetime.fromtimestamp(self.store.now_ms() / 1000, tz=timezone.utc)

        locations = {
            entity_id: locate_entity(entity, now)
            for entity_id, entity in entities.items()
        }

        alerts: list[ProximityAlert] = []
        for subscriber in subscribers:
            if subscriber.location is None:
                logger.debug(
                    "Subscriber has no location, skipping",
                    destination=subscriber.destination,
                )
                continue

            for entity_id, location in locations.items():
                if location is None:
                    continue

                distance = distance_km(
                    subscriber.location.latitude,
                    subscriber.location.longitude,
                    location.latitude,
                    location.longitude,
                )
                if distance > radius_km:
                    continue

                key = proximity_key(subscriber.destination, entity_id)
                if self.store.in_cooldown(key, cooldown_ms):
                    logger.debug(
                        "Proximity alert in cooldown",
                        entity_id=entity_id,
                        destination=subscriber.destination,
                    )
                    continue

                self.store.mark_alerted(key)
                alerts.append(
                    ProximityAlert(
                        subscriber_id=subscriber.destination,
                        entity_id=entity_id,
                        distance_km=distance,
                        location=location,
                    )
                )
                logger.info(
                    "Elephant within perimeter",
                    entity_id=entity_id,
                    destination=subscriber.destination,
                    distance_km=round(distance, 2),
                )

        return alerts
