"""Geofence breach/return detection and running detection"""

from collections.abc import Mapping
from datetime import datetime, timezone

import structlog

from .geo import point_in_polygon
from .models import (
    AlertTag,
    GeofenceAlert,
    GeofenceAlertKind,
    RunningAlert,
    TrackedEntity,
)
from .resolver import locate_entity
from .state import AlertStateStore, running_key

logger = structlog.get_logger(__name__)

DEFAULT_RUNNING_COOLDOWN_MS = 5 * 60 * 1000


class GeofenceEngine:
    """
    Tracks each elephant's position relative to its geofence.

    Per elephant the state is unknown until first observed, then inside or
    outside. Transitions:

      unknown -> inside   silent
      unknown -> outside  breach (an elephant first seen outside alerts at once)
      inside  -> outside  breach
      outside -> inside   return

    Stable states never re-alert. Running detection shares the elephant
    stream but not the state.
    """

    def __init__(
        self,
        store: AlertStateStore,
        running_cooldown_ms: float = DEFAULT_RUNNING_COOLDOWN_MS,
    ):
        self.store = store
        self.running_cooldown_ms = running_cooldown_ms

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self.store.now_ms() / 1000, tz=timezone.utc)

    def evaluate(self, entities: Mapping[str, TrackedEntity]) -> list[GeofenceAlert]:
        """Emit breach/return alerts for elephants that changed side"""
        now = self._now()
        alerts: list[GeofenceAlert] = []

        for entity_id, entity in entities.items():
            geofence = entity.geofence
            if geofence is None:
                continue

            location = locate_entity(entity, now)
            if location is None:
                continue

            inside = point_in_polygon(location.point, geofence.vertices)
            previous = self.store.get_inside_state(entity_id)
            logger.debug(
                "Geofence check",
                entity_id=entity_id,
                inside=inside,
                previous=previous,
            )

            if previous == inside:
                continue

            self.store.set_inside_state(entity_id, inside)
            if previous is None and inside:
                logger.info("Initial geofence state recorded", entity_id=entity_id, inside=True)
                continue

            kind = GeofenceAlertKind.RETURN if inside else GeofenceAlertKind.BREACH
            alerts.append(
                GeofenceAlert(
                    kind=kind,
                    entity_id=entity_id,
                    location=location,
                    created_by=geofence.created_by,
                    created_at=geofence.created_at,
                    ranger_id=geofence.ranger_id,
                )
            )
            logger.warning(
                "Geofence transition",
                entity_id=entity_id,
                kind=kind.value,
                initial=previous is None,
                latitude=location.latitude,
                longitude=location.longitude,
            )

        return alerts

    def detect_running(
        self,
        entities: Mapping[str, TrackedEntity],
        cooldown_ms: float | None = None,
    ) -> list[RunningAlert]:
        """Emit a running alert per elephant at most once per cooldown window"""
        cooldown_ms = self.running_cooldown_ms if cooldown_ms is None else cooldown_ms
        now = self._now()
        alerts: list[RunningAlert] = []

        for entity_id, entity in entities.items():
            location = locate_entity(entity, now)
            if location is None or location.alert_tag != AlertTag.RUNNING:
                continue

            key = running_key(entity_id)
            if self.store.in_cooldown(key, cooldown_ms):
                continue

            self.store.mark_alerted(key)
            alerts.append(
                RunningAlert(
                    entity_id=entity_id,
                    location=location,
                    timestamp=location.timestamp,
                )
            )
            logger.warning("Running detected", entity_id=entity_id)

        return alerts
