"""Notification copy for each alert kind."""

from datetime import datetime, timezone
from typing import Any

from .models import GeofenceAlert, GeofenceAlertKind, ProximityAlert, RunningAlert

PROXIMITY_TITLE = "🚨 Elephant Within Perimeter"
PROXIMITY_BODY = (
    "An elephant is {distance}km away from your location. Seek shelter and stay safe!"
)
PROXIMITY_BROADCAST_BODY = "Elephant Within Perimeter. Seek Shelter and Stay Safe!"
BREACH_TITLE = "🚨 GEOFENCE BREACH: {entity_id}"
BREACH_BODY = "{entity_id} has crossed the geofence boundary! Immediate action required."
RETURN_TITLE = "✅ {entity_id} Re-entered Geofence"
RETURN_BODY = "{entity_id} has returned inside the geofence boundary."
RUNNING_TITLE = "🏃 RUNNING DETECTED: {entity_id}"
RUNNING_BODY = (
    "{entity_id} is running! Possible agitation or threat. Check dashboard immediately."
)


def _iso_now(now: datetime | None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def proximity_payload(
    alert: ProximityAlert, broadcast: bool = False, now: datetime | None = None
) -> dict[str, Any]:
    distance = f"{alert.distance_km:.2f}"
    body = PROXIMITY_BROADCAST_BODY if broadcast else PROXIMITY_BODY.format(distance=distance)
    return {
        "title": PROXIMITY_TITLE,
        "body": body,
        "data": {
            "elephantId": alert.entity_id,
            "distance": distance,
            "timestamp": _iso_now(now),
        },
    }


def geofence_payload(alert: GeofenceAlert, now: datetime | None = None) -> dict[str, Any]:
    if alert.kind == GeofenceAlertKind.BREACH:
        title, body = BREACH_TITLE, BREACH_BODY
    else:
        title, body = RETURN_TITLE, RETURN_BODY
    return {
        "title": title.format(entity_id=alert.entity_id),
        "body": body.format(entity_id=alert.entity_id),
        "data": {"elephantId": alert.entity_id, "timestamp": _iso_now(now)},
    }


def running_payload(alert: RunningAlert, now: datetime | None = None) -> dict[str, Any]:
    shouted = alert.entity_id.upper()
    return {
        "title": RUNNING_TITLE.format(entity_id=shouted),
        "body": RUNNING_BODY.format(entity_id=shouted),
        "data": {"elephantId": alert.entity_id, "timestamp": _iso_now(now)},
    }


def manual_payload(title: str, body: str) -> dict[str, Any]:
    return {"title": title, "body": body}
