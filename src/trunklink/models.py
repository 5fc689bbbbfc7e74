"""Pydantic models for tracked elephants, subscribers and alerts."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AlertTag(str, Enum):
    """Movement classification attached to a location report."""

    ROUTINE = "routine"
    RUNNING = "running"


class GeoPoint(BaseModel):
    """A latitude/longitude pair."""

    model_config = ConfigDict(frozen=True)

    latitude: float = Field(ge=-90, le=90, description="Latitude in decimal degrees")
    longitude: float = Field(
        ge=-180, le=180, description="Longitude in decimal degrees"
    )


class LocationReport(BaseModel):
    """One timestamped observation of an elephant, in canonical form."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float
    timestamp: datetime
    alert_tag: AlertTag = AlertTag.ROUTINE

    @property
    def point(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


class Geofence(BaseModel):
    """Polygon assigned to one elephant, with who drew it and when."""

    model_config = ConfigDict(frozen=True)

    vertices: tuple[tuple[float, float], ...] = Field(min_length=3)
    created_by: str | None = None
    created_at: Any = None
    ranger_id: str | None = None


class TrackedEntity(BaseModel):
    """An elephant record as read from the data source for one pass."""

    model_config = ConfigDict(frozen=True)

    entity_id: str
    reports: dict[str, Any] = Field(
        default_factory=dict, description="Raw location reports keyed by report ID"
    )
    geofence: Geofence | None = None
    last_known_location: dict[str, Any] | None = Field(
        default=None, description="Legacy flat location without history"
    )


class Subscriber(BaseModel):
    """A push destination and where its owner currently is."""

    model_config = ConfigDict(frozen=True)

    destination: str
    location: GeoPoint | None = None
    contact: dict[str, Any] = Field(default_factory=dict)
    subscribed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class GeofenceAlertKind(str, Enum):
    BREACH = "breach"
    RETURN = "return"


class ProximityAlert(BaseModel):
    """An elephant came within the alert radius of a subscriber."""

    kind: Literal["proximity"] = "proximity"
    subscriber_id: str
    entity_id: str
    distance_km: float
    location: LocationReport


class GeofenceAlert(BaseModel):
    """An elephant crossed its geofence boundary."""

    kind: GeofenceAlertKind
    entity_id: str
    location: LocationReport
    created_by: str | None = None
    created_at: Any = None
    ranger_id: str | None = None


class RunningAlert(BaseModel):
    """The latest report of an elephant is tagged as running."""

    kind: Literal["running"] = "running"
    entity_id: str
    location: LocationReport
    timestamp: datetime


Alert = ProximityAlert | GeofenceAlert | RunningAlert


class DeliveryOutcome(BaseModel):
    """Counts for one dispatch across its destinations."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    removed: int = 0

    def merge(self, other: "DeliveryOutcome") -> "DeliveryOutcome":
        return DeliveryOutcome(
            attempted=self.attempted + other.attempted,
            succeeded=self.succeeded + other.succeeded,
            failed=self.failed + other.failed,
            removed=self.removed + other.removed,
        )


class AlertRecord(BaseModel):
    """A dispatched alert together with how its delivery went."""

    alert: ProximityAlert | GeofenceAlert | RunningAlert
    outcome: DeliveryOutcome
    dispatched_at: datetime


# -------------------- HTTP schemas --------------------


class SubscribeRequest(BaseModel):
    destination: str = Field(min_length=1, description="Push destination handle")
    location: GeoPoint | None = None
    contact: dict[str, Any] = Field(default_factory=dict)


class SubscribeResponse(BaseModel):
    success: bool
    message: str
    subscriberCount: int


class UpdateLocationRequest(BaseModel):
    destination: str = Field(min_length=1)
    location: GeoPoint


class NotifyRequest(BaseModel):
    title: str = Field(min_length=1)
    body: str = Field(min_length=1)

    @field_validator("title", "body")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class NotifyResponse(BaseModel):
    message: str
    total: int
    successful: int


class StatusResponse(BaseModel):
    subscribers: int
    monitoring: str
    cooldowns: int
    uptime: float
    last_pass: datetime | None = None
