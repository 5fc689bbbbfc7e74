"""Latest-location resolution from raw per-elephant report collections."""

import math
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from dateutil import parser as dtp

from .models import AlertTag, LocationReport, TrackedEntity

ENVELOPE_KEY = "uplink_message"
PAYLOAD_KEY = "decoded_payload"
RUNNING_TAGS = {"running_detected", "running"}
# `20240102` is a date, not 20 seconds after the epoch
COMPACT_DATE_DIGITS = 8


def _coerce_coordinate(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip().replace('"', "")
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_timestamp(value: Any) -> datetime | None:
    """
    Parse a report timestamp into an aware UTC datetime.

    Numbers and digit-only strings longer than eight digits are epoch
    milliseconds; other strings, including compact `YYYYMMDD` dates, are
    parsed as dates. Naive values are taken as UTC.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        if not isinstance(value, str) or not value.strip():
            return None
        text = value.strip()
        if text.isdigit() and len(text) > COMPACT_DATE_DIGITS:
            return datetime.fromtimestamp(int(text) / 1000, tz=timezone.utc)
        parsed = dtp.parse(text)
    except (ValueError, OverflowError, OSError):
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _unwrap(raw: Mapping[str, Any]) -> Mapping[str, Any]:
    envelope = raw.get(ENVELOPE_KEY)
    if isinstance(envelope, Mapping):
        payload = envelope.get(PAYLOAD_KEY)
        if isinstance(payload, Mapping):
            return payload
    return raw


def _first_coordinate(data: Mapping[str, Any], *keys: str) -> float | None:
    """First alias holding a usable number; blank or junk values fall through."""
    for key in keys:
        number = _coerce_coordinate(data.get(key))
        if number is not None:
            return number
    return None


def normalize_report(raw: Any) -> LocationReport | None:
    """Turn one raw report into a LocationReport, or None if it is unusable."""
    if not isinstance(raw, Mapping):
        return None
    data = _unwrap(raw)

    latitude = _first_coordinate(data, "latitude", "lat")
    longitude = _first_coordinate(data, "longitude", "lng")
    timestamp = parse_timestamp(data.get("timestamp"))
    if latitude is None or longitude is None or timestamp is None:
        return None

    tag = AlertTag.RUNNING if data.get("alert_type") in RUNNING_TAGS else AlertTag.ROUTINE
    return LocationReport(
        latitude=latitude,
        longitude=longitude,
        timestamp=timestamp,
        alert_tag=tag,
    )


def resolve_latest(reports: Iterable[Any]) -> LocationReport | None:
    """Pick the valid report with the greatest timestamp; the first seen wins ties."""
    latest: LocationReport | None = None
    for raw in reports:
        report = normalize_report(raw)
        if report is None:
            continue
        if latest is None or report.timestamp > latest.timestamp:
            latest = report
    return latest


def locate_entity(entity: TrackedEntity, now: datetime) -> LocationReport | None:
    """
    Current position of an elephant for one evaluation pass.

    The legacy flat location is only consulted when the elephant has no
    report history at all; it carries no timestamp of its own, so `now`
    stands in for one.
    """
    if entity.reports:
        return resolve_latest(entity.reports.values())

    legacy = entity.last_known_location
    if not legacy:
        return None
    stamped = dict(legacy)
    if parse_timestamp(stamped.get("timestamp")) is None:
        stamped["timestamp"] = now.isoformat()
    return normalize_report(stamped)
