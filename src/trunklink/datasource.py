"""Location data source: realtime database REST client and record parsing."""

import math
from collections.abc import AsyncIterator, Mapping
from typing import Any, Protocol

import httpx
import structlog

from .config import Settings
from .models import Geofence, TrackedEntity

logger = structlog.get_logger(__name__)

CHANGE_EVENTS = {"put", "patch"}
TERMINAL_EVENTS = {"cancel", "auth_revoked"}
# keep-alive events arrive every ~30s on an idle stream
STREAM_READ_TIMEOUT = 60.0


class DataSourceError(Exception):
    """The data source could not be reached or returned unusable data."""


class LocationSource(Protocol):
    async def fetch_entities(self) -> dict[str, TrackedEntity]: ...

    def watch(self) -> AsyncIterator[str]: ...

    async def check_health(self) -> bool: ...

    async def close(self) -> None: ...


def parse_geofence_coordinates(text: str) -> list[tuple[float, float]]:
    """Parse `lat,lng|lat,lng|...` (optionally `|`-terminated) into vertices."""
    vertices: list[tuple[float, float]] = []
    for pair in text.strip().split("|"):
        pair = pair.strip()
        if not pair:
            continue
        parts = pair.split(",")
        if len(parts) != 2:
            continue
        try:
            lat, lng = float(parts[0]), float(parts[1])
        except ValueError:
            continue
        if math.isfinite(lat) and math.isfinite(lng):
            vertices.append((lat, lng))
    return vertices


def parse_geofence(raw: Any, entity_id: str = "") -> Geofence | None:
    if not isinstance(raw, Mapping):
        return None
    coordinates = raw.get("coordinates")
    if not isinstance(coordinates, str) or not coordinates.strip():
        return None

    vertices = parse_geofence_coordinates(coordinates)
    if len(vertices) < 3:
        logger.warning(
            "Ignoring geofence with fewer than 3 vertices",
            entity_id=entity_id,
            vertices=len(vertices),
        )
        return None

    created_by = raw.get("created_by")
    ranger_id = raw.get("ranger_id")
    return Geofence(
        vertices=tuple(vertices),
        created_by=str(created_by) if created_by is not None else None,
        created_at=raw.get("created_at"),
        ranger_id=str(ranger_id) if ranger_id is not None else None,
    )


def _report_mapping(raw: Any) -> dict[str, Any]:
    if isinstance(raw, Mapping):
        return {str(key): value for key, value in raw.items() if value is not None}
    # sparse arrays come back as lists with null holes
    if isinstance(raw, list):
        return {str(i): value for i, value in enumerate(raw) if value is not None}
    return {}


def parse_entities(payload: Any) -> dict[str, TrackedEntity]:
    """Build TrackedEntity records from the collection payload."""
    if payload is None:
        return {}
    if not isinstance(payload, Mapping):
        raise DataSourceError(f"expected an object, got {type(payload).__name__}")

    entities: dict[str, TrackedEntity] = {}
    for entity_id, record in payload.items():
        if not isinstance(record, Mapping):
            logger.debug("Skipping non-object elephant record", entity_id=entity_id)
            continue
        legacy = record.get("livelocation")
        entities[str(entity_id)] = TrackedEntity(
            entity_id=str(entity_id),
            reports=_report_mapping(record.get("locations")),
            geofence=parse_geofence(record.get("geofence"), str(entity_id)),
            last_known_location=dict(legacy) if isinstance(legacy, Mapping) else None,
        )
    return entities


class FirebaseLocationSource:
    """Reads elephant records from a Firebase realtime database over REST."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.url = settings.entities_url
        self.auth = settings.data_source_auth
        self.timeout = settings.data_source_timeout
        self._client = httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            transport=transport,
        )

    def _params(self) -> dict[str, str]:
        return {"auth": self.auth} if self.auth else {}

    async def fetch_entities(self) -> dict[str, TrackedEntity]:
        """Fetch and parse every elephant record."""
        try:
            response = await self._client.get(self.url, params=self._params())
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise DataSourceError(
                f"data source returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise DataSourceError(f"data source request failed: {e!r}") from e
        except ValueError as e:
            raise DataSourceError(f"data source returned invalid JSON: {e}") from e

        return parse_entities(payload)

    async def watch(self) -> AsyncIterator[str]:
        """
        Yield the event name each time the collection changes.

        Uses the realtime database streaming protocol (server-sent events).
        Returns when the server closes the stream.
        """
        timeout = httpx.Timeout(self.timeout, read=STREAM_READ_TIMEOUT)
        try:
            async with self._client.stream(
                "GET",
                self.url,
                params=self._params(),
                headers={"Accept": "text/event-stream"},
                timeout=timeout,
            ) as response:
                response.raise_for_status()
                logger.info("Connected to data source change stream", url=self.url)
                async for line in response.aiter_lines():
                    if not line.startswith("event:"):
                        continue
                    event = line[len("event:"):].strip()
                    if event in CHANGE_EVENTS:
                        yield event
                    elif event in TERMINAL_EVENTS:
                        raise DataSourceError(f"change stream ended by server: {event}")
        except httpx.HTTPStatusError as e:
            raise DataSourceError(
                f"change stream returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise DataSourceError(f"change stream failed: {e!r}") from e

    async def check_health(self) -> bool:
        try:
            response = await self._client.get(
                self.url, params={**self._params(), "shallow": "true"}
            )
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("Data source health check failed", error=str(e))
            return False

    async def close(self) -> None:
        await self._client.aclose()
