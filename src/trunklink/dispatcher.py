"""Formats alerts and delivers them through the push channel."""

import asyncio
from collections import deque
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import structlog

from . import metrics
from .models import (
    Alert,
    AlertRecord,
    DeliveryOutcome,
    GeofenceAlert,
    ProximityAlert,
    RunningAlert,
)
from .notifications import (
    geofence_payload,
    manual_payload,
    proximity_payload,
    running_payload,
)
from .push import DestinationGoneError, PushChannel, PushDeliveryError
from .registry import SubscriberRegistry

logger = structlog.get_logger(__name__)


class AlertHistory:
    """Bounded log of dispatched alerts, most recent first."""

    def __init__(self, maxlen: int = 200):
        self._records: deque[AlertRecord] = deque(maxlen=maxlen)

    def record(self, alert: Alert, outcome: DeliveryOutcome) -> AlertRecord:
        entry = AlertRecord(
            alert=alert,
            outcome=outcome,
            dispatched_at=datetime.now(timezone.utc),
        )
        self._records.appendleft(entry)
        return entry

    def recent(self, limit: int | None = None) -> list[AlertRecord]:
        records = list(self._records)
        return records if limit is None else records[:limit]

    def __len__(self) -> int:
        return len(self._records)


class NotificationDispatcher:
    """
    Delivers alerts to push destinations.

    Proximity alerts go to the subscriber they concern; geofence and
    running alerts go to every registered destination. Each delivery is
    independent: a failing destination never holds up or cancels the
    others, a destination reported gone is removed from the registry and
    transient failures are only logged.
    """

    def __init__(
        self,
        channel: PushChannel,
        registry: SubscriberRegistry,
        history: AlertHistory | None = None,
        proximity_broadcast: bool = False,
    ):
        self.channel = channel
        self.registry = registry
        self.history = history if history is not None else AlertHistory()
        self.proximity_broadcast = proximity_broadcast

    async def _deliver(self, destination: str, payload: dict[str, Any]) -> DeliveryOutcome:
        try:
            await self.channel.send(destination, payload)
        except DestinationGoneError as e:
            removed = self.registry.remove(destination)
            metrics.deliveries.labels(status="gone").inc()
            if removed:
                metrics.destinations_removed.inc()
                metrics.registered_subscribers.set(len(self.registry))
            logger.warning(
                "Removing expired destination",
                destination=destination,
                error=str(e),
            )
            return DeliveryOutcome(attempted=1, failed=1, removed=int(removed))
        except PushDeliveryError as e:
            metrics.deliveries.labels(status="transient").inc()
            logger.error(
                "Error sending push notification",
                destination=destination,
                error=str(e),
            )
            return DeliveryOutcome(attempted=1, failed=1)
        except Exception as e:
            metrics.deliveries.labels(status="transient").inc()
            logger.error(
                "Unexpected error sending push notification",
                destination=destination,
                error=str(e),
                exc_info=True,
            )
            return DeliveryOutcome(attempted=1, failed=1)

        metrics.deliveries.labels(status="success").inc()
        logger.info("Push sent", destination=destination, title=payload.get("title"))
        return DeliveryOutcome(attempted=1, succeeded=1)

    async def _fan_out(
        self, destinations: Iterable[str], payload: dict[str, Any]
    ) -> DeliveryOutcome:
        results = await asyncio.gather(
            *(self._deliver(destination, payload) for destination in destinations)
        )
        outcome = DeliveryOutcome()
        for result in results:
            outcome = outcome.merge(result)
        return outcome

    async def dispatch_proximity(self, alert: ProximityAlert) -> DeliveryOutcome:
        if self.proximity_broadcast:
            payload = proximity_payload(alert, broadcast=True)
            outcome = await self._fan_out(self.registry.destinations(), payload)
        elif alert.subscriber_id not in self.registry:
            logger.info(
                "Subscriber gone before delivery, dropping proximity alert",
                entity_id=alert.entity_id,
            )
            outcome = DeliveryOutcome()
        else:
            outcome = await self._fan_out([alert.subscriber_id], proximity_payload(alert))
        self.history.record(alert, outcome)
        return outcome

    async def dispatch_broadcast(self, alert: GeofenceAlert | RunningAlert) -> DeliveryOutcome:
        if isinstance(alert, GeofenceAlert):
            payload = geofence_payload(alert)
        else:
            payload = running_payload(alert)
        outcome = await self._fan_out(self.registry.destinations(), payload)
        self.history.record(alert, outcome)
        logger.info(
            "Broadcast alert dispatched",
            kind=str(getattr(alert.kind, "value", alert.kind)),
            entity_id=alert.entity_id,
            attempted=outcome.attempted,
            succeeded=outcome.succeeded,
        )
        return outcome

    async def dispatch(self, alert: Alert) -> DeliveryOutcome:
        if isinstance(alert, ProximityAlert):
            return await self.dispatch_proximity(alert)
        return await self.dispatch_broadcast(alert)

    async def dispatch_all(self, alerts: Iterable[Alert]) -> DeliveryOutcome:
        results = await asyncio.gather(*(self.dispatch(alert) for alert in alerts))
        outcome = DeliveryOutcome()
        for result in results:
            outcome = outcome.merge(result)
        return outcome

    async def notify(self, title: str, body: str) -> DeliveryOutcome:
        """Manual broadcast to every registered destination."""
        logger.info("Manual notification", title=title)
        return await self._fan_out(self.registry.destinations(), manual_payload(title, body))
