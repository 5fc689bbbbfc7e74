"""In-memory subscriber registry keyed by push destination."""

from typing import Any

import structlog

from .models import GeoPoint, Subscriber

logger = structlog.get_logger(__name__)


class SubscriberRegistry:
    """Subscribers by destination handle; one record per handle."""

    def __init__(self):
        self._subscribers: dict[str, Subscriber] = {}

    def subscribe(
        self,
        destination: str,
        location: GeoPoint | None = None,
        contact: dict[str, Any] | None = None,
    ) -> int:
        """Add or replace a subscriber and return the subscriber count."""
        replaced = destination in self._subscribers
        self._subscribers[destination] = Subscriber(
            destination=destination,
            location=location,
            contact=contact or {},
        )
        logger.info(
            "Subscriber registered",
            replaced=replaced,
            has_location=location is not None,
            total=len(self._subscribers),
        )
        return len(self._subscribers)

    def update_location(self, destination: str, location: GeoPoint) -> bool:
        current = self._subscribers.get(destination)
        if current is None:
            return False
        self._subscribers[destination] = current.model_copy(update={"location": location})
        logger.info("Subscriber location updated")
        return True

    def remove(self, destination: str) -> bool:
        removed = self._subscribers.pop(destination, None) is not None
        if removed:
            logger.info("Subscriber removed", total=len(self._subscribers))
        return removed

    def get(self, destination: str) -> Subscriber | None:
        return self._subscribers.get(destination)

    def destinations(self) -> list[str]:
        return list(self._subscribers)

    def snapshot(self) -> tuple[Subscriber, ...]:
        """Immutable view for one evaluation pass."""
        return tuple(self._subscribers.values())

    def __len__(self) -> int:
        return len(self._subscribers)

    def __contains__(self, destination: object) -> bool:
        return destination in self._subscribers
