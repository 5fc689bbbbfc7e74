"""In-memory cooldown and geofence state, owned by the scheduler."""

import time
from collections.abc import Callable


def _wall_clock_ms() -> float:
    return time.time() * 1000


def proximity_key(subscriber_id: str, entity_id: str) -> str:
    return f"proximity|{subscriber_id}|{entity_id}"


def running_key(entity_id: str) -> str:
    return f"running|{entity_id}"


class AlertStateStore:
    """
    Last-alert timestamps and last known inside/outside geofence state.

    Lives for the process only; a restart starts from an empty store.
    All times are epoch milliseconds from the injected clock.
    """

    def __init__(self, clock: Callable[[], float] = _wall_clock_ms):
        self._clock = clock
        self._last_alert_at: dict[str, float] = {}
        self._inside: dict[str, bool] = {}

    def now_ms(self) -> float:
        return self._clock()

    def in_cooldown(self, key: str, window_ms: float) -> bool:
        last = self._last_alert_at.get(key)
        if last is None:
            return False
        return self.now_ms() - last < window_ms

    def mark_alerted(self, key: str) -> None:
        self._last_alert_at[key] = self.now_ms()

    def last_alert_at(self, key: str) -> float | None:
        return self._last_alert_at.get(key)

    def get_inside_state(self, entity_id: str) -> bool | None:
        """True/False once observed, None while unknown."""
        return self._inside.get(entity_id)

    def set_inside_state(self, entity_id: str, inside: bool) -> None:
        self._inside[entity_id] = inside

    @property
    def cooldown_count(self) -> int:
        return len(self._last_alert_at)
