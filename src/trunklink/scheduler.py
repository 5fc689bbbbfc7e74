"""Drives evaluation passes on a timer and on data source changes."""

import asyncio
import time
from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, Field

from . import metrics
from .config import Settings
from .datasource import DataSourceError, LocationSource
from .dispatcher import NotificationDispatcher
from .geofence import GeofenceEngine
from .models import Alert, DeliveryOutcome, ProximityAlert
from .proximity import ProximityEngine
from .registry import SubscriberRegistry
from .state import AlertStateStore

logger = structlog.get_logger(__name__)


class PassReport(BaseModel):
    """Summary of one evaluation pass."""

    ok: bool
    entities: int = 0
    alerts: int = 0
    outcome: DeliveryOutcome = Field(default_factory=DeliveryOutcome)
    finished_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: float = 0.0


def _alert_kind(alert: Alert) -> str:
    if isinstance(alert, ProximityAlert):
        return "proximity"
    return str(getattr(alert.kind, "value", alert.kind))


class AlertScheduler:
    """
    Runs at most one evaluation pass at a time.

    A pass requested while another is in flight is folded into a single
    follow-up pass, so bursts of triggers never stack up and the state
    store is only ever touched by one pass.
    """

    def __init__(
        self,
        source: LocationSource,
        registry: SubscriberRegistry,
        store: AlertStateStore,
        dispatcher: NotificationDispatcher,
        settings: Settings,
    ):
        self.source = source
        self.registry = registry
        self.store = store
        self.dispatcher = dispatcher
        self.settings = settings
        self.proximity = ProximityEngine(
            store,
            radius_km=settings.proximity_radius_km,
            cooldown_ms=settings.proximity_cooldown_ms,
        )
        self.geofence = GeofenceEngine(store, running_cooldown_ms=settings.running_cooldown_ms)

        self.last_pass: PassReport | None = None
        self.running = False
        self._lock = asyncio.Lock()
        self._pending = False
        self._tasks: list[asyncio.Task] = []

    async def run_pass(self) -> PassReport:
        """Fetch, evaluate both engines and dispatch the resulting alerts."""
        started = time.perf_counter()
        metrics.passes_total.inc()

        try:
            entities = await self.source.fetch_entities()
        except DataSourceError as e:
            metrics.fetch_failures.inc()
            logger.error("Failed to fetch elephant locations", error=str(e))
            report = PassReport(ok=False, duration_ms=(time.perf_counter() - started) * 1000)
            self.last_pass = report
            return report

        metrics.tracked_entities.set(len(entities))
        subscribers = self.registry.snapshot()
        metrics.registered_subscribers.set(len(subscribers))
        logger.debug(
            "Evaluating pass",
            entities=len(entities),
            subscribers=len(subscribers),
        )

        alerts: list[Alert] = []
        if subscribers:
            alerts.extend(self.proximity.evaluate(subscribers, entities))
        else:
            logger.debug("No subscribers, skipping proximity check")
        alerts.extend(self.geofence.evaluate(entities))
        alerts.extend(self.geofence.detect_running(entities))

        for alert in alerts:
            metrics.alerts_emitted.labels(kind=_alert_kind(alert)).inc()

        outcome = await self.dispatcher.dispatch_all(alerts)

        duration = time.perf_counter() - started
        metrics.pass_duration.observe(duration)
        report = PassReport(
            ok=True,
            entities=len(entities),
            alerts=len(alerts),
            outcome=outcome,
            duration_ms=duration * 1000,
        )
        self.last_pass = report
        log = logger.info if alerts else logger.debug
        log(
            "Evaluation pass complete",
            entities=report.entities,
            alerts=report.alerts,
            delivered=outcome.succeeded,
            failed=outcome.failed,
        )
        return report

    async def trigger(self, reason: str = "poll") -> bool:
        """
        Run a pass unless one is already in flight.

        Returns False when the request was folded into a queued follow-up.
        """
        if self._lock.locked():
            self._pending = True
            logger.debug("Pass in flight, queued follow-up", reason=reason)
            return False

        async with self._lock:
            while True:
                self._pending = False
                with structlog.contextvars.bound_contextvars(trigger=reason):
                    try:
                        await self.run_pass()
                    except Exception:
                        metrics.pass_failures.inc()
                        logger.error("Evaluation pass failed", exc_info=True)
                if not self._pending:
                    break
                reason = "queued"
        return True

    async def _poll_loop(self) -> None:
        await asyncio.sleep(self.settings.initial_delay_seconds)
        while self.running:
            try:
                await self.trigger("poll")
            except Exception:
                logger.error("Error in poll loop", exc_info=True)
            await asyncio.sleep(self.settings.poll_interval_seconds)

    async def _watch_loop(self) -> None:
        while self.running:
            try:
                async for event in self.source.watch():
                    if not self.running:
                        break
                    await self.trigger(f"change:{event}")
                logger.info("Change stream closed by server, reconnecting")
            except DataSourceError as e:
                logger.warning("Change stream failed", error=str(e))
            except Exception:
                logger.error("Error in watch loop", exc_info=True)
            await asyncio.sleep(self.settings.watch_retry_seconds)

    async def start(self) -> None:
        if self.running:
            return
        self.running = True
        self._tasks = [asyncio.create_task(self._poll_loop())]
        if self.settings.watch_enabled:
            self._tasks.append(asyncio.create_task(self._watch_loop()))
        logger.info(
            "Proximity monitoring started",
            interval_seconds=self.settings.poll_interval_seconds,
            watch=self.settings.watch_enabled,
        )

    async def stop(self) -> None:
        self.running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("Proximity monitoring stopped")
