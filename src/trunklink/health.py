"""Readiness probes for the service's external dependencies."""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone

import structlog
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)

Probe = Callable[[], Awaitable[bool]]


class CheckResult(BaseModel):
    name: str
    healthy: bool
    duration_ms: float = 0.0
    error: str | None = None


class ReadinessReport(BaseModel):
    ready: bool
    checks: list[CheckResult] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class HealthChecker:
    """Runs named probes concurrently, each bounded by `timeout` seconds."""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._probes: dict[str, Probe] = {}

    def add_check(self, name: str, probe: Probe) -> None:
        self._probes[name] = probe

    async def _run(self, name: str, probe: Probe) -> CheckResult:
        started = time.perf_counter()
        try:
            healthy = bool(await asyncio.wait_for(probe(), timeout=self.timeout))
        except asyncio.TimeoutError:
            logger.warning("Readiness probe timed out", check=name, timeout=self.timeout)
            return CheckResult(
                name=name, healthy=False, error=f"timed out after {self.timeout}s"
            )
        except Exception as e:
            logger.warning("Readiness probe failed", check=name, error=str(e))
            return CheckResult(name=name, healthy=False, error=str(e) or type(e).__name__)

        return CheckResult(
            name=name,
            healthy=healthy,
            duration_ms=(time.perf_counter() - started) * 1000,
        )

    async def readiness(self) -> ReadinessReport:
        """Ready when every probe reports healthy; no probes means ready."""
        results = await asyncio.gather(
            *(self._run(name, probe) for name, probe in self._probes.items())
        )
        return ReadinessReport(ready=all(r.healthy for r in results), checks=list(results))
