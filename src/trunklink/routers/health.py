"""Liveness, readiness and metrics endpoints."""

from fastapi import APIRouter, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from trunklink import __version__
from trunklink.health import HealthChecker, ReadinessReport


def create_health_router(checker: HealthChecker, include_metrics: bool = True) -> APIRouter:
    """Build the probe router around `checker`; `/metrics` only when enabled."""
    router = APIRouter(tags=["health"])

    @router.get("/healthz")
    async def liveness() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @router.get(
        "/readyz",
        response_model=ReadinessReport,
        responses={status.HTTP_503_SERVICE_UNAVAILABLE: {"model": ReadinessReport}},
    )
    async def readiness(response: Response) -> ReadinessReport:
        report = await checker.readiness()
        if not report.ready:
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return report

    if include_metrics:

        @router.get("/metrics")
        async def metrics() -> Response:
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return router
