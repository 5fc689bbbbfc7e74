"""Main FastAPI application for the TrunkLink alert service."""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trunklink import __version__
from trunklink.config import Settings, get_settings
from trunklink.datasource import FirebaseLocationSource, LocationSource
from trunklink.dispatcher import AlertHistory, NotificationDispatcher
from trunklink.health import HealthChecker
from trunklink.logging import setup_logging
from trunklink.push import PushChannel, build_push_channel
from trunklink.registry import SubscriberRegistry
from trunklink.routers import subscriptions, system
from trunklink.routers.health import create_health_router
from trunklink.scheduler import AlertScheduler
from trunklink.state import AlertStateStore

logger = structlog.get_logger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    source: LocationSource | None = None,
    channel: PushChannel | None = None,
    store: AlertStateStore | None = None,
    start_scheduler: bool = True,
) -> FastAPI:
    """Wire the alerting components into a FastAPI application."""
    settings = settings or get_settings()
    setup_logging(settings)

    registry = SubscriberRegistry()
    store = store or AlertStateStore()
    source = source or FirebaseLocationSource(settings)
    channel = channel or build_push_channel(settings)
    dispatcher = NotificationDispatcher(
        channel,
        registry,
        history=AlertHistory(settings.alert_history_size),
        proximity_broadcast=settings.proximity_broadcast,
    )
    scheduler = AlertScheduler(source, registry, store, dispatcher, settings)

    health_checker = HealthChecker(timeout=settings.data_source_timeout)
    health_checker.add_check("data_source", source.check_health)

    async def monitoring_active() -> bool:
        return scheduler.running

    if start_scheduler:
        health_checker.add_check("scheduler", monitoring_active)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Start monitoring on startup and release resources on shutdown."""
        logger.info(
            "Starting TrunkLink push service",
            version=__version__,
            port=settings.port,
            data_source=settings.entities_url,
        )
        if start_scheduler:
            await scheduler.start()

        yield

        logger.info("Shutting down TrunkLink push service")
        try:
            await scheduler.stop()
            await source.close()
        except Exception as e:
            logger.error("Error during shutdown", error=str(e))

    app = FastAPI(
        title="TrunkLink Push Service",
        description="Proximity, geofence and running alerts for tracked elephants",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.registry = registry
    app.state.store = store
    app.state.dispatcher = dispatcher
    app.state.scheduler = scheduler
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(system.router)
    app.include_router(subscriptions.router)
    app.include_router(
        create_health_router(health_checker, include_metrics=settings.metrics_enabled)
    )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc):
        """Handle unexpected exceptions."""
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"status": "error", "message": "Internal server error"},
        )

    return app


app = create_app()


def main() -> None:
    """Console entry point."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "trunklink.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
