"""Service status and alert history endpoints."""

import time

from fastapi import APIRouter, Depends, Query, Request

from trunklink.dispatcher import NotificationDispatcher
from trunklink.models import AlertRecord, StatusResponse
from trunklink.registry import SubscriberRegistry
from trunklink.routers.deps import get_dispatcher, get_registry, get_scheduler
from trunklink.scheduler import AlertScheduler

router = APIRouter(tags=["system"])


@router.get("/")
async def root(registry: SubscriberRegistry = Depends(get_registry)) -> dict:
    """Basic service information."""
    return {
        "status": "running",
        "subscribers": len(registry),
        "message": "TrunkLink Push Service with Proximity Monitoring",
    }


@router.get("/status", response_model=StatusResponse)
async def get_status(
    request: Request,
    registry: SubscriberRegistry = Depends(get_registry),
    scheduler: AlertScheduler = Depends(get_scheduler),
) -> StatusResponse:
    last_pass = scheduler.last_pass
    return StatusResponse(
        subscribers=len(registry),
        monitoring="active" if scheduler.running else "stopped",
        cooldowns=scheduler.store.cooldown_count,
        uptime=time.monotonic() - request.app.state.started_at,
        last_pass=last_pass.finished_at if last_pass else None,
    )


@router.get("/alerts", response_model=list[AlertRecord])
async def recent_alerts(
    limit: int = Query(default=50, ge=1, le=500),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> list[AlertRecord]:
    """Most recent dispatched alerts, newest first."""
    return dispatcher.history.recent(limit)
