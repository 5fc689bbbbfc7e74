"""Subscription and manual notification endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from trunklink import metrics
from trunklink.dispatcher import NotificationDispatcher
from trunklink.models import (
    NotifyRequest,
    NotifyResponse,
    SubscribeRequest,
    SubscribeResponse,
    UpdateLocationRequest,
)
from trunklink.registry import SubscriberRegistry
from trunklink.routers.deps import get_dispatcher, get_registry

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["subscriptions"])


@router.post(
    "/subscribe",
    response_model=SubscribeResponse,
    status_code=status.HTTP_201_CREATED,
)
async def subscribe(
    request: SubscribeRequest,
    registry: SubscriberRegistry = Depends(get_registry),
) -> SubscribeResponse:
    """Register a push destination, optionally with its current location."""
    count = registry.subscribe(
        request.destination,
        location=request.location,
        contact=request.contact,
    )
    metrics.registered_subscribers.set(count)
    if request.location:
        logger.info(
            "Subscriber location received",
            latitude=request.location.latitude,
            longitude=request.location.longitude,
        )
    return SubscribeResponse(
        success=True,
        message="Subscribed successfully",
        subscriberCount=count,
    )


@router.post("/update-location")
async def update_location(
    request: UpdateLocationRequest,
    registry: SubscriberRegistry = Depends(get_registry),
) -> dict:
    """Move an existing subscriber."""
    if not registry.update_location(request.destination, request.location):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscriber not found",
        )
    return {"success": True, "message": "Location updated"}


@router.post("/notify", response_model=NotifyResponse)
async def notify(
    request: NotifyRequest,
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> NotifyResponse:
    """Broadcast a notification to every registered destination."""
    outcome = await dispatcher.notify(request.title, request.body)
    return NotifyResponse(
        message="Notifications sent",
        total=outcome.attempted,
        successful=outcome.succeeded,
    )
