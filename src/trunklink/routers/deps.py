"""Request-scoped access to the service components."""

from fastapi import Request

from trunklink.dispatcher import NotificationDispatcher
from trunklink.registry import SubscriberRegistry
from trunklink.scheduler import AlertScheduler


def get_registry(request: Request) -> SubscriberRegistry:
    return request.app.state.registry


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_scheduler(request: Request) -> AlertScheduler:
    return request.app.state.scheduler
