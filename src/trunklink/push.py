"""Push delivery channels."""

import asyncio
from typing import Any, Protocol

import firebase_admin
import structlog
from firebase_admin import credentials, exceptions, messaging

from .config import Settings

logger = structlog.get_logger(__name__)


class PushDeliveryError(Exception):
    """Delivery failed but the destination may still be valid."""


class DestinationGoneError(PushDeliveryError):
    """The channel reports the destination no longer exists."""


def _is_token_error(error: Exception) -> bool:
    return "registration token" in str(error).lower()


class PushChannel(Protocol):
    async def send(self, destination: str, payload: dict[str, Any]) -> None:
        """Deliver one payload or raise PushDeliveryError / DestinationGoneError."""
        ...


def _stringify_data(data: dict[str, Any] | None) -> dict[str, str]:
    # FCM data values must be strings
    return {key: str(value) for key, value in (data or {}).items() if value is not None}


class FCMPushChannel:
    """Delivers notifications through Firebase Cloud Messaging."""

    APP_NAME = "trunklink"

    def __init__(self, credentials_path: str | None = None, timeout: float = 10.0):
        self.credentials_path = credentials_path
        self.timeout = timeout
        self._app: firebase_admin.App | None = None

    def _ensure_app(self) -> firebase_admin.App:
        if self._app is None:
            try:
                self._app = firebase_admin.get_app(self.APP_NAME)
            except ValueError:
                cred = (
                    credentials.Certificate(self.credentials_path)
                    if self.credentials_path
                    else credentials.ApplicationDefault()
                )
                self._app = firebase_admin.initialize_app(cred, name=self.APP_NAME)
                logger.info("Initialized Firebase app for push delivery")
        return self._app

    def build_message(self, destination: str, payload: dict[str, Any]) -> messaging.Message:
        title = payload.get("title", "")
        body = payload.get("body", "")
        return messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            data=_stringify_data(payload.get("data")),
            token=destination,
            android=messaging.AndroidConfig(priority="high"),
            webpush=messaging.WebpushConfig(headers={"Urgency": "high"}),
        )

    async def send(self, destination: str, payload: dict[str, Any]) -> None:
        message = self.build_message(destination, payload)
        try:
            app = self._ensure_app()
            await asyncio.wait_for(
                asyncio.to_thread(messaging.send, message, app=app),
                timeout=self.timeout,
            )
        except (messaging.UnregisteredError, messaging.SenderIdMismatchError) as e:
            raise DestinationGoneError(str(e)) from e
        except exceptions.InvalidArgumentError as e:
            # a malformed token is rejected as INVALID_ARGUMENT and never recovers
            if _is_token_error(e):
                raise DestinationGoneError(str(e)) from e
            raise PushDeliveryError(str(e)) from e
        except asyncio.TimeoutError as e:
            raise PushDeliveryError(f"delivery timed out after {self.timeout}s") from e
        except (exceptions.FirebaseError, ValueError) as e:
            raise PushDeliveryError(str(e)) from e


class LoggingPushChannel:
    """Logs notifications instead of delivering them; for local runs."""

    async def send(self, destination: str, payload: dict[str, Any]) -> None:
        logger.info(
            "Push notification (log channel)",
            destination=destination,
            title=payload.get("title"),
            body=payload.get("body"),
        )


def build_push_channel(settings: Settings) -> PushChannel:
    if settings.push_channel == "log":
        return LoggingPushChannel()
    return FCMPushChannel(
        credentials_path=settings.fcm_credentials_path,
        timeout=settings.push_timeout,
    )
