from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import firebase_admin
from firebase_admin import credentials, exceptions as firebase_exceptions, messaging
from google.auth import exceptions as auth_exceptions

from relay.errors import DeliveryError, InvalidTokenError, NotificationError
from relay.text import truncate_text
from relay.types import BatchDeliveryResult, DeliveryResult

logger = logging.getLogger(__name__)

BODY_LIMIT = 100
APP_NAME = "kb-relay"

INVALID_TOKEN_ERRORS = (
    messaging.UnregisteredError,
    messaging.SenderIdMismatchError,
    firebase_exceptions.InvalidArgumentError,
    firebase_exceptions.NotFoundError,
)

# Errors a send can raise that are reported per token instead of propagated.
SEND_ERRORS = (firebase_exceptions.FirebaseError, auth_exceptions.GoogleAuthError, DeliveryError, ValueError)


@dataclass
class ChatNotification:
    recipient_token: str
    sender_name: str
    message_text: str
    chat_room_id: Optional[str] = None
    post_title: Optional[str] = None

    def data(self) -> Dict[str, str]:
        payload = {"type": "chat_message", "senderName": self.sender_name}
        if self.chat_room_id:
            payload["chatRoomId"] = self.chat_room_id
        if self.post_title:
            payload["postTitle"] = self.post_title
        return payload


def classify_error(exc: Exception) -> NotificationError:
    if isinstance(exc, INVALID_TOKEN_ERRORS):
        return InvalidTokenError(str(exc))
    return DeliveryError(str(exc))


def build_message(token: str, title: str, body: str, data: Optional[Dict[str, Any]] = None) -> messaging.Message:
    # FCM data payloads only carry string values.
    payload = {key: str(value) for key, value in (data or {}).items() if value is not None}
    return messaging.Message(
        token=token,
        notification=messaging.Notification(title=title, body=truncate_text(body, BODY_LIMIT)),
        data=payload,
        android=messaging.AndroidConfig(
            priority="high",
            notification=messaging.AndroidNotification(sound="default"),
        ),
        apns=messaging.APNSConfig(payload=messaging.APNSPayload(aps=messaging.Aps(sound="default"))),
    )


def build_chat_message(notification: ChatNotification) -> messaging.Message:
    return build_message(
        notification.recipient_token,
        notification.sender_name,
        notification.message_text,
        notification.data(),
    )


class PushNotifier:
    """Firebase Cloud Messaging sender.

    The firebase app is initialized on first send. The SDK is blocking, so
    sends run in a worker thread.
    """

    def __init__(self, credentials_path: Optional[str] = None, app: Any = None) -> None:
        self.credentials_path = credentials_path
        self._app = app

    @property
    def configured(self) -> bool:
        if self._app is not None:
            return True
        return bool(self.credentials_path) and Path(self.credentials_path).exists()

    def _ensure_app(self) -> Any:
        if self._app is not None:
            return self._app
        if not self.configured:
            raise DeliveryError("Push notifications are not configured")
        try:
            self._app = firebase_admin.get_app(APP_NAME)
        except ValueError:
            cert = credentials.Certificate(self.credentials_path)
            self._app = firebase_admin.initialize_app(cert, name=APP_NAME)
        return self._app

    async def send_one(
        self, token: str, title: str, body: str, data: Optional[Dict[str, Any]] = None
    ) -> DeliveryResult:
        return await self.send_message(token, build_message(token, title, body, data))

    async def send_chat(self, notification: ChatNotification) -> DeliveryResult:
        return await self.send_one(
            notification.recipient_token,
            notification.sender_name,
            notification.message_text,
            notification.data(),
        )

    async def send_message(self, token: str, message: messaging.Message) -> DeliveryResult:
        try:
            app = self._ensure_app()
            message_id = await asyncio.to_thread(messaging.send, message, app=app)
        except SEND_ERRORS as exc:
            error = classify_error(exc)
            logger.warning("Push to %s failed (%s): %s", _mask(token), error.code, exc)
            return DeliveryResult(token=token, success=False, error=str(exc), code=error.code)
        logger.info("Push sent to %s: %s", _mask(token), message_id)
        return DeliveryResult(token=token, success=True, message_id=message_id)

    async def send_batch(self, notifications: Sequence[ChatNotification]) -> BatchDeliveryResult:
        batch = BatchDeliveryResult()
        if not notifications:
            return batch
        messages = [build_chat_message(item) for item in notifications]
        try:
            app = self._ensure_app()
            response = await asyncio.to_thread(messaging.send_each, messages, app=app)
            outcomes: List[Any] = list(response.responses)
        except SEND_ERRORS as exc:
            logger.warning("Batch push of %d messages failed: %s", len(messages), exc)
            outcomes = [exc] * len(messages)

        for item, outcome in zip(notifications, outcomes):
            result = _delivery_result(item.recipient_token, outcome)
            batch.results.append(result)
            if result.success:
                batch.success_count += 1
            else:
                batch.failure_count += 1
        logger.info("Batch push: %d sent, %d failed", batch.success_count, batch.failure_count)
        return batch


def _delivery_result(token: str, outcome: Any) -> DeliveryResult:
    if isinstance(outcome, Exception):
        error = classify_error(outcome)
        return DeliveryResult(token=token, success=False, error=str(outcome), code=error.code)
    if outcome.success:
        return DeliveryResult(token=token, success=True, message_id=outcome.message_id)
    exc = outcome.exception
    error = classify_error(exc) if exc is not None else DeliveryError("unknown delivery failure")
    return DeliveryResult(token=token, success=False, error=str(exc or error), code=error.code)


def _mask(token: str) -> str:
    return token[:8] + "..." if len(token) > 8 else token
