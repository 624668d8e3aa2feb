"""Error taxonomy shared by the relay and the HTTP gateway."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class RelayError(Exception):
    """Base exception for relay errors."""


class ConfigError(RelayError):
    """Raised when a configuration file cannot be used."""


class UpstreamKind(str, Enum):
    UNAVAILABLE = "unavailable"
    TIMEOUT = "timeout"
    BAD_STATUS = "bad_status"
    MALFORMED = "malformed"


class UpstreamError(RelayError):
    """A knowledge-base or completion call failed.

    Raised once per failed call; nothing in the relay retries.
    """

    def __init__(self, kind: UpstreamKind, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"UpstreamError(kind={self.kind.value!r}, message={str(self)!r})"


class NotificationError(RelayError):
    code = "delivery_error"


class InvalidTokenError(NotificationError):
    """The push service rejected the device token as unknown or malformed."""

    code = "invalid_token"


class DeliveryError(NotificationError):
    """The push service failed for a reason other than the token."""
