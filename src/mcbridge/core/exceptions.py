"""Error taxonomy shared by the web surface and the Discord handlers.

Every error carries the HTTP status it maps to. ``user_message`` is the text
that may be shown to an end user; the exception message itself is meant for
operators and logs.
"""

from __future__ import annotations

from typing import Optional


class BridgeError(Exception):
    """Base error for the bridge."""

    status_code: int = 500
    default_user_message: str = "Internal server error"

    def __init__(self, message: str, *, user_message: Optional[str] = None) -> None:
        super().__init__(message)
        self.user_message = user_message

    @property
    def public_message(self) -> str:
        if self.user_message:
            return self.user_message
        if self.status_code >= 500:
            return self.default_user_message
        return str(self) or self.default_user_message


class ConfigError(BridgeError):
    """Invalid or incomplete configuration."""


class ValidationError(BridgeError):
    """Missing or malformed input."""

    status_code = 400
    default_user_message = "Invalid request"


class AuthError(BridgeError):
    """Missing or invalid credential."""

    status_code = 401
    default_user_message = "Unauthorized"


class NotFoundError(BridgeError):
    status_code = 404
    default_user_message = "Not found"


class ExpiredError(BridgeError):
    """A binding code was presented after its expiry window."""

    status_code = 410
    default_user_message = "Expired"


class UpstreamError(BridgeError):
    """A dependency (the Discord API) failed."""

    status_code = 502
    default_user_message = "Upstream request failed"


class InternalError(BridgeError):
    """Unexpected store or logic failure."""

    status_code = 500


__all__ = [
    "AuthError",
    "BridgeError",
    "ConfigError",
    "ExpiredError",
    "InternalError",
    "NotFoundError",
    "UpstreamError",
    "ValidationError",
]
