from __future__ import annotations

from typing import Optional

from ...core.exceptions import UpstreamError


class DiscordAPIError(UpstreamError):
    """Discord API request error."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        user_message: Optional[str] = None,
    ) -> None:
        super().__init__(message, user_message=user_message)
        self.http_status = status_code


class DiscordPermanentError(DiscordAPIError):
    """Non-retryable Discord API error (bad token, missing permissions)."""
