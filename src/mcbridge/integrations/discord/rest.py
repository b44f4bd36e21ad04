from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Optional, Protocol

import httpx

from ...core.logging_utils import log_event
from .constants import DISCORD_API_BASE_URL
from .errors import DiscordAPIError, DiscordPermanentError

logger = logging.getLogger(__name__)

_RETRYABLE_NETWORK_ERRORS = (
    httpx.ConnectError,
    httpx.ReadError,
    httpx.WriteError,
    httpx.ConnectTimeout,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
    httpx.PoolTimeout,
)


class DiscordRestApi(Protocol):
    """Subset of the Discord REST API the bridge talks to."""

    async def get_channel(self, *, channel_id: str) -> dict[str, Any]: ...

    async def create_channel_message(
        self, *, channel_id: str, payload: dict[str, Any]
    ) -> dict[str, Any]: ...

    async def add_guild_member_role(
        self, *, guild_id: str, user_id: str, role_id: str
    ) -> None: ...

    async def remove_guild_member_role(
        self, *, guild_id: str, user_id: str, role_id: str
    ) -> None: ...

    async def bulk_overwrite_application_commands(
        self,
        *,
        application_id: str,
        commands: list[dict[str, Any]],
        guild_id: Optional[str] = None,
    ) -> list[dict[str, Any]]: ...


class DiscordRestClient:
    def __init__(
        self,
        *,
        bot_token: str,
        timeout_seconds: float = 10.0,
        base_url: str = DISCORD_API_BASE_URL,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 30.0,
    ) -> None:
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds)
        self._authorization_header = f"Bot {bot_token}"
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._retry_max_delay = retry_max_delay

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DiscordRestClient":
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    def _calculate_retry_delay(self, attempt: int) -> float:
        delay = self._retry_base_delay * (2**attempt) + random.uniform(0, 1)
        return float(min(delay, self._retry_max_delay))

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: dict[str, Any] | list[dict[str, Any]] | None = None,
        expect_json: bool = True,
    ) -> Any:
        rate_limit_retries = 0
        retry_attempt = 0

        while True:
            try:
                response = await self._client.request(
                    method,
                    path,
                    json=payload,
                    headers={"Authorization": self._authorization_header},
                )
            except httpx.HTTPError as exc:
                if (
                    isinstance(exc, _RETRYABLE_NETWORK_ERRORS)
                    and retry_attempt < self._max_retries
                ):
                    retry_attempt += 1
                    delay = self._calculate_retry_delay(retry_attempt)
                    log_event(
                        logger,
                        logging.WARNING,
                        "discord.rest.network_retry",
                        method=method,
                        path=path,
                        delay_seconds=round(delay, 2),
                        attempt=retry_attempt,
                        exc=exc,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise DiscordAPIError(
                    f"Discord API network error for {method} {path}: {exc}"
                ) from exc

            status_code = response.status_code
            if 200 <= status_code < 300:
                if not expect_json or not response.content:
                    return None if not expect_json else {}
                try:
                    return response.json()
                except ValueError as exc:
                    raise DiscordAPIError(
                        f"Discord API returned non-JSON success response for {method} {path}"
                    ) from exc

            body_preview = (response.text or "").strip().replace("\n", " ")[:200]
            if status_code == 429:
                retry_after_raw = response.headers.get("Retry-After")
                if retry_after_raw is not None and rate_limit_retries < self._max_retries:
                    rate_limit_retries += 1
                    try:
                        retry_after = max(float(retry_after_raw), 0.0)
                    except ValueError:
                        retry_after = 0.0
                    log_event(
                        logger,
                        logging.INFO,
                        "discord.rest.rate_limited",
                        method=method,
                        path=path,
                        retry_after=retry_after,
                        attempt=rate_limit_retries,
                    )
                    await asyncio.sleep(retry_after)
                    continue
                raise DiscordAPIError(
                    f"Discord API rate limit exceeded for {method} {path}",
                    status_code=status_code,
                )
            if 500 <= status_code < 600:
                if retry_attempt < self._max_retries:
                    retry_attempt += 1
                    delay = self._calculate_retry_delay(retry_attempt)
                    log_event(
                        logger,
                        logging.WARNING,
                        "discord.rest.server_error_retry",
                        method=method,
                        path=path,
                        status=status_code,
                        delay_seconds=round(delay, 2),
                        attempt=retry_attempt,
                    )
                    await asyncio.sleep(delay)
                    continue
                raise DiscordAPIError(
                    f"Discord API server error for {method} {path}: "
                    f"status={status_code} body={body_preview!r}",
                    status_code=status_code,
                )
            if status_code in {401, 403}:
                raise DiscordPermanentError(
                    f"Discord API authentication failure for {method} {path}: "
                    f"status={status_code} body={body_preview!r}",
                    status_code=status_code,
                )
            raise DiscordAPIError(
                f"Discord API request failed for {method} {path}: "
                f"status={status_code} body={body_preview!r}",
                status_code=status_code,
            )

    async def get_channel(self, *, channel_id: str) -> dict[str, Any]:
        payload = await self._request("GET", f"/channels/{channel_id}")
        return payload if isinstance(payload, dict) else {}

    async def create_channel_message(
        self,
        *,
        channel_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/channels/{channel_id}/messages",
            payload=payload,
        )
        return response if isinstance(response, dict) else {}

    async def add_guild_member_role(
        self, *, guild_id: str, user_id: str, role_id: str
    ) -> None:
        await self._request(
            "PUT",
            f"/guilds/{guild_id}/members/{user_id}/roles/{role_id}",
            expect_json=False,
        )

    async def remove_guild_member_role(
        self, *, guild_id: str, user_id: str, role_id: str
    ) -> None:
        await self._request(
            "DELETE",
            f"/guilds/{guild_id}/members/{user_id}/roles/{role_id}",
            expect_json=False,
        )

    async def bulk_overwrite_application_commands(
        self,
        *,
        application_id: str,
        commands: list[dict[str, Any]],
        guild_id: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        path = (
            f"/applications/{application_id}/commands"
            if guild_id is None
            else f"/applications/{application_id}/guilds/{guild_id}/commands"
        )
        payload = await self._request("PUT", path, payload=commands)
        if not isinstance(payload, list):
            return []
        return [item for item in payload if isinstance(item, dict)]
