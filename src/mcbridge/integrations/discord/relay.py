from __future__ import annotations

import logging
from typing import Optional

from ...core.exceptions import UpstreamError
from ...core.logging_utils import log_event
from ...core.models import MessageSource, RelayMessage
from ...core.state import BridgeStateStore
from .errors import DiscordAPIError
from .responses import truncate_for_discord
from .rest import DiscordRestApi

logger = logging.getLogger(__name__)

FORWARD_FAILED_MESSAGE = "Failed to send to Discord"


def format_minecraft_chat(username: str, message: str) -> str:
    return f"**[MC] {username}:** {message}"


class MinecraftChatRelay:
    """Stores chat coming from the game and forwards it to Discord channels."""

    def __init__(
        self,
        store: BridgeStateStore,
        rest: Optional[DiscordRestApi],
        *,
        default_channel_id: Optional[str] = None,
    ) -> None:
        self._store = store
        self._rest = rest
        self._default_channel_id = default_channel_id

    async def destinations(self) -> list[str]:
        channels = await self._store.list_sync_channels()
        channel_ids = [channel.channel_id for channel in channels]
        if self._default_channel_id:
            channel_ids.append(self._default_channel_id)
        return list(dict.fromkeys(channel_ids))

    async def relay(self, *, username: str, message: str) -> RelayMessage:
        stored = await self._store.add_message(
            source=MessageSource.MINECRAFT,
            username=username,
            content=message,
            delivered=True,
        )
        channel_ids = await self.destinations()
        if not channel_ids:
            return stored
        if self._rest is None:
            raise UpstreamError(
                "Discord bot token is not configured",
                user_message=FORWARD_FAILED_MESSAGE,
            )

        payload = {
            "content": truncate_for_discord(format_minecraft_chat(username, message)),
            "allowed_mentions": {"parse": []},
        }
        failed: list[str] = []
        for channel_id in channel_ids:
            try:
                await self._rest.create_channel_message(
                    channel_id=channel_id, payload=payload
                )
            except DiscordAPIError as exc:
                failed.append(channel_id)
                log_event(
                    logger,
                    logging.WARNING,
                    "relay.forward_failed",
                    channel_id=channel_id,
                    message_id=stored.id,
                    exc=exc,
                )
        if failed:
            raise UpstreamError(
                f"Forwarding message {stored.id} failed for {len(failed)} channel(s)",
                user_message=FORWARD_FAILED_MESSAGE,
            )
        log_event(
            logger,
            logging.INFO,
            "relay.forwarded",
            message_id=stored.id,
            channel_count=len(channel_ids),
        )
        return stored
