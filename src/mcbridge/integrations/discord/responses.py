"""Interaction callback payloads returned synchronously from the webhook."""

from __future__ import annotations

from typing import Any, Optional

from .constants import (
    DISCORD_MAX_MESSAGE_LENGTH,
    MESSAGE_FLAG_EPHEMERAL,
    RESPONSE_TYPE_CHANNEL_MESSAGE_WITH_SOURCE,
    RESPONSE_TYPE_PONG,
    RESPONSE_TYPE_UPDATE_MESSAGE,
)


def truncate_for_discord(text: str, *, max_len: int = DISCORD_MAX_MESSAGE_LENGTH) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def build_pong() -> dict[str, Any]:
    return {"type": RESPONSE_TYPE_PONG}


def build_message_data(
    *,
    content: Optional[str] = None,
    embeds: Optional[list[dict[str, Any]]] = None,
    components: Optional[list[dict[str, Any]]] = None,
    ephemeral: bool = False,
) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if content is not None:
        data["content"] = truncate_for_discord(content)
    if embeds is not None:
        data["embeds"] = embeds
    if components is not None:
        data["components"] = components
    if ephemeral:
        data["flags"] = MESSAGE_FLAG_EPHEMERAL
    return data


def build_channel_message(data: dict[str, Any]) -> dict[str, Any]:
    return {"type": RESPONSE_TYPE_CHANNEL_MESSAGE_WITH_SOURCE, "data": data}


def build_update_message(data: dict[str, Any]) -> dict[str, Any]:
    return {"type": RESPONSE_TYPE_UPDATE_MESSAGE, "data": data}


def build_ephemeral_message(content: str) -> dict[str, Any]:
    return build_channel_message(build_message_data(content=content, ephemeral=True))


def build_embed(
    *,
    title: str,
    color: int,
    description: Optional[str] = None,
    fields: Optional[list[tuple[str, str, bool]]] = None,
    footer: Optional[str] = None,
    timestamp: Optional[str] = None,
) -> dict[str, Any]:
    embed: dict[str, Any] = {"title": title, "color": color}
    if description is not None:
        embed["description"] = description
    if fields:
        embed["fields"] = [
            {"name": name, "value": value, "inline": inline}
            for name, value, inline in fields
        ]
    if footer:
        embed["footer"] = {"text": footer}
    if timestamp:
        embed["timestamp"] = timestamp
    return embed
