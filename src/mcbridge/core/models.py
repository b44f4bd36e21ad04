from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class MessageSource(str, Enum):
    DISCORD = "discord"
    MINECRAFT = "minecraft"


@dataclass(frozen=True)
class BindingRecord:
    id: int
    discord_id: str
    discord_name: Optional[str]
    mc_name: Optional[str]
    bind_code: Optional[str] = None
    bind_code_at: Optional[str] = None
    mc_uuid: Optional[str] = None
    bound_at: Optional[str] = None

    @property
    def is_bound(self) -> bool:
        return self.mc_uuid is not None

    def to_player_dict(self) -> dict[str, Any]:
        return {
            "discord_id": self.discord_id,
            "discord_name": self.discord_name,
            "mc_uuid": self.mc_uuid,
            "mc_name": self.mc_name,
            "bound_at": self.bound_at,
        }


@dataclass(frozen=True)
class RelayMessage:
    id: int
    source: MessageSource
    username: str
    content: str
    delivered: bool
    created_at: str

    def to_outbound_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "content": self.content,
            "created_at": self.created_at,
        }


@dataclass(frozen=True)
class SettingEntry:
    key: str
    value: str
    updated_at: str

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "value": self.value, "updated_at": self.updated_at}


@dataclass(frozen=True)
class SyncChannel:
    channel_id: str
    guild_id: str
    guild_name: Optional[str]
    channel_name: Optional[str]
    added_by: Optional[str]
    added_at: str


@dataclass(frozen=True)
class InventoryItem:
    mc_uuid: str
    item_id: str
    item_name: str
    quantity: int
    metadata: Any = None
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "metadata": self.metadata,
            "updated_at": self.updated_at,
        }


__all__ = [
    "BindingRecord",
    "InventoryItem",
    "MessageSource",
    "RelayMessage",
    "SettingEntry",
    "SyncChannel",
]
