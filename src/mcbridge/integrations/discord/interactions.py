from __future__ import annotations

from typing import Any, Optional

from .constants import (
    INTERACTION_TYPE_APPLICATION_COMMAND,
    INTERACTION_TYPE_MESSAGE_COMPONENT,
    INTERACTION_TYPE_PING,
)

UNKNOWN_DISPLAY_NAME = "Unknown"


def _as_id(value: object) -> str | None:
    if value is None:
        return None
    token = str(value).strip()
    return token or None


def _data(interaction_payload: dict[str, Any]) -> dict[str, Any]:
    data = interaction_payload.get("data")
    return data if isinstance(data, dict) else {}


def extract_interaction_type(interaction_payload: dict[str, Any]) -> Optional[int]:
    value = interaction_payload.get("type")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def is_ping(interaction_payload: dict[str, Any]) -> bool:
    return extract_interaction_type(interaction_payload) == INTERACTION_TYPE_PING


def is_application_command(interaction_payload: dict[str, Any]) -> bool:
    return (
        extract_interaction_type(interaction_payload)
        == INTERACTION_TYPE_APPLICATION_COMMAND
    )


def is_component_interaction(interaction_payload: dict[str, Any]) -> bool:
    return (
        extract_interaction_type(interaction_payload)
        == INTERACTION_TYPE_MESSAGE_COMPONENT
    )


def extract_command_name(interaction_payload: dict[str, Any]) -> Optional[str]:
    name = _data(interaction_payload).get("name")
    if not isinstance(name, str) or not name:
        return None
    return name


def extract_command_options(interaction_payload: dict[str, Any]) -> dict[str, Any]:
    options = _data(interaction_payload).get("options")
    parsed: dict[str, Any] = {}
    if not isinstance(options, list):
        return parsed
    for item in options:
        if not isinstance(item, dict):
            continue
        name = item.get("name")
        if not isinstance(name, str) or not name:
            continue
        parsed[name] = item.get("value")
    return parsed


def extract_resolved_role_names(interaction_payload: dict[str, Any]) -> dict[str, str]:
    resolved = _data(interaction_payload).get("resolved")
    roles = resolved.get("roles") if isinstance(resolved, dict) else None
    if not isinstance(roles, dict):
        return {}
    names: dict[str, str] = {}
    for role_id, role in roles.items():
        if isinstance(role, dict) and isinstance(role.get("name"), str):
            names[str(role_id)] = role["name"]
    return names


def extract_channel_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("channel_id"))


def extract_channel_name(interaction_payload: dict[str, Any]) -> Optional[str]:
    channel = interaction_payload.get("channel")
    if isinstance(channel, dict) and isinstance(channel.get("name"), str):
        return channel["name"] or None
    return None


def extract_guild_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(interaction_payload.get("guild_id"))


def _extract_user(interaction_payload: dict[str, Any]) -> dict[str, Any]:
    member = interaction_payload.get("member")
    if isinstance(member, dict):
        member_user = member.get("user")
        if isinstance(member_user, dict):
            return member_user
    user = interaction_payload.get("user")
    return user if isinstance(user, dict) else {}


def extract_user_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(_extract_user(interaction_payload).get("id"))


def extract_display_name(interaction_payload: dict[str, Any]) -> str:
    user = _extract_user(interaction_payload)
    for key in ("global_name", "username"):
        value = user.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return UNKNOWN_DISPLAY_NAME


def extract_member_role_ids(interaction_payload: dict[str, Any]) -> frozenset[str]:
    member = interaction_payload.get("member")
    roles = member.get("roles") if isinstance(member, dict) else None
    if not isinstance(roles, list):
        return frozenset()
    return frozenset(str(role_id) for role_id in roles if _as_id(role_id))


def extract_component_custom_id(interaction_payload: dict[str, Any]) -> Optional[str]:
    return _as_id(_data(interaction_payload).get("custom_id"))
