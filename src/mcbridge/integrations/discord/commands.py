from __future__ import annotations

from typing import Any

from .constants import (
    OPTION_TYPE_ROLE,
    OPTION_TYPE_STRING,
    PERMISSION_MANAGE_GUILD,
    PERMISSION_MANAGE_ROLES,
)

MAX_TAG_ROLES = 5


class CommandNames:
    TEST = "test"
    MC = "mc"
    STATUS = "status"
    PLAYERS = "players"
    BIND = "bind"
    TAG = "tag"
    SETCHANNEL = "setchannel"
    REMOVECHANNEL = "removechannel"


def tag_role_option_names() -> tuple[str, ...]:
    return tuple(f"role{index}" for index in range(1, MAX_TAG_ROLES + 1))


def build_application_commands() -> list[dict[str, Any]]:
    tag_options: list[dict[str, Any]] = [
        {
            "type": OPTION_TYPE_ROLE,
            "name": name,
            "description": f"Role {index}",
            "required": index == 1,
        }
        for index, name in enumerate(tag_role_option_names(), start=1)
    ]
    tag_options.append(
        {
            "type": OPTION_TYPE_STRING,
            "name": "title",
            "description": "Custom title (default: Pick your roles)",
            "required": False,
        }
    )
    return [
        {
            "type": 1,
            "name": CommandNames.TEST,
            "description": "Check that the bot is working",
        },
        {
            "type": 1,
            "name": CommandNames.MC,
            "description": "Send a message to the Minecraft server",
            "options": [
                {
                    "type": OPTION_TYPE_STRING,
                    "name": "message",
                    "description": "Message text",
                    "required": True,
                }
            ],
        },
        {
            "type": 1,
            "name": CommandNames.STATUS,
            "description": "Show the Minecraft server status",
        },
        {
            "type": 1,
            "name": CommandNames.PLAYERS,
            "description": "List players with bound accounts",
        },
        {
            "type": 1,
            "name": CommandNames.BIND,
            "description": "Bind your Discord account to a Minecraft account",
            "options": [
                {
                    "type": OPTION_TYPE_STRING,
                    "name": "mc_username",
                    "description": "Minecraft username",
                    "required": True,
                }
            ],
        },
        {
            "type": 1,
            "name": CommandNames.TAG,
            "description": "Post buttons that let members add or remove roles",
            "default_member_permissions": str(PERMISSION_MANAGE_ROLES),
            "options": tag_options,
        },
        {
            "type": 1,
            "name": CommandNames.SETCHANNEL,
            "description": "Sync this channel with Minecraft chat",
            "default_member_permissions": str(PERMISSION_MANAGE_GUILD),
        },
        {
            "type": 1,
            "name": CommandNames.REMOVECHANNEL,
            "description": "Stop syncing this channel with Minecraft chat",
            "default_member_permissions": str(PERMISSION_MANAGE_GUILD),
        },
    ]
