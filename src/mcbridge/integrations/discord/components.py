from __future__ import annotations

from typing import Any, Optional, Sequence

from ...core.pagination import PageWindow

DISCORD_BUTTON_STYLE_PRIMARY = 1
DISCORD_BUTTON_STYLE_SECONDARY = 2
DISCORD_ACTION_ROW_MAX_BUTTONS = 5
DISCORD_BUTTON_LABEL_MAX_LENGTH = 80

PLAYERS_PAGE_PREFIX = "players_page_"
STATUS_REFRESH_ID = "status_refresh"
ROLE_TOGGLE_PREFIX = "role_toggle_"


def build_action_row(components: list[dict[str, Any]]) -> dict[str, Any]:
    return {
        "type": 1,
        "components": components,
    }


def build_button(
    label: str,
    custom_id: str,
    *,
    style: int = DISCORD_BUTTON_STYLE_SECONDARY,
    emoji: Optional[str] = None,
    disabled: bool = False,
) -> dict[str, Any]:
    button: dict[str, Any] = {
        "type": 2,
        "style": style,
        "label": label[:DISCORD_BUTTON_LABEL_MAX_LENGTH],
        "custom_id": custom_id,
        "disabled": disabled,
    }
    if emoji:
        button["emoji"] = {"name": emoji}
    return button


def build_players_page_rows(window: PageWindow) -> list[dict[str, Any]]:
    """Previous/next buttons for a page of the players list; none on a lone page."""
    buttons: list[dict[str, Any]] = []
    if window.previous_offset is not None:
        buttons.append(
            build_button(
                "◀ Previous",
                f"{PLAYERS_PAGE_PREFIX}{window.previous_offset}",
                style=DISCORD_BUTTON_STYLE_PRIMARY,
            )
        )
    if window.next_offset is not None:
        buttons.append(
            build_button(
                "Next ▶",
                f"{PLAYERS_PAGE_PREFIX}{window.next_offset}",
                style=DISCORD_BUTTON_STYLE_PRIMARY,
            )
        )
    if not buttons:
        return []
    return [build_action_row(buttons)]


def build_status_refresh_rows() -> list[dict[str, Any]]:
    return [
        build_action_row(
            [
                build_button(
                    "Refresh",
                    STATUS_REFRESH_ID,
                    style=DISCORD_BUTTON_STYLE_SECONDARY,
                    emoji="🔄",
                )
            ]
        )
    ]


def build_role_toggle_rows(roles: Sequence[tuple[str, str]]) -> list[dict[str, Any]]:
    buttons = [
        build_button(
            name or role_id,
            f"{ROLE_TOGGLE_PREFIX}{role_id}",
            style=DISCORD_BUTTON_STYLE_PRIMARY,
        )
        for role_id, name in roles
    ]
    return [
        build_action_row(buttons[index : index + DISCORD_ACTION_ROW_MAX_BUTTONS])
        for index in range(0, len(buttons), DISCORD_ACTION_ROW_MAX_BUTTONS)
    ]


def parse_players_page_offset(custom_id: str) -> int:
    """Offset carried by a ``players_page_<offset>`` id; unparsable offsets mean 0."""
    raw = custom_id[len(PLAYERS_PAGE_PREFIX) :] if custom_id.startswith(
        PLAYERS_PAGE_PREFIX
    ) else ""
    try:
        return max(int(raw), 0)
    except ValueError:
        return 0


def parse_role_toggle_id(custom_id: str) -> Optional[str]:
    if not custom_id.startswith(ROLE_TOGGLE_PREFIX):
        return None
    role_id = custom_id[len(ROLE_TOGGLE_PREFIX) :].strip()
    return role_id or None
