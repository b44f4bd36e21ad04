"""Publish the bridge's slash commands to each registration target."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ...core.logging_utils import log_event
from .commands import build_application_commands
from .config import DiscordCommandRegistration
from .rest import DiscordRestApi


@dataclass(frozen=True)
class CommandSyncResult:
    guild_id: Optional[str]
    sent: tuple[str, ...]
    registered: tuple[str, ...]

    @property
    def scope(self) -> str:
        return "global" if self.guild_id is None else "guild"

    @property
    def missing(self) -> tuple[str, ...]:
        registered = set(self.registered)
        return tuple(name for name in self.sent if name not in registered)


def registration_targets(
    registration: DiscordCommandRegistration,
) -> tuple[Optional[str], ...]:
    """``(None,)`` for global registration, else the sorted unique guild ids."""
    scope = registration.scope.strip().lower()
    if scope == "global":
        return (None,)
    if scope != "guild":
        raise ValueError("scope must be 'global' or 'guild'")
    guild_ids = {guild_id.strip() for guild_id in registration.guild_ids}
    guild_ids.discard("")
    if not guild_ids:
        raise ValueError("guild scope requires at least one guild_id")
    return tuple(sorted(guild_ids))


def _command_names(commands: list[dict[str, Any]]) -> tuple[str, ...]:
    return tuple(str(command.get("name") or "") for command in commands)


async def sync_commands(
    rest: DiscordRestApi,
    *,
    application_id: str,
    registration: DiscordCommandRegistration,
    logger: logging.Logger,
    commands: Optional[list[dict[str, Any]]] = None,
) -> list[CommandSyncResult]:
    payload = build_application_commands() if commands is None else commands
    sent = _command_names(payload)
    results: list[CommandSyncResult] = []
    for guild_id in registration_targets(registration):
        updated = await rest.bulk_overwrite_application_commands(
            application_id=application_id,
            commands=payload,
            guild_id=guild_id,
        )
        result = CommandSyncResult(
            guild_id=guild_id, sent=sent, registered=_command_names(updated)
        )
        # Discord answers with the full command set it now holds.
        log_event(
            logger,
            logging.WARNING if result.missing else logging.INFO,
            "discord.commands.registered",
            scope=result.scope,
            guild_id=guild_id,
            application_id=application_id,
            registered=result.registered,
            missing=result.missing,
        )
        results.append(result)
    return results


__all__ = ["CommandSyncResult", "registration_targets", "sync_commands"]
