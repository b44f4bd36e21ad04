"""Routes inbound interactions to exactly one handler.

The routing table is built once and never mutated. Each route names the text
shown to the user when its handler fails, so a broken handler degrades to a
friendly ephemeral reply instead of an HTTP error.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from ...core.binding import BindingService
from ...core.exceptions import ValidationError
from ...core.logging_utils import log_event
from ...core.state import BridgeStateStore
from ...core.time_utils import now_utc
from .config import DiscordBotConfig
from .constants import (
    INTERACTION_TYPE_APPLICATION_COMMAND,
    INTERACTION_TYPE_MESSAGE_COMPONENT,
    INTERACTION_TYPE_PING,
)
from .interactions import (
    extract_command_name,
    extract_component_custom_id,
    extract_guild_id,
    extract_interaction_type,
    extract_user_id,
)
from .responses import (
    build_ephemeral_message,
    build_message_data,
    build_pong,
    build_update_message,
)
from .rest import DiscordRestApi

UNKNOWN_COMMAND_MESSAGE = "❌ Unknown command"
UNKNOWN_COMPONENT_MESSAGE = "❌ Unknown interaction"


@dataclass(frozen=True)
class HandlerContext:
    store: BridgeStateStore
    bindings: BindingService
    config: DiscordBotConfig
    rest: Optional[DiscordRestApi] = None
    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("mcbridge.discord")
    )
    clock: Callable[[], datetime] = now_utc


Handler = Callable[[HandlerContext, dict[str, Any]], Awaitable[dict[str, Any]]]


@dataclass(frozen=True)
class InteractionRoute:
    name: str
    handler: Handler
    failure_message: str
    updates_message: bool = False


class InteractionDispatcher:
    def __init__(
        self,
        *,
        commands: Sequence[InteractionRoute],
        component_ids: Sequence[InteractionRoute] = (),
        component_prefixes: Sequence[InteractionRoute] = (),
    ) -> None:
        self._commands: Mapping[str, InteractionRoute] = MappingProxyType(
            {route.name: route for route in commands}
        )
        self._component_ids: Mapping[str, InteractionRoute] = MappingProxyType(
            {route.name: route for route in component_ids}
        )
        # Longest prefix first so a more specific prefix always wins.
        self._component_prefixes: tuple[InteractionRoute, ...] = tuple(
            sorted(component_prefixes, key=lambda route: len(route.name), reverse=True)
        )

    @property
    def command_names(self) -> frozenset[str]:
        return frozenset(self._commands)

    def resolve(self, interaction_payload: dict[str, Any]) -> Optional[InteractionRoute]:
        interaction_type = extract_interaction_type(interaction_payload)
        if interaction_type == INTERACTION_TYPE_APPLICATION_COMMAND:
            name = extract_command_name(interaction_payload)
            return self._commands.get(name) if name else None
        if interaction_type == INTERACTION_TYPE_MESSAGE_COMPONENT:
            custom_id = extract_component_custom_id(interaction_payload)
            if not custom_id:
                return None
            route = self._component_ids.get(custom_id)
            if route is not None:
                return route
            for candidate in self._component_prefixes:
                if custom_id.startswith(candidate.name):
                    return candidate
        return None

    async def dispatch(
        self, ctx: HandlerContext, interaction_payload: dict[str, Any]
    ) -> dict[str, Any]:
        interaction_type = extract_interaction_type(interaction_payload)
        if interaction_type == INTERACTION_TYPE_PING:
            return build_pong()
        if interaction_type not in (
            INTERACTION_TYPE_APPLICATION_COMMAND,
            INTERACTION_TYPE_MESSAGE_COMPONENT,
        ):
            raise ValidationError("Unknown interaction type")

        route = self.resolve(interaction_payload)
        if route is None:
            if interaction_type == INTERACTION_TYPE_APPLICATION_COMMAND:
                log_event(
                    ctx.logger,
                    logging.INFO,
                    "discord.interaction.unknown_command",
                    command=extract_command_name(interaction_payload),
                )
                return build_ephemeral_message(UNKNOWN_COMMAND_MESSAGE)
            log_event(
                ctx.logger,
                logging.INFO,
                "discord.interaction.unknown_component",
                custom_id=extract_component_custom_id(interaction_payload),
            )
            return build_ephemeral_message(UNKNOWN_COMPONENT_MESSAGE)

        started = time.monotonic()
        try:
            response = await route.handler(ctx, interaction_payload)
        except Exception as exc:
            log_event(
                ctx.logger,
                logging.ERROR,
                "discord.interaction.handler_failed",
                route=route.name,
                guild_id=extract_guild_id(interaction_payload),
                user_id=extract_user_id(interaction_payload),
                exc=exc,
            )
            return _failure_response(route)
        log_event(
            ctx.logger,
            logging.DEBUG,
            "discord.interaction.handled",
            route=route.name,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return response


def _failure_response(route: InteractionRoute) -> dict[str, Any]:
    if route.updates_message:
        return build_update_message(
            build_message_data(
                content=route.failure_message,
                embeds=[],
                components=[],
            )
        )
    return build_ephemeral_message(route.failure_message)
