from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Request

from ...core.binding import BindingService
from ...core.config import BridgeConfig
from ...core.state import BridgeStateStore
from ...integrations.discord.constants import INTERACTION_REST_TIMEOUT_SECONDS
from ...integrations.discord.dispatcher import HandlerContext, InteractionDispatcher
from ...integrations.discord.handlers import build_default_dispatcher
from ...integrations.discord.relay import MinecraftChatRelay
from ...integrations.discord.rest import DiscordRestApi, DiscordRestClient
from ...integrations.discord.signature import (
    Ed25519InteractionVerifier,
    InteractionVerifier,
)


@dataclass(frozen=True)
class AppContext:
    config: BridgeConfig
    store: BridgeStateStore
    bindings: BindingService
    dispatcher: InteractionDispatcher
    handler_context: HandlerContext
    relay: MinecraftChatRelay
    rest: Optional[DiscordRestApi]
    interaction_rest: Optional[DiscordRestApi]
    owns_rest: bool
    verifier: Optional[InteractionVerifier]
    logger: logging.Logger


def build_app_context(
    config: BridgeConfig,
    *,
    store: Optional[BridgeStateStore] = None,
    rest: Optional[DiscordRestApi] = None,
    verifier: Optional[InteractionVerifier] = None,
    bindings: Optional[BindingService] = None,
) -> AppContext:
    logger = logging.getLogger("mcbridge.web")
    store = store or BridgeStateStore(config.state_file)
    owns_rest = False
    interaction_rest = rest
    if rest is None and config.discord.bot_token:
        rest = DiscordRestClient(
            bot_token=config.discord.bot_token,
            timeout_seconds=config.discord.timeout_seconds,
            max_retries=config.discord.max_retries,
        )
        interaction_rest = DiscordRestClient(
            bot_token=config.discord.bot_token,
            timeout_seconds=min(
                config.discord.timeout_seconds, INTERACTION_REST_TIMEOUT_SECONDS
            ),
            max_retries=0,
        )
        owns_rest = True
    if verifier is None and config.discord.public_key:
        verifier = Ed25519InteractionVerifier(config.discord.public_key)
    bindings = bindings or BindingService(store)
    handler_context = HandlerContext(
        store=store,
        bindings=bindings,
        config=config.discord,
        rest=interaction_rest,
        logger=logging.getLogger("mcbridge.discord"),
    )
    return AppContext(
        config=config,
        store=store,
        bindings=bindings,
        dispatcher=build_default_dispatcher(),
        handler_context=handler_context,
        relay=MinecraftChatRelay(
            store, rest, default_channel_id=config.discord.relay_channel_id
        ),
        rest=rest,
        interaction_rest=interaction_rest,
        owns_rest=owns_rest,
        verifier=verifier,
        logger=logger,
    )


def apply_app_context(app: FastAPI, context: AppContext) -> None:
    app.state.context = context
    app.state.config = context.config
    app.state.store = context.store
    app.state.logger = context.logger


def get_app_context(request: Request) -> AppContext:
    return request.app.state.context
