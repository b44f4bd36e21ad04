from __future__ import annotations

import logging
import platform
import time
from typing import Any, Sequence

from ...core.binding import BIND_CODE_TTL
from ...core.exceptions import UpstreamError
from ...core.logging_utils import log_event
from ...core.models import MessageSource, SyncChannel
from ...core.pagination import PLAYERS_PAGE_SIZE, compute_page_window
from ...core.settings import STATUS_SETTING_KEYS
from ...core.time_utils import format_iso_utc_z
from .commands import CommandNames, tag_role_option_names
from .components import (
    PLAYERS_PAGE_PREFIX,
    ROLE_TOGGLE_PREFIX,
    STATUS_REFRESH_ID,
    build_players_page_rows,
    build_role_toggle_rows,
    build_status_refresh_rows,
    parse_players_page_offset,
    parse_role_toggle_id,
)
from .constants import COLOR_BLURPLE, COLOR_GREEN, COLOR_ORANGE, COLOR_RED
from .dispatcher import HandlerContext, InteractionDispatcher, InteractionRoute
from .interactions import (
    extract_channel_id,
    extract_channel_name,
    extract_command_options,
    extract_component_custom_id,
    extract_display_name,
    extract_guild_id,
    extract_member_role_ids,
    extract_resolved_role_names,
    extract_user_id,
)
from .responses import (
    build_channel_message,
    build_embed,
    build_ephemeral_message,
    build_message_data,
    build_update_message,
)

DEFAULT_TAG_TITLE = "Pick your roles"
GUILD_ONLY_MESSAGE = "❌ This command can only be used in a server channel"


async def handle_test(ctx: HandlerContext, payload: dict[str, Any]) -> dict[str, Any]:
    started = time.perf_counter()
    now = ctx.clock()

    store_status = "🔴 Failed"
    store_latency = "N/A"
    try:
        store_started = time.perf_counter()
        await ctx.store.ping()
        store_latency = f"{int((time.perf_counter() - store_started) * 1000)}ms"
        store_status = "🟢 OK"
    except Exception as exc:
        log_event(ctx.logger, logging.WARNING, "discord.test.store_failed", exc=exc)

    handler_latency = f"{int((time.perf_counter() - started) * 1000)}ms"
    embed = build_embed(
        title="🤖 Bot status",
        color=COLOR_GREEN,
        fields=[
            ("Status", "🟢 Online", True),
            ("Latency", handler_latency, True),
            ("Database", f"{store_status} ({store_latency})", True),
            ("Runtime", f"Python {platform.python_version()}", True),
            ("Time", format_iso_utc_z(now), False),
        ],
    )
    return build_channel_message(build_message_data(embeds=[embed], ephemeral=True))


async def handle_mc(ctx: HandlerContext, payload: dict[str, Any]) -> dict[str, Any]:
    options = extract_command_options(payload)
    message = str(options.get("message") or "").strip()
    if not message:
        return build_ephemeral_message("❌ Message cannot be empty")
    username = extract_display_name(payload)
    await ctx.store.add_message(
        source=MessageSource.DISCORD,
        username=username,
        content=message,
        delivered=False,
    )
    return build_channel_message(
        build_message_data(
            content=f"📨 **{username}**: {message}\n*(sent to Minecraft)*"
        )
    )


async def build_status_data(ctx: HandlerContext) -> dict[str, Any]:
    values = await ctx.store.get_setting_values(STATUS_SETTING_KEYS)
    status = values.get("server_status") or "unknown"
    is_online = status == "online"
    embed = build_embed(
        title="🖥️ Minecraft server status",
        color=COLOR_GREEN if is_online else COLOR_RED,
        fields=[
            ("Status", "🟢 Online" if is_online else "🔴 Offline", True),
            ("Version", values.get("server_version") or "unknown", True),
            (
                "Players",
                f"{values.get('server_players_online') or '0'} / "
                f"{values.get('server_players_max') or '0'}",
                True,
            ),
            ("TPS", values.get("server_tps") or "N/A", True),
        ],
        timestamp=format_iso_utc_z(ctx.clock()),
    )
    return build_message_data(embeds=[embed], components=build_status_refresh_rows())


async def handle_status(ctx: HandlerContext, payload: dict[str, Any]) -> dict[str, Any]:
    return build_channel_message(await build_status_data(ctx))


async def handle_status_refresh(
    ctx: HandlerContext, payload: dict[str, Any]
) -> dict[str, Any]:
    return build_update_message(await build_status_data(ctx))


async def build_players_data(ctx: HandlerContext, offset: int) -> dict[str, Any]:
    total = await ctx.store.count_bound_players()
    window = compute_page_window(total, PLAYERS_PAGE_SIZE, offset)
    players = await ctx.store.list_bound_players(
        limit=window.page_size, offset=window.offset
    )
    if players:
        description = "\n".join(
            f"**{window.offset + index}.** {player.mc_name} ↔ {player.discord_name}"
            for index, player in enumerate(players, start=1)
        )
    else:
        description = "No players are bound yet"
    embed = build_embed(
        title="👥 Bound players",
        color=COLOR_BLURPLE,
        description=description,
        footer=(
            f"Page {window.current_page} / {window.total_pages}"
            f" · {window.total} players"
        ),
    )
    return build_message_data(
        embeds=[embed], components=build_players_page_rows(window)
    )


async def handle_players(ctx: HandlerContext, payload: dict[str, Any]) -> dict[str, Any]:
    return build_channel_message(await build_players_data(ctx, 0))


async def handle_players_page(
    ctx: HandlerContext, payload: dict[str, Any]
) -> dict[str, Any]:
    offset = parse_players_page_offset(extract_component_custom_id(payload) or "")
    return build_update_message(await build_players_data(ctx, offset))


async def handle_bind(ctx: HandlerContext, payload: dict[str, Any]) -> dict[str, Any]:
    discord_id = extract_user_id(payload)
    if not discord_id:
        return build_ephemeral_message("❌ Could not identify your Discord account")
    mc_username = str(extract_command_options(payload).get("mc_username") or "").strip()
    if not mc_username:
        return build_ephemeral_message("❌ Please provide your Minecraft username")

    result = await ctx.bindings.request_bind(
        discord_id=discord_id,
        discord_name=extract_display_name(payload),
        mc_name=mc_username,
    )
    if result.already_bound:
        return build_ephemeral_message(
            f"⚠️ You are already bound to Minecraft account **{result.record.mc_name}**."
        )
    minutes = int(BIND_CODE_TTL.total_seconds() // 60)
    return build_ephemeral_message(
        "🔗 Binding started!\n\n"
        "Run this command in Minecraft to finish:\n"
        f"```\n/verify {result.code}\n```\n"
        f"⏰ The code expires in {minutes} minutes."
    )


async def handle_tag(ctx: HandlerContext, payload: dict[str, Any]) -> dict[str, Any]:
    if not extract_guild_id(payload):
        return build_ephemeral_message(GUILD_ONLY_MESSAGE)
    options = extract_command_options(payload)
    role_names = extract_resolved_role_names(payload)
    role_ids: list[str] = []
    for option_name in tag_role_option_names():
        value = options.get(option_name)
        role_id = str(value).strip() if value is not None else ""
        if role_id and role_id not in role_ids:
            role_ids.append(role_id)
    if not role_ids:
        return build_ephemeral_message("❌ Pick at least one role")

    roles = [(role_id, role_names.get(role_id, role_id)) for role_id in role_ids]
    title = str(options.get("title") or "").strip() or DEFAULT_TAG_TITLE
    embed = build_embed(
        title=title,
        color=COLOR_BLURPLE,
        description="Click a button to add or remove that role.\n\n"
        + "\n".join(f"• <@&{role_id}>" for role_id, _ in roles),
    )
    return build_channel_message(
        build_message_data(embeds=[embed], components=build_role_toggle_rows(roles))
    )


async def handle_role_toggle(
    ctx: HandlerContext, payload: dict[str, Any]
) -> dict[str, Any]:
    guild_id = extract_guild_id(payload)
    user_id = extract_user_id(payload)
    role_id = parse_role_toggle_id(extract_component_custom_id(payload) or "")
    if not guild_id or not user_id or not role_id:
        return build_ephemeral_message(GUILD_ONLY_MESSAGE)
    if ctx.rest is None:
        raise UpstreamError("Discord REST client is not configured")

    if role_id in extract_member_role_ids(payload):
        await ctx.rest.remove_guild_member_role(
            guild_id=guild_id, user_id=user_id, role_id=role_id
        )
        action, reply = "removed", f"➖ Removed <@&{role_id}>"
    else:
        await ctx.rest.add_guild_member_role(
            guild_id=guild_id, user_id=user_id, role_id=role_id
        )
        action, reply = "added", f"➕ Added <@&{role_id}>"
    log_event(
        ctx.logger,
        logging.INFO,
        "discord.role_toggle",
        guild_id=guild_id,
        user_id=user_id,
        role_id=role_id,
        action=action,
    )
    return build_ephemeral_message(reply)


def _format_channel_list(channels: Sequence[SyncChannel]) -> str:
    if not channels:
        return "*(none)*"
    return "\n".join(
        f"• **{channel.guild_name or channel.guild_id}** "
        f"#{channel.channel_name or channel.channel_id}"
        for channel in channels
    )


async def _resolve_channel_name(
    ctx: HandlerContext, payload: dict[str, Any], channel_id: str
) -> str:
    if ctx.rest is not None:
        try:
            channel = await ctx.rest.get_channel(channel_id=channel_id)
        except Exception as exc:
            log_event(
                ctx.logger,
                logging.WARNING,
                "discord.setchannel.channel_lookup_failed",
                channel_id=channel_id,
                exc=exc,
            )
        else:
            name = channel.get("name")
            if isinstance(name, str) and name:
                return name
    return extract_channel_name(payload) or channel_id


async def handle_setchannel(
    ctx: HandlerContext, payload: dict[str, Any]
) -> dict[str, Any]:
    channel_id = extract_channel_id(payload)
    guild_id = extract_guild_id(payload)
    if not channel_id or not guild_id:
        return build_ephemeral_message(GUILD_ONLY_MESSAGE)

    guild = payload.get("guild")
    guild_name = guild.get("name") if isinstance(guild, dict) else None
    await ctx.store.upsert_sync_channel(
        channel_id=channel_id,
        guild_id=guild_id,
        guild_name=guild_name or guild_id,
        channel_name=await _resolve_channel_name(ctx, payload, channel_id),
        added_by=extract_user_id(payload),
    )
    channels = await ctx.store.list_sync_channels()
    embed = build_embed(
        title="✅ Sync channel set",
        color=COLOR_GREEN,
        description=(
            f"<#{channel_id}> now syncs with Minecraft chat.\n\n"
            f"**Sync channels:**\n{_format_channel_list(channels)}"
        ),
    )
    return build_channel_message(build_message_data(embeds=[embed]))


async def handle_removechannel(
    ctx: HandlerContext, payload: dict[str, Any]
) -> dict[str, Any]:
    channel_id = extract_channel_id(payload)
    if not channel_id:
        return build_ephemeral_message(GUILD_ONLY_MESSAGE)
    if await ctx.store.get_sync_channel(channel_id) is None:
        return build_ephemeral_message(
            "⚠️ This channel is not currently registered as a sync channel"
        )

    await ctx.store.delete_sync_channel(channel_id)
    remaining = await ctx.store.list_sync_channels()
    embed = build_embed(
        title="🗑️ Sync channel removed",
        color=COLOR_ORANGE,
        description=(
            f"<#{channel_id}> no longer syncs with Minecraft chat.\n\n"
            f"**Remaining sync channels:**\n{_format_channel_list(remaining)}"
        ),
    )
    return build_channel_message(build_message_data(embeds=[embed]))


def build_default_dispatcher() -> InteractionDispatcher:
    return InteractionDispatcher(
        commands=(
            InteractionRoute(
                CommandNames.TEST, handle_test, "❌ Status check failed"
            ),
            InteractionRoute(
                CommandNames.MC, handle_mc, "❌ Failed to send, please try again later"
            ),
            InteractionRoute(
                CommandNames.STATUS,
                handle_status,
                "❌ Could not load the server status",
            ),
            InteractionRoute(
                CommandNames.PLAYERS,
                handle_players,
                "❌ Could not load the player list",
            ),
            InteractionRoute(
                CommandNames.BIND,
                handle_bind,
                "❌ Binding failed, please try again later",
            ),
            InteractionRoute(
                CommandNames.TAG, handle_tag, "❌ Could not create the role picker"
            ),
            InteractionRoute(
                CommandNames.SETCHANNEL,
                handle_setchannel,
                "❌ Could not set the sync channel, please try again later",
            ),
            InteractionRoute(
                CommandNames.REMOVECHANNEL,
                handle_removechannel,
                "❌ Could not remove the sync channel, please try again later",
            ),
        ),
        component_ids=(
            InteractionRoute(
                STATUS_REFRESH_ID,
                handle_status_refresh,
                "❌ Could not load the server status",
                updates_message=True,
            ),
        ),
        component_prefixes=(
            InteractionRoute(
                PLAYERS_PAGE_PREFIX,
                handle_players_page,
                "❌ Could not load the player list",
                updates_message=True,
            ),
            InteractionRoute(
                ROLE_TOGGLE_PREFIX,
                handle_role_toggle,
                "❌ Could not update your roles. The bot may lack permission.",
            ),
        ),
    )
