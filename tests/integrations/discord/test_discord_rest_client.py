from __future__ import annotations

import json

import httpx
import pytest

from mcbridge.integrations.discord.errors import (
    DiscordAPIError,
    DiscordPermanentError,
)
from mcbridge.integrations.discord.rest import DiscordRestClient

BASE_URL = "https://discord.test/api/v10"


async def _client_with(handler, *, max_retries: int = 3) -> DiscordRestClient:
    client = DiscordRestClient(
        bot_token="token",
        base_url=BASE_URL,
        max_retries=max_retries,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
    )
    await client._client.aclose()
    client._client = httpx.AsyncClient(
        base_url=BASE_URL, transport=httpx.MockTransport(handler)
    )
    return client


@pytest.mark.anyio
async def test_create_channel_message_sends_bot_authorization() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "m1"})

    client = await _client_with(handler)
    try:
        result = await client.create_channel_message(
            channel_id="c1", payload={"content": "hello"}
        )
    finally:
        await client.close()

    assert result == {"id": "m1"}
    assert len(seen) == 1
    assert seen[0].method == "POST"
    assert seen[0].url.path == "/api/v10/channels/c1/messages"
    assert seen[0].headers["Authorization"] == "Bot token"
    assert json.loads(seen[0].content) == {"content": "hello"}


@pytest.mark.anyio
async def test_rate_limit_is_retried_after_delay() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            return httpx.Response(429, headers={"Retry-After": "0"}, json={})
        return httpx.Response(200, json={"id": "c1", "name": "general"})

    client = await _client_with(handler)
    try:
        channel = await client.get_channel(channel_id="c1")
    finally:
        await client.close()

    assert channel["name"] == "general"
    assert calls["count"] == 2


@pytest.mark.anyio
async def test_server_errors_exhaust_retries() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(503, text="unavailable")

    client = await _client_with(handler, max_retries=2)
    try:
        with pytest.raises(DiscordAPIError) as excinfo:
            await client.get_channel(channel_id="c1")
    finally:
        await client.close()

    assert excinfo.value.http_status == 503
    assert calls["count"] == 3


@pytest.mark.anyio
async def test_network_errors_are_retried() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        if calls["count"] == 1:
            raise httpx.ConnectError("boom", request=request)
        return httpx.Response(200, json={"id": "c1"})

    client = await _client_with(handler)
    try:
        assert await client.get_channel(channel_id="c1") == {"id": "c1"}
    finally:
        await client.close()
    assert calls["count"] == 2


@pytest.mark.anyio
async def test_auth_failures_are_permanent() -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(403, json={"message": "Missing Permissions"})

    client = await _client_with(handler)
    try:
        with pytest.raises(DiscordPermanentError) as excinfo:
            await client.add_guild_member_role(guild_id="g", user_id="u", role_id="r")
    finally:
        await client.close()

    assert excinfo.value.http_status == 403
    assert calls["count"] == 1


@pytest.mark.anyio
async def test_role_endpoints_accept_empty_responses() -> None:
    seen: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        return httpx.Response(204)

    client = await _client_with(handler)
    try:
        assert (
            await client.add_guild_member_role(guild_id="g", user_id="u", role_id="r")
            is None
        )
        await client.remove_guild_member_role(guild_id="g", user_id="u", role_id="r")
    finally:
        await client.close()

    assert seen == [
        ("PUT", "/api/v10/guilds/g/members/u/roles/r"),
        ("DELETE", "/api/v10/guilds/g/members/u/roles/r"),
    ]


@pytest.mark.anyio
async def test_bulk_overwrite_targets_guild_or_global() -> None:
    paths: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json=json.loads(request.content))

    client = await _client_with(handler)
    try:
        commands = [{"name": "test", "description": "x"}]
        result = await client.bulk_overwrite_application_commands(
            application_id="app", commands=commands, guild_id="g1"
        )
        await client.bulk_overwrite_application_commands(
            application_id="app", commands=commands
        )
    finally:
        await client.close()

    assert result == commands
    assert paths == [
        "/api/v10/applications/app/guilds/g1/commands",
        "/api/v10/applications/app/commands",
    ]
