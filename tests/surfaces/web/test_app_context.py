from __future__ import annotations

from pathlib import Path

import pytest

from mcbridge.core.config import BridgeConfig
from mcbridge.integrations.discord.constants import INTERACTION_REST_TIMEOUT_SECONDS
from mcbridge.surfaces.web.app_state import build_app_context


class _FakeRest:
    pass


@pytest.mark.anyio
async def test_interaction_handlers_get_a_single_attempt_client(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("DISCORD_TOKEN", "bot-token")
    config = BridgeConfig.from_raw(
        root=tmp_path,
        raw={"discord": {"max_retries": 5, "timeout_seconds": 15}},
    )

    context = build_app_context(config)
    try:
        assert context.owns_rest is True
        assert context.rest is not None
        assert context.rest._max_retries == 5
        assert context.rest._client.timeout.read == 15
        interaction_rest = context.interaction_rest
        assert interaction_rest is not None
        assert interaction_rest is not context.rest
        assert interaction_rest._max_retries == 0
        assert interaction_rest._client.timeout.read == INTERACTION_REST_TIMEOUT_SECONDS
        assert context.handler_context.rest is interaction_rest
    finally:
        await context.rest.close()
        await context.interaction_rest.close()


def test_injected_client_is_shared(tmp_path: Path) -> None:
    rest = _FakeRest()
    config = BridgeConfig.from_raw(root=tmp_path, raw={})

    context = build_app_context(config, rest=rest)

    assert context.owns_rest is False
    assert context.rest is rest
    assert context.interaction_rest is rest
    assert context.handler_context.rest is rest


def test_no_token_means_no_client(tmp_path: Path) -> None:
    context = build_app_context(BridgeConfig.from_raw(root=tmp_path, raw={}))

    assert context.rest is None
    assert context.interaction_rest is None
    assert context.handler_context.rest is None
