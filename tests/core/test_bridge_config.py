from __future__ import annotations

from pathlib import Path

import pytest

from mcbridge.core.config import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    BridgeConfig,
    ConfigError,
    is_loopback_host,
    load_config,
)
from mcbridge.integrations.discord.config import DiscordBotConfigError


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_config(tmp_path)

    assert config.root == tmp_path.resolve()
    assert config.state_file == (tmp_path / ".mcbridge" / "state.sqlite3").resolve()
    assert config.server.host == DEFAULT_HOST
    assert config.server.port == DEFAULT_PORT
    assert config.minecraft.api_key is None
    assert config.discord.bot_token is None
    assert config.discord.command_registration.scope == "guild"


def test_yaml_and_env_are_merged(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / "mcbridge.yml").write_text(
        "\n".join(
            [
                "state_file: data/bridge.db",
                "server:",
                "  host: 0.0.0.0",
                "  port: 9000",
                "minecraft:",
                "  api_key_env: MC_KEY",
                "discord:",
                "  command_registration:",
                "    scope: guild",
                "    guild_ids: [123, ' 456 ']",
            ]
        ),
        encoding="utf-8",
    )
    monkeypatch.setenv("MC_KEY", " secret ")
    monkeypatch.setenv("DISCORD_TOKEN", "bot-token")

    config = load_config(tmp_path)

    assert config.state_file == (tmp_path / "data" / "bridge.db").resolve()
    assert config.server.host == "0.0.0.0"
    assert config.server.port == 9000
    assert config.minecraft.api_key_env == "MC_KEY"
    assert config.minecraft.api_key == "secret"
    assert config.discord.bot_token == "bot-token"
    assert config.discord.command_registration.guild_ids == ("123", "456")


def test_dotenv_does_not_override_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    (tmp_path / ".env").write_text(
        "MINECRAFT_API_KEY=from-file\nDISCORD_CHANNEL_ID=777\n", encoding="utf-8"
    )
    monkeypatch.setenv("MINECRAFT_API_KEY", "from-env")

    config = load_config(tmp_path)

    assert config.minecraft.api_key == "from-env"
    assert config.discord.relay_channel_id == "777"


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"server": {"port": 70000}}, "server.port must be between 1 and 65535"),
        ({"server": {"port": "abc"}}, "server.port must be an integer"),
        ({"server": []}, "server must be a mapping"),
        ({"server": {"access_log": "yes"}}, "server.access_log must be a boolean"),
        ({"state_file": ""}, "state_file must be a string path"),
    ],
)
def test_invalid_values_raise(tmp_path: Path, raw: dict, message: str) -> None:
    with pytest.raises(ConfigError) as excinfo:
        BridgeConfig.from_raw(root=tmp_path, raw=raw)
    assert str(excinfo.value) == message


def test_invalid_yaml_raises(tmp_path: Path) -> None:
    (tmp_path / "mcbridge.yml").write_text("server: [unclosed", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_discord_scope_is_validated(tmp_path: Path) -> None:
    with pytest.raises(DiscordBotConfigError):
        BridgeConfig.from_raw(
            root=tmp_path,
            raw={"discord": {"command_registration": {"scope": "everywhere"}}},
        )


def test_discord_max_retries(tmp_path: Path) -> None:
    default = BridgeConfig.from_raw(root=tmp_path, raw={})
    assert default.discord.max_retries == 3

    disabled = BridgeConfig.from_raw(
        root=tmp_path, raw={"discord": {"max_retries": 0}}
    )
    assert disabled.discord.max_retries == 0

    with pytest.raises(DiscordBotConfigError, match="discord.max_retries must be >= 0"):
        BridgeConfig.from_raw(root=tmp_path, raw={"discord": {"max_retries": -1}})


def test_discord_require_helpers(tmp_path: Path) -> None:
    config = BridgeConfig.from_raw(root=tmp_path, raw={})
    with pytest.raises(DiscordBotConfigError, match="DISCORD_TOKEN"):
        config.discord.require_bot_token()
    with pytest.raises(DiscordBotConfigError, match="DISCORD_APPLICATION_ID"):
        config.discord.require_application_id()


@pytest.mark.parametrize(
    ("host", "expected"),
    [
        ("127.0.0.1", True),
        ("localhost", True),
        ("::1", True),
        ("0.0.0.0", False),
        ("example.com", False),
    ],
)
def test_is_loopback_host(host: str, expected: bool) -> None:
    assert is_loopback_host(host) is expected
