from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Optional

from ...core.exceptions import ConfigError

DEFAULT_BOT_TOKEN_ENV = "DISCORD_TOKEN"
DEFAULT_APP_ID_ENV = "DISCORD_APPLICATION_ID"
DEFAULT_PUBLIC_KEY_ENV = "DISCORD_PUBLIC_KEY"
DEFAULT_RELAY_CHANNEL_ID_ENV = "DISCORD_CHANNEL_ID"
DEFAULT_COMMAND_SCOPE = "guild"
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_RETRIES = 3


class DiscordBotConfigError(ConfigError):
    """Raised when discord bot config is invalid."""


@dataclass(frozen=True)
class DiscordCommandRegistration:
    scope: str
    guild_ids: tuple[str, ...]


@dataclass(frozen=True)
class DiscordBotConfig:
    bot_token_env: str
    app_id_env: str
    public_key_env: str
    relay_channel_id_env: str
    bot_token: Optional[str]
    application_id: Optional[str]
    public_key: Optional[str]
    relay_channel_id: Optional[str]
    command_registration: DiscordCommandRegistration
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_retries: int = DEFAULT_MAX_RETRIES

    @classmethod
    def from_raw(cls, raw: Optional[dict[str, Any]]) -> "DiscordBotConfig":
        cfg: dict[str, Any] = raw if isinstance(raw, dict) else {}
        bot_token_env = _env_name(cfg, "bot_token_env", DEFAULT_BOT_TOKEN_ENV)
        app_id_env = _env_name(cfg, "app_id_env", DEFAULT_APP_ID_ENV)
        public_key_env = _env_name(cfg, "public_key_env", DEFAULT_PUBLIC_KEY_ENV)
        relay_channel_id_env = _env_name(
            cfg, "relay_channel_id_env", DEFAULT_RELAY_CHANNEL_ID_ENV
        )

        registration_raw = cfg.get("command_registration")
        registration_cfg = (
            registration_raw if isinstance(registration_raw, dict) else {}
        )
        scope_raw = (
            str(registration_cfg.get("scope", DEFAULT_COMMAND_SCOPE)).strip().lower()
        )
        if scope_raw not in {"global", "guild"}:
            raise DiscordBotConfigError(
                "discord.command_registration.scope must be 'global' or 'guild'"
            )
        command_registration = DiscordCommandRegistration(
            scope=scope_raw,
            guild_ids=tuple(_parse_string_ids(registration_cfg.get("guild_ids"))),
        )

        timeout_value = cfg.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS)
        if isinstance(timeout_value, bool) or not isinstance(
            timeout_value, (int, float)
        ):
            raise DiscordBotConfigError("discord.timeout_seconds must be a number")
        if timeout_value <= 0:
            raise DiscordBotConfigError("discord.timeout_seconds must be > 0")

        max_retries = _parse_non_negative_int_or_default(
            cfg.get("max_retries"),
            default=DEFAULT_MAX_RETRIES,
            key="discord.max_retries",
        )

        return cls(
            bot_token_env=bot_token_env,
            app_id_env=app_id_env,
            public_key_env=public_key_env,
            relay_channel_id_env=relay_channel_id_env,
            bot_token=_env_value(bot_token_env),
            application_id=_env_value(app_id_env),
            public_key=_env_value(public_key_env),
            relay_channel_id=_env_value(relay_channel_id_env),
            command_registration=command_registration,
            timeout_seconds=float(timeout_value),
            max_retries=max_retries,
        )

    def require_bot_token(self) -> str:
        if not self.bot_token:
            raise DiscordBotConfigError(f"env var {self.bot_token_env} is unset")
        return self.bot_token

    def require_application_id(self) -> str:
        if not self.application_id:
            raise DiscordBotConfigError(f"env var {self.app_id_env} is unset")
        return self.application_id


def _env_name(cfg: dict[str, Any], key: str, default: str) -> str:
    value = str(cfg.get(key, default)).strip()
    if not value:
        raise DiscordBotConfigError(f"discord.{key} must be non-empty")
    return value


def _env_value(name: str) -> Optional[str]:
    value = os.environ.get(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _parse_string_ids(value: Any) -> list[str]:
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple, set, frozenset)) else [value]
    parsed: list[str] = []
    for item in items:
        token = str(item).strip()
        if token:
            parsed.append(token)
    return parsed


def _parse_non_negative_int_or_default(value: Any, *, default: int, key: str) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise DiscordBotConfigError(f"{key} must be an integer") from exc
    if parsed < 0:
        raise DiscordBotConfigError(f"{key} must be >= 0")
    return parsed
