from __future__ import annotations

import dataclasses
import ipaddress
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from ..integrations.discord.config import DiscordBotConfig
from .exceptions import ConfigError

logger = logging.getLogger("mcbridge.core.config")

CONFIG_FILENAME = "mcbridge.yml"
DEFAULT_STATE_FILE = ".mcbridge/state.sqlite3"
DEFAULT_LOG_FILE = ".mcbridge/mcbridge.log"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8787
DEFAULT_API_KEY_ENV = "MINECRAFT_API_KEY"
DEFAULT_LOG_MAX_BYTES = 10_000_000
DEFAULT_LOG_BACKUP_COUNT = 3


@dataclasses.dataclass(frozen=True)
class LogConfig:
    path: Path
    max_bytes: int
    backup_count: int


@dataclasses.dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int
    access_log: bool


@dataclasses.dataclass(frozen=True)
class MinecraftConfig:
    api_key_env: str
    api_key: Optional[str]


@dataclasses.dataclass(frozen=True)
class BridgeConfig:
    root: Path
    state_file: Path
    server: ServerConfig
    log: LogConfig
    discord: DiscordBotConfig
    minecraft: MinecraftConfig

    @classmethod
    def from_raw(cls, *, root: Path, raw: Dict[str, Any]) -> "BridgeConfig":
        cfg: Dict[str, Any] = raw if isinstance(raw, dict) else {}
        state_file = _parse_path(
            root, cfg.get("state_file", DEFAULT_STATE_FILE), key="state_file"
        )

        server_cfg = _section(cfg, "server")
        host = str(server_cfg.get("host", DEFAULT_HOST)).strip()
        if not host:
            raise ConfigError("server.host must be non-empty")
        port = _parse_int(server_cfg.get("port"), default=DEFAULT_PORT, key="server.port")
        if not 0 < port < 65536:
            raise ConfigError("server.port must be between 1 and 65535")
        server = ServerConfig(
            host=host,
            port=port,
            access_log=_parse_bool(
                server_cfg.get("access_log"), default=False, key="server.access_log"
            ),
        )

        log_cfg = _section(cfg, "log")
        log = LogConfig(
            path=_parse_path(root, log_cfg.get("path", DEFAULT_LOG_FILE), key="log.path"),
            max_bytes=_parse_int(
                log_cfg.get("max_bytes"),
                default=DEFAULT_LOG_MAX_BYTES,
                key="log.max_bytes",
            ),
            backup_count=_parse_int(
                log_cfg.get("backup_count"),
                default=DEFAULT_LOG_BACKUP_COUNT,
                key="log.backup_count",
            ),
        )

        minecraft_cfg = _section(cfg, "minecraft")
        api_key_env = str(minecraft_cfg.get("api_key_env", DEFAULT_API_KEY_ENV)).strip()
        if not api_key_env:
            raise ConfigError("minecraft.api_key_env must be non-empty")
        api_key = (os.environ.get(api_key_env) or "").strip() or None

        return cls(
            root=root,
            state_file=state_file,
            server=server,
            log=log,
            discord=DiscordBotConfig.from_raw(_section(cfg, "discord")),
            minecraft=MinecraftConfig(api_key_env=api_key_env, api_key=api_key),
        )


def is_loopback_host(host: str) -> bool:
    if host == "localhost":
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def find_config_path(root: Path) -> Path:
    return root / CONFIG_FILENAME


def load_dotenv_for_root(root: Path) -> None:
    """
    Best-effort load of environment variables for the provided root.

    Values already present in the process environment win over the file.
    """
    try:
        root = root.resolve()
        for candidate in (root / ".env", root / ".mcbridge" / ".env"):
            if candidate.exists():
                load_dotenv(dotenv_path=candidate, override=False)
    except OSError as exc:
        logger.debug("Failed to load .env file: %s", exc)


def load_config(root: Path, config_path: Optional[Path] = None) -> BridgeConfig:
    root = root.resolve()
    load_dotenv_for_root(root)
    raw = _load_yaml_dict(config_path or find_config_path(root))
    return BridgeConfig.from_raw(root=root, raw=raw)


def _load_yaml_dict(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a mapping: {path}")
    return data


def _section(cfg: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = cfg.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{key} must be a mapping")
    return value


def _parse_path(root: Path, value: Any, *, key: str) -> Path:
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{key} must be a string path")
    path = Path(value.strip()).expanduser()
    if not path.is_absolute():
        path = root / path
    return path.resolve()


def _parse_int(value: Any, *, default: int, key: str) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        raise ConfigError(f"{key} must be an integer")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{key} must be an integer") from exc
    if parsed < 0:
        raise ConfigError(f"{key} must be >= 0")
    return parsed


def _parse_bool(value: Any, *, default: bool, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ConfigError(f"{key} must be a boolean")


__all__ = [
    "BridgeConfig",
    "CONFIG_FILENAME",
    "ConfigError",
    "LogConfig",
    "MinecraftConfig",
    "ServerConfig",
    "find_config_path",
    "is_loopback_host",
    "load_config",
    "load_dotenv_for_root",
]
