from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, NoReturn, Optional

import typer
import uvicorn

from ... import __version__
from ...core.config import BridgeConfig, ConfigError, is_loopback_host, load_config
from ...core.logging_utils import setup_rotating_logger
from ...core.state import BridgeStateStore
from ...integrations.discord.command_registry import CommandSyncResult, sync_commands
from ...integrations.discord.config import DiscordBotConfig, DiscordBotConfigError
from ...integrations.discord.errors import DiscordAPIError
from ...integrations.discord.rest import DiscordRestClient
from ..web.app import create_app

logger = logging.getLogger("mcbridge.cli")

app = typer.Typer(add_completion=False)


def raise_exit(message: str, *, cause: Optional[BaseException] = None) -> NoReturn:
    typer.echo(message, err=True)
    if cause is not None:
        raise typer.Exit(code=1) from cause
    raise typer.Exit(code=1)


def require_config(path: Optional[Path]) -> BridgeConfig:
    try:
        return load_config(path or Path.cwd())
    except ConfigError as exc:
        raise_exit(str(exc), cause=exc)


def enforce_bind_auth(host: str, config: BridgeConfig) -> None:
    if is_loopback_host(host):
        return
    if config.minecraft.api_key:
        return
    raise_exit(
        "Refusing to bind to a non-loopback host without "
        f"{config.minecraft.api_key_env} set."
    )


async def _sync_discord_application_commands(
    config: DiscordBotConfig,
    *,
    logger: logging.Logger,
    rest_client_factory: Callable[..., Any] = DiscordRestClient,
    sync_func: Callable[..., Awaitable[list[CommandSyncResult]]] = sync_commands,
) -> list[CommandSyncResult]:
    bot_token = config.require_bot_token()
    application_id = config.require_application_id()

    async with rest_client_factory(
        bot_token=bot_token,
        timeout_seconds=config.timeout_seconds,
        max_retries=config.max_retries,
    ) as rest:
        return await sync_func(
            rest,
            application_id=application_id,
            registration=config.command_registration,
            logger=logger,
        )


async def _init_state(path: Path) -> None:
    store = BridgeStateStore(path)
    try:
        await store.initialize()
    finally:
        await store.close()


def _version_callback(value: bool) -> None:
    if not value:
        return
    typer.echo(f"mcbridge {__version__}")
    raise typer.Exit(code=0)


@app.callback()
def _root(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    return


@app.command("serve")
def serve(
    path: Optional[Path] = typer.Option(None, "--path", help="Project root path"),
    host: Optional[str] = typer.Option(None, "--host", help="Host to bind"),
    port: Optional[int] = typer.Option(None, "--port", help="Port to bind"),
) -> None:
    """Serve the interaction webhook and the Minecraft API."""
    config = require_config(path)
    bind_host = host or config.server.host
    bind_port = port or config.server.port
    enforce_bind_auth(bind_host, config)
    setup_rotating_logger("mcbridge", config.log)
    try:
        web_app = create_app(config)
    except ConfigError as exc:
        raise_exit(str(exc), cause=exc)
    typer.echo(f"Serving mcbridge on http://{bind_host}:{bind_port}")
    uvicorn.run(
        web_app,
        host=bind_host,
        port=bind_port,
        access_log=config.server.access_log,
    )


@app.command("register-commands")
def register_commands(
    path: Optional[Path] = typer.Option(None, "--path", help="Project root path"),
) -> None:
    """Bulk-overwrite the Discord slash commands."""
    config = require_config(path)
    try:
        results = asyncio.run(
            _sync_discord_application_commands(
                config.discord,
                logger=logging.getLogger("mcbridge.discord.commands"),
            )
        )
    except (DiscordBotConfigError, DiscordAPIError, ValueError) as exc:
        raise_exit(str(exc), cause=exc)
    for result in results:
        target = result.guild_id or "global"
        typer.echo(f"{target}: {len(result.registered)} command(s) registered")
        if result.missing:
            typer.echo(f"{target}: missing {', '.join(result.missing)}", err=True)


@app.command("init-db")
def init_db(
    path: Optional[Path] = typer.Option(None, "--path", help="Project root path"),
) -> None:
    """Create the state database schema."""
    config = require_config(path)
    asyncio.run(_init_state(config.state_file))
    typer.echo(f"Initialized state at {config.state_file}")


def main() -> None:
    """Entrypoint for CLI execution."""
    app()
