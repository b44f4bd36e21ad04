"""Discord interaction webhook, REST client and slash-command handlers."""

from .command_registry import sync_commands
from .commands import CommandNames, build_application_commands
from .config import (
    DiscordBotConfig,
    DiscordBotConfigError,
    DiscordCommandRegistration,
)
from .constants import DISCORD_API_BASE_URL, DISCORD_MAX_MESSAGE_LENGTH
from .errors import DiscordAPIError, DiscordPermanentError
from .rest import DiscordRestApi, DiscordRestClient
from .signature import Ed25519InteractionVerifier, InteractionVerifier

__all__ = [
    "CommandNames",
    "DISCORD_API_BASE_URL",
    "DISCORD_MAX_MESSAGE_LENGTH",
    "DiscordAPIError",
    "DiscordBotConfig",
    "DiscordBotConfigError",
    "DiscordCommandRegistration",
    "DiscordPermanentError",
    "DiscordRestApi",
    "DiscordRestClient",
    "Ed25519InteractionVerifier",
    "InteractionVerifier",
    "build_application_commands",
    "sync_commands",
]
