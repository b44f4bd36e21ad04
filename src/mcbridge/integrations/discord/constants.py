from __future__ import annotations

DISCORD_API_BASE_URL = "https://discord.com/api/v10"

# Discord hard limit for message content.
DISCORD_MAX_MESSAGE_LENGTH = 2000

# Interaction types (https://discord.com/developers/docs/interactions/receiving-and-responding).
INTERACTION_TYPE_PING = 1
INTERACTION_TYPE_APPLICATION_COMMAND = 2
INTERACTION_TYPE_MESSAGE_COMPONENT = 3

# Interaction callback types.
RESPONSE_TYPE_PONG = 1
RESPONSE_TYPE_CHANNEL_MESSAGE_WITH_SOURCE = 4
RESPONSE_TYPE_UPDATE_MESSAGE = 7

MESSAGE_FLAG_EPHEMERAL = 1 << 6

# Application command option types.
OPTION_TYPE_STRING = 3
OPTION_TYPE_ROLE = 8

PERMISSION_MANAGE_GUILD = 1 << 5
PERMISSION_MANAGE_ROLES = 1 << 28

COLOR_GREEN = 0x57F287
COLOR_RED = 0xED4245
COLOR_BLURPLE = 0x5865F2
COLOR_ORANGE = 0xFFA500

# Interactions must be answered within three seconds, so REST calls made
# while handling one get a single short attempt.
INTERACTION_REST_TIMEOUT_SECONDS = 2.0
