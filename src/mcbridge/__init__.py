"""Bridge between Discord interactions and a Minecraft server's REST integration."""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("mcbridge")
except importlib.metadata.PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
