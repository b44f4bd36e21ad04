from __future__ import annotations

from typing import Optional, Protocol

from nacl.exceptions import BadSignatureError
from nacl.signing import VerifyKey

from .config import DiscordBotConfigError

SIGNATURE_HEADER = "x-signature-ed25519"
TIMESTAMP_HEADER = "x-signature-timestamp"


class InteractionVerifier(Protocol):
    def verify(self, *, body: bytes, signature: str, timestamp: str) -> bool: ...


class Ed25519InteractionVerifier:
    """Checks Discord's Ed25519 signature over ``timestamp + raw body``."""

    def __init__(self, public_key_hex: str) -> None:
        try:
            self._verify_key = VerifyKey(bytes.fromhex(public_key_hex.strip()))
        except ValueError as exc:
            raise DiscordBotConfigError(
                "discord public key must be a 32-byte hex string"
            ) from exc

    def verify(self, *, body: bytes, signature: str, timestamp: str) -> bool:
        if not signature or not timestamp:
            return False
        try:
            signature_bytes = bytes.fromhex(signature)
        except ValueError:
            return False
        try:
            self._verify_key.verify(timestamp.encode("utf-8") + body, signature_bytes)
        except (BadSignatureError, ValueError):
            return False
        return True


def verify_request(
    verifier: InteractionVerifier,
    *,
    body: bytes,
    signature: Optional[str],
    timestamp: Optional[str],
) -> bool:
    if not signature or not timestamp:
        return False
    return verifier.verify(body=body, signature=signature, timestamp=timestamp)
