"""Account binding: issue, verify and expire one-time bind codes.

A Discord user asks for a code naming their Minecraft account; the game
server later presents that code together with the player's UUID. Codes are
single use and expire ten minutes after issuance.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from .exceptions import ExpiredError, NotFoundError, ValidationError
from .logging_utils import log_event
from .models import BindingRecord
from .state import BridgeStateStore
from .time_utils import (
    format_iso_utc_micro,
    format_iso_utc_z,
    now_utc,
    parse_iso_utc,
)

BIND_CODE_LENGTH = 6
BIND_CODE_ALPHABET = string.ascii_uppercase + string.digits
BIND_CODE_TTL = timedelta(minutes=10)

_logger = logging.getLogger(__name__)


class BindingState(str, Enum):
    UNBOUND = "unbound"
    PENDING = "pending"
    BOUND = "bound"


def binding_state(record: Optional[BindingRecord]) -> BindingState:
    if record is None:
        return BindingState.UNBOUND
    if record.mc_uuid is not None:
        return BindingState.BOUND
    if record.bind_code:
        return BindingState.PENDING
    return BindingState.UNBOUND


def generate_bind_code(length: int = BIND_CODE_LENGTH) -> str:
    return "".join(secrets.choice(BIND_CODE_ALPHABET) for _ in range(length))


def normalize_bind_code(code: str) -> str:
    return code.strip().upper()


def is_code_expired(
    issued_at: Optional[datetime],
    now: datetime,
    ttl: timedelta = BIND_CODE_TTL,
) -> bool:
    # A code with no readable issuance time can never be proven fresh.
    if issued_at is None:
        return True
    return now - issued_at > ttl


@dataclass(frozen=True)
class BindRequestResult:
    status: str
    record: BindingRecord
    code: Optional[str] = None

    @property
    def already_bound(self) -> bool:
        return self.status == "already_bound"


class BindingService:
    def __init__(
        self,
        store: BridgeStateStore,
        *,
        clock: Callable[[], datetime] = now_utc,
        code_factory: Callable[[], str] = generate_bind_code,
        ttl: timedelta = BIND_CODE_TTL,
    ) -> None:
        self._store = store
        self._clock = clock
        self._code_factory = code_factory
        self._ttl = ttl

    @property
    def ttl(self) -> timedelta:
        return self._ttl

    async def request_bind(
        self,
        *,
        discord_id: str,
        discord_name: Optional[str],
        mc_name: str,
    ) -> BindRequestResult:
        mc_name = mc_name.strip()
        if not mc_name:
            raise ValidationError("Minecraft username is required")
        existing = await self._store.get_binding(discord_id)
        if binding_state(existing) == BindingState.BOUND and existing is not None:
            return BindRequestResult(status="already_bound", record=existing)

        code = self._code_factory()
        record = await self._store.upsert_pending_binding(
            discord_id=discord_id,
            discord_name=discord_name,
            mc_name=mc_name,
            bind_code=code,
            issued_at=format_iso_utc_micro(self._clock()),
        )
        if binding_state(record) == BindingState.BOUND:
            # The upsert leaves bound rows untouched.
            return BindRequestResult(status="already_bound", record=record)
        log_event(
            _logger,
            logging.INFO,
            "binding.code_issued",
            discord_id=discord_id,
            mc_name=mc_name,
            reissued=existing is not None and existing.bind_code is not None,
        )
        return BindRequestResult(status="issued", record=record, code=code)

    async def verify(self, *, code: str, mc_uuid: str, mc_name: str) -> BindingRecord:
        normalized = normalize_bind_code(code or "")
        if not normalized:
            raise NotFoundError("Invalid bind code")
        record = await self._store.find_binding_by_code(normalized)
        if record is None:
            raise NotFoundError("Invalid bind code")

        issued_at = parse_iso_utc(record.bind_code_at)
        if is_code_expired(issued_at, self._clock(), self._ttl):
            await self._store.clear_bind_code(record.id)
            log_event(
                _logger,
                logging.INFO,
                "binding.code_expired",
                discord_id=record.discord_id,
            )
            raise ExpiredError("Bind code has expired")

        owner = await self._store.get_player(mc_uuid)
        if owner is not None and owner.discord_id != record.discord_id:
            raise ValidationError("Minecraft account is already bound")

        bound = await self._store.complete_binding(
            record.id,
            bind_code=normalized,
            mc_uuid=mc_uuid,
            mc_name=mc_name,
            bound_at=format_iso_utc_z(self._clock()),
        )
        if bound is None:
            # Another verifier consumed the code between lookup and write.
            raise NotFoundError("Invalid bind code")
        log_event(
            _logger,
            logging.INFO,
            "binding.completed",
            discord_id=bound.discord_id,
            mc_uuid=mc_uuid,
        )
        return bound


__all__ = [
    "BIND_CODE_ALPHABET",
    "BIND_CODE_LENGTH",
    "BIND_CODE_TTL",
    "BindRequestResult",
    "BindingService",
    "BindingState",
    "binding_state",
    "generate_bind_code",
    "is_code_expired",
    "normalize_bind_code",
]
