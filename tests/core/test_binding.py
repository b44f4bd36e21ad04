from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from mcbridge.core.binding import (
    BIND_CODE_ALPHABET,
    BIND_CODE_LENGTH,
    BindingService,
    BindingState,
    binding_state,
    generate_bind_code,
    is_code_expired,
)
from mcbridge.core.exceptions import ExpiredError, NotFoundError, ValidationError
from mcbridge.core.state import BridgeStateStore

START = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


def _codes(*values: str):
    pending = list(values)
    return lambda: pending.pop(0)


def test_generate_bind_code_uses_alphabet() -> None:
    for _ in range(20):
        code = generate_bind_code()
        assert len(code) == BIND_CODE_LENGTH
        assert set(code) <= set(BIND_CODE_ALPHABET)


def test_code_expiry_boundary() -> None:
    ttl = timedelta(minutes=10)
    assert not is_code_expired(START, START + ttl, ttl)
    assert is_code_expired(START, START + ttl + timedelta(seconds=1), ttl)
    assert is_code_expired(None, START, ttl)


def test_binding_state_transitions() -> None:
    assert binding_state(None) == BindingState.UNBOUND


@pytest.mark.anyio
async def test_request_then_verify_binds_account(state_path: Path) -> None:
    store = BridgeStateStore(state_path)
    clock = _Clock(START)
    service = BindingService(store, clock=clock, code_factory=_codes("ABC123"))
    try:
        await store.initialize()
        result = await service.request_bind(
            discord_id="42", discord_name="Alex", mc_name="  alex_mc "
        )
        assert result.status == "issued"
        assert result.code == "ABC123"
        assert result.record.mc_name == "alex_mc"
        assert binding_state(result.record) == BindingState.PENDING

        clock.advance(timedelta(minutes=3))
        bound = await service.verify(
            code=" abc123 ", mc_uuid="uuid-42", mc_name="Alex_MC"
        )
        assert bound.discord_id == "42"
        assert bound.mc_uuid == "uuid-42"
        assert bound.mc_name == "Alex_MC"
        assert bound.bound_at == "2026-03-01T12:03:00Z"
        assert binding_state(bound) == BindingState.BOUND

        with pytest.raises(NotFoundError):
            await service.verify(code="ABC123", mc_uuid="uuid-42", mc_name="Alex_MC")
    finally:
        await store.close()


@pytest.mark.anyio
async def test_request_bind_reports_existing_binding(state_path: Path) -> None:
    store = BridgeStateStore(state_path)
    service = BindingService(
        store, clock=_Clock(START), code_factory=_codes("AAAAAA", "BBBBBB")
    )
    try:
        await store.initialize()
        await service.request_bind(discord_id="42", discord_name="Alex", mc_name="alex")
        await service.verify(code="AAAAAA", mc_uuid="uuid-42", mc_name="alex")

        result = await service.request_bind(
            discord_id="42", discord_name="Alex", mc_name="someone_else"
        )
        assert result.already_bound
        assert result.code is None
        assert result.record.mc_name == "alex"
    finally:
        await store.close()


@pytest.mark.anyio
async def test_reissued_code_replaces_previous(state_path: Path) -> None:
    store = BridgeStateStore(state_path)
    service = BindingService(
        store, clock=_Clock(START), code_factory=_codes("AAAAAA", "BBBBBB")
    )
    try:
        await store.initialize()
        await service.request_bind(discord_id="42", discord_name="Alex", mc_name="alex")
        await service.request_bind(discord_id="42", discord_name="Alex", mc_name="alex")

        with pytest.raises(NotFoundError):
            await service.verify(code="AAAAAA", mc_uuid="uuid-42", mc_name="alex")
        bound = await service.verify(code="BBBBBB", mc_uuid="uuid-42", mc_name="alex")
        assert bound.is_bound
    finally:
        await store.close()


@pytest.mark.anyio
async def test_expired_code_is_cleared(state_path: Path) -> None:
    store = BridgeStateStore(state_path)
    clock = _Clock(START)
    service = BindingService(store, clock=clock, code_factory=_codes("ABC123"))
    try:
        await store.initialize()
        await service.request_bind(discord_id="42", discord_name="Alex", mc_name="alex")

        clock.advance(timedelta(minutes=11))
        with pytest.raises(ExpiredError) as excinfo:
            await service.verify(code="ABC123", mc_uuid="uuid-42", mc_name="alex")
        assert excinfo.value.status_code == 410

        record = await store.get_binding("42")
        assert record is not None
        assert record.bind_code is None
        assert binding_state(record) == BindingState.UNBOUND
        with pytest.raises(NotFoundError):
            await service.verify(code="ABC123", mc_uuid="uuid-42", mc_name="alex")
    finally:
        await store.close()


@pytest.mark.anyio
async def test_verify_rejects_uuid_owned_by_another_account(state_path: Path) -> None:
    store = BridgeStateStore(state_path)
    service = BindingService(
        store, clock=_Clock(START), code_factory=_codes("AAAAAA", "BBBBBB")
    )
    try:
        await store.initialize()
        await service.request_bind(discord_id="1", discord_name="One", mc_name="one")
        await service.verify(code="AAAAAA", mc_uuid="uuid-shared", mc_name="one")

        await service.request_bind(discord_id="2", discord_name="Two", mc_name="two")
        with pytest.raises(ValidationError):
            await service.verify(code="BBBBBB", mc_uuid="uuid-shared", mc_name="two")

        pending = await store.get_binding("2")
        assert pending is not None and pending.bind_code == "BBBBBB"
    finally:
        await store.close()


@pytest.mark.anyio
async def test_request_bind_requires_name(state_path: Path) -> None:
    store = BridgeStateStore(state_path)
    service = BindingService(store, clock=_Clock(START))
    try:
        await store.initialize()
        with pytest.raises(ValidationError):
            await service.request_bind(discord_id="42", discord_name="Alex", mc_name=" ")
        with pytest.raises(NotFoundError):
            await service.verify(code="", mc_uuid="uuid", mc_name="alex")
    finally:
        await store.close()


class _InterleavingStore(BridgeStateStore):
    """Runs a coroutine just before the next pending-binding upsert."""

    def __init__(self, path: Path) -> None:
        super().__init__(path)
        self.before_upsert = None

    async def upsert_pending_binding(self, **kwargs):
        hook, self.before_upsert = self.before_upsert, None
        if hook is not None:
            await hook()
        return await super().upsert_pending_binding(**kwargs)


@pytest.mark.anyio
async def test_bind_completed_mid_request_stays_bound(state_path: Path) -> None:
    store = _InterleavingStore(state_path)
    service = BindingService(
        store, clock=_Clock(START), code_factory=_codes("AAAAAA", "BBBBBB")
    )
    try:
        await store.initialize()
        await service.request_bind(discord_id="42", discord_name="Alex", mc_name="alex")

        async def verify_first_code() -> None:
            await service.verify(code="AAAAAA", mc_uuid="uuid-A", mc_name="alex")

        store.before_upsert = verify_first_code
        result = await service.request_bind(
            discord_id="42", discord_name="Alex", mc_name="Steve"
        )
        assert result.already_bound
        assert result.code is None

        record = await store.get_binding("42")
        assert record is not None
        assert record.mc_uuid == "uuid-A"
        assert record.mc_name == "alex"
        assert record.bind_code is None
        with pytest.raises(NotFoundError):
            await service.verify(code="BBBBBB", mc_uuid="uuid-B", mc_name="Steve")
    finally:
        await store.close()


@pytest.mark.anyio
async def test_bound_row_cannot_be_completed_again(state_path: Path) -> None:
    store = BridgeStateStore(state_path)
    service = BindingService(store, clock=_Clock(START), code_factory=_codes("AAAAAA"))
    try:
        await store.initialize()
        issued = await service.request_bind(
            discord_id="42", discord_name="Alex", mc_name="alex"
        )
        await service.verify(code="AAAAAA", mc_uuid="uuid-A", mc_name="alex")

        again = await store.complete_binding(
            issued.record.id,
            bind_code="AAAAAA",
            mc_uuid="uuid-B",
            mc_name="other",
            bound_at="2026-03-01T12:05:00Z",
        )
        assert again is None
        record = await store.get_binding("42")
        assert record is not None and record.mc_uuid == "uuid-A"
    finally:
        await store.close()


@pytest.mark.anyio
async def test_code_lifetime_keeps_subsecond_issue_time(state_path: Path) -> None:
    store = BridgeStateStore(state_path)
    clock = _Clock(START + timedelta(milliseconds=900))
    service = BindingService(
        store, clock=clock, code_factory=_codes("AAAAAA", "BBBBBB")
    )
    try:
        await store.initialize()
        issued = await service.request_bind(
            discord_id="42", discord_name="Alex", mc_name="alex"
        )
        assert issued.record.bind_code_at == "2026-03-01T12:00:00.900000Z"

        # 9m59.6s after issue.
        clock.now = START + timedelta(minutes=10, milliseconds=500)
        bound = await service.verify(code="AAAAAA", mc_uuid="uuid-42", mc_name="alex")
        assert bound.is_bound

        await service.request_bind(discord_id="7", discord_name="Sam", mc_name="sam")
        clock.advance(timedelta(minutes=10, seconds=1))
        with pytest.raises(ExpiredError):
            await service.verify(code="BBBBBB", mc_uuid="uuid-7", mc_name="sam")
    finally:
        await store.close()
