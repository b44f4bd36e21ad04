from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Query, Request

from ....core.exceptions import NotFoundError, ValidationError
from ....core.logging_utils import log_event
from ....core.models import InventoryItem
from ....core.settings import status_report_to_settings, stringify_setting_value
from ....core.time_utils import format_iso_utc_z, parse_iso_utc
from ..app_state import get_app_context
from ..schemas import (
    AckRequest,
    BindRequest,
    ChatRequest,
    InventoryPatchRequest,
    InventoryReplaceRequest,
    ServerStatusRequest,
    SettingUpdateRequest,
)

DEFAULT_MESSAGES_LIMIT = 50
MAX_MESSAGES_LIMIT = 100

logger = logging.getLogger(__name__)


def _ok(data: Any = None) -> dict[str, Any]:
    if data is None:
        return {"success": True}
    return {"success": True, "data": data}


def _normalize_since(since: Optional[str]) -> Optional[str]:
    if not since:
        return None
    parsed = parse_iso_utc(since)
    if parsed is None:
        raise ValidationError("since must be an ISO-8601 timestamp")
    return format_iso_utc_z(parsed)


def build_minecraft_routes() -> APIRouter:
    router = APIRouter(prefix="/api/mc", tags=["minecraft"])

    @router.post("/chat")
    async def post_chat(request: Request, body: ChatRequest) -> dict[str, Any]:
        if not body.username or not body.message:
            raise ValidationError("Missing username or message")
        context = get_app_context(request)
        await context.relay.relay(username=body.username, message=body.message)
        return _ok()

    @router.get("/messages")
    async def get_messages(
        request: Request,
        since: Optional[str] = None,
        limit: int = Query(DEFAULT_MESSAGES_LIMIT),
    ) -> dict[str, Any]:
        if limit <= 0:
            raise ValidationError("limit must be positive")
        context = get_app_context(request)
        messages = await context.store.list_pending_messages(
            since=_normalize_since(since),
            limit=min(limit, MAX_MESSAGES_LIMIT),
        )
        return _ok([message.to_outbound_dict() for message in messages])

    @router.post("/messages/ack")
    async def ack_messages(request: Request, body: AckRequest) -> dict[str, Any]:
        if not body.ids:
            raise ValidationError("Missing or empty ids array")
        context = get_app_context(request)
        await context.store.mark_messages_delivered(body.ids)
        return _ok({"acknowledged": len(body.ids)})

    @router.get("/players")
    async def get_players(request: Request) -> dict[str, Any]:
        context = get_app_context(request)
        players = await context.store.list_bound_players()
        return _ok([player.to_player_dict() for player in players])

    @router.post("/players/bind")
    async def bind_player(request: Request, body: BindRequest) -> dict[str, Any]:
        if not body.mc_uuid or not body.mc_name or not body.bind_code:
            raise ValidationError("Missing mc_uuid, mc_name, or bind_code")
        context = get_app_context(request)
        record = await context.bindings.verify(
            code=body.bind_code, mc_uuid=body.mc_uuid, mc_name=body.mc_name
        )
        return _ok(
            {
                "discord_id": record.discord_id,
                "discord_name": record.discord_name,
                "mc_uuid": record.mc_uuid,
                "mc_name": record.mc_name,
            }
        )

    @router.get("/players/{mc_uuid}")
    async def get_player(request: Request, mc_uuid: str) -> dict[str, Any]:
        context = get_app_context(request)
        player = await context.store.get_player(mc_uuid)
        if player is None:
            raise NotFoundError("Player not found")
        return _ok(player.to_player_dict())

    @router.get("/inventory/{mc_uuid}")
    async def get_inventory(request: Request, mc_uuid: str) -> dict[str, Any]:
        context = get_app_context(request)
        items = await context.store.list_inventory(mc_uuid)
        return _ok([item.to_dict() for item in items])

    @router.put("/inventory/{mc_uuid}")
    async def put_inventory(
        request: Request, mc_uuid: str, body: InventoryReplaceRequest
    ) -> dict[str, Any]:
        if body.items is None:
            raise ValidationError("items must be an array")
        items = [
            InventoryItem(
                mc_uuid=mc_uuid,
                item_id=item.item_id,
                item_name=item.item_name or item.item_id,
                quantity=1 if item.quantity is None else item.quantity,
                metadata=item.metadata,
            )
            for item in body.items
        ]
        context = get_app_context(request)
        count = await context.store.replace_inventory(mc_uuid, items)
        log_event(
            logger,
            logging.INFO,
            "minecraft.inventory.replaced",
            mc_uuid=mc_uuid,
            received=len(items),
            stored=count,
        )
        return _ok({"count": count})

    @router.patch("/inventory/{mc_uuid}/{item_id}")
    async def patch_inventory_item(
        request: Request, mc_uuid: str, item_id: str, body: InventoryPatchRequest
    ) -> dict[str, Any]:
        if body.quantity is None:
            raise ValidationError("Missing quantity")
        context = get_app_context(request)
        deleted = await context.store.update_inventory_item(
            mc_uuid,
            item_id,
            quantity=body.quantity,
            item_name=body.item_name,
            metadata=body.metadata,
        )
        if deleted:
            return _ok({"deleted": True})
        return _ok()

    @router.get("/settings")
    async def get_settings(request: Request) -> dict[str, Any]:
        context = get_app_context(request)
        settings = await context.store.list_settings()
        return _ok([setting.to_dict() for setting in settings])

    @router.get("/settings/{key}")
    async def get_setting(request: Request, key: str) -> dict[str, Any]:
        context = get_app_context(request)
        setting = await context.store.get_setting(key)
        if setting is None:
            raise NotFoundError("Setting not found")
        return _ok(setting.to_dict())

    @router.put("/settings/{key}")
    async def put_setting(
        request: Request, key: str, body: SettingUpdateRequest
    ) -> dict[str, Any]:
        if "value" not in body.model_fields_set:
            raise ValidationError("Missing value")
        context = get_app_context(request)
        await context.store.upsert_settings({key: stringify_setting_value(body.value)})
        return _ok()

    @router.post("/server/status")
    async def post_server_status(
        request: Request, body: ServerStatusRequest
    ) -> dict[str, Any]:
        report = {field: getattr(body, field) for field in body.model_fields_set}
        values = status_report_to_settings(report)
        if values:
            context = get_app_context(request)
            await context.store.upsert_settings(values)
        return _ok()

    return router
