from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    username: Optional[str] = None
    message: Optional[str] = None


class AckRequest(BaseModel):
    ids: Optional[List[int]] = None


class BindRequest(BaseModel):
    mc_uuid: Optional[str] = None
    mc_name: Optional[str] = None
    bind_code: Optional[str] = None


class InventoryItemPayload(BaseModel):
    item_id: str
    item_name: Optional[str] = None
    quantity: Optional[int] = None
    metadata: Optional[Any] = None


class InventoryReplaceRequest(BaseModel):
    items: Optional[List[InventoryItemPayload]] = None


class InventoryPatchRequest(BaseModel):
    quantity: Optional[int] = None
    item_name: Optional[str] = None
    metadata: Optional[Any] = None


class SettingUpdateRequest(BaseModel):
    value: Any = None


class ServerStatusRequest(BaseModel):
    status: Optional[Any] = None
    tps: Optional[Any] = None
    players_online: Optional[Any] = None
    players_max: Optional[Any] = None
    version: Optional[Any] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    timestamp: str = Field(default="")
