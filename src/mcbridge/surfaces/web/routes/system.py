from __future__ import annotations

from fastapi import APIRouter

from ....core.time_utils import now_iso
from ..schemas import HealthResponse


def build_system_routes() -> APIRouter:
    router = APIRouter(tags=["system"])

    @router.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", timestamp=now_iso())

    return router
