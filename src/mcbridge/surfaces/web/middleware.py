from __future__ import annotations

import logging
import secrets
from typing import Optional

from fastapi.responses import JSONResponse

from ...core.logging_utils import log_event

API_KEY_HEADER = b"x-api-key"
MINECRAFT_API_PREFIX = "/api/mc"

logger = logging.getLogger(__name__)


class ApiKeyMiddleware:
    """Middleware that enforces the Minecraft API key on ``/api/mc`` routes.

    With no key configured every protected request is rejected.
    """

    def __init__(self, app, api_key: Optional[str], prefix: str = MINECRAFT_API_PREFIX):
        self.app = app
        self.api_key = api_key
        self.prefix = prefix.rstrip("/")

    def __getattr__(self, name):
        return getattr(self.app, name)

    def _requires_auth(self, scope) -> bool:
        if scope.get("type") != "http":
            return False
        path = scope.get("path") or "/"
        return path == self.prefix or path.startswith(f"{self.prefix}/")

    def _extract_header_key(self, scope) -> Optional[str]:
        headers = {k.lower(): v for k, v in (scope.get("headers") or [])}
        raw = headers.get(API_KEY_HEADER)
        if not raw:
            return None
        try:
            return raw.decode("utf-8").strip() or None
        except UnicodeDecodeError:
            return None

    def _is_authorized(self, provided: Optional[str]) -> bool:
        if not self.api_key or not provided:
            return False
        return secrets.compare_digest(
            provided.encode("utf-8"), self.api_key.encode("utf-8")
        )

    async def _reject_http(self, scope, receive, send) -> None:
        log_event(
            logger,
            logging.WARNING,
            "web.api_key.rejected",
            path=scope.get("path"),
            method=scope.get("method"),
        )
        response = JSONResponse(
            {"success": False, "error": "Unauthorized"},
            status_code=401,
        )
        await response(scope, receive, send)

    async def __call__(self, scope, receive, send):
        if not self._requires_auth(scope):
            return await self.app(scope, receive, send)
        if not self._is_authorized(self._extract_header_key(scope)):
            return await self._reject_http(scope, receive, send)
        return await self.app(scope, receive, send)
