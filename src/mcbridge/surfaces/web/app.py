from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ... import __version__
from ...core.binding import BindingService
from ...core.config import BridgeConfig
from ...core.exceptions import BridgeError
from ...core.logging_utils import log_event
from ...core.state import BridgeStateStore
from ...integrations.discord.rest import DiscordRestApi
from ...integrations.discord.signature import InteractionVerifier
from .app_state import AppContext, apply_app_context, build_app_context
from .middleware import ApiKeyMiddleware
from .routes.interactions import build_interaction_routes
from .routes.minecraft import build_minecraft_routes
from .routes.system import build_system_routes


def _app_lifespan(context: AppContext):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await context.store.initialize()
        log_event(
            context.logger,
            logging.INFO,
            "web.started",
            state_file=str(context.config.state_file),
            discord_rest=context.rest is not None,
            signature_verifier=context.verifier is not None,
        )
        try:
            yield
        finally:
            if context.owns_rest:
                for client in (context.rest, context.interaction_rest):
                    close = getattr(client, "close", None)
                    if close is None:
                        continue
                    try:
                        await close()
                    except Exception as exc:
                        log_event(
                            context.logger,
                            logging.WARNING,
                            "web.shutdown.rest_close_failed",
                            exc=exc,
                        )
            await context.store.close()

    return lifespan


def _install_exception_handlers(app: FastAPI, logger: logging.Logger) -> None:
    @app.exception_handler(BridgeError)
    async def _bridge_error(request: Request, exc: BridgeError) -> JSONResponse:
        level = logging.ERROR if exc.status_code >= 500 else logging.INFO
        log_event(
            logger,
            level,
            "web.request.failed",
            method=request.method,
            path=request.url.path,
            status=exc.status_code,
            exc=exc,
        )
        return JSONResponse(
            {"success": False, "error": exc.public_message},
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def _request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        log_event(
            logger,
            logging.INFO,
            "web.request.invalid",
            method=request.method,
            path=request.url.path,
            errors=len(exc.errors()),
        )
        return JSONResponse(
            {"success": False, "error": "Invalid request body"},
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        log_event(
            logger,
            logging.ERROR,
            "web.request.unhandled",
            method=request.method,
            path=request.url.path,
            exc=exc,
        )
        return JSONResponse(
            {"success": False, "error": "Internal server error"},
            status_code=500,
        )


def create_app(
    config: BridgeConfig,
    *,
    store: Optional[BridgeStateStore] = None,
    rest: Optional[DiscordRestApi] = None,
    verifier: Optional[InteractionVerifier] = None,
    bindings: Optional[BindingService] = None,
) -> FastAPI:
    context = build_app_context(
        config, store=store, rest=rest, verifier=verifier, bindings=bindings
    )
    app = FastAPI(
        title="mcbridge",
        version=__version__,
        redirect_slashes=False,
        lifespan=_app_lifespan(context),
    )
    apply_app_context(app, context)
    _install_exception_handlers(app, context.logger)
    app.include_router(build_interaction_routes())
    app.include_router(build_minecraft_routes())
    app.include_router(build_system_routes())
    app.add_middleware(ApiKeyMiddleware, api_key=config.minecraft.api_key)
    return app
