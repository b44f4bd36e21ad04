from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from ....core.exceptions import ValidationError
from ....core.logging_utils import log_event
from ....integrations.discord.signature import (
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    verify_request,
)
from ..app_state import get_app_context

BAD_SIGNATURE_MESSAGE = "Bad request signature"


def build_interaction_routes() -> APIRouter:
    router = APIRouter(tags=["discord"])

    @router.post("/")
    async def receive_interaction(request: Request) -> Response:
        context = get_app_context(request)
        body = await request.body()
        if context.verifier is None or not verify_request(
            context.verifier,
            body=body,
            signature=request.headers.get(SIGNATURE_HEADER),
            timestamp=request.headers.get(TIMESTAMP_HEADER),
        ):
            log_event(
                context.logger,
                logging.INFO,
                "discord.interaction.bad_signature",
                verifier_configured=context.verifier is not None,
            )
            return PlainTextResponse(BAD_SIGNATURE_MESSAGE, status_code=401)

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ValidationError("Invalid JSON body") from exc
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON body")

        try:
            result = await context.dispatcher.dispatch(
                context.handler_context, payload
            )
        except ValidationError as exc:
            return JSONResponse({"error": str(exc)}, status_code=exc.status_code)
        return JSONResponse(result)

    return router
