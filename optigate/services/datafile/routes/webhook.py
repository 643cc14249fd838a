from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import PlainTextResponse
from opentelemetry import trace

from optigate.services.datafile import metrics as df_metrics
from optigate.services.datafile.coordinator import RefreshCoordinator
from optigate.services.datafile.errors import IntegrationError, MissingSecretError, WebhookError
from optigate.services.datafile.webhook import WebhookVerifier, parse_event

from .dependencies import DatafileDependencyProvider

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

RAW_BODY_STATE_KEY = "raw_body"


async def read_webhook_body(request: Request) -> Any:
    """Return the body as text.

    An upstream middleware may hand over its own representation through
    ``request.state.raw_body``; that value is used as-is. Otherwise the body
    bytes are decoded as UTF-8, and left as bytes when they do not decode.
    """

    if hasattr(request.state, RAW_BODY_STATE_KEY):
        return getattr(request.state, RAW_BODY_STATE_KEY)
    raw = await request.body()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw


def create_router(
    deps: DatafileDependencyProvider, *, path: str = "/webhooks/datafile"
) -> APIRouter:
    router = APIRouter()

    @router.post(path)
    async def post_datafile_webhook(
        request: Request,
        verifier: WebhookVerifier = Depends(deps.provide_verifier),
        coordinator: RefreshCoordinator = Depends(deps.provide_coordinator),
    ) -> Response:
        with tracer.start_as_current_span("datafile.webhook"):
            body = await read_webhook_body(request)
            signature = request.headers.get(verifier.signature_header)
            try:
                verifier.verify(body, signature)
            except WebhookError as exc:
                df_metrics.record_webhook(exc.outcome)
                if isinstance(exc, (MissingSecretError, IntegrationError)):
                    logger.error(
                        "Datafile webhook misconfigured: %s",
                        exc,
                        extra={"event": "webhook_fault", "outcome": exc.outcome},
                    )
                else:
                    logger.warning(
                        "Datafile webhook signature rejected",
                        extra={"event": "webhook_rejected"},
                    )
                return PlainTextResponse(exc.public_message, status_code=exc.status_code)

            coordinator.trigger_immediate_refresh()
            df_metrics.record_webhook("verified")
            event = parse_event(body)
            logger.info(
                "Datafile webhook verified; refresh requested",
                extra={
                    "event": "webhook_verified",
                    "project_id": event.project_id if event else None,
                    "revision": event.data.revision if event else None,
                },
            )
            return PlainTextResponse("OK", status_code=200)

    return router


__all__ = ["RAW_BODY_STATE_KEY", "create_router", "read_webhook_body"]
