from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from optigate.services.datafile import metrics as df_metrics


def create_router() -> APIRouter:
    router = APIRouter()

    @router.get("/metrics", response_class=PlainTextResponse)
    async def metrics_endpoint() -> PlainTextResponse:
        return PlainTextResponse(
            df_metrics.collect_metrics(),
            media_type="text/plain; version=0.0.4",
        )

    return router


__all__ = ["create_router"]
