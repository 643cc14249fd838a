from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from optigate.services.datafile.binder import RequestBinder, get_request_features

from .dependencies import DatafileDependencyProvider


def create_router(deps: DatafileDependencyProvider, *, path: str = "/datafile") -> APIRouter:
    router = APIRouter()

    @router.get(path)
    async def get_datafile(
        request: Request,
        binder: RequestBinder = Depends(deps.provide_binder),
    ) -> Response:
        features = get_request_features(request)
        datafile = features.datafile if features is not None else binder.snapshot()
        return Response(
            content=datafile.to_json(indent=2),
            status_code=200,
            media_type="application/json",
        )

    return router


__all__ = ["create_router"]
