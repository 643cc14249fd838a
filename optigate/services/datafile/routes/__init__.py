from __future__ import annotations

from fastapi import APIRouter

from optigate.services.datafile.binder import RequestBinder
from optigate.services.datafile.webhook import WebhookVerifier

from .datafile import create_router as create_datafile_router
from .dependencies import DatafileDependencyProvider
from .observability import create_router as create_observability_router
from .webhook import create_router as create_webhook_router


def create_api_router(
    binder: RequestBinder,
    verifier: WebhookVerifier | None = None,
    *,
    datafile_path: str = "/datafile",
    webhook_path: str = "/webhooks/datafile",
    expose_metrics: bool = True,
) -> APIRouter:
    deps = DatafileDependencyProvider(
        binder=binder,
        verifier=verifier
        or WebhookVerifier(
            secret_env=binder.options.webhook_secret_env,
            signature_header=binder.options.signature_header,
        ),
    )

    router = APIRouter()
    router.include_router(create_datafile_router(deps, path=datafile_path))
    router.include_router(create_webhook_router(deps, path=webhook_path))
    if expose_metrics:
        router.include_router(create_observability_router())
    return router


__all__ = ["DatafileDependencyProvider", "create_api_router"]
