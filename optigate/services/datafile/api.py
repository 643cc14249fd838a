from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Mapping

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from starlette.middleware.base import BaseHTTPMiddleware

from .binder import RequestBinder, bind
from .client import ClientFactory
from .config import DatafileOptions
from .guard import install_guard_handler
from .manager import DatafileFetcher
from .routes import create_api_router
from .webhook import WebhookVerifier


def install(app: FastAPI, binder: RequestBinder) -> None:
    """Attach ``binder`` to an existing app.

    Adds the per-request middleware and the feature-guard handler. The
    caller remains responsible for running ``binder.lifespan()`` (or
    ``start``/``stop``) from its own lifespan.
    """

    app.add_middleware(BaseHTTPMiddleware, dispatch=binder)
    install_guard_handler(app)
    app.state.datafile_binder = binder


def create_app(
    options: DatafileOptions | Mapping[str, Any] | None = None,
    *,
    binder: RequestBinder | None = None,
    fetcher: DatafileFetcher | None = None,
    client_factory: ClientFactory | None = None,
    verifier: WebhookVerifier | None = None,
    datafile_path: str = "/datafile",
    webhook_path: str = "/webhooks/datafile",
    expose_metrics: bool = True,
    enable_otel: bool | None = None,
    enable_background: bool = True,
) -> FastAPI:
    if binder is None:
        binder = bind(options, fetcher=fetcher, client_factory=client_factory)
    elif options is not None or fetcher is not None or client_factory is not None:
        raise TypeError("pass either a binder or the options to build one, not both")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not enable_background:
            yield
            return
        async with binder.lifespan():
            yield

    app = FastAPI(lifespan=lifespan)
    if enable_otel:
        FastAPIInstrumentor().instrument_app(app)
    install(app, binder)
    app.include_router(
        create_api_router(
            binder,
            verifier,
            datafile_path=datafile_path,
            webhook_path=webhook_path,
            expose_metrics=expose_metrics,
        )
    )
    return app


__all__ = ["create_app", "install"]
