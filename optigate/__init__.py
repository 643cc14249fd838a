"""Public API surface for the optigate package."""

from __future__ import annotations

from optigate.services.datafile import (
    Datafile,
    DatafileOptions,
    DatafileStore,
    RefreshCoordinator,
    RequestBinder,
    WebhookVerifier,
    bind,
    create_app,
    install,
    is_route_enabled,
)

__version__ = "0.1.0"

__all__ = [
    "Datafile",
    "DatafileOptions",
    "DatafileStore",
    "RefreshCoordinator",
    "RequestBinder",
    "WebhookVerifier",
    "bind",
    "create_app",
    "install",
    "is_route_enabled",
]
