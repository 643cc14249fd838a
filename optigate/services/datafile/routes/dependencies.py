from __future__ import annotations

from optigate.services.datafile.binder import RequestBinder
from optigate.services.datafile.coordinator import RefreshCoordinator
from optigate.services.datafile.store import DatafileStore
from optigate.services.datafile.webhook import WebhookVerifier


class DatafileDependencyProvider:
    """Container that exposes FastAPI dependency callables for datafile routes."""

    def __init__(
        self,
        *,
        binder: RequestBinder,
        verifier: WebhookVerifier,
    ) -> None:
        self._binder = binder
        self._verifier = verifier

    def provide_binder(self) -> RequestBinder:
        return self._binder

    def provide_store(self) -> DatafileStore:
        return self._binder.store

    def provide_coordinator(self) -> RefreshCoordinator:
        return self._binder.coordinator

    def provide_verifier(self) -> WebhookVerifier:
        return self._verifier


__all__ = ["DatafileDependencyProvider"]
