"""Test configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Callable

import pytest

from optigate.services.datafile import metrics as df_metrics
from optigate.services.datafile.webhook import compute_signature

WEBHOOK_SECRET = "topsecret"


class StubFetcher:
    """In-memory fetcher that emits events on demand."""

    def __init__(self, datafile: Any | None = None) -> None:
        self._datafile = datafile
        self._listeners: dict[str, list[Callable[[], None]]] = {"update": [], "ready": []}
        self.start_calls = 0
        self.stop_calls = 0
        self.refresh_calls = 0
        self.refresh_error: Exception | None = None
        self.start_error: Exception | None = None

    def on(self, event: str, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners[event].append(listener)

        def _dispose() -> None:
            with contextlib.suppress(ValueError):
                self._listeners[event].remove(listener)

        return _dispose

    def get(self) -> Any | None:
        return self._datafile

    async def start(self) -> None:
        self.start_calls += 1
        if self.start_error is not None:
            raise self.start_error

    async def stop(self) -> None:
        self.stop_calls += 1

    async def refresh(self) -> None:
        self.refresh_calls += 1
        if self.refresh_error is not None:
            raise self.refresh_error

    def listener_count(self, event: str) -> int:
        return len(self._listeners[event])

    def publish(self, event: str, datafile: Any | None) -> None:
        self._datafile = datafile
        for listener in list(self._listeners[event]):
            listener()


@pytest.fixture(autouse=True)
def _reset_datafile_metrics():
    df_metrics.reset_metrics()
    yield
    df_metrics.reset_metrics()


@pytest.fixture
def stub_fetcher() -> StubFetcher:
    return StubFetcher()


@pytest.fixture
def sample_datafile() -> dict[str, Any]:
    return {
        "version": "4",
        "revision": "42",
        "projectId": "1001",
        "featureFlags": [
            {"id": "f1", "key": "my_feature", "rolloutId": "r1", "experimentIds": []},
            {"id": "f2", "key": "dark_launch", "rolloutId": "r2", "experimentIds": []},
        ],
        "rollouts": [
            {
                "id": "r1",
                "experiments": [
                    {"id": "e1", "variations": [{"id": "v1", "featureEnabled": True}]}
                ],
            },
            {
                "id": "r2",
                "experiments": [
                    {"id": "e2", "variations": [{"id": "v2", "featureEnabled": False}]}
                ],
            },
        ],
    }


@pytest.fixture
def webhook_secret(monkeypatch) -> str:
    monkeypatch.setenv("OPTIMIZELY_WEBHOOK_SECRET", WEBHOOK_SECRET)
    return WEBHOOK_SECRET


@pytest.fixture
def sign() -> Callable[[str, str], str]:
    def _sign(body: str, secret: str = WEBHOOK_SECRET) -> str:
        return compute_signature(secret, body)

    return _sign


async def drain(coordinator) -> None:
    """Wait for refresh tasks scheduled by ``trigger_immediate_refresh``."""
    pending = list(coordinator._pending)
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    await asyncio.sleep(0)


@pytest.fixture
def drain_refreshes():
    return drain
