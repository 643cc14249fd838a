"""Datafile fetchers.

The coordinator only relies on the :class:`DatafileFetcher` protocol.
:class:`PollingDatafileManager` is the default implementation: it polls the
CDN with conditional requests and emits ``ready`` on the first successful
load and ``update`` whenever a new datafile arrives afterwards. Retry policy
is "try again on the next tick"; anything smarter belongs in a custom
fetcher.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Literal, Protocol

import httpx

from . import metrics as df_metrics
from .errors import ConfigurationError, RefreshError
from .store import Datafile

logger = logging.getLogger(__name__)

DEFAULT_URL_TEMPLATE = "https://cdn.optimizely.com/datafiles/{sdk_key}.json"
DEFAULT_UPDATE_INTERVAL = 300.0
MIN_UPDATE_INTERVAL = 1.0

FetcherEvent = Literal["update", "ready"]
Listener = Callable[[], None]


class DatafileFetcher(Protocol):
    """Source of datafile snapshots driven in the background."""

    def on(self, event: FetcherEvent, listener: Listener) -> Callable[[], None]:
        ...

    def get(self) -> Any | None:
        ...

    async def start(self) -> None:
        ...

    async def refresh(self) -> None:
        ...

    async def stop(self) -> None:
        ...


class PollingDatafileManager:
    """Poll ``url_template`` for the datafile identified by ``sdk_key``."""

    def __init__(
        self,
        sdk_key: str | None,
        *,
        datafile: Any | None = None,
        update_interval: float = DEFAULT_UPDATE_INTERVAL,
        auto_update: bool = True,
        url_template: str = DEFAULT_URL_TEMPLATE,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
        **_: Any,
    ) -> None:
        if not sdk_key and datafile is None:
            raise ConfigurationError("sdk_key or datafile is required")
        self.sdk_key = sdk_key
        self.url = url_template.format(sdk_key=sdk_key) if sdk_key else None
        if update_interval < MIN_UPDATE_INTERVAL:
            logger.warning(
                "update_interval %.3fs is below the minimum; using %.1fs",
                update_interval,
                MIN_UPDATE_INTERVAL,
            )
            update_interval = MIN_UPDATE_INTERVAL
        self.update_interval = update_interval
        self.auto_update = auto_update
        self._timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._datafile: Any | None = datafile
        self._last_modified: str | None = None
        self._is_ready = False
        self._listeners: dict[str, list[Listener]] = {"update": [], "ready": []}
        self._fetch_lock = asyncio.Lock()
        self._task: asyncio.Task[None] | None = None

    def on(self, event: FetcherEvent, listener: Listener) -> Callable[[], None]:
        if event not in self._listeners:
            raise ValueError(f"unknown fetcher event: {event}")
        self._listeners[event].append(listener)

        def _dispose() -> None:
            with contextlib.suppress(ValueError):
                self._listeners[event].remove(listener)

        return _dispose

    def get(self) -> Any | None:
        return self._datafile

    async def start(self) -> None:
        if self._task is not None:
            return
        if self.url is None:
            # Static datafile only: nothing to poll.
            self._set_ready()
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def refresh(self) -> None:
        """Fetch once now. Raises :class:`RefreshError` on failure."""
        if self.url is None:
            raise RefreshError("no sdk_key configured; nothing to refresh")
        await self._fetch_once()

    async def _run(self) -> None:
        while True:
            try:
                await self._fetch_once()
            except RefreshError as exc:
                df_metrics.datafile_refresh_failures_total.inc()
                logger.warning(
                    "Datafile fetch failed: %s",
                    exc,
                    extra={"event": "datafile_fetch_failed", "sdk_key": self.sdk_key},
                )
            except Exception:
                df_metrics.datafile_refresh_failures_total.inc()
                logger.exception(
                    "Unexpected error while polling the datafile",
                    extra={"event": "datafile_fetch_failed", "sdk_key": self.sdk_key},
                )
            if not self.auto_update:
                return
            await asyncio.sleep(self.update_interval)

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def _fetch_once(self) -> None:
        assert self.url is not None
        async with self._fetch_lock:
            headers = {}
            if self._last_modified:
                headers["If-Modified-Since"] = self._last_modified
            try:
                resp = await self._http().get(self.url, headers=headers)
            except httpx.HTTPError as exc:
                raise RefreshError(f"request to {self.url} failed: {exc}") from exc
            if resp.status_code == 304:
                logger.debug("Datafile not modified since %s", self._last_modified)
                self._set_ready()
                return
            if resp.status_code != 200:
                raise RefreshError(f"unexpected status {resp.status_code} from {self.url}")
            payload = Datafile.from_payload(resp.content).content
            self._last_modified = resp.headers.get("Last-Modified", self._last_modified)
            self._datafile = payload
        if self._is_ready:
            self._emit("update")
        else:
            self._set_ready()

    def _set_ready(self) -> None:
        if self._is_ready:
            return
        self._is_ready = True
        self._emit("ready")

    def _emit(self, event: str) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener()
            except Exception:
                logger.exception("Datafile %s listener failed", event)


__all__ = [
    "DEFAULT_UPDATE_INTERVAL",
    "DEFAULT_URL_TEMPLATE",
    "DatafileFetcher",
    "FetcherEvent",
    "PollingDatafileManager",
]
