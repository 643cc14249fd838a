from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Mapping

from starlette.requests import Request
from starlette.responses import Response

from .client import ClientFactory, EvaluationClient, default_client_factory
from .config import DatafileOptions
from .coordinator import RefreshCoordinator
from .errors import ConfigurationError, RefreshError
from .manager import DatafileFetcher, PollingDatafileManager
from .store import Datafile, DatafileStore

logger = logging.getLogger(__name__)

REQUEST_STATE_KEY = "optimizely"


@dataclass(frozen=True)
class RequestFeatures:
    """What the middleware attaches to ``request.state.optimizely``."""

    datafile: Datafile
    client: EvaluationClient


class RequestBinder:
    """HTTP middleware that binds a fresh evaluation client to each request.

    The binder owns one :class:`DatafileStore` and one
    :class:`RefreshCoordinator`. Build it once per process with :func:`bind`;
    every instance polls independently.
    """

    def __init__(
        self,
        options: DatafileOptions,
        store: DatafileStore,
        coordinator: RefreshCoordinator,
        client_factory: ClientFactory = default_client_factory,
    ) -> None:
        self.options = options
        self.store = store
        self.coordinator = coordinator
        self.client_factory = client_factory
        self._client_options = options.merged()

    async def start(self) -> None:
        await self.coordinator.start()

    async def stop(self) -> None:
        await self.coordinator.stop()

    @asynccontextmanager
    async def lifespan(self) -> AsyncIterator["RequestBinder"]:
        """Run the coordinator for the duration of the ``async with`` block."""
        await self.start()
        try:
            yield self
        finally:
            await self.stop()

    def snapshot(self) -> Datafile:
        """Current datafile, or the empty datafile when nothing is loaded."""
        return self.store.get() or Datafile.empty()

    def bind_request(self, request: Request) -> RequestFeatures:
        datafile = self.snapshot()
        try:
            client = self.client_factory(datafile, self._client_options)
        except Exception:
            # Every feature reads as disabled until a usable datafile arrives.
            logger.exception(
                "Client factory failed for datafile revision %s; using an empty client",
                datafile.revision,
                extra={"event": "client_factory_failed", "revision": datafile.revision},
            )
            client = default_client_factory(Datafile.empty(), self._client_options)
        features = RequestFeatures(datafile=datafile, client=client)
        setattr(request.state, REQUEST_STATE_KEY, features)
        return features

    async def __call__(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        self.bind_request(request)
        return await call_next(request)


def get_request_features(request: Request) -> RequestFeatures | None:
    return getattr(request.state, REQUEST_STATE_KEY, None)


def bind(
    options: DatafileOptions | Mapping[str, Any] | None = None,
    *,
    fetcher: DatafileFetcher | None = None,
    client_factory: ClientFactory | None = None,
    store: DatafileStore | None = None,
    **overrides: Any,
) -> RequestBinder:
    """Validate ``options`` and build a :class:`RequestBinder`.

    Either ``sdk_key`` or an initial ``datafile`` is required. ``overrides``
    are merged over a mapping ``options`` (camelCase keys accepted). A
    caller-supplied ``store`` is seeded with the initial datafile only while
    it is still empty.
    """

    if isinstance(options, DatafileOptions):
        opts = options
        if overrides:
            raise TypeError("keyword overrides require mapping options")
    else:
        opts = DatafileOptions.from_mapping({**dict(options or {}), **overrides})

    if not opts.sdk_key and opts.datafile is None:
        raise ConfigurationError("sdk_key or datafile is required to bind requests")

    initial: Datafile | None = None
    if opts.datafile is not None:
        try:
            initial = Datafile.from_payload(opts.datafile)
        except RefreshError as exc:
            raise ConfigurationError(f"initial datafile is invalid: {exc}") from exc

    if opts.log_level is not None:
        logging.getLogger("optigate").setLevel(_coerce_level(opts.log_level))

    if store is None:
        store = DatafileStore(initial)
    elif initial is not None and store.get() is None:
        store.replace(initial)
    if fetcher is None:
        fetcher = PollingDatafileManager(opts.sdk_key, **opts.fetcher_kwargs())
    coordinator = RefreshCoordinator(store, fetcher)
    return RequestBinder(
        opts,
        store,
        coordinator,
        client_factory=client_factory or default_client_factory,
    )


def _coerce_level(level: str | int) -> int:
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(str(level).upper())
    if not isinstance(numeric, int):
        raise ConfigurationError(f"unknown log level: {level}")
    return numeric


__all__ = [
    "REQUEST_STATE_KEY",
    "RequestBinder",
    "RequestFeatures",
    "bind",
    "get_request_features",
]
