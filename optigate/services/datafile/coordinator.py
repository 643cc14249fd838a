from __future__ import annotations

import asyncio
import logging
from typing import Callable

from . import metrics as df_metrics
from .errors import RefreshError
from .manager import DatafileFetcher
from .store import Datafile, DatafileStore

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """Bridge a :class:`DatafileFetcher` into a :class:`DatafileStore`.

    The coordinator never fetches anything itself. It listens to the
    fetcher's ``update`` and ``ready`` events, copies the fetcher's snapshot
    into the store, and forwards out-of-band refresh requests.
    """

    def __init__(self, store: DatafileStore, fetcher: DatafileFetcher) -> None:
        self.store = store
        self.fetcher = fetcher
        self._subscriptions: list[Callable[[], None]] = []
        self._pending: set[asyncio.Task[None]] = set()
        self._started = False
        self._stopped = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        """Subscribe to the fetcher and start it. Repeated calls are no-ops."""
        if self._started:
            return
        self._started = True
        self._stopped = False
        self._subscriptions = [
            self.fetcher.on("update", self._on_update),
            self.fetcher.on("ready", self._on_ready),
        ]
        try:
            await self.fetcher.start()
        except BaseException:
            for dispose in self._subscriptions:
                dispose()
            self._subscriptions = []
            self._started = False
            raise
        logger.info("Datafile refresh coordinator started", extra={"event": "coordinator_started"})

    async def stop(self) -> None:
        """Unsubscribe and release the fetcher. Safe before :meth:`start`."""
        self._stopped = True
        for dispose in self._subscriptions:
            dispose()
        self._subscriptions = []
        for task in list(self._pending):
            task.cancel()
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        self._pending.clear()
        if self._started:
            await self.fetcher.stop()
            self._started = False
        logger.info("Datafile refresh coordinator stopped", extra={"event": "coordinator_stopped"})

    def trigger_immediate_refresh(self) -> None:
        """Ask the fetcher for an out-of-band fetch without waiting for it.

        Failures are logged and counted; nothing is raised to the caller.
        """
        if self._stopped:
            logger.warning("Refresh requested after coordinator stop; ignoring")
            return
        try:
            task = asyncio.get_running_loop().create_task(self._refresh())
        except RuntimeError:
            df_metrics.datafile_refresh_failures_total.inc()
            logger.exception("Unable to schedule datafile refresh")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _refresh(self) -> None:
        try:
            await self.fetcher.refresh()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            df_metrics.datafile_refresh_failures_total.inc()
            logger.warning(
                "Immediate datafile refresh failed: %s",
                exc,
                extra={"event": "datafile_refresh_failed"},
            )
        else:
            logger.info("Immediate datafile refresh completed", extra={"event": "datafile_refreshed"})

    def _on_update(self) -> None:
        self._apply("update")

    def _on_ready(self) -> None:
        if self._apply("ready"):
            self.store.mark_ready()
            df_metrics.datafile_ready.set(1)

    def _apply(self, source: str) -> bool:
        if self._stopped:
            return False
        snapshot = self.fetcher.get()
        if snapshot is None:
            logger.warning("Fetcher emitted %s without a datafile", source)
            return False
        try:
            datafile = Datafile.from_payload(snapshot)
        except RefreshError as exc:
            df_metrics.datafile_refresh_failures_total.inc()
            logger.error("Discarding undecodable datafile from %s event: %s", source, exc)
            return False
        self.store.replace(datafile)
        df_metrics.record_update(source)
        logger.info(
            "Datafile replaced (revision %s)",
            datafile.revision,
            extra={"event": "datafile_replaced", "source": source, "revision": datafile.revision},
        )
        return True


__all__ = ["RefreshCoordinator"]
