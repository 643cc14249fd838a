"""Process-wide holder for the current datafile."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from .errors import RefreshError

logger = logging.getLogger(__name__)

DatafileListener = Callable[["Datafile"], None]


@dataclass(frozen=True)
class Datafile:
    """Decoded datafile content plus the revision embedded in it.

    Instances are snapshots: the store swaps whole objects and never edits
    ``content`` in place, so readers may hold on to one for the lifetime of a
    request.
    """

    content: dict[str, Any] = field(default_factory=dict)
    revision: str | None = None

    @classmethod
    def empty(cls) -> "Datafile":
        return cls()

    @classmethod
    def from_payload(cls, payload: Any) -> "Datafile":
        """Build a datafile from a mapping, JSON text or JSON bytes."""

        if isinstance(payload, Datafile):
            return payload
        if isinstance(payload, (bytes, bytearray)):
            try:
                payload = payload.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise RefreshError(f"datafile is not valid UTF-8: {exc}") from exc
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except ValueError as exc:
                raise RefreshError(f"datafile is not valid JSON: {exc}") from exc
        if not isinstance(payload, Mapping):
            raise RefreshError(
                f"datafile must decode to an object, got {type(payload).__name__}"
            )
        content = dict(payload)
        revision = content.get("revision")
        return cls(content=content, revision=str(revision) if revision is not None else None)

    @property
    def is_empty(self) -> bool:
        return not self.content

    def to_json(self, indent: int | None = 2) -> str:
        return json.dumps(self.content, indent=indent)


class DatafileStore:
    """Single shared cell holding the current :class:`Datafile`.

    ``replace`` serialises writers with a lock; ``get`` is a plain attribute
    read, which is atomic for a single reference. A reader that starts after
    ``replace`` returned always sees that datafile or a newer one.
    """

    def __init__(self, initial: Datafile | None = None) -> None:
        self._current: Datafile | None = initial
        self._ready = False
        self._lock = threading.Lock()
        self._listeners: list[DatafileListener] = []

    def get(self) -> Datafile | None:
        """Return the current datafile, or ``None`` if nothing is loaded."""
        return self._current

    @property
    def ready(self) -> bool:
        return self._ready

    def mark_ready(self) -> None:
        self._ready = True

    def replace(self, datafile: Datafile) -> None:
        with self._lock:
            self._current = datafile
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(datafile)
            except Exception:
                logger.exception("Datafile listener %r failed", listener)

    def subscribe(self, listener: DatafileListener) -> Callable[[], None]:
        """Register ``listener`` for replacements; returns an unsubscribe callable."""

        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe


__all__ = ["Datafile", "DatafileListener", "DatafileStore"]
