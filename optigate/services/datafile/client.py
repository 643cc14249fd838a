"""Request-scoped evaluation clients."""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Protocol

from .store import Datafile

logger = logging.getLogger(__name__)


class EvaluationClient(Protocol):
    def is_feature_enabled(self, feature_key: str, user_id: str | None) -> bool:
        ...


ClientFactory = Callable[[Datafile, Mapping[str, Any]], EvaluationClient]


class DatafileClient:
    """Coarse client that answers from the datafile alone.

    A feature counts as enabled when its rollout carries a variation with
    ``featureEnabled`` set. Audiences and traffic allocation are ignored;
    pass a ``client_factory`` wrapping a full SDK for real evaluation.
    """

    def __init__(self, datafile: Datafile, options: Mapping[str, Any] | None = None) -> None:
        self.datafile = datafile
        self.options = dict(options or {})
        content = datafile.content
        self._features = {
            flag["key"]: flag
            for flag in _mappings(content.get("featureFlags"))
            if isinstance(flag.get("key"), str)
        }
        self._rollouts = {
            rollout["id"]: rollout
            for rollout in _mappings(content.get("rollouts"))
            if isinstance(rollout.get("id"), str)
        }

    def is_feature_enabled(self, feature_key: str, user_id: str | None) -> bool:
        if not user_id:
            logger.debug("No user id supplied for feature %s", feature_key)
            return False
        flag = self._features.get(feature_key)
        if flag is None:
            return False
        rollout_id = flag.get("rolloutId")
        rollout = self._rollouts.get(rollout_id) if isinstance(rollout_id, str) else None
        if not rollout:
            return False
        for rule in _mappings(rollout.get("experiments")):
            for variation in _mappings(rule.get("variations")):
                if variation.get("featureEnabled") is True:
                    return True
        return False


def _mappings(value: Any) -> list[Mapping[str, Any]]:
    """Mapping entries of ``value`` when it is a list; anything else reads as empty."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def default_client_factory(datafile: Datafile, options: Mapping[str, Any]) -> EvaluationClient:
    return DatafileClient(datafile, options)


__all__ = ["ClientFactory", "DatafileClient", "EvaluationClient", "default_client_factory"]
