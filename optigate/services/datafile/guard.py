"""Feature-gated routes.

``is_route_enabled`` returns a FastAPI dependency. When the request-scoped
client reports the feature disabled, the dependency raises
:class:`FeatureDisabled` and the handler installed by
:func:`install_guard_handler` answers with the caller's ``on_disabled``
response, so the endpoint body never runs.
"""

from __future__ import annotations

import inspect
from typing import Awaitable, Callable, Optional, Union

from fastapi import FastAPI, Request
from starlette.responses import Response

from .binder import get_request_features

DisabledHandler = Callable[[Request], Union[Response, Awaitable[Response]]]
UserIdResolver = Callable[[Request], Optional[str]]


class FeatureDisabled(Exception):
    def __init__(self, feature_key: str, on_disabled: DisabledHandler) -> None:
        self.feature_key = feature_key
        self.on_disabled = on_disabled
        super().__init__(f"feature {feature_key!r} is disabled")


def default_user_id(request: Request) -> str | None:
    return getattr(request.state, "user_id", None)


def is_route_enabled(
    feature_key: str,
    on_disabled: DisabledHandler,
    *,
    user_id: UserIdResolver = default_user_id,
) -> Callable[[Request], Awaitable[None]]:
    async def _guard(request: Request) -> None:
        features = get_request_features(request)
        if features is not None and features.client.is_feature_enabled(
            feature_key, user_id(request)
        ):
            return
        raise FeatureDisabled(feature_key, on_disabled)

    return _guard


async def _handle_feature_disabled(request: Request, exc: Exception) -> Response:
    if not isinstance(exc, FeatureDisabled):
        raise exc
    result = exc.on_disabled(request)
    if inspect.isawaitable(result):
        result = await result
    return result


def install_guard_handler(app: FastAPI) -> None:
    app.add_exception_handler(FeatureDisabled, _handle_feature_disabled)


__all__ = ["FeatureDisabled", "default_user_id", "install_guard_handler", "is_route_enabled"]
