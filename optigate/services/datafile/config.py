from __future__ import annotations

from dataclasses import dataclass, field, fields
from typing import Any, Mapping

from .manager import DEFAULT_UPDATE_INTERVAL, DEFAULT_URL_TEMPLATE


DEFAULT_WEBHOOK_SECRET_ENV = "OPTIMIZELY_WEBHOOK_SECRET"
DEFAULT_SIGNATURE_HEADER = "X-Hub-Signature"

_ALIASES: dict[str, str] = {
    "sdkKey": "sdk_key",
    "logLevel": "log_level",
    "updateInterval": "update_interval",
    "autoUpdate": "auto_update",
    "urlTemplate": "url_template",
    "webhookSecretEnv": "webhook_secret_env",
    "signatureHeader": "signature_header",
}


@dataclass
class DatafileOptions:
    """Options consumed by :func:`optigate.services.datafile.binder.bind`.

    Keys that are not fields land in ``extra`` and are forwarded verbatim to
    the client factory and the default fetcher.
    """

    sdk_key: str | None = None
    datafile: Any | None = None
    log_level: str | int | None = None
    update_interval: float = DEFAULT_UPDATE_INTERVAL
    auto_update: bool = True
    url_template: str = DEFAULT_URL_TEMPLATE
    webhook_secret_env: str = DEFAULT_WEBHOOK_SECRET_ENV
    signature_header: str = DEFAULT_SIGNATURE_HEADER
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "DatafileOptions":
        """Construct :class:`DatafileOptions` from a raw mapping."""

        known = {f.name for f in fields(cls)} - {"extra"}
        base: dict[str, Any] = {}
        extra: dict[str, Any] = dict((data or {}).get("extra") or {})
        for key, value in (data or {}).items():
            if key == "extra":
                continue
            canonical = _ALIASES.get(key, key)
            if canonical in known:
                base[canonical] = value
            else:
                extra[key] = value
        return cls(**base, extra=extra)

    def merged(self) -> dict[str, Any]:
        """Options handed to the client factory: extras plus the core keys."""

        merged = dict(self.extra)
        merged.update(
            sdk_key=self.sdk_key,
            log_level=self.log_level,
        )
        return merged

    def fetcher_kwargs(self) -> dict[str, Any]:
        kwargs = dict(self.extra)
        kwargs.update(
            datafile=self.datafile,
            update_interval=self.update_interval,
            auto_update=self.auto_update,
            url_template=self.url_template,
        )
        return kwargs


@dataclass
class ServerConfig:
    """HTTP server settings for the ``optigate`` command."""

    host: str = "0.0.0.0"
    port: int = 8000
    datafile_path: str = "/datafile"
    webhook_path: str = "/webhooks/datafile"


__all__ = [
    "DEFAULT_SIGNATURE_HEADER",
    "DEFAULT_WEBHOOK_SECRET_ENV",
    "DatafileOptions",
    "ServerConfig",
]
