"""Signed webhook verification.

Every invocation walks the same checks in order and stops at the first
failure: secret configured, body handed over as text, signature matches.
Each failure maps to exactly one :class:`WebhookError` subclass, so the
route builds a single response per request.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from .config import DEFAULT_SIGNATURE_HEADER, DEFAULT_WEBHOOK_SECRET_ENV
from .errors import AuthenticationRejected, IntegrationError, MissingSecretError

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha1="


def compute_signature(secret: str, body: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha1).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


class WebhookVerifier:
    """Validate ``X-Hub-Signature``-style HMAC-SHA1 signatures."""

    def __init__(
        self,
        *,
        secret_env: str = DEFAULT_WEBHOOK_SECRET_ENV,
        signature_header: str = DEFAULT_SIGNATURE_HEADER,
    ) -> None:
        self.secret_env = secret_env
        self.signature_header = signature_header

    def secret(self) -> str:
        value = os.getenv(self.secret_env)
        if not value:
            raise MissingSecretError(
                f"webhook secret not found; set {self.secret_env}"
            )
        return value

    def verify(self, body: Any, signature: str | None) -> None:
        """Return silently when ``signature`` authenticates ``body``."""

        secret = self.secret()
        if not isinstance(body, str):
            raise IntegrationError(
                f"webhook body arrived as {type(body).__name__}; it must be raw text"
            )
        expected = compute_signature(secret, body)
        if not signature or not hmac.compare_digest(
            expected.encode("utf-8"), signature.encode("utf-8")
        ):
            raise AuthenticationRejected("webhook signature mismatch")


class DatafileUpdatedData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    revision: Optional[int | str] = None
    origin_url: Optional[str] = None
    cdn_url: Optional[str] = None
    environment: Optional[str] = None


class DatafileUpdatedEvent(BaseModel):
    """``project.datafile_updated`` notification body."""

    model_config = ConfigDict(extra="ignore")

    project_id: Optional[int | str] = None
    timestamp: Optional[int] = None
    event: Optional[str] = None
    data: DatafileUpdatedData = DatafileUpdatedData()


def parse_event(body: str) -> DatafileUpdatedEvent | None:
    """Best-effort decode of a verified body; ``None`` when it does not fit."""
    try:
        return DatafileUpdatedEvent.model_validate_json(body)
    except ValidationError as exc:
        logger.debug("Webhook body is not a datafile update event: %s", exc)
        return None


__all__ = [
    "DatafileUpdatedData",
    "DatafileUpdatedEvent",
    "SIGNATURE_PREFIX",
    "WebhookVerifier",
    "compute_signature",
    "parse_event",
]
