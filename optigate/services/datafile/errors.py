from __future__ import annotations


class OptigateError(Exception):
    """Base exception for datafile integration errors."""


class ConfigurationError(OptigateError):
    """Raised when required settings (options, webhook secret) are missing."""


class RefreshError(OptigateError):
    """Raised by fetchers when a datafile could not be retrieved or decoded."""


class WebhookError(OptigateError):
    """Base class for webhook faults that terminate the current request.

    ``outcome`` labels the metrics sample and ``public_message`` is the only
    text that may reach the caller.
    """

    outcome = "error"
    status_code = 500
    public_message = "Webhook request failed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.public_message)


class MissingSecretError(WebhookError, ConfigurationError):
    """The shared webhook secret is not configured."""

    outcome = "missing_secret"
    public_message = "Webhook secret not found"


class IntegrationError(WebhookError):
    """The webhook body was not handed over as raw text."""

    outcome = "invalid_body"
    public_message = (
        "Webhook request body was not parsed as text. Unable to verify secure webhook"
    )


class AuthenticationRejected(WebhookError):
    """The supplied signature does not match the computed one."""

    outcome = "rejected"
    public_message = "Webhook payload determined not secure"


__all__ = [
    "AuthenticationRejected",
    "ConfigurationError",
    "IntegrationError",
    "MissingSecretError",
    "OptigateError",
    "RefreshError",
    "WebhookError",
]
