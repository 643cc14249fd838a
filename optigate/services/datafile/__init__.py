"""Datafile freshness and secure-update core.

Keeps one shared datafile current through a background fetcher, binds a
request-scoped evaluation client to every request and refreshes on signed
webhook notifications.
"""

from .api import create_app, install
from .binder import RequestBinder, RequestFeatures, bind, get_request_features
from .client import DatafileClient, EvaluationClient
from .config import DatafileOptions, ServerConfig
from .coordinator import RefreshCoordinator
from .errors import (
    AuthenticationRejected,
    ConfigurationError,
    IntegrationError,
    MissingSecretError,
    OptigateError,
    RefreshError,
    WebhookError,
)
from .guard import FeatureDisabled, is_route_enabled
from .manager import DatafileFetcher, PollingDatafileManager
from .store import Datafile, DatafileStore
from .webhook import WebhookVerifier, compute_signature

__all__ = [
    "AuthenticationRejected",
    "ConfigurationError",
    "Datafile",
    "DatafileClient",
    "DatafileFetcher",
    "DatafileOptions",
    "DatafileStore",
    "EvaluationClient",
    "FeatureDisabled",
    "IntegrationError",
    "MissingSecretError",
    "OptigateError",
    "PollingDatafileManager",
    "RefreshCoordinator",
    "RefreshError",
    "RequestBinder",
    "RequestFeatures",
    "ServerConfig",
    "WebhookError",
    "WebhookVerifier",
    "bind",
    "compute_signature",
    "create_app",
    "get_request_features",
    "install",
    "is_route_enabled",
]
