import hashlib
import hmac
import json

import httpx
import pytest
from starlette.middleware.base import BaseHTTPMiddleware

from optigate.foundation.common.metrics_factory import get_metric_value
from optigate.services.datafile import metrics as df_metrics
from optigate.services.datafile.api import create_app
from optigate.services.datafile.errors import (
    AuthenticationRejected,
    IntegrationError,
    MissingSecretError,
    RefreshError,
)
from optigate.services.datafile.webhook import WebhookVerifier, compute_signature, parse_event


def _event_body(**overrides) -> str:
    payload = {
        "project_id": 1234,
        "timestamp": 1468447113,
        "event": "project.datafile_updated",
        "data": {
            "revision": 1,
            "origin_url": "https://optimizely.s3.amazonaws.com/json/1234.json",
            "cdn_url": "https://cdn.optimizely.com/json/1234.json",
            "environment": "Production",
        },
    }
    payload.update(overrides)
    return json.dumps(payload)


def _build_app(stub_fetcher, **kwargs):
    return create_app({"sdk_key": "abc"}, fetcher=stub_fetcher, **kwargs)


async def _post(app, body, headers=None):
    async with httpx.ASGITransport(app=app) as transport:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            return await client.post("/webhooks/datafile", content=body, headers=headers or {})


def test_compute_signature_matches_known_digest():
    expected = hmac.new(b"topsecret", b"{}", hashlib.sha1).hexdigest()
    assert compute_signature("topsecret", "{}") == "sha1=" + expected


def test_verifier_checks_secret_before_body(monkeypatch):
    monkeypatch.delenv("OPTIMIZELY_WEBHOOK_SECRET", raising=False)
    verifier = WebhookVerifier()
    with pytest.raises(MissingSecretError):
        verifier.verify({"parsed": True}, "sha1=whatever")


def test_verifier_rejects_structured_body(webhook_secret):
    with pytest.raises(IntegrationError):
        WebhookVerifier().verify({"parsed": True}, "sha1=whatever")


def test_verifier_rejects_missing_signature(webhook_secret):
    with pytest.raises(AuthenticationRejected):
        WebhookVerifier().verify("{}", None)


def test_verifier_accepts_matching_signature(webhook_secret, sign):
    body = _event_body()
    assert WebhookVerifier().verify(body, sign(body)) is None


def test_verifier_honours_custom_secret_env(monkeypatch):
    monkeypatch.setenv("MY_HOOK_SECRET", "other")
    verifier = WebhookVerifier(secret_env="MY_HOOK_SECRET")
    verifier.verify("{}", compute_signature("other", "{}"))


@pytest.mark.asyncio
async def test_signed_webhook_triggers_refresh(stub_fetcher, webhook_secret, sign, drain_refreshes):
    app = _build_app(stub_fetcher)
    body = _event_body()
    async with app.router.lifespan_context(app):
        resp = await _post(app, body, {"X-Hub-Signature": sign(body)})
        await drain_refreshes(app.state.datafile_binder.coordinator)

    assert resp.status_code == 200
    assert resp.text == "OK"
    assert stub_fetcher.refresh_calls == 1
    assert get_metric_value(df_metrics.webhook_requests_total, {"outcome": "verified"}) == 1


@pytest.mark.asyncio
async def test_signature_from_other_secret_is_rejected(stub_fetcher, webhook_secret, sign, drain_refreshes):
    app = _build_app(stub_fetcher)
    body = _event_body()
    bad_signature = sign(body, "not-the-secret")
    async with app.router.lifespan_context(app):
        resp = await _post(app, body, {"X-Hub-Signature": bad_signature})
        await drain_refreshes(app.state.datafile_binder.coordinator)

    assert resp.status_code == 500
    assert resp.text == "Webhook payload determined not secure"
    assert sign(body) not in resp.text
    assert stub_fetcher.refresh_calls == 0
    assert get_metric_value(df_metrics.webhook_requests_total, {"outcome": "rejected"}) == 1


@pytest.mark.asyncio
async def test_tampered_body_is_rejected(stub_fetcher, webhook_secret, sign):
    app = _build_app(stub_fetcher)
    signature = sign(_event_body())
    resp = await _post(app, _event_body(project_id=9999), {"X-Hub-Signature": signature})
    assert resp.status_code == 500
    assert resp.text == "Webhook payload determined not secure"


@pytest.mark.asyncio
async def test_missing_header_is_rejected(stub_fetcher, webhook_secret):
    app = _build_app(stub_fetcher)
    resp = await _post(app, _event_body())
    assert resp.status_code == 500
    assert resp.text == "Webhook payload determined not secure"


@pytest.mark.asyncio
async def test_missing_secret_fails_without_refresh(stub_fetcher, monkeypatch, sign, drain_refreshes):
    monkeypatch.delenv("OPTIMIZELY_WEBHOOK_SECRET", raising=False)
    app = _build_app(stub_fetcher)
    body = _event_body()
    async with app.router.lifespan_context(app):
        resp = await _post(app, body, {"X-Hub-Signature": sign(body)})
        await drain_refreshes(app.state.datafile_binder.coordinator)

    assert resp.status_code == 500
    assert resp.text == "Webhook secret not found"
    assert stub_fetcher.refresh_calls == 0
    assert get_metric_value(df_metrics.webhook_requests_total, {"outcome": "missing_secret"}) == 1


@pytest.mark.asyncio
async def test_pre_parsed_body_is_an_integration_error(stub_fetcher, webhook_secret, sign):
    async def json_body_parser(request, call_next):
        request.state.raw_body = json.loads(await request.body())
        return await call_next(request)

    app = _build_app(stub_fetcher)
    app.add_middleware(BaseHTTPMiddleware, dispatch=json_body_parser)
    body = _event_body()
    resp = await _post(app, body, {"X-Hub-Signature": sign(body)})

    assert resp.status_code == 500
    assert resp.text == (
        "Webhook request body was not parsed as text. Unable to verify secure webhook"
    )
    assert stub_fetcher.refresh_calls == 0
    assert get_metric_value(df_metrics.webhook_requests_total, {"outcome": "invalid_body"}) == 1


@pytest.mark.asyncio
async def test_non_utf8_body_is_an_integration_error(stub_fetcher, webhook_secret):
    app = _build_app(stub_fetcher)
    resp = await _post(app, b"\xff\xfe\xfd", {"X-Hub-Signature": "sha1=00"})
    assert resp.status_code == 500
    assert resp.text.startswith("Webhook request body was not parsed as text")


@pytest.mark.asyncio
async def test_refresh_failure_still_acknowledges(stub_fetcher, webhook_secret, sign, drain_refreshes):
    stub_fetcher.refresh_error = RefreshError("cdn unavailable")
    app = _build_app(stub_fetcher)
    body = _event_body()
    async with app.router.lifespan_context(app):
        resp = await _post(app, body, {"X-Hub-Signature": sign(body)})
        await drain_refreshes(app.state.datafile_binder.coordinator)

    assert resp.status_code == 200
    assert resp.text == "OK"
    assert stub_fetcher.refresh_calls == 1
    assert get_metric_value(df_metrics.datafile_refresh_failures_total) == 1


@pytest.mark.asyncio
async def test_custom_webhook_path_and_header(stub_fetcher, monkeypatch, drain_refreshes):
    monkeypatch.setenv("HOOK_SECRET", "s3cret")
    app = create_app(
        {"sdk_key": "abc", "webhookSecretEnv": "HOOK_SECRET", "signatureHeader": "X-Signature"},
        fetcher=stub_fetcher,
        webhook_path="/hooks/optimizely",
    )
    body = _event_body()
    async with app.router.lifespan_context(app):
        async with httpx.ASGITransport(app=app) as transport:
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                resp = await client.post(
                    "/hooks/optimizely",
                    content=body,
                    headers={"X-Signature": compute_signature("s3cret", body)},
                )
        await drain_refreshes(app.state.datafile_binder.coordinator)
    assert resp.status_code == 200
    assert stub_fetcher.refresh_calls == 1


def test_parse_event_reads_revision_and_ignores_garbage():
    event = parse_event(_event_body())
    assert event is not None
    assert event.project_id == 1234
    assert event.data.revision == 1
    assert parse_event("not json") is None
