"""Tests des endpoints techniques: santé, métriques, corrélation et enveloppe d'erreur."""

from __future__ import annotations

from conftest import auth

from securidem.core.http_constants import HTTP_NOT_FOUND, HTTP_OK, HTTP_UNPROCESSABLE


def test_health(client):
    r = client.get("/health")
    assert r.status_code == HTTP_OK
    body = r.json()
    assert body["status"] == "ok"
    assert body["storage"] in {"memory", "memory-fallback", "redis"}
    assert "timestamp" in body


def test_request_id_is_echoed_or_generated(client):
    r = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert r.headers["X-Request-ID"] == "req-123"
    assert "X-Process-Time-ms" in r.headers
    generated = client.get("/health").headers["X-Request-ID"]
    assert len(generated) == 32


def test_error_envelope_carries_trace_id(client):
    r = client.get("/api/me", headers={"X-Request-ID": "req-456"})
    body = r.json()
    assert body["code"] == "missing_token"
    assert body["trace_id"] == "req-456"
    assert set(body) == {"code", "message", "trace_id"}


def test_unknown_route_uses_envelope(client):
    r = client.get("/nowhere")
    assert r.status_code == HTTP_NOT_FOUND
    assert r.json()["code"] == "not_found"


def test_validation_error_envelope(client, make_account):
    admin = make_account("admin@dembeni.yt", commune_id="dembeni")
    r = client.get("/api/incidents", params={"period": "semaine"}, headers=auth(admin))
    assert r.status_code == HTTP_UNPROCESSABLE
    body = r.json()
    assert body["code"] == "validation_error"
    assert body["details"]["errors"][0]["loc"] == ["query", "period"]


def test_metrics_use_route_templates_and_rejections(client, make_account):
    client.get("/api/articles/0123456789abcdef01234567")
    client.get("/api/me")
    text = client.get("/metrics").text
    assert 'route="/api/articles/{record_id}"' in text
    assert 'auth_rejections_total{code="missing_token"}' in text
