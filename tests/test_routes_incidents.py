"""Tests des signalements d'incidents: dépôt public et traitement cloisonné par commune."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import auth

from securidem.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_CREATED,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_UNAUTHORIZED,
)
from securidem.domain.entities import utcnow


def _report(client, commune, **overrides):
    body = {
        "title": "Lampadaire cassé",
        "description": "Rue principale",
        "lieu": "Centre",
        "latitude": -12.85,
        "longitude": 45.18,
        "deviceId": "device-1",
        **overrides,
    }
    return client.post("/api/incidents", json=body, params={"communeId": commune})


@pytest.fixture
def setup(make_commune, make_account):
    make_commune("Dembéni", "dembeni")
    make_commune("Sada", "sada")
    return {
        "admin": make_account("admin@dembeni.yt", commune_id="dembeni"),
        "super": make_account("root@securidem.fr", role="superadmin"),
    }


def test_public_report_is_attached_to_commune_slug(client, setup):
    r = _report(client, "Dembéni")
    assert r.status_code == HTTP_CREATED, r.text
    body = r.json()
    assert body["communeId"] == "dembeni"
    assert body["status"] == "En attente"
    assert body["mediaType"] == "image"
    assert body["messages"] == []
    assert body["updated"] is False


def test_report_lists_missing_fields(client, setup):
    r = client.post("/api/incidents", json={"title": "x"})
    assert r.status_code == HTTP_BAD_REQUEST
    assert r.json()["code"] == "missing_field"
    assert set(r.json()["details"]["fields"]) == {"description", "lieu", "latitude", "longitude", "deviceId"}


def test_report_rejects_unknown_media_type(client, setup):
    r = _report(client, "sada", mediaType="audio")
    assert r.json()["code"] == "invalid_media_type"


def test_listing_requires_panel_role(client, setup):
    assert client.get("/api/incidents").status_code == HTTP_UNAUTHORIZED


def test_admin_sees_only_own_commune(client, setup):
    _report(client, "dembeni", title="A")
    _report(client, "sada", title="B")
    r = client.get("/api/incidents", params={"communeId": "sada"}, headers=auth(setup["admin"]))
    assert [i["title"] for i in r.json()] == ["A"]
    assert client.get("/api/incidents/count", headers=auth(setup["admin"])).json() == {"total": 1}


def test_superadmin_hint_is_optional(client, setup):
    _report(client, "dembeni", title="A")
    _report(client, "sada", title="B", deviceId="device-2")
    su = auth(setup["super"])
    assert len(client.get("/api/incidents", headers=su).json()) == 2
    assert [i["title"] for i in client.get("/api/incidents", params={"communeId": "Sada"}, headers=su).json()] == ["B"]
    by_device = client.get("/api/incidents", params={"deviceId": "device-2"}, headers=su).json()
    assert [i["title"] for i in by_device] == ["B"]


def test_period_and_status_filters(client, setup, repos):
    repos["incidents"].insert(
        {"title": "Vieux", "communeId": "dembeni", "status": "Résolu", "createdAt": utcnow() - timedelta(days=12)}
    )
    _report(client, "dembeni", title="Neuf")
    headers = auth(setup["admin"])
    assert [i["title"] for i in client.get("/api/incidents", params={"period": 7}, headers=headers).json()] == ["Neuf"]
    assert client.get("/api/incidents/count", params={"period": 30}, headers=headers).json() == {"total": 2}
    r = client.get("/api/incidents", params={"status": "Résolu"}, headers=headers)
    assert [i["title"] for i in r.json()] == ["Vieux"]
    assert client.get("/api/incidents", params={"status": "Fini"}, headers=headers).status_code == HTTP_BAD_REQUEST


def test_update_appends_message(client, setup):
    incident = _report(client, "dembeni").json()
    url = f"/api/incidents/{incident['id']}"
    headers = auth(setup["admin"])
    r = client.put(url, json={"status": "En cours", "message": "Équipe envoyée"}, headers=headers)
    assert r.status_code == HTTP_OK
    r = client.put(url, json={"adminComment": "RAS", "message": "Réparé"}, headers=headers)
    body = r.json()
    assert body["status"] == "En cours"
    assert body["adminComment"] == "RAS"
    assert body["updated"] is True
    assert [m["text"] for m in body["messages"]] == ["Équipe envoyée", "Réparé"]

    r = client.put(url, json={"status": "Archivé"}, headers=headers)
    assert r.json()["code"] == "invalid_status"


def test_out_of_scope_incident_is_not_found(client, setup):
    incident = _report(client, "sada").json()
    url = f"/api/incidents/{incident['id']}"
    headers = auth(setup["admin"])
    assert client.get(url, headers=headers).status_code == HTTP_NOT_FOUND
    assert client.put(url, json={"status": "Rejeté"}, headers=headers).status_code == HTTP_NOT_FOUND
    assert client.delete(url, headers=headers).status_code == HTTP_NOT_FOUND
    assert client.delete(url, headers=auth(setup["super"])).json() == {"ok": True}
