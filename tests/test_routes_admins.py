"""Tests de la gestion des comptes du panel par un superadmin."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import TEST_PASSWORD, auth

from securidem.core.http_constants import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_CREATED,
    HTTP_FORBIDDEN,
    HTTP_NOT_FOUND,
    HTTP_OK,
    HTTP_UNAUTHORIZED,
)
from securidem.domain.entities import utcnow


@pytest.fixture
def boss(make_account):
    return make_account("root@securidem.fr", role="superadmin")


@pytest.fixture
def admin(make_commune, make_account):
    make_commune("Dembéni", "dembeni")
    return make_account("admin@dembeni.yt", commune_id="dembeni", name="Awa")


def test_superadmin_creates_admin_who_can_login(client, boss):
    r = client.post(
        "/api/admins",
        json={"email": "Nouveau@Sada.yt", "password": "mdp-solide-1", "communeId": "Sada", "name": "Ali"},
        headers=auth(boss),
    )
    assert r.status_code == HTTP_CREATED, r.text
    body = r.json()
    assert body["email"] == "nouveau@sada.yt"
    assert body["role"] == "admin"
    assert body["communeId"] == "sada"
    assert "passwordHash" not in body

    login = client.post("/api/login", json={"email": "nouveau@sada.yt", "password": "mdp-solide-1"})
    assert login.status_code == HTTP_OK


def test_new_admin_password_needs_minimum_length(client, boss, repos):
    r = client.post("/api/admins", json={"email": "court@sada.yt", "password": "abc"}, headers=auth(boss))
    assert r.status_code == HTTP_BAD_REQUEST
    assert r.json()["code"] == "weak_password"
    assert repos["users"].count() == 1


def test_duplicate_email_conflicts_across_collections(client, boss, make_account):
    make_account("ancien@sada.yt", collection="admins")
    r = client.post(
        "/api/admins",
        json={"email": "ANCIEN@sada.yt", "password": "mdp-solide-1"},
        headers=auth(boss),
    )
    assert r.status_code == HTTP_CONFLICT
    assert r.json()["code"] == "email_taken"


def test_admin_cannot_manage_accounts(client, admin, boss):
    r = client.post(
        "/api/admins", json={"email": "x@sada.yt", "password": "mdp-solide-1"}, headers=auth(admin)
    )
    assert r.status_code == HTTP_FORBIDDEN
    assert r.json()["code"] == "role_required"
    assert client.get(f"/api/admins/{boss['id']}", headers=auth(admin)).json()["code"] == "not_self"


def test_admin_list_contains_only_self(client, admin, boss):
    r = client.get("/api/admins", headers=auth(admin))
    assert r.status_code == HTTP_OK
    assert [a["id"] for a in r.json()["items"]] == [admin["id"]]


def test_superadmin_list_filters(client, boss, admin, make_account):
    make_account("citoyen@dembeni.yt", role="user")
    make_account("off@sada.yt", commune_id="sada", isActive=False)
    make_account(
        "abonne@sada.yt",
        commune_id="sada",
        subscriptionStatus="active",
        subscriptionEndAt=utcnow() + timedelta(days=10),
    )
    make_account("legacy@acoua.yt", collection="admins", commune_id="acoua")
    headers = auth(boss)

    def emails(**params):
        r = client.get("/api/admins", params=params, headers=headers)
        assert r.status_code == HTTP_OK, r.text
        return sorted(a["email"] for a in r.json()["items"])

    everyone = emails()
    assert "citoyen@dembeni.yt" not in everyone
    assert "legacy@acoua.yt" in everyone
    assert emails(communeId="Dembéni") == ["admin@dembeni.yt"]
    assert emails(status="inactive") == ["off@sada.yt"]
    assert emails(sub="active") == ["abonne@sada.yt"]
    assert emails(q="LEGACY") == ["legacy@acoua.yt"]

    page = client.get("/api/admins", params={"page": 2, "pageSize": 3}, headers=headers).json()
    assert page["total"] == len(everyone)
    assert len(page["items"]) == len(everyone) - 3

    r = client.get("/api/admins", params={"status": "maybe"}, headers=headers)
    assert r.status_code == HTTP_BAD_REQUEST


def test_self_profile(client, admin):
    r = client.get("/api/admins/self", headers=auth(admin))
    assert r.json()["name"] == "Awa"
    r = client.patch("/api/admins/self", json={"name": "Awa M.", "role": "superadmin"}, headers=auth(admin))
    assert r.status_code == HTTP_OK
    assert r.json()["name"] == "Awa M."
    assert r.json()["role"] == "admin"


def test_update_admin_moves_commune_and_checks_email(client, boss, admin, make_account):
    make_account("pris@sada.yt")
    url = f"/api/admins/{admin['id']}"
    r = client.put(url, json={"communeId": "Sada", "communeName": "Sada"}, headers=auth(boss))
    assert r.status_code == HTTP_OK
    assert r.json()["communeId"] == "sada"

    r = client.put(url, json={"email": "pris@sada.yt"}, headers=auth(boss))
    assert r.status_code == HTTP_CONFLICT
    r = client.put(url, json={"role": "user"}, headers=auth(boss))
    assert r.status_code == HTTP_BAD_REQUEST
    assert r.json()["code"] == "invalid_role"


def test_toggle_active_cuts_sessions(client, boss, admin):
    admin_headers = auth(admin)
    r = client.post(f"/api/admins/{admin['id']}/toggle-active", json={"active": False}, headers=auth(boss))
    assert r.status_code == HTTP_OK
    assert r.json()["isActive"] is False
    assert r.json()["tokenVersion"] == 1
    assert client.get("/api/me", headers=admin_headers).status_code == HTTP_FORBIDDEN
    login = client.post("/api/login", json={"email": "admin@dembeni.yt", "password": TEST_PASSWORD})
    assert login.json()["code"] == "account_disabled"


def test_reset_password_and_force_logout(client, boss, admin):
    admin_headers = auth(admin)
    url = f"/api/admins/{admin['id']}"
    r = client.post(f"{url}/reset-password", json={"newPassword": "court"}, headers=auth(boss))
    assert r.json()["code"] == "weak_password"
    r = client.post(f"{url}/reset-password", json={"newPassword": "tout-neuf-99"}, headers=auth(boss))
    assert r.status_code == HTTP_OK
    assert client.get("/api/me", headers=admin_headers).status_code == HTTP_UNAUTHORIZED

    login = client.post("/api/login", json={"email": "admin@dembeni.yt", "password": "tout-neuf-99"})
    fresh = auth(login.json()["token"])
    r = client.post(f"{url}/force-logout", headers=auth(boss))
    assert r.json() == {"ok": True, "tokenVersion": 2}
    assert client.get("/api/me", headers=fresh).json()["code"] == "session_invalidated"


def test_superadmin_cannot_target_self_or_peer(client, boss, make_account):
    peer = make_account("peer@securidem.fr", role="superadmin")
    r = client.post(f"/api/admins/{boss['id']}/force-logout", headers=auth(boss))
    assert r.status_code == HTTP_BAD_REQUEST
    assert r.json()["code"] == "self_target"
    r = client.delete(f"/api/admins/{peer['id']}", headers=auth(boss))
    assert r.status_code == HTTP_FORBIDDEN
    assert r.json()["code"] == "superadmin_target"


def test_impersonation_token_is_marked(client, boss, admin, repos):
    r = client.post(f"/api/admins/{admin['id']}/impersonate", headers=auth(boss))
    assert r.status_code == HTTP_OK
    headers = auth(r.json()["token"])
    me = client.get("/api/me", headers=headers).json()
    assert me["id"] == admin["id"]
    assert me["impersonated"] is True
    assert me["originalUserId"] == boss["id"]

    repos["users"].update(boss["id"], {"isActive": False})
    r = client.get("/api/me", headers=headers)
    assert r.status_code == HTTP_UNAUTHORIZED
    assert r.json()["code"] == "session_invalidated"


def test_delete_admin(client, boss, admin):
    url = f"/api/admins/{admin['id']}"
    assert client.delete(url, headers=auth(boss)).json() == {"ok": True}
    assert client.get(url, headers=auth(boss)).status_code == HTTP_NOT_FOUND
