"""Tests du script de création du premier superadmin."""

from __future__ import annotations

import pytest
from conftest import TEST_PASSWORD

from securidem.core.http_constants import HTTP_OK
from securidem.domain.session import AccountDirectory
from securidem.scripts import create_superadmin as script


@pytest.fixture
def directory(repos):
    return AccountDirectory(repos["users"], repos["admins"])


def test_created_account_can_log_in(client, directory):
    record = script.create_superadmin(directory, " Root@Mairie.yt ", TEST_PASSWORD, "Direction")
    assert record["role"] == "superadmin"
    assert record["email"] == "root@mairie.yt"
    r = client.post("/api/login", json={"email": "root@mairie.yt", "password": TEST_PASSWORD})
    assert r.status_code == HTTP_OK


def test_refuses_existing_email_and_short_password(directory, make_account):
    make_account("pris@mairie.yt", collection="admins")
    with pytest.raises(ValueError):
        script.create_superadmin(directory, "PRIS@mairie.yt", TEST_PASSWORD)
    with pytest.raises(ValueError):
        script.create_superadmin(directory, "neuf@mairie.yt", "court")


def test_main_prompts_twice(monkeypatch, repos, capsys):
    answers = iter([TEST_PASSWORD, TEST_PASSWORD])
    monkeypatch.setattr(script.getpass, "getpass", lambda prompt="": next(answers))
    assert script.main(["--email", "root@mairie.yt"]) == 0
    assert "root@mairie.yt" in capsys.readouterr().out
    assert repos["users"].count() == 1


def test_main_rejects_mismatched_confirmation(monkeypatch, repos):
    answers = iter([TEST_PASSWORD, "autre-chose-123"])
    monkeypatch.setattr(script.getpass, "getpass", lambda prompt="": next(answers))
    assert script.main(["--email", "root@mairie.yt"]) == 1
    assert repos["users"].count() == 0
