"""Configuration de test pour pytest avec gestion des chemins.

Ce module ajoute la racine du projet au sys.path, remet le conteneur sur des dépôts en mémoire
neufs pour chaque test, et fournit des fabriques de communes, de comptes et de jetons.
"""

import os
import sys

import pytest

# Ensure project root is on sys.path so that
# imports like `from securidem...` resolve.
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from fastapi.testclient import TestClient  # noqa: E402

from securidem.app.main import app  # noqa: E402
from securidem.core.container import build_memory_repos, container  # noqa: E402
from securidem.domain.auth import claims_for, create_access_token, hash_password  # noqa: E402
from securidem.domain.communes import CommuneResolver  # noqa: E402

TEST_APP_KEY = "test-app-key"
TEST_PASSWORD = "motdepasse-123"


@pytest.fixture(autouse=True)
def repos(monkeypatch):
    """Dépôts en mémoire vierges, injectés dans le conteneur global."""
    fresh = build_memory_repos()
    monkeypatch.setattr(container, "repos", fresh)
    monkeypatch.setattr(container.settings, "MOBILE_APP_KEY", TEST_APP_KEY)
    return fresh


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def resolver(repos):
    return CommuneResolver(repos["communes"])


@pytest.fixture
def make_commune(repos):
    """Fabrique de communes: `make_commune("Dembéni", "dembeni")`."""

    def _make(name: str, slug: str | None = None, **extra):
        doc = {"name": name, "slug": slug or name.lower(), "active": True, **extra}
        return repos["communes"].insert(doc)

    return _make


@pytest.fixture
def make_account(repos):
    """Fabrique de comptes; `collection="admins"` crée un compte historique."""

    def _make(
        email: str,
        role: str = "admin",
        commune_id: str = "",
        password: str = TEST_PASSWORD,
        collection: str = "users",
        **extra,
    ):
        doc = {
            "email": email,
            "role": role,
            "communeId": commune_id,
            "isActive": True,
            "tokenVersion": 0,
            **extra,
        }
        if collection == "admins":
            doc["emailLower"] = email.lower()
            doc["password"] = hash_password(password)
        else:
            doc["passwordHash"] = hash_password(password)
        return repos[collection].insert(doc)

    return _make


def token_for(account: dict, **extra) -> str:
    """Jeton signé avec la configuration courante, claims standards + `extra`."""
    s = container.settings
    return create_access_token(s.JWT_SECRET, s.JWT_ALG, s.JWT_EXPIRES_MIN, claims_for(account, **extra))


def auth(account_or_token, **extra) -> dict:
    """En-tête Authorization pour un compte (ou un jeton déjà émis)."""
    token = account_or_token if isinstance(account_or_token, str) else token_for(account_or_token, **extra)
    return {"Authorization": f"Bearer {token}"}
