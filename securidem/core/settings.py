"""Définition et chargement des paramètres de configuration applicative.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
- Nettoyer le secret JWT (espaces et guillemets collés par erreur dans l'hébergeur)
"""

import os
from pathlib import Path

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
    )
    APP_NAME: str = "securidem-backend"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 4000

    CORS_ORIGINS: list[AnyHttpUrl] | list[str] = []
    REDIS_URL: str | None = None
    REQUIRE_REDIS: bool = False

    # JWT/Auth
    JWT_SECRET: str = "dev-secret-change-me"
    JWT_ALG: str = "HS256"
    JWT_EXPIRES_MIN: int = 720

    # Application mobile (enregistrement des appareils)
    MOBILE_APP_KEY: str | None = None

    # Contenus
    DEFAULT_PUBLISHER: str = "Association Bellevue Dembeni"
    MAX_PAGE_SIZE: int = 200

    @field_validator("JWT_SECRET")
    @classmethod
    def _strip_secret(cls, value: str) -> str:
        """Retire espaces et guillemets entourant le secret."""
        secret = (value or "").strip()
        for quote in ('"', "'"):
            if len(secret) >= 2 and secret.startswith(quote) and secret.endswith(quote):
                secret = secret[1:-1]
        return secret


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
