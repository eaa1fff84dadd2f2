"""
Conteneur d'injection de dépendances et configuration application.

Instancie les composants centraux (settings, dépôts par collection) et expose un singleton
`container` utilisé par le reste de l'application.
"""

from typing import Any

import structlog

from securidem.core.settings import Settings, get_settings
from securidem.infra.repositories import InMemoryDocumentRepo, RedisDocumentRepo

log = structlog.get_logger(__name__)

COLLECTIONS = (
    "communes",
    "users",
    "admins",
    "articles",
    "notifications",
    "infos",
    "projects",
    "incidents",
    "devices",
    "invoices",
)


def build_memory_repos() -> dict[str, Any]:
    """Un dépôt en mémoire par collection."""
    return {name: InMemoryDocumentRepo(name) for name in COLLECTIONS}


def build_redis_repos(url: str) -> dict[str, Any]:
    """Un dépôt Redis par collection (client vérifié par un ping)."""
    repos = {name: RedisDocumentRepo(url, name) for name in COLLECTIONS}
    repos["communes"].client.ping()
    return repos


class Container:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        if self.settings.REDIS_URL:
            try:
                self.repos = build_redis_repos(self.settings.REDIS_URL)
                self.storage_backend = "redis"
            except Exception as err:
                if self.settings.REQUIRE_REDIS:
                    raise RuntimeError("Redis required but unavailable") from err
                log.warning("redis_unavailable_memory_fallback", error=type(err).__name__)
                self.repos = build_memory_repos()
                self.storage_backend = "memory-fallback"
        else:
            if self.settings.REQUIRE_REDIS:
                raise RuntimeError("Redis required but REDIS_URL not set")
            self.repos = build_memory_repos()
            self.storage_backend = "memory"

    def repo(self, collection: str):
        """Retourne le dépôt d'une collection (KeyError si inconnue)."""
        return self.repos[collection]

    @property
    def communes(self):
        return self.repos["communes"]

    @property
    def users(self):
        return self.repos["users"]

    @property
    def admins(self):
        return self.repos["admins"]


container = Container()
