"""Parc d'installations de l'application mobile."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

import structlog

from securidem.domain.entities import CallerIdentity, Role, utcnow
from securidem.domain.errors import InvalidInput
from securidem.domain.predicates import All, Eq, Gte, In, Predicate
from securidem.domain.visibility import panel_commune_filter
from securidem.infra.repositories import is_store_id

log = structlog.get_logger(__name__)

TEXT_FIELDS = ("brand", "model", "osVersion", "appVersion", "pushToken")
PING_FIELDS = ("appVersion", "osVersion", "brand", "model", "platform", "pushToken", "communeName")
DEVICE_SORT = [("lastSeenAt", True), ("createdAt", True)]
DEFAULT_ACTIVE_DAYS = 30


def active_since(active_days: int, now: datetime) -> Predicate:
    """Vus dans les `active_days` derniers jours."""
    return Gte("lastSeenAt", now - timedelta(days=active_days))


def _installation_id(data: Mapping[str, Any]) -> str:
    installation_id = str(data.get("installationId") or "").strip()
    if not installation_id:
        raise InvalidInput("installationId requis", code="missing_field")
    return installation_id


class DeviceService:
    def __init__(self, repo, resolver):
        self.repo = repo
        self.resolver = resolver

    def register(self, data: Mapping[str, Any]) -> tuple[dict[str, Any], bool]:
        """Crée ou met à jour l'installation `installationId`; renvoie (document, créé)."""
        installation_id = _installation_id(data)
        changes: dict[str, Any] = {
            "platform": str(data.get("platform") or "").lower(),
            "lastSeenAt": utcnow(),
        }
        for name in TEXT_FIELDS:
            changes[name] = str(data.get(name) or "").strip()
        if is_store_id(data.get("userId")):
            changes["userId"] = data["userId"]
        if data.get("communeId"):
            changes["communeId"] = self.resolver.prefer_slug(data["communeId"])
        if data.get("communeName"):
            changes["communeName"] = str(data["communeName"])
        return self._upsert(installation_id, changes)

    def ping(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Signal de vie: `lastSeenAt` et seuls les champs transmis sont mis à jour."""
        installation_id = _installation_id(data)
        changes: dict[str, Any] = {"lastSeenAt": utcnow()}
        for name in PING_FIELDS:
            if data.get(name) is not None:
                changes[name] = str(data[name])
        if data.get("communeId") is not None:
            changes["communeId"] = self.resolver.prefer_slug(data["communeId"])
        doc, _ = self._upsert(installation_id, changes)
        return doc

    def _upsert(self, installation_id: str, changes: dict[str, Any]) -> tuple[dict[str, Any], bool]:
        existing = self.repo.find_one(Eq("installationId", installation_id))
        if existing is not None:
            doc = self.repo.update(existing["id"], changes)
            log.info("device_seen", installation=installation_id)
            return doc, False
        doc = self.repo.insert(
            {"installationId": installation_id, "firstSeenAt": changes["lastSeenAt"], **changes}
        )
        log.info("device_registered", installation=installation_id, commune=doc.get("communeId"))
        return doc, True

    def list(
        self,
        caller: CallerIdentity,
        commune_hint: str | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> dict[str, Any]:
        predicate = panel_commune_filter(caller, commune_hint, self.resolver)
        total = self.repo.count(predicate)
        items = self.repo.find(
            predicate, sort=DEVICE_SORT, skip=(page - 1) * page_size, limit=page_size
        )
        return {"items": items, "page": page, "pageSize": page_size, "total": total}

    def public_count(
        self, commune_hint: str | None = None, active_days: int = DEFAULT_ACTIVE_DAYS
    ) -> dict[str, Any]:
        """Compteurs exposés à l'application: total et actifs, pour une commune ou toutes."""
        days = max(1, active_days)
        keys = self.resolver.keys(commune_hint)
        scope: Predicate = In("communeId", keys, fold=True) if keys else All()
        return {
            "count": self.repo.count(scope),
            "active": self.repo.count(scope & active_since(days, utcnow())),
            "activeDays": days,
        }

    def panel_count(
        self,
        caller: CallerIdentity,
        commune_hint: str | None = None,
        active_days: int = DEFAULT_ACTIVE_DAYS,
    ) -> dict[str, Any]:
        """Compteurs du tableau de bord.

        `count`/`active` suivent le filtre de commune du panel (admin: sa commune; superadmin:
        l'indice ou tout); `countAll`/`activeAll` portent toujours sur l'ensemble du parc.
        """
        days = max(1, active_days)
        scope = panel_commune_filter(caller, commune_hint, self.resolver)
        active = active_since(days, utcnow())
        commune = caller.commune_id if caller.role is Role.ADMIN else commune_hint
        return {
            "count": self.repo.count(scope),
            "active": self.repo.count(scope & active),
            "countAll": self.repo.count(All()),
            "activeAll": self.repo.count(active),
            "activeDays": days,
            "communeId": self.resolver.prefer_slug(commune) if commune else None,
        }
