"""Signalements d'incidents envoyés par les citoyens depuis l'application mobile."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

import structlog

from securidem.domain.content import period_predicate
from securidem.domain.entities import CallerIdentity, utcnow
from securidem.domain.errors import InvalidInput, NotFound
from securidem.domain.predicates import Eq, Predicate
from securidem.domain.visibility import panel_commune_filter
from securidem.infra.repositories import is_store_id

log = structlog.get_logger(__name__)

STATUSES = ("En attente", "En cours", "Résolu", "Rejeté")
MEDIA_TYPES = ("image", "video")
REQUIRED = ("title", "description", "lieu", "latitude", "longitude", "deviceId")


class IncidentService:
    def __init__(self, repo, resolver):
        self.repo = repo
        self.resolver = resolver

    def report(self, data: Mapping[str, Any], commune_hint: str | None = None) -> dict[str, Any]:
        """Enregistre un signalement public; la commune vient de l'indice de requête."""
        missing = [k for k in REQUIRED if data.get(k) in (None, "")]
        if missing:
            raise InvalidInput("Champs requis manquants", code="missing_field", details={"fields": missing})
        status = data.get("status") or STATUSES[0]
        if status not in STATUSES:
            raise InvalidInput(f"Statut inconnu: {status!r}", code="invalid_status")
        media_type = data.get("mediaType") or "image"
        if media_type not in MEDIA_TYPES:
            raise InvalidInput(f"Type de média inconnu: {media_type!r}", code="invalid_media_type")
        user_id = data.get("userId")
        doc = {
            "title": str(data["title"]).strip(),
            "description": str(data["description"]).strip(),
            "lieu": str(data["lieu"]).strip(),
            "status": status,
            "latitude": float(data["latitude"]),
            "longitude": float(data["longitude"]),
            "adresse": str(data.get("adresse") or ""),
            "adminComment": str(data.get("adminComment") or ""),
            "deviceId": str(data["deviceId"]),
            "userId": user_id if is_store_id(user_id) else None,
            "mediaUrl": data.get("mediaUrl") or None,
            "mediaType": media_type,
            "messages": [],
            "updated": False,
            "communeId": self.resolver.prefer_slug(commune_hint),
        }
        record = self.repo.insert(doc)
        log.info("incident_reported", id=record["id"], commune=record["communeId"] or None)
        return record

    def _filter(
        self,
        caller: CallerIdentity,
        commune_hint: str | None,
        period: int | None = None,
        now: datetime | None = None,
    ) -> Predicate:
        predicate = panel_commune_filter(caller, commune_hint, self.resolver)
        window = period_predicate(period, now or utcnow())
        return predicate & window if window is not None else predicate

    def list(
        self,
        caller: CallerIdentity,
        commune_hint: str | None = None,
        *,
        period: int | None = None,
        device_id: str | None = None,
        status: str | None = None,
    ) -> list[dict[str, Any]]:
        predicate = self._filter(caller, commune_hint, period)
        if device_id:
            predicate = predicate & Eq("deviceId", device_id)
        if status:
            if status not in STATUSES:
                raise InvalidInput(f"Statut inconnu: {status!r}", code="invalid_status")
            predicate = predicate & Eq("status", status)
        return self.repo.find(predicate, sort=[("createdAt", True)])

    def count(
        self, caller: CallerIdentity, commune_hint: str | None = None, period: int | None = None
    ) -> int:
        return self.repo.count(self._filter(caller, commune_hint, period))

    def get(
        self, caller: CallerIdentity, incident_id: str, commune_hint: str | None = None
    ) -> dict[str, Any]:
        """Incident visible par l'appelant; hors périmètre, il est rapporté comme absent."""
        record = self.repo.get(incident_id) if is_store_id(incident_id) else None
        if record is None or not self._filter(caller, commune_hint).matches(record):
            raise NotFound("Incident non trouvé")
        return record

    def update(
        self,
        caller: CallerIdentity,
        incident_id: str,
        data: Mapping[str, Any],
        commune_hint: str | None = None,
    ) -> dict[str, Any]:
        """Traitement par le panel: statut, commentaire, message ajouté au fil."""
        record = self.get(caller, incident_id, commune_hint)
        changes: dict[str, Any] = {"updated": True}
        if data.get("status") is not None:
            if data["status"] not in STATUSES:
                raise InvalidInput(f"Statut inconnu: {data['status']!r}", code="invalid_status")
            changes["status"] = data["status"]
        if data.get("adminComment") is not None:
            changes["adminComment"] = str(data["adminComment"])
        text = str(data.get("message") or "").strip()
        if text:
            changes["messages"] = [*(record.get("messages") or []), {"text": text, "date": utcnow()}]
        updated = self.repo.update(record["id"], changes)
        log.info("incident_updated", id=record["id"], by=caller.id, status=updated.get("status"))
        return updated

    def delete(
        self, caller: CallerIdentity, incident_id: str, commune_hint: str | None = None
    ) -> None:
        record = self.get(caller, incident_id, commune_hint)
        self.repo.delete(record["id"])
        log.info("incident_deleted", id=record["id"], by=caller.id)
