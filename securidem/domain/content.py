"""Contenus multi-communes: articles, notifications, infos et projets.

Les quatre types partagent la même portée (visibility/communeId/audienceCommunes), la même fenêtre
d'affichage et les mêmes règles d'écriture; seuls leurs champs de texte et quelques extras varient.
`ContentService` est instancié une fois par type.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

import structlog

from securidem.domain.entities import CallerIdentity, Priority, Visibility, ensure_aware, utcnow
from securidem.domain.errors import InvalidInput, NotFound
from securidem.domain.predicates import Eq, Gte, Predicate
from securidem.domain.scope import ScopeEnforcer, ScopeRequest
from securidem.domain.visibility import DEFAULT_FIELDS, ViewContext
from securidem.infra.repositories import is_store_id

log = structlog.get_logger(__name__)

PERIODS = (7, 30)
SCOPE_KEYS = ("visibility", "communeId", "audienceCommunes")
# Champs renseignés par le serveur, jamais par un corps de requête
PROTECTED_KEYS = ("id", "authorId", "authorEmail", "createdAt", "updatedAt")


@dataclass(frozen=True)
class ContentKind:
    """Description d'un type de contenu."""

    name: str
    collection: str
    title_field: str
    body_field: str
    categories: tuple[str, ...] = ()
    readable: bool = False
    defaults: Mapping[str, Any] = field(default_factory=dict)

    @property
    def required(self) -> tuple[str, str]:
        return (self.title_field, self.body_field)


ARTICLE = ContentKind(
    name="article",
    collection="articles",
    title_field="title",
    body_field="content",
    categories=("annonce", "actualite", "evenement", "autres"),
    defaults={"imageUrl": None, "status": "published", "authorName": "", "sourceUrl": ""},
)
NOTIFICATION = ContentKind(
    name="notification",
    collection="notifications",
    title_field="title",
    body_field="message",
    readable=True,
)
INFO = ContentKind(
    name="info",
    collection="infos",
    title_field="title",
    body_field="content",
    categories=("sante", "proprete", "autres"),
    readable=True,
    defaults={"imageUrl": None, "location": {"name": "", "address": "", "lat": None, "lng": None}},
)
PROJECT = ContentKind(
    name="project",
    collection="projects",
    title_field="name",
    body_field="description",
    defaults={"imageUrl": ""},
)

CONTENT_KINDS = (ARTICLE, NOTIFICATION, INFO, PROJECT)


def priority_weight(doc: Mapping[str, Any]) -> int:
    """Poids de tri; une priorité inconnue (données anciennes) compte comme `normal`."""
    try:
        return Priority.parse(doc.get("priority") or Priority.NORMAL.value).weight
    except InvalidInput:
        return 0


FEED_SORT = [(priority_weight, True), ("createdAt", True)]


def period_predicate(period: int | None, now: datetime) -> Predicate | None:
    """Créés dans les `period` derniers jours (7 ou 30)."""
    if period is None:
        return None
    if period not in PERIODS:
        raise InvalidInput(f"Période invalide: {period}", code="invalid_period")
    return Gte("createdAt", now - timedelta(days=period))


def scope_request_of(data: Mapping[str, Any]) -> ScopeRequest:
    """Extrait les champs de portée d'un corps de requête (valeurs d'énumération validées)."""
    raw_visibility = data.get("visibility")
    audience = data.get("audienceCommunes")
    return ScopeRequest(
        visibility=Visibility.parse(raw_visibility) if raw_visibility is not None else None,
        commune_id=data.get("communeId"),
        audience_communes=tuple(audience) if audience is not None else None,
    )


class ContentService:
    """Lecture filtrée et écriture contrôlée d'un type de contenu."""

    def __init__(self, kind: ContentKind, repo, resolver, default_publisher: str = ""):
        self.kind = kind
        self.repo = repo
        self.resolver = resolver
        self.enforcer = ScopeEnforcer(resolver, DEFAULT_FIELDS)
        self.default_publisher = default_publisher

    # --- lecture ---
    def list(
        self,
        caller: CallerIdentity | None,
        commune_hint: str | None = None,
        *,
        period: int | None = None,
        category: str | None = None,
        mine: bool = False,
        now: datetime | None = None,
    ) -> list[dict[str, Any]]:
        """Liste les enregistrements visibles, urgents puis épinglés puis récents."""
        ctx = ViewContext.for_caller(caller, commune_hint, self.resolver, now)
        predicate = ctx.predicate(DEFAULT_FIELDS)
        window = period_predicate(period, ctx.now)
        if window is not None:
            predicate = predicate & window
        if category:
            predicate = predicate & Eq("category", self._category(category))
        if mine and caller is not None and caller.is_panel:
            predicate = predicate & Eq(DEFAULT_FIELDS.author, caller.id)
        return self.repo.find(predicate, sort=FEED_SORT)

    def get(
        self, caller: CallerIdentity | None, record_id: str, commune_hint: str | None = None
    ) -> dict[str, Any]:
        """Lecture unitaire; un enregistrement hors périmètre est rapporté comme absent.

        Un superadmin n'est jamais hors périmètre: l'indice de commune ne filtre que ses listes.
        """
        record = self._load(record_id)
        if caller is not None and caller.is_superadmin:
            return record
        ctx = ViewContext.for_caller(caller, commune_hint, self.resolver)
        if not ctx.can_view(record, DEFAULT_FIELDS):
            raise NotFound(f"{self.kind.name} introuvable")
        return record

    # --- écriture ---
    def create(
        self, caller: CallerIdentity, data: Mapping[str, Any], commune_hint: str | None = None
    ) -> dict[str, Any]:
        request = scope_request_of(data)
        if caller.is_superadmin and request.commune_id is None and commune_hint:
            request = ScopeRequest(request.visibility, commune_hint, request.audience_communes)
        scope = self.enforcer.resolve_create(caller, request)

        doc: dict[str, Any] = {
            "priority": Priority.NORMAL.value,
            "startAt": None,
            "endAt": None,
            **self.kind.defaults,
        }
        if self.kind.categories:
            doc["category"] = self.kind.categories[0]
        if self.kind.readable:
            doc["isRead"] = False
        if self.kind is ARTICLE:
            doc["publisher"] = self.default_publisher
            doc["publishedAt"] = utcnow()
        doc.update(self._clean(data, creating=True))
        doc.update(scope.as_fields(DEFAULT_FIELDS))
        doc["authorId"] = caller.id
        doc["authorEmail"] = caller.email
        self._check_window(doc)

        record = self.repo.insert(doc)
        log.info(
            "content_created",
            kind=self.kind.name,
            id=record["id"],
            visibility=scope.visibility.value,
            author=caller.id,
        )
        return record

    def update(
        self, caller: CallerIdentity, record_id: str, data: Mapping[str, Any]
    ) -> dict[str, Any]:
        record = self._load(record_id)
        self.enforcer.ensure_can_mutate(caller, record)
        changes = self._clean(data, creating=False)
        scope = self.enforcer.resolve_update(caller, record, scope_request_of(data))
        if scope is not None:
            changes.update(scope.as_fields(DEFAULT_FIELDS))
        self._check_window({**record, **changes})
        updated = self.repo.update(record["id"], changes)
        log.info("content_updated", kind=self.kind.name, id=record["id"], by=caller.id)
        return updated

    def delete(self, caller: CallerIdentity, record_id: str) -> None:
        record = self._load(record_id)
        self.enforcer.ensure_can_mutate(caller, record)
        self.repo.delete(record["id"])
        log.info("content_deleted", kind=self.kind.name, id=record["id"], by=caller.id)

    def mark_all_read(self, commune_hint: str | None = None) -> dict[str, int]:
        """Marque comme lus tous les enregistrements visibles pour la commune indiquée.

        La fenêtre d'affichage ne s'applique pas: un contenu programmé est aussi marqué.
        """
        if not self.kind.readable:
            raise InvalidInput(f"{self.kind.name}: pas de statut de lecture", code="not_readable")
        ctx = ViewContext(self.resolver.keys(commune_hint), None, enforce_window=False)
        matched, modified = self.repo.update_many(ctx.predicate(DEFAULT_FIELDS), {"isRead": True})
        return {"matched": matched, "modified": modified}

    # --- helpers ---
    def _load(self, record_id: str) -> dict[str, Any]:
        record = self.repo.get(record_id) if is_store_id(record_id) else None
        if record is None:
            raise NotFound(f"{self.kind.name} introuvable")
        return record

    def _category(self, value: str) -> str:
        category = str(value).strip().lower()
        if category not in self.kind.categories:
            raise InvalidInput(f"Catégorie inconnue: {value!r}", code="invalid_category")
        return category

    def _clean(self, data: Mapping[str, Any], *, creating: bool) -> dict[str, Any]:
        """Champs non liés à la portée, validés et normalisés."""
        out = {
            k: v for k, v in data.items() if k not in SCOPE_KEYS and k not in PROTECTED_KEYS
        }
        for name in self.kind.required:
            if name in out or creating:
                text = str(out.get(name) or "").strip()
                if not text:
                    raise InvalidInput(f"Champ requis: {name}", code="missing_field")
                out[name] = text
        if "priority" in out:
            out["priority"] = Priority.parse(out["priority"] or Priority.NORMAL.value).value
        if "category" in out and self.kind.categories:
            out["category"] = self._category(out["category"])
        if self.kind is ARTICLE:
            if out.get("status") not in (None, "draft", "published"):
                raise InvalidInput(f"Statut inconnu: {out['status']!r}", code="invalid_status")
            source = str(out.get("sourceUrl") or "").strip()
            if source and not source.lower().startswith(("http://", "https://")):
                raise InvalidInput("sourceUrl doit être une URL http(s)", code="invalid_url")
            if "sourceUrl" in out:
                out["sourceUrl"] = source
        for name in ("startAt", "endAt", "publishedAt"):
            if isinstance(out.get(name), datetime):
                out[name] = ensure_aware(out[name])
        return out

    @staticmethod
    def _check_window(doc: Mapping[str, Any]) -> None:
        start, end = doc.get("startAt"), doc.get("endAt")
        if start is not None and end is not None and start > end:
            raise InvalidInput("startAt doit précéder endAt", code="invalid_window")
