"""Contrôle de portée des écritures sur les contenus multi-communes.

Règles de création:
- admin: uniquement `local` sur sa propre commune. Toute tentative de choisir une autre visibilité,
  une autre commune ou une audience est rejetée (`Forbidden`), jamais réécrite en silence.
- superadmin: toute visibilité; `local` exige une commune, `custom` une audience non vide,
  `global` vide les deux.

Règles de modification/suppression:
- superadmin: sans restriction;
- admin: auteur de l'enregistrement ET enregistrement toujours dans le périmètre de sa commune.
  Les champs de portée d'une modification suivent les règles de création.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

from securidem.domain.communes import normalize
from securidem.domain.entities import CallerIdentity, Role, Visibility
from securidem.domain.errors import Forbidden, ScopeMissing
from securidem.domain.visibility import DEFAULT_FIELDS, ContentFields, visibility_filter

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ScopeRequest:
    """Champs de portée demandés par un corps de requête (None = non fourni)."""

    visibility: Visibility | None = None
    commune_id: str | None = None
    audience_communes: tuple[str, ...] | None = None

    @property
    def touches_scope(self) -> bool:
        return any(v is not None for v in (self.visibility, self.commune_id, self.audience_communes))


@dataclass(frozen=True)
class Scope:
    """Portée effective à persister."""

    visibility: Visibility
    commune_id: str = ""
    audience_communes: tuple[str, ...] = ()

    def as_fields(self, fields: ContentFields = DEFAULT_FIELDS) -> dict[str, Any]:
        return {
            fields.visibility: self.visibility.value,
            fields.commune: self.commune_id,
            fields.audience: list(self.audience_communes),
        }


def _dedupe(values: Iterable[str]) -> tuple[str, ...]:
    seen: dict[str, None] = {}
    for v in values:
        if v:
            seen.setdefault(v, None)
    return tuple(seen)


class ScopeEnforcer:
    """Autorise création, modification et suppression des contenus."""

    def __init__(self, resolver, fields: ContentFields = DEFAULT_FIELDS):
        self.resolver = resolver
        self.fields = fields

    def caller_keys(self, caller: CallerIdentity) -> frozenset[str]:
        """Clés de la commune d'un admin; `ScopeMissing` si le compte n'en a pas."""
        keys = self.resolver.keys(caller.commune_id)
        if not keys:
            raise ScopeMissing("Compte non rattaché à une commune", code="no_commune")
        return keys

    def in_scope(self, record: Mapping[str, Any], keys: frozenset[str]) -> bool:
        """Vrai si l'enregistrement reste visible pour les clés données."""
        return visibility_filter(keys, Role.ADMIN, enforce_window=False, fields=self.fields).matches(
            record
        )

    def resolve_create(self, caller: CallerIdentity, request: ScopeRequest) -> Scope:
        """Calcule la portée d'un nouvel enregistrement, ou lève `Forbidden`/`ScopeMissing`."""
        if caller.role is Role.SUPERADMIN:
            return self._superadmin_scope(request)
        if caller.role is not Role.ADMIN:
            raise Forbidden("Rôle insuffisant", code="role_required")

        keys = self.caller_keys(caller)
        if request.visibility not in (None, Visibility.LOCAL):
            self._reject(caller, "visibility_not_allowed", visibility=request.visibility)
        if request.audience_communes:
            self._reject(caller, "audience_not_allowed")
        if request.commune_id and not (self.resolver.keys(request.commune_id) & keys):
            self._reject(caller, "commune_not_allowed", commune=request.commune_id)
        return Scope(Visibility.LOCAL, self.resolver.prefer_slug(caller.commune_id))

    def _superadmin_scope(self, request: ScopeRequest) -> Scope:
        visibility = request.visibility or Visibility.LOCAL
        if visibility is Visibility.LOCAL:
            commune = self.resolver.prefer_slug(request.commune_id)
            if not commune:
                raise ScopeMissing("communeId requis pour visibility=local", code="commune_required")
            return Scope(Visibility.LOCAL, commune)
        if visibility is Visibility.CUSTOM:
            audience = _dedupe(self.resolver.prefer_slug(c) for c in request.audience_communes or ())
            if not audience:
                raise ScopeMissing(
                    "audienceCommunes requis pour visibility=custom", code="audience_required"
                )
            return Scope(Visibility.CUSTOM, "", audience)
        return Scope(Visibility.GLOBAL)

    def ensure_can_mutate(self, caller: CallerIdentity, record: Mapping[str, Any]) -> None:
        """Vérifie qu'un appelant peut modifier ou supprimer `record`."""
        if caller.role is Role.SUPERADMIN:
            return
        if caller.role is not Role.ADMIN:
            raise Forbidden("Rôle insuffisant", code="role_required")
        if str(record.get(self.fields.author) or "") != caller.id:
            self._reject(caller, "not_author", record=record.get("id"))
        if not self.in_scope(record, self.caller_keys(caller)):
            self._reject(caller, "out_of_scope", record=record.get("id"))

    def resolve_update(
        self, caller: CallerIdentity, record: Mapping[str, Any], request: ScopeRequest
    ) -> Scope | None:
        """Portée résultant d'une modification, ou None si la portée n'est pas touchée."""
        if not request.touches_scope:
            return None
        f = self.fields
        current = Visibility.parse(record.get(f.visibility) or Visibility.LOCAL.value)
        visibility = request.visibility or current
        changed = visibility is not current
        commune = request.commune_id
        if commune is None and not changed:
            commune = record.get(f.commune) or ""
        audience = request.audience_communes
        if audience is None and not changed:
            audience = tuple(record.get(f.audience) or ())
        merged = ScopeRequest(
            visibility=visibility,
            commune_id=normalize(commune) if visibility is Visibility.LOCAL else None,
            audience_communes=audience if visibility is Visibility.CUSTOM else None,
        )
        return self.resolve_create(caller, merged)

    def _reject(self, caller: CallerIdentity, reason: str, **extra: Any) -> None:
        log.info("scope_rejected", reason=reason, caller=caller.id, role=caller.role.value, **extra)
        raise Forbidden("Interdit pour votre commune", code=reason)
