"""Filtre de visibilité multi-communes et fenêtre d'affichage.

Un seul constructeur de prédicat sert les quatre types de contenus (articles, notifications,
infos, projets). Un enregistrement est visible si:

- `visibility = global`, ou
- `visibility = local` et `communeId` appartient aux clés résolues, ou
- `visibility = custom` et `audienceCommunes` rencontre les clés résolues.

Cas particuliers: un superadmin sans contexte de commune voit tout; tout autre appelant sans
contexte ne voit que le global. La fenêtre `[startAt, endAt]` (bornes incluses, absentes = non
bornées) est ajoutée pour le public, évaluée avec un seul `now` par requête.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from securidem.domain.entities import CallerIdentity, Role, Visibility, ensure_aware, utcnow
from securidem.domain.errors import ScopeMissing
from securidem.domain.predicates import All, AnyIn, Eq, Gte, In, Lte, Predicate


@dataclass(frozen=True)
class ContentFields:
    """Noms des champs de portée dans un type de document."""

    visibility: str = "visibility"
    commune: str = "communeId"
    audience: str = "audienceCommunes"
    start: str = "startAt"
    end: str = "endAt"
    author: str = "authorId"


DEFAULT_FIELDS = ContentFields()


def window_predicate(now: datetime, fields: ContentFields = DEFAULT_FIELDS) -> Predicate:
    """(startAt absent ou <= now) ET (endAt absent ou >= now)."""
    return Lte(fields.start, now, null_ok=True) & Gte(fields.end, now, null_ok=True)


def is_window_active(
    start_at: datetime | None, end_at: datetime | None, now: datetime
) -> bool:
    """Vrai si `now` tombe dans la fenêtre [start_at, end_at]."""
    doc = {"startAt": ensure_aware(start_at), "endAt": ensure_aware(end_at)}
    return window_predicate(ensure_aware(now)).matches(doc)


def visibility_filter(
    keys: frozenset[str],
    role: Role | None,
    *,
    enforce_window: bool,
    now: datetime | None = None,
    fields: ContentFields = DEFAULT_FIELDS,
) -> Predicate:
    """Construit le prédicat de lecture pour un appelant.

    Args:
        keys: clés de commune résolues (éventuellement vides).
        role: rôle de l'appelant (`None` pour le public).
        enforce_window: applique la fenêtre d'affichage.
        now: instant de référence (un seul par requête).
        fields: noms de champs du type de document.
    """
    if role is Role.SUPERADMIN and not keys:
        scope: Predicate = All()
    elif not keys:
        scope = Eq(fields.visibility, Visibility.GLOBAL.value)
    else:
        scope = (
            Eq(fields.visibility, Visibility.GLOBAL.value)
            | (Eq(fields.visibility, Visibility.LOCAL.value) & In(fields.commune, keys, fold=True))
            | (Eq(fields.visibility, Visibility.CUSTOM.value) & AnyIn(fields.audience, keys, fold=True))
        )
    if enforce_window:
        return scope & window_predicate(now or utcnow(), fields)
    return scope


@dataclass(frozen=True)
class ViewContext:
    """Contexte de lecture figé pour une requête (clés, rôle, fenêtre, instant)."""

    keys: frozenset[str]
    role: Role | None
    enforce_window: bool
    now: datetime = field(default_factory=utcnow)

    @classmethod
    def for_caller(
        cls,
        caller: CallerIdentity | None,
        commune_hint: str | None,
        resolver,
        now: datetime | None = None,
    ) -> ViewContext:
        """Dérive le contexte de lecture d'un appelant.

        - public (ou rôle `user`): commune de l'indice, fenêtre appliquée;
        - admin: sa propre commune (indice ignoré), sans fenêtre;
        - superadmin: commune de l'indice si fournie, sinon tout, sans fenêtre.
        """
        instant = now or utcnow()
        if caller is None or not caller.is_panel:
            return cls(resolver.keys(commune_hint), None, True, instant)
        if caller.role is Role.ADMIN:
            keys = resolver.keys(caller.commune_id)
            if not keys:
                raise ScopeMissing("Compte admin non rattaché à une commune", code="no_commune")
            return cls(keys, Role.ADMIN, False, instant)
        return cls(resolver.keys(commune_hint), Role.SUPERADMIN, False, instant)

    def predicate(self, fields: ContentFields = DEFAULT_FIELDS) -> Predicate:
        return visibility_filter(
            self.keys, self.role, enforce_window=self.enforce_window, now=self.now, fields=fields
        )

    def can_view(self, doc: Mapping[str, Any], fields: ContentFields = DEFAULT_FIELDS) -> bool:
        return self.predicate(fields).matches(doc)


def panel_commune_filter(
    caller: CallerIdentity, commune_hint: str | None, resolver, field_name: str = "communeId"
) -> Predicate:
    """Filtre de commune des écrans du panel (incidents, appareils).

    Un admin est limité à sa commune (indice ignoré); un superadmin filtre sur l'indice s'il est
    fourni, sinon voit tout.
    """
    if caller.role is Role.ADMIN:
        keys = resolver.keys(caller.commune_id)
        if not keys:
            raise ScopeMissing("Compte admin non rattaché à une commune", code="no_commune")
        return In(field_name, keys, fold=True)
    keys = resolver.keys(commune_hint)
    return In(field_name, keys, fold=True) if keys else All()
