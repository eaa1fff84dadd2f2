"""Résolution de l'identité des communes (multi-tenant).

Une référence de commune saisie par un humain (identifiant de document, slug ou nom affiché) est
convertie en un ensemble de clés canoniques servant à comparer les documents stockés, y compris les
anciens enregistrements qui conservent des formes hétérogènes.

Ordre de résolution:
1) format d'identifiant de document -> recherche par id
2) sinon correspondance exacte (insensible à la casse) sur le slug, puis le code, puis les champs
   de nom (`name`, `communeName`, `label`)
3) sinon la valeur normalisée (trim + minuscules) est renvoyée telle quelle

L'absence n'est jamais une erreur: ensemble vide ou clé de repli.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any

import structlog

from securidem.domain.errors import InvalidInput, NotFound
from securidem.domain.predicates import Eq, Exists, In, Match
from securidem.infra.repositories import is_store_id

log = structlog.get_logger(__name__)

NAME_FIELDS = ("name", "communeName", "label")
_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")


def normalize(value: Any) -> str:
    """Normalise une référence de commune (trim + minuscules); '' si vide."""
    if value is None:
        return ""
    return str(value).strip().lower()


def slugify(value: str | None) -> str:
    """Slug ASCII: accents retirés, séquences non alphanumériques remplacées par `-`."""
    stripped = unicodedata.normalize("NFD", str(value or ""))
    stripped = "".join(c for c in stripped if not unicodedata.combining(c))
    return _NON_ALNUM_RE.sub("-", stripped.lower()).strip("-")


def commune_keys_of(commune: dict[str, Any]) -> frozenset[str]:
    """Clés canoniques d'une commune connue: {slug, id}."""
    keys = {normalize(commune.get("id"))}
    slug = normalize(commune.get("slug"))
    if slug:
        keys.add(slug)
    return frozenset(k for k in keys if k)


class CommuneResolver:
    """Résout les références de communes contre le registre `communes`."""

    def __init__(self, communes_repo):
        self.communes = communes_repo

    def find(self, raw: str | None) -> dict[str, Any] | None:
        """Retourne la commune désignée par `raw`, ou None."""
        ref = normalize(raw)
        if not ref:
            return None
        if is_store_id(ref):
            return self.communes.get(ref)
        candidate = frozenset({ref})
        for field in ("slug", "code", *NAME_FIELDS):
            found = self.communes.find_one(In(field, candidate, fold=True))
            if found is not None:
                return found
        return None

    def keys(self, raw: str | None) -> frozenset[str]:
        """Ensemble de clés de correspondance pour `raw`.

        `{slug, id}` si la commune est connue, `{raw normalisé}` sinon, vide si `raw` est vide.
        """
        ref = normalize(raw)
        if not ref:
            return frozenset()
        commune = self.find(ref)
        if commune is None:
            return frozenset({ref})
        return commune_keys_of(commune)

    def prefer_slug(self, raw: str | None) -> str:
        """Valeur canonique à écrire: le slug si résolu, sinon la valeur normalisée."""
        ref = normalize(raw)
        if not ref:
            return ""
        commune = self.find(ref)
        if commune is not None and normalize(commune.get("slug")):
            return normalize(commune["slug"])
        return ref

    def unique_slug(self, base: str) -> str:
        """Slug libre dérivé de `base` (`-2`, `-3`... en cas de collision)."""
        root = slugify(base) or "commune"
        slug, i = root, 1
        while self.communes.find_one(In("slug", frozenset({slug}), fold=True)) is not None:
            i += 1
            slug = f"{root}-{i}"
        return slug


PUBLIC_FIELDS = ("id", "name", "label", "communeName", "code", "region", "imageUrl", "slug")
SEARCH_FIELDS = ("name", "label", "communeName", "slug", "code", "region")


class CommuneService:
    """Registre des communes: liste publique, liste du panel, création et suppression."""

    def __init__(self, communes_repo, resolver: CommuneResolver | None = None):
        self.communes = communes_repo
        self.resolver = resolver or CommuneResolver(communes_repo)

    def list_public(self, q: str | None = None) -> list[dict[str, Any]]:
        """Communes actives (un champ `active` absent vaut actif), triées par nom."""
        predicate = Exists("active", present=False) | Eq("active", True)
        if q:
            predicate = predicate & Match(SEARCH_FIELDS, q)
        docs = self.communes.find(predicate, sort=[(_name_key, False)])
        return [{k: d.get(k) for k in PUBLIC_FIELDS if k in d} for d in docs]

    def list_all(self) -> dict[str, Any]:
        items = self.communes.find(sort=[(_name_key, False)])
        return {"items": items, "total": len(items)}

    def create(self, data: dict[str, Any], created_by: dict[str, str] | None = None) -> dict[str, Any]:
        name = str(data.get("name") or "").strip()
        base = str(data.get("slug") or "").strip() or name
        if not base:
            raise InvalidInput("Nom ou slug requis", code="missing_field")
        display = name or base
        doc = {
            "name": display,
            "label": display,
            "communeName": display,
            "slug": self.resolver.unique_slug(base),
            "code": str(data.get("code") or ""),
            "region": str(data.get("region") or ""),
            "imageUrl": str(data.get("imageUrl") or ""),
            "active": bool(data.get("active", True)),
            **(created_by or {}),
        }
        record = self.communes.insert(doc)
        log.info("commune_created", id=record["id"], slug=record["slug"])
        return record

    def delete(self, commune_id: str) -> None:
        commune = self.communes.get(commune_id) if is_store_id(commune_id) else None
        if commune is None:
            raise NotFound("Commune introuvable")
        self.communes.delete(commune["id"])
        log.info("commune_deleted", id=commune["id"], slug=commune.get("slug"))


def _name_key(doc: dict[str, Any]) -> str:
    return normalize(doc.get("name"))
