"""
Entités du domaine métier.

Ce module définit les énumérations fermées (rôles, visibilité, priorité) et l'identité d'appelant
dérivée à chaque requête. Les documents persistés (communes, comptes, contenus) restent des `dict`
aux clés camelCase, comme dans le magasin de documents.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from securidem.domain.errors import InvalidInput


class Role(StrEnum):
    """Rôles totalement ordonnés: user < admin < superadmin."""

    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    @classmethod
    def parse(cls, value: str | None) -> Role:
        """Convertit une chaîne en rôle, `InvalidInput` si inconnue."""
        try:
            return cls(str(value or "").strip().lower())
        except ValueError as err:
            raise InvalidInput(f"Rôle inconnu: {value!r}", code="invalid_role") from err


_ROLE_RANK = {Role.USER: 1, Role.ADMIN: 2, Role.SUPERADMIN: 3}


def has_min_role(role: Role | str | None, minimum: Role) -> bool:
    """Vrai si `role` est au moins `minimum` dans l'ordre des rôles."""
    if role is None:
        return False
    try:
        current = Role(role)
    except ValueError:
        return False
    return current.rank >= minimum.rank


class Visibility(StrEnum):
    """Portée d'un contenu: une commune, toutes, ou une liste explicite."""

    LOCAL = "local"
    GLOBAL = "global"
    CUSTOM = "custom"

    @classmethod
    def parse(cls, value: str) -> Visibility:
        try:
            return cls(str(value).strip().lower())
        except ValueError as err:
            raise InvalidInput(f"Visibilité inconnue: {value!r}", code="invalid_visibility") from err


class Priority(StrEnum):
    """Priorité d'affichage; `weight` sert au tri (urgent d'abord)."""

    NORMAL = "normal"
    PINNED = "pinned"
    URGENT = "urgent"

    @property
    def weight(self) -> int:
        return {Priority.NORMAL: 0, Priority.PINNED: 1, Priority.URGENT: 2}[self]

    @classmethod
    def parse(cls, value: str) -> Priority:
        try:
            return cls(str(value).strip().lower())
        except ValueError as err:
            raise InvalidInput(f"Priorité inconnue: {value!r}", code="invalid_priority") from err


class CallerIdentity(BaseModel):
    """Identité d'appelant reconstruite à partir du compte persistant.

    Jamais persistée: le compte reste la source de vérité pour le rôle, la commune et l'état actif.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    email: str = ""
    role: Role = Role.USER
    commune_id: str = ""
    commune_name: str = ""
    is_active: bool = True
    session_version: int = 0
    impersonated: bool = False
    original_user_id: str | None = None

    @property
    def is_superadmin(self) -> bool:
        return self.role is Role.SUPERADMIN

    @property
    def is_panel(self) -> bool:
        return has_min_role(self.role, Role.ADMIN)


def utcnow() -> datetime:
    """Instant courant, timezone-aware (UTC)."""
    return datetime.now(UTC)


def ensure_aware(value: datetime | None) -> datetime | None:
    """Considère les dates naïves comme UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class Plan(BaseModel):
    """Offre d'abonnement proposée aux communes."""

    id: str
    name: str
    price: float
    currency: str = "EUR"
    period: str = "mois"
    days: int = Field(default=30, exclude=True)
