"""Résolution de l'identité de session à partir d'un jeton Bearer.

Algorithme:
1. extraire le jeton de l'en-tête Authorization (absent -> `missing_token`);
2. vérifier signature et expiration (`token_expired` / `invalid_token`);
3. lire les claims (id, email, rôle, commune, version de session sous l'un des deux noms
   historiques, marqueurs d'impersonation);
4. retrouver le compte: par id s'il est bien formé, sinon par email normalisé, d'abord dans `users`
   puis dans la collection historique `admins`;
5. rejeter si le compte est absent (`account_not_found`) ou désactivé (`account_disabled`);
6. rejeter si la version du jeton diffère de celle du compte (`session_invalidated`);
7. construire l'identité depuis le compte courant, jamais depuis les claims en cache.

Aucun cache: chaque requête relit le compte, ce qui rend une déconnexion forcée immédiate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from securidem.domain.auth import decode_token
from securidem.domain.entities import CallerIdentity, Role
from securidem.domain.errors import (
    ACCOUNT_NOT_FOUND,
    MISSING_TOKEN,
    AccountDisabled,
    SessionInvalidated,
    Unauthenticated,
)
from securidem.domain.predicates import In
from securidem.infra.repositories import is_store_id

log = structlog.get_logger(__name__)


def normalize_email(email: str | None) -> str:
    return str(email or "").strip().lower()


@dataclass
class LocatedAccount:
    """Compte trouvé et dépôt (collection) qui le contient."""

    doc: dict[str, Any]
    repo: Any

    @property
    def id(self) -> str:
        return str(self.doc["id"])

    @property
    def session_version(self) -> int:
        return int(self.doc.get("tokenVersion") or 0)

    @property
    def is_active(self) -> bool:
        return self.doc.get("isActive", True) is not False

    @property
    def role(self) -> Role:
        default = Role.ADMIN if self.repo.collection == "admins" else Role.USER
        return Role.parse(self.doc.get("role") or default.value)

    def identity(self, **markers: Any) -> CallerIdentity:
        return CallerIdentity(
            id=self.id,
            email=self.doc.get("email", ""),
            role=self.role,
            commune_id=self.doc.get("communeId", "") or "",
            commune_name=self.doc.get("communeName", "") or "",
            is_active=self.is_active,
            session_version=self.session_version,
            **markers,
        )

    def bump_session_version(self) -> int:
        """Incrémente la version de session: tous les jetons émis deviennent invalides."""
        version = self.session_version + 1
        self.doc = self.repo.update(self.id, {"tokenVersion": version}) or self.doc
        log.info("session_version_bumped", account=self.id, version=version)
        return version


class AccountDirectory:
    """Recherche de comptes dans `users` puis dans la collection historique `admins`."""

    def __init__(self, users_repo, admins_repo):
        self.repos = (users_repo, admins_repo)

    def by_id(self, account_id: str | None) -> LocatedAccount | None:
        if not is_store_id(account_id):
            return None
        for repo in self.repos:
            doc = repo.get(str(account_id).strip().lower())
            if doc is not None:
                return LocatedAccount(doc, repo)
        return None

    def by_email(self, email: str | None) -> LocatedAccount | None:
        wanted = normalize_email(email)
        if not wanted:
            return None
        for repo in self.repos:
            doc = repo.find_one(In("email", frozenset({wanted}), fold=True))
            if doc is not None:
                return LocatedAccount(doc, repo)
        return None

    def find(self, account_id: str | None, email: str | None) -> LocatedAccount | None:
        """Par id d'abord, puis par email normalisé."""
        return self.by_id(account_id) or self.by_email(email)

    def email_taken(self, email: str, exclude_id: str | None = None) -> bool:
        found = self.by_email(email)
        return found is not None and found.id != exclude_id


def bearer_token(authorization: str | None) -> str:
    """Extrait le jeton d'un en-tête `Authorization: Bearer <token>`."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise Unauthenticated("Accès non autorisé - token manquant", code=MISSING_TOKEN)
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise Unauthenticated("Accès non autorisé - token manquant", code=MISSING_TOKEN)
    return token


class SessionResolver:
    """Transforme un en-tête Authorization en `CallerIdentity` ou lève une erreur typée."""

    def __init__(self, directory: AccountDirectory, secret: str, alg: str):
        self.directory = directory
        self.secret = secret
        self.alg = alg

    def resolve(self, authorization: str | None) -> CallerIdentity:
        claims = decode_token(bearer_token(authorization), self.secret, self.alg)
        account = self.directory.find(claims.sub, claims.email)
        if account is None:
            raise Unauthenticated("Compte introuvable", code=ACCOUNT_NOT_FOUND)
        if not account.is_active:
            raise AccountDisabled("Compte désactivé")
        if claims.session_version is not None and claims.session_version != account.session_version:
            log.info(
                "session_invalidated",
                account=account.id,
                token_version=claims.session_version,
                current_version=account.session_version,
            )
            raise SessionInvalidated("Session expirée, veuillez vous reconnecter")

        if claims.impersonated:
            original = self.directory.by_id(claims.original_user_id)
            if original is None or not original.is_active or original.role is not Role.SUPERADMIN:
                raise SessionInvalidated("Impersonation révoquée")
            return account.identity(impersonated=True, original_user_id=original.id)
        return account.identity()
