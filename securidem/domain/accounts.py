"""Comptes: connexion, mot de passe, sessions et gestion des administrateurs.

Les comptes vivent dans `users` (collection principale) et, pour les anciens administrateurs, dans
`admins`. Toute action qui doit couper les sessions en cours incrémente `tokenVersion`.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from securidem.domain.auth import claims_for, create_access_token, hash_password, verify_password
from securidem.domain.entities import CallerIdentity, Role, utcnow
from securidem.domain.errors import (
    AccountDisabled,
    Conflict,
    Forbidden,
    InvalidInput,
    NotFound,
    Unauthenticated,
)
from securidem.domain.predicates import All, Eq, Exists, Gte, In, Lte, Match, Predicate
from securidem.domain.session import AccountDirectory, LocatedAccount, normalize_email

log = structlog.get_logger(__name__)

MIN_PASSWORD_LENGTH = 8
PANEL_ROLES = frozenset({Role.ADMIN.value, Role.SUPERADMIN.value})
SECRET_FIELDS = ("password", "passwordHash")
ADMIN_EDITABLE = ("name", "email", "role", "communeId", "communeName", "photo")
SELF_EDITABLE = ("name", "communeName", "photo")


def public_account(doc: Mapping[str, Any]) -> dict[str, Any]:
    """Copie d'un compte sans les champs de mot de passe."""
    return {k: v for k, v in doc.items() if k not in SECRET_FIELDS}


def password_hash_of(doc: Mapping[str, Any]) -> str:
    return doc.get("passwordHash") or doc.get("password") or ""


def check_password_length(password: str | None) -> None:
    if len((password or "").strip()) < MIN_PASSWORD_LENGTH:
        raise InvalidInput(
            f"Mot de passe invalide (min {MIN_PASSWORD_LENGTH} caractères)", code="weak_password"
        )


def status_filter(status: str | None) -> Predicate:
    if not status:
        return All()
    if status == "active":
        return Eq("isActive", True) | Exists("isActive", present=False)
    if status == "inactive":
        return Eq("isActive", False)
    raise InvalidInput(f"Statut inconnu: {status!r}", code="invalid_status")


def subscription_filter(sub: str | None, now) -> Predicate:
    if not sub:
        return All()
    if sub == "active":
        return Eq("subscriptionStatus", "active") & Gte("subscriptionEndAt", now, null_ok=True)
    if sub == "expired":
        return Eq("subscriptionStatus", "expired") | (
            Eq("subscriptionStatus", "active") & Lte("subscriptionEndAt", now)
        )
    if sub == "none":
        return In("subscriptionStatus", frozenset({"none", "", None}))
    raise InvalidInput(f"Filtre d'abonnement inconnu: {sub!r}", code="invalid_subscription")


class TokenIssuer:
    """Émet des jetons d'accès pour un compte (paramètres JWT de la configuration)."""

    def __init__(self, secret: str, alg: str, expires_min: int):
        self.secret = secret
        self.alg = alg
        self.expires_min = expires_min

    def issue(self, account: Mapping[str, Any], **extra: Any) -> str:
        return create_access_token(
            secret=self.secret,
            alg=self.alg,
            expires_min=self.expires_min,
            payload=claims_for(dict(account), **extra),
        )


class AccountService:
    """Cas d'usage des comptes, indépendants du transport HTTP."""

    def __init__(self, directory: AccountDirectory, resolver, issuer: TokenIssuer):
        self.directory = directory
        self.resolver = resolver
        self.issuer = issuer

    @property
    def users(self):
        return self.directory.repos[0]

    # --- session ---
    def login(self, email: str, password: str) -> str:
        """Vérifie les identifiants et renvoie un jeton (users puis admins historiques)."""
        account = self.directory.by_email(email)
        if account is None or not verify_password(password, password_hash_of(account.doc)):
            raise Unauthenticated("Identifiants invalides", code="invalid_credentials")
        if not account.is_active:
            raise AccountDisabled("Compte désactivé")
        log.info("login", account=account.id, role=account.role.value)
        return self.issuer.issue({**account.doc, "role": account.role.value})

    def change_password(self, caller: CallerIdentity, old_password: str, new_password: str) -> str:
        """Change le mot de passe, déconnecte les autres sessions et renvoie un nouveau jeton."""
        account = self._require(caller.id)
        if not verify_password(old_password, password_hash_of(account.doc)):
            raise InvalidInput("Ancien mot de passe incorrect", code="invalid_credentials")
        self._set_password(account, new_password)
        account.bump_session_version()
        return self.issuer.issue({**account.doc, "role": account.role.value})

    def logout_all(self, caller: CallerIdentity) -> int:
        return self._require(caller.id).bump_session_version()

    def impersonate(self, caller: CallerIdentity, target_id: str) -> str:
        """Jeton au nom d'un admin, marqué avec l'identifiant du superadmin d'origine."""
        target = self._guard_target(caller, target_id)
        if not target.is_active:
            raise AccountDisabled("Compte désactivé")
        log.info("impersonation_started", by=caller.id, target=target.id)
        return self.issuer.issue(
            {**target.doc, "role": target.role.value},
            impersonated=True,
            originalUserId=caller.id,
        )

    # --- administrateurs ---
    def list_admins(
        self,
        caller: CallerIdentity,
        *,
        q: str | None = None,
        commune_id: str | None = None,
        status: str | None = None,
        sub: str | None = None,
        page: int = 1,
        page_size: int = 15,
    ) -> dict[str, Any]:
        """Comptes du panel filtrés; un admin ne reçoit que son propre compte."""
        if not caller.is_superadmin:
            own = self._require(caller.id)
            return {"items": [public_account(own.doc)], "total": 1}

        predicate = status_filter(status) & subscription_filter(sub, utcnow())
        if q:
            predicate = predicate & Match(("email", "name"), q)
        if commune_id:
            predicate = predicate & In("communeId", self.resolver.keys(commune_id), fold=True)

        users, admins = self.directory.repos
        docs = users.find(In("role", PANEL_ROLES) & predicate) + admins.find(predicate)
        docs.sort(key=lambda d: d.get("createdAt") or utcnow(), reverse=True)
        start = (page - 1) * page_size
        return {
            "items": [public_account(d) for d in docs[start : start + page_size]],
            "total": len(docs),
        }

    def create_admin(self, caller: CallerIdentity, data: Mapping[str, Any]) -> dict[str, Any]:
        email = normalize_email(data.get("email"))
        password = str(data.get("password") or "")
        if not email or not password:
            raise InvalidInput("Email et mot de passe requis", code="missing_field")
        check_password_length(password)
        if self.directory.email_taken(email):
            raise Conflict("Un compte existe déjà avec cet email", code="email_taken")
        role = self._panel_role(data.get("role") or Role.ADMIN.value)
        commune = self.resolver.find(data.get("communeId"))
        doc = {
            "name": str(data.get("name") or ""),
            "email": email,
            "passwordHash": hash_password(password),
            "role": role.value,
            "communeId": self.resolver.prefer_slug(data.get("communeId")),
            "communeName": data.get("communeName") or (commune or {}).get("name", ""),
            "photo": str(data.get("photo") or ""),
            "isActive": True,
            "tokenVersion": 0,
            "subscriptionStatus": "none",
            "subscriptionEndAt": None,
            "createdBy": caller.id,
        }
        record = self.users.insert(doc)
        log.info("admin_created", id=record["id"], role=role.value, by=caller.id)
        return public_account(record)

    def get_admin(self, caller: CallerIdentity, account_id: str) -> dict[str, Any]:
        """Fiche d'un compte: soi-même, ou n'importe lequel pour un superadmin."""
        if account_id != caller.id and not caller.is_superadmin:
            raise Forbidden("Accès interdit", code="not_self")
        return public_account(self._require(account_id).doc)

    def update_self(self, caller: CallerIdentity, data: Mapping[str, Any]) -> dict[str, Any]:
        account = self._require(caller.id)
        changes = {k: str(data[k]) for k in SELF_EDITABLE if data.get(k) is not None}
        return public_account(account.repo.update(account.id, changes) or account.doc)

    def update_admin(
        self, caller: CallerIdentity, account_id: str, data: Mapping[str, Any]
    ) -> dict[str, Any]:
        target = self._guard_target(caller, account_id)
        changes: dict[str, Any] = {}
        for name in ADMIN_EDITABLE:
            if data.get(name) is None:
                continue
            value = data[name]
            if name == "email":
                value = normalize_email(value)
                if self.directory.email_taken(value, exclude_id=target.id):
                    raise Conflict("Cet email est déjà utilisé", code="email_taken")
                if target.repo.collection == "admins":
                    changes["emailLower"] = value
            elif name == "role":
                value = self._panel_role(value).value
            elif name == "communeId":
                value = self.resolver.prefer_slug(value)
            changes[name] = value
        updated = target.repo.update(target.id, changes)
        log.info("admin_updated", id=target.id, by=caller.id, fields=sorted(changes))
        return public_account(updated)

    def toggle_active(self, caller: CallerIdentity, account_id: str, active: bool) -> dict[str, Any]:
        target = self._guard_target(caller, account_id)
        target.doc = target.repo.update(target.id, {"isActive": bool(active)})
        target.bump_session_version()
        log.info("admin_toggled", id=target.id, active=bool(active), by=caller.id)
        return public_account(target.doc)

    def reset_password(self, caller: CallerIdentity, account_id: str, new_password: str) -> None:
        target = self._guard_target(caller, account_id)
        self._set_password(target, new_password)
        target.bump_session_version()

    def force_logout(self, caller: CallerIdentity, account_id: str) -> int:
        target = self._guard_target(caller, account_id)
        log.info("force_logout", id=target.id, by=caller.id)
        return target.bump_session_version()

    def delete_admin(self, caller: CallerIdentity, account_id: str) -> None:
        target = self._guard_target(caller, account_id)
        target.repo.delete(target.id)
        log.info("admin_deleted", id=target.id, by=caller.id)

    # --- helpers ---
    def _require(self, account_id: str) -> LocatedAccount:
        account = self.directory.by_id(account_id)
        if account is None:
            raise NotFound("Compte introuvable")
        return account

    def _guard_target(self, caller: CallerIdentity, account_id: str) -> LocatedAccount:
        """Cible d'une action de superadmin: ni soi-même, ni un autre superadmin."""
        if account_id == caller.id:
            raise InvalidInput("Action impossible sur votre propre compte", code="self_target")
        target = self._require(account_id)
        if target.role is Role.SUPERADMIN:
            raise Forbidden("Action interdite sur un superadmin", code="superadmin_target")
        return target

    @staticmethod
    def _panel_role(value: str) -> Role:
        role = Role.parse(value)
        if role is Role.USER:
            raise InvalidInput("Rôle admin ou superadmin attendu", code="invalid_role")
        return role

    @staticmethod
    def _set_password(account: LocatedAccount, new_password: str) -> None:
        check_password_length(new_password)
        field_name = "password" if account.repo.collection == "admins" else "passwordHash"
        account.doc = account.repo.update(account.id, {field_name: hash_password(new_password)})
