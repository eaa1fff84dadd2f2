"""Erreurs métier levées par le cœur d'autorisation.

Chaque erreur porte un `code` stable (consommé par les clients pour décider d'une reconnexion, d'un
message générique, etc.). Le cœur ne produit jamais de réponse HTTP: la traduction en statut et en
enveloppe JSON est faite par `securidem.apigw.errors`.
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base des erreurs métier, non réessayables."""

    code = "domain_error"

    def __init__(self, message: str = "", code: str | None = None, details: dict[str, Any] | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code
        if code:
            self.code = code
        self.details = details


class Unauthenticated(DomainError):
    """Aucun jeton, jeton invalide/expiré, ou compte introuvable."""

    code = "invalid_token"


class AccountDisabled(DomainError):
    """Le compte résolu est désactivé (isActive=false)."""

    code = "account_disabled"


class SessionInvalidated(DomainError):
    """La version de session du jeton est périmée (déconnexion forcée)."""

    code = "session_invalidated"


class Forbidden(DomainError):
    """Rôle, propriété ou portée insuffisants pour l'opération."""

    code = "forbidden"


class ScopeMissing(DomainError):
    """Commune absente: compte admin non rattaché ou cible locale manquante."""

    code = "scope_missing"


class NotFound(DomainError):
    """Enregistrement absent, ou masqué à un appelant hors périmètre."""

    code = "not_found"


class InvalidInput(DomainError):
    """Entrée invalide (valeur d'énumération inconnue, champ requis manquant...)."""

    code = "invalid_input"


class Conflict(DomainError):
    """Conflit d'unicité (email, slug...)."""

    code = "conflict"


# Raisons de rejet de l'identité de session
MISSING_TOKEN = "missing_token"
INVALID_TOKEN = "invalid_token"
TOKEN_EXPIRED = "token_expired"
ACCOUNT_NOT_FOUND = "account_not_found"
ACCOUNT_DISABLED = AccountDisabled.code
SESSION_INVALIDATED = SessionInvalidated.code
