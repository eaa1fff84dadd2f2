"""
Routes d'authentification pour l'API.

Connexion (comptes `users` puis `admins` historiques), identité courante, changement de mot de
passe et déconnexion de toutes les sessions.
"""

from fastapi import APIRouter, Depends

from securidem.api.deps import current_identity_dep, get_account_service
from securidem.api.schemas import ChangePasswordPayload, LoginPayload, TokenResponse
from securidem.domain.accounts import AccountService
from securidem.domain.entities import CallerIdentity

router = APIRouter(prefix="/api", tags=["auth"])
accounts_dep = Depends(get_account_service)


@router.post("/login", response_model=TokenResponse)
def login(p: LoginPayload, accounts: AccountService = accounts_dep):
    """Authentifie un compte et retourne un token d'accès."""
    return {"token": accounts.login(str(p.email), p.password)}


@router.get("/me")
def me(identity: CallerIdentity = current_identity_dep):
    """Identité résolue à partir du compte (jamais des claims du jeton)."""
    return identity.model_dump(by_alias=True)


@router.post("/change-password", response_model=TokenResponse)
def change_password(
    p: ChangePasswordPayload,
    identity: CallerIdentity = current_identity_dep,
    accounts: AccountService = accounts_dep,
):
    """Change le mot de passe; les autres sessions sont invalidées, un nouveau jeton est émis."""
    return {"token": accounts.change_password(identity, p.old_password, p.new_password)}


@router.post("/logout-all")
def logout_all(
    identity: CallerIdentity = current_identity_dep, accounts: AccountService = accounts_dep
):
    version = accounts.logout_all(identity)
    return {"ok": True, "tokenVersion": version}
