"""
Gestion des comptes du panel (superadmin).

Liste filtrable, création, mise à jour, activation, réinitialisation du mot de passe, déconnexion
forcée, suppression et impersonation. Un superadmin ne peut viser ni lui-même ni un autre
superadmin.
"""

from fastapi import APIRouter, Depends, Query, status

from securidem.api.deps import get_account_service, panel_dep, superadmin_dep
from securidem.api.schemas import (
    AdminCreatePayload,
    AdminUpdatePayload,
    ResetPasswordPayload,
    SelfUpdatePayload,
    ToggleActivePayload,
    TokenResponse,
)
from securidem.core.container import container
from securidem.core.http_constants import DEFAULT_PAGE_SIZE
from securidem.domain.accounts import AccountService
from securidem.domain.entities import CallerIdentity

router = APIRouter(prefix="/api/admins", tags=["admins"])
accounts_dep = Depends(get_account_service)


@router.get("")
def list_admins(
    q: str | None = Query(None),
    commune_id: str | None = Query(None, alias="communeId"),
    status_: str | None = Query(None, alias="status"),
    sub: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=200, alias="pageSize"),
    identity: CallerIdentity = panel_dep,
    accounts: AccountService = accounts_dep,
):
    """Comptes du panel; un admin ne reçoit que sa propre fiche."""
    return accounts.list_admins(
        identity,
        q=q,
        commune_id=commune_id,
        status=status_,
        sub=sub,
        page=page,
        page_size=min(page_size, container.settings.MAX_PAGE_SIZE),
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def create_admin(
    p: AdminCreatePayload,
    identity: CallerIdentity = superadmin_dep,
    accounts: AccountService = accounts_dep,
):
    return accounts.create_admin(identity, p.model_dump(by_alias=True))


@router.get("/self")
def get_self(identity: CallerIdentity = panel_dep, accounts: AccountService = accounts_dep):
    return accounts.get_admin(identity, identity.id)


@router.patch("/self")
def update_self(
    p: SelfUpdatePayload,
    identity: CallerIdentity = panel_dep,
    accounts: AccountService = accounts_dep,
):
    return accounts.update_self(identity, p.changes())


@router.get("/{account_id}")
def get_admin(
    account_id: str, identity: CallerIdentity = panel_dep, accounts: AccountService = accounts_dep
):
    return accounts.get_admin(identity, account_id)


@router.put("/{account_id}")
def update_admin(
    account_id: str,
    p: AdminUpdatePayload,
    identity: CallerIdentity = superadmin_dep,
    accounts: AccountService = accounts_dep,
):
    return accounts.update_admin(identity, account_id, p.changes())


@router.post("/{account_id}/toggle-active")
def toggle_active(
    account_id: str,
    p: ToggleActivePayload,
    identity: CallerIdentity = superadmin_dep,
    accounts: AccountService = accounts_dep,
):
    return accounts.toggle_active(identity, account_id, p.active)


@router.post("/{account_id}/reset-password")
def reset_password(
    account_id: str,
    p: ResetPasswordPayload,
    identity: CallerIdentity = superadmin_dep,
    accounts: AccountService = accounts_dep,
):
    accounts.reset_password(identity, account_id, p.new_password)
    return {"ok": True}


@router.post("/{account_id}/force-logout")
def force_logout(
    account_id: str,
    identity: CallerIdentity = superadmin_dep,
    accounts: AccountService = accounts_dep,
):
    return {"ok": True, "tokenVersion": accounts.force_logout(identity, account_id)}


@router.post("/{account_id}/impersonate", response_model=TokenResponse)
def impersonate(
    account_id: str,
    identity: CallerIdentity = superadmin_dep,
    accounts: AccountService = accounts_dep,
):
    """Jeton au nom d'un admin; révoqué dès que le superadmin d'origine perd ses droits."""
    return {"token": accounts.impersonate(identity, account_id)}


@router.delete("/{account_id}")
def delete_admin(
    account_id: str,
    identity: CallerIdentity = superadmin_dep,
    accounts: AccountService = accounts_dep,
):
    accounts.delete_admin(identity, account_id)
    return {"ok": True}
