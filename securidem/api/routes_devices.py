"""
Routes des appareils.

Côté application mobile (clé `x-app-key`): enregistrement, signal de vie et compteurs publics.
Côté panel: liste paginée et compteurs, limités à la commune de l'admin.
"""

import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Response

from securidem.api.deps import commune_hint_dep, get_device_service, panel_dep
from securidem.api.schemas import DeviceRegisterPayload
from securidem.core.container import container
from securidem.core.http_constants import (
    APP_KEY_HEADER,
    HTTP_CREATED,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_OK,
)
from securidem.domain.devices import DEFAULT_ACTIVE_DAYS, DeviceService
from securidem.domain.entities import CallerIdentity
from securidem.domain.errors import Forbidden

router = APIRouter(prefix="/api/devices", tags=["devices"])
devices_dep = Depends(get_device_service)


def require_app_key(x_app_key: str | None = Header(None, alias=APP_KEY_HEADER)) -> None:
    """Vérifie la clé partagée de l'application mobile."""
    expected = container.settings.MOBILE_APP_KEY
    if not expected:
        raise HTTPException(
            status_code=HTTP_INTERNAL_SERVER_ERROR, detail="MOBILE_APP_KEY manquante côté serveur"
        )
    if not x_app_key or not secrets.compare_digest(x_app_key, expected):
        raise Forbidden("Clé app invalide", code="invalid_app_key")


@router.post("/register", dependencies=[Depends(require_app_key)])
def register_device(
    p: DeviceRegisterPayload, response: Response, devices: DeviceService = devices_dep
):
    """Upsert par `installationId`: 201 à la création, 200 à la mise à jour."""
    _, created = devices.register(p.changes())
    response.status_code = HTTP_CREATED if created else HTTP_OK
    return {"ok": True, "created": created, "updated": not created}


@router.post("/ping", dependencies=[Depends(require_app_key)])
def ping_device(p: DeviceRegisterPayload, devices: DeviceService = devices_dep):
    devices.ping(p.changes())
    return {"ok": True}


@router.get("/public-count", dependencies=[Depends(require_app_key)])
def public_device_count(
    active_days: int = Query(DEFAULT_ACTIVE_DAYS, alias="activeDays"),
    hint: str | None = commune_hint_dep,
    devices: DeviceService = devices_dep,
):
    return devices.public_count(hint, active_days)


@router.get("/count")
def device_count(
    active_days: int = Query(DEFAULT_ACTIVE_DAYS, alias="activeDays"),
    hint: str | None = commune_hint_dep,
    identity: CallerIdentity = panel_dep,
    devices: DeviceService = devices_dep,
):
    """Compteurs du tableau de bord; `countAll` et `activeAll` ignorent le filtre de commune."""
    return devices.panel_count(identity, hint, active_days)


@router.get("")
def list_devices(
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100, alias="pageSize"),
    hint: str | None = commune_hint_dep,
    identity: CallerIdentity = panel_dep,
    devices: DeviceService = devices_dep,
):
    return devices.list(
        identity, hint, page=page, page_size=min(page_size, container.settings.MAX_PAGE_SIZE)
    )
