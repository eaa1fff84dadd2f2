"""
Routes des communes: liste publique pour l'application mobile, gestion pour le superadmin.
"""

from fastapi import APIRouter, Depends, Query, Response, status

from securidem.api.deps import get_commune_service, superadmin_dep
from securidem.api.schemas import CommunePayload
from securidem.core.http_constants import NO_STORE
from securidem.domain.communes import CommuneService
from securidem.domain.entities import CallerIdentity

router = APIRouter(tags=["communes"])
communes_dep = Depends(get_commune_service)


@router.get("/communes")
def public_communes(
    response: Response,
    q: str | None = Query(None),
    communes: CommuneService = communes_dep,
):
    """Communes actives, jamais mises en cache (l'app doit voir les nouvelles immédiatement)."""
    response.headers["Cache-Control"] = NO_STORE
    return communes.list_public(q)


@router.get("/api/communes")
def list_communes(
    response: Response,
    identity: CallerIdentity = superadmin_dep,
    communes: CommuneService = communes_dep,
):
    response.headers["Cache-Control"] = NO_STORE
    return communes.list_all()


@router.post("/api/communes", status_code=status.HTTP_201_CREATED)
def create_commune(
    p: CommunePayload,
    identity: CallerIdentity = superadmin_dep,
    communes: CommuneService = communes_dep,
):
    return communes.create(
        p.model_dump(by_alias=True),
        created_by={"createdById": identity.id, "createdByEmail": identity.email},
    )


@router.delete("/api/communes/{commune_id}")
def delete_commune(
    commune_id: str,
    identity: CallerIdentity = superadmin_dep,
    communes: CommuneService = communes_dep,
):
    communes.delete(commune_id)
    return {"ok": True}
