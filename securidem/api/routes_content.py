"""
Routes des contenus multi-communes.

Une seule fabrique `build_content_router` monte les mêmes opérations pour les articles, les
notifications, les infos et les projets; seuls le schéma de corps et le type de contenu changent.
"""

from fastapi import APIRouter, Body, Depends, Query, status

from securidem.api.deps import (
    commune_hint_dep,
    content_service_for,
    hint_with_body,
    optional_identity_dep,
    panel_dep,
)
from securidem.api.schemas import (
    ArticlePayload,
    CommuneHintPayload,
    InfoPayload,
    NotificationPayload,
    ProjectPayload,
    ScopedPayload,
)
from securidem.domain.content import ARTICLE, INFO, NOTIFICATION, PROJECT, ContentKind
from securidem.domain.entities import CallerIdentity

PAYLOADS: dict[str, type[ScopedPayload]] = {
    ARTICLE.name: ArticlePayload,
    NOTIFICATION.name: NotificationPayload,
    INFO.name: InfoPayload,
    PROJECT.name: ProjectPayload,
}


def build_content_router(kind: ContentKind) -> APIRouter:
    """Construit le routeur `/api/{collection}` d'un type de contenu."""
    router = APIRouter(prefix=f"/api/{kind.collection}", tags=[kind.collection])
    service_dep = Depends(content_service_for(kind))
    Payload = PAYLOADS[kind.name]

    @router.get("")
    def list_records(
        period: int | None = Query(None),
        category: str | None = Query(None),
        mine: bool = Query(False),
        hint: str | None = commune_hint_dep,
        identity: CallerIdentity | None = optional_identity_dep,
        service=service_dep,
    ):
        """Fil visible par l'appelant (public: commune indiquée et fenêtre d'affichage)."""
        return service.list(identity, hint, period=period, category=category, mine=mine)

    if kind.readable:

        @router.patch("/mark-all-read")
        def mark_all_read(
            body: CommuneHintPayload | None = Body(None),
            hint: str | None = commune_hint_dep,
            service=service_dep,
        ):
            """Indice: en-tête, puis paramètre `communeId`, puis `communeId` du corps."""
            return service.mark_all_read(hint_with_body(hint, body.commune_id if body else None))

    @router.get("/{record_id}")
    def get_record(
        record_id: str,
        hint: str | None = commune_hint_dep,
        identity: CallerIdentity | None = optional_identity_dep,
        service=service_dep,
    ):
        return service.get(identity, record_id, hint)

    @router.post("", status_code=status.HTTP_201_CREATED)
    def create_record(
        payload: Payload,
        hint: str | None = commune_hint_dep,
        identity: CallerIdentity = panel_dep,
        service=service_dep,
    ):
        return service.create(identity, payload.changes(), hint)

    def _update(record_id: str, payload: Payload, identity: CallerIdentity, service):
        return service.update(identity, record_id, payload.changes())

    @router.patch("/{record_id}")
    def patch_record(
        record_id: str,
        payload: Payload,
        identity: CallerIdentity = panel_dep,
        service=service_dep,
    ):
        return _update(record_id, payload, identity, service)

    @router.put("/{record_id}")
    def put_record(
        record_id: str,
        payload: Payload,
        identity: CallerIdentity = panel_dep,
        service=service_dep,
    ):
        return _update(record_id, payload, identity, service)

    @router.delete("/{record_id}")
    def delete_record(
        record_id: str, identity: CallerIdentity = panel_dep, service=service_dep
    ):
        service.delete(identity, record_id)
        return {"ok": True, "id": record_id}

    return router


content_routers = [build_content_router(k) for k in (ARTICLE, NOTIFICATION, INFO, PROJECT)]
