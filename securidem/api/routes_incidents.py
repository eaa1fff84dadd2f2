"""
Routes des incidents: signalement public, traitement par le panel.
"""

from fastapi import APIRouter, Depends, Query, status

from securidem.api.deps import commune_hint_dep, get_incident_service, panel_dep
from securidem.api.schemas import IncidentPayload, IncidentUpdatePayload
from securidem.domain.entities import CallerIdentity
from securidem.domain.incidents import IncidentService

router = APIRouter(prefix="/api/incidents", tags=["incidents"])
incidents_dep = Depends(get_incident_service)


@router.post("", status_code=status.HTTP_201_CREATED)
def report_incident(
    p: IncidentPayload,
    hint: str | None = commune_hint_dep,
    incidents: IncidentService = incidents_dep,
):
    return incidents.report(p.changes(), hint)


@router.get("")
def list_incidents(
    period: int | None = Query(None),
    device_id: str | None = Query(None, alias="deviceId"),
    status_: str | None = Query(None, alias="status"),
    hint: str | None = commune_hint_dep,
    identity: CallerIdentity = panel_dep,
    incidents: IncidentService = incidents_dep,
):
    return incidents.list(identity, hint, period=period, device_id=device_id, status=status_)


@router.get("/count")
def count_incidents(
    period: int | None = Query(None),
    hint: str | None = commune_hint_dep,
    identity: CallerIdentity = panel_dep,
    incidents: IncidentService = incidents_dep,
):
    return {"total": incidents.count(identity, hint, period)}


@router.get("/{incident_id}")
def get_incident(
    incident_id: str,
    hint: str | None = commune_hint_dep,
    identity: CallerIdentity = panel_dep,
    incidents: IncidentService = incidents_dep,
):
    return incidents.get(identity, incident_id, hint)


@router.put("/{incident_id}")
def update_incident(
    incident_id: str,
    p: IncidentUpdatePayload,
    hint: str | None = commune_hint_dep,
    identity: CallerIdentity = panel_dep,
    incidents: IncidentService = incidents_dep,
):
    return incidents.update(identity, incident_id, p.changes(), hint)


@router.delete("/{incident_id}")
def delete_incident(
    incident_id: str,
    hint: str | None = commune_hint_dep,
    identity: CallerIdentity = panel_dep,
    incidents: IncidentService = incidents_dep,
):
    incidents.delete(identity, incident_id, hint)
    return {"ok": True}
