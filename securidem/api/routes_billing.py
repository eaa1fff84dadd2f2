"""
Routes des abonnements et des factures.

Le catalogue d'offres et les actions d'abonnement sont réservés au superadmin; un compte peut lire
ses propres factures.
"""

from fastapi import APIRouter, Depends, status

from securidem.api.deps import (
    current_identity_dep,
    get_invoice_service,
    get_subscription_service,
    superadmin_dep,
)
from securidem.api.schemas import InvoicePayload, SubscriptionStartPayload
from securidem.domain.billing import PLANS, InvoiceService, SubscriptionService, invoice_summary
from securidem.domain.entities import CallerIdentity

router = APIRouter(prefix="/api", tags=["billing"])
subscriptions_dep = Depends(get_subscription_service)
invoices_dep = Depends(get_invoice_service)


@router.get("/subscriptions/plans")
def list_plans(identity: CallerIdentity = superadmin_dep):
    return {"plans": [p.model_dump() for p in PLANS]}


@router.post("/subscriptions/{user_id}/start")
def start_subscription(
    user_id: str,
    p: SubscriptionStartPayload | None = None,
    identity: CallerIdentity = superadmin_dep,
    subscriptions: SubscriptionService = subscriptions_dep,
):
    return subscriptions.start(user_id, p.plan_id if p else None)


@router.post("/subscriptions/{user_id}/renew")
def renew_subscription(
    user_id: str,
    identity: CallerIdentity = superadmin_dep,
    subscriptions: SubscriptionService = subscriptions_dep,
):
    return subscriptions.renew(user_id)


@router.post("/subscriptions/{user_id}/cancel")
def cancel_subscription(
    user_id: str,
    identity: CallerIdentity = superadmin_dep,
    subscriptions: SubscriptionService = subscriptions_dep,
):
    return subscriptions.cancel(user_id)


@router.post("/invoices", status_code=status.HTTP_201_CREATED)
def create_invoice(
    p: InvoicePayload,
    identity: CallerIdentity = superadmin_dep,
    invoices: InvoiceService = invoices_dep,
):
    record = invoices.create(identity, p.changes())
    return {"ok": True, "invoice": invoice_summary(record)}


@router.get("/users/{user_id}/invoices")
def user_invoices(
    user_id: str,
    identity: CallerIdentity = superadmin_dep,
    invoices: InvoiceService = invoices_dep,
):
    return {"invoices": invoices.list_for(user_id)}


@router.get("/my-invoices")
def my_invoices(
    identity: CallerIdentity = current_identity_dep, invoices: InvoiceService = invoices_dep
):
    return {"invoices": invoices.list_for(identity.id)}


@router.get("/invoices/{invoice_id}")
def get_invoice(
    invoice_id: str,
    identity: CallerIdentity = current_identity_dep,
    invoices: InvoiceService = invoices_dep,
):
    return invoices.get(identity, invoice_id)
