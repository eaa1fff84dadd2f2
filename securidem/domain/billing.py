"""Abonnements des communes et factures."""

from __future__ import annotations

import secrets
from collections.abc import Mapping
from datetime import timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import structlog

from securidem.domain.entities import CallerIdentity, Plan, ensure_aware, utcnow
from securidem.domain.errors import Forbidden, InvalidInput, NotFound
from securidem.domain.predicates import Eq
from securidem.domain.session import AccountDirectory
from securidem.infra.repositories import is_store_id

log = structlog.get_logger(__name__)

PLANS = (
    Plan(id="basic", name="Basic", price=9.9),
    Plan(id="pro", name="Pro", price=19.9),
    Plan(id="premium", name="Premium", price=39.9),
)
SUBSCRIPTION_DAYS = 30
INVOICE_STATUSES = ("paid", "unpaid")
DEFAULT_ITEM = "Licence Securidem"


def find_plan(plan_id: str) -> Plan:
    for plan in PLANS:
        if plan.id == plan_id:
            return plan
    raise InvalidInput(f"Offre inconnue: {plan_id!r}", code="invalid_plan")


def round_cents(value: float | Decimal) -> float:
    """Arrondi au centime (demi vers le haut)."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class SubscriptionService:
    def __init__(self, directory: AccountDirectory):
        self.directory = directory

    def _target(self, user_id: str):
        account = self.directory.by_id(user_id)
        if account is None:
            raise NotFound("Utilisateur introuvable")
        return account

    def _state(self, doc: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "ok": True,
            "status": doc.get("subscriptionStatus", "none"),
            "subscriptionEndAt": doc.get("subscriptionEndAt"),
            "planId": doc.get("subscriptionPlan", ""),
        }

    def start(self, user_id: str, plan_id: str | None = None) -> dict[str, Any]:
        account = self._target(user_id)
        changes = {
            "subscriptionStatus": "active",
            "subscriptionEndAt": utcnow() + timedelta(days=SUBSCRIPTION_DAYS),
        }
        if plan_id:
            changes["subscriptionPlan"] = find_plan(plan_id).id
        doc = account.repo.update(account.id, changes)
        log.info("subscription_started", user=account.id, plan=changes.get("subscriptionPlan"))
        return self._state(doc)

    def renew(self, user_id: str) -> dict[str, Any]:
        """Prolonge de 30 jours à partir de la fin actuelle, ou de maintenant si déjà échue."""
        account = self._target(user_id)
        now = utcnow()
        current_end = ensure_aware(account.doc.get("subscriptionEndAt"))
        base = max(now, current_end) if current_end else now
        doc = account.repo.update(
            account.id,
            {
                "subscriptionStatus": "active",
                "subscriptionEndAt": base + timedelta(days=SUBSCRIPTION_DAYS),
            },
        )
        log.info("subscription_renewed", user=account.id)
        return self._state(doc)

    def cancel(self, user_id: str) -> dict[str, Any]:
        account = self._target(user_id)
        doc = account.repo.update(
            account.id, {"subscriptionStatus": "none", "subscriptionEndAt": None}
        )
        log.info("subscription_cancelled", user=account.id)
        return self._state(doc)


def invoice_summary(doc: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "id": doc["id"],
        "number": doc["number"],
        "amount": doc["total"],
        "currency": doc["currency"],
        "status": doc["status"],
        "date": doc["issueDate"],
    }


class InvoiceService:
    def __init__(self, repo, directory: AccountDirectory):
        self.repo = repo
        self.directory = directory

    def _number(self, year: int) -> str:
        while True:
            number = f"INV-{year}-{secrets.randbelow(10**6):06d}"
            if self.repo.find_one(Eq("number", number)) is None:
                return number

    def create(self, caller: CallerIdentity, data: Mapping[str, Any]) -> dict[str, Any]:
        """Facture manuelle: montants calculés côté serveur, client figé depuis le compte."""
        user_id = data.get("userId")
        if not is_store_id(user_id):
            raise InvalidInput("userId invalide", code="invalid_user_id")
        account = self.directory.by_id(user_id)
        if account is None:
            raise NotFound("Utilisateur introuvable")
        status = data.get("status") or "unpaid"
        if status not in INVOICE_STATUSES:
            raise InvalidInput(f"Statut inconnu: {status!r}", code="invalid_status")

        items = []
        for raw in data.get("items") or []:
            quantity = max(0.0, float(raw.get("quantity") or 1))
            unit_price = float(raw.get("unitPrice") or 0)
            items.append(
                {
                    "description": str(raw.get("description") or DEFAULT_ITEM),
                    "quantity": quantity,
                    "unitPrice": unit_price,
                    "amount": round_cents(quantity * unit_price),
                }
            )
        tax_rate = float(data.get("taxRate") or 0)
        subtotal = round_cents(sum(Decimal(str(i["amount"])) for i in items))
        tax_amount = round_cents(Decimal(str(subtotal)) * Decimal(str(tax_rate)) / 100)
        issue_date = ensure_aware(data.get("issueDate")) or utcnow()

        doc = {
            "userId": account.id,
            "number": self._number(issue_date.year),
            "status": status,
            "currency": data.get("currency") or "EUR",
            "items": items,
            "subtotal": subtotal,
            "taxRate": tax_rate,
            "taxAmount": tax_amount,
            "total": round_cents(Decimal(str(subtotal)) + Decimal(str(tax_amount))),
            "issueDate": issue_date,
            "dueDate": ensure_aware(data.get("dueDate")),
            "periodStart": ensure_aware(data.get("periodStart")),
            "periodEnd": ensure_aware(data.get("periodEnd")),
            "planId": data.get("planId") or "",
            "notes": data.get("notes") or "",
            "customer": {
                "name": account.doc.get("name", ""),
                "email": account.doc.get("email", ""),
                "communeId": account.doc.get("communeId", ""),
                "communeName": account.doc.get("communeName", ""),
            },
            "createdBy": caller.id,
        }
        record = self.repo.insert(doc)
        log.info("invoice_created", id=record["id"], number=record["number"], total=record["total"])
        return record

    def list_for(self, user_id: str) -> list[dict[str, Any]]:
        docs = self.repo.find(Eq("userId", user_id), sort=[("issueDate", True)])
        return [invoice_summary(d) for d in docs]

    def get(self, caller: CallerIdentity, invoice_id: str) -> dict[str, Any]:
        """Facture lisible par son titulaire ou un superadmin."""
        doc = self.repo.get(invoice_id) if is_store_id(invoice_id) else None
        if doc is None:
            raise NotFound("Facture introuvable")
        if doc["userId"] != caller.id and not caller.is_superadmin:
            raise Forbidden("Accès interdit", code="not_owner")
        return doc
