# Schémas Pydantic exposés par l'API (corps de requêtes et quelques réponses).
#
# Les clés JSON sont en camelCase (alias générés); les routes transmettent aux services
# `model_dump(by_alias=True, exclude_unset=True)` pour distinguer "absent" de "vide".

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def changes(self) -> dict:
        """Champs fournis par le client, clés camelCase."""
        return self.model_dump(by_alias=True, exclude_unset=True)


# --- Authentification ---
class LoginPayload(CamelModel):
    """Identifiants de connexion (email insensible à la casse)."""

    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    token: str


class ChangePasswordPayload(CamelModel):
    old_password: str
    new_password: str


# --- Administrateurs ---
class AdminCreatePayload(CamelModel):
    name: str = ""
    email: EmailStr
    password: str
    role: str = "admin"
    commune_id: str = ""
    commune_name: str = ""
    photo: str = ""


class AdminUpdatePayload(CamelModel):
    name: str | None = None
    email: EmailStr | None = None
    role: str | None = None
    commune_id: str | None = None
    commune_name: str | None = None
    photo: str | None = None


class SelfUpdatePayload(CamelModel):
    name: str | None = None
    commune_name: str | None = None
    photo: str | None = None


class ToggleActivePayload(CamelModel):
    active: bool


class ResetPasswordPayload(CamelModel):
    new_password: str


# --- Communes ---
class CommunePayload(CamelModel):
    name: str = ""
    slug: str = ""
    code: str = ""
    region: str = ""
    image_url: str = ""
    active: bool = True


# --- Contenus ---
class ScopedPayload(CamelModel):
    """Champs communs aux contenus: portée, priorité et fenêtre d'affichage.

    Les valeurs d'énumération restent des chaînes ici; elles sont validées par le domaine pour
    renvoyer une erreur `invalid_*` explicite plutôt qu'une coercition silencieuse.
    """

    visibility: str | None = None
    commune_id: str | None = None
    audience_communes: list[str] | None = None
    priority: str | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None


class ArticlePayload(ScopedPayload):
    title: str | None = None
    content: str | None = None
    image_url: str | None = None
    category: str | None = None
    status: str | None = None
    published_at: datetime | None = None
    author_name: str | None = None
    publisher: str | None = None
    source_url: str | None = None


class NotificationPayload(ScopedPayload):
    title: str | None = None
    message: str | None = None
    is_read: bool | None = None


class Location(CamelModel):
    name: str = ""
    address: str = ""
    lat: float | None = None
    lng: float | None = None


class InfoPayload(ScopedPayload):
    title: str | None = None
    content: str | None = None
    image_url: str | None = None
    category: str | None = None
    location: Location | None = None
    is_read: bool | None = None


class ProjectPayload(ScopedPayload):
    name: str | None = None
    description: str | None = None
    image_url: str | None = None


class CommuneHintPayload(CamelModel):
    """Corps optionnel portant l'indice de commune (clients mobiles)."""

    commune_id: str | None = None


# --- Incidents ---
class IncidentPayload(CamelModel):
    """Signalement citoyen; les champs requis sont contrôlés par le domaine (400)."""

    title: str | None = None
    description: str | None = None
    lieu: str | None = None
    status: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    adresse: str | None = None
    admin_comment: str | None = None
    device_id: str | None = None
    user_id: str | None = None
    media_url: str | None = None
    media_type: str | None = None


class IncidentUpdatePayload(CamelModel):
    status: str | None = None
    admin_comment: str | None = None
    message: str | None = None


# --- Appareils ---
class DeviceRegisterPayload(CamelModel):
    installation_id: str = ""
    platform: str = ""
    brand: str = ""
    model: str = ""
    os_version: str = ""
    app_version: str = ""
    push_token: str = ""
    user_id: str | None = None
    commune_id: str | None = None
    commune_name: str | None = None


# --- Abonnements et factures ---
class SubscriptionStartPayload(CamelModel):
    plan_id: str | None = None


class InvoiceItemPayload(CamelModel):
    description: str = ""
    quantity: float = Field(default=1, ge=0)
    unit_price: float = 0


class InvoicePayload(CamelModel):
    user_id: str
    items: list[InvoiceItemPayload] = []
    tax_rate: float = Field(default=0, ge=0)
    currency: str = "EUR"
    status: str = "unpaid"
    issue_date: datetime | None = None
    due_date: datetime | None = None
    period_start: datetime | None = None
    period_end: datetime | None = None
    plan_id: str = ""
    notes: str = ""
