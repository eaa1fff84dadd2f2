"""Dépendances partagées pour les routes de l'API.

But du module
-------------
- Construire les services métier à partir du conteneur (dépôts courants, configuration).
- Résoudre l'identité de l'appelant (obligatoire ou optionnelle) et le rôle minimal exigé.
- Extraire l'indice de commune: en-tête `x-commune-id`, sinon paramètre `communeId`, sinon
  `communeId` du corps pour les routes qui en acceptent un.

Les services sont reconstruits à chaque requête: ils ne portent pas d'état, et les tests peuvent
remplacer `container.repos` sans rien réinitialiser d'autre.
"""

import structlog
from fastapi import Depends, Header, Query

from securidem.core.container import container
from securidem.core.http_constants import COMMUNE_HEADER
from securidem.domain.accounts import AccountService, TokenIssuer
from securidem.domain.billing import InvoiceService, SubscriptionService
from securidem.domain.communes import CommuneResolver, CommuneService
from securidem.domain.content import ContentKind, ContentService
from securidem.domain.devices import DeviceService
from securidem.domain.entities import CallerIdentity, Role, has_min_role
from securidem.domain.errors import DomainError, Forbidden
from securidem.domain.incidents import IncidentService
from securidem.domain.session import AccountDirectory, SessionResolver

log = structlog.get_logger(__name__)


def get_resolver() -> CommuneResolver:
    return CommuneResolver(container.communes)


def get_directory() -> AccountDirectory:
    return AccountDirectory(container.users, container.admins)


def get_session_resolver() -> SessionResolver:
    s = container.settings
    return SessionResolver(get_directory(), s.JWT_SECRET, s.JWT_ALG)


def get_account_service() -> AccountService:
    s = container.settings
    issuer = TokenIssuer(s.JWT_SECRET, s.JWT_ALG, s.JWT_EXPIRES_MIN)
    return AccountService(get_directory(), get_resolver(), issuer)


def get_commune_service() -> CommuneService:
    return CommuneService(container.communes, get_resolver())


def get_incident_service() -> IncidentService:
    return IncidentService(container.repo("incidents"), get_resolver())


def get_device_service() -> DeviceService:
    return DeviceService(container.repo("devices"), get_resolver())


def get_subscription_service() -> SubscriptionService:
    return SubscriptionService(get_directory())


def get_invoice_service() -> InvoiceService:
    return InvoiceService(container.repo("invoices"), get_directory())


def content_service_for(kind: ContentKind):
    """Fabrique de dépendance renvoyant le service d'un type de contenu."""

    def _service() -> ContentService:
        return ContentService(
            kind,
            container.repo(kind.collection),
            get_resolver(),
            container.settings.DEFAULT_PUBLISHER,
        )

    return _service


def get_current_identity(authorization: str | None = Header(None)) -> CallerIdentity:
    """Identité de l'appelant authentifié (401/403 avec un code stable sinon)."""
    identity = get_session_resolver().resolve(authorization)
    structlog.contextvars.bind_contextvars(caller=identity.id, role=identity.role.value)
    return identity


def get_optional_identity(authorization: str | None = Header(None)) -> CallerIdentity | None:
    """Identité si un jeton valide est fourni; sinon l'appelant est traité comme public."""
    if not authorization:
        return None
    try:
        return get_current_identity(authorization)
    except DomainError as err:
        log.info("optional_auth_ignored", code=err.code)
        return None


def require_min_role(minimum: Role):
    """Dépendance exigeant au moins le rôle `minimum`."""

    def _check(identity: CallerIdentity = Depends(get_current_identity)) -> CallerIdentity:
        if not has_min_role(identity.role, minimum):
            raise Forbidden("Rôle insuffisant", code="role_required")
        return identity

    return _check


def commune_hint(
    x_commune_id: str | None = Header(None, alias=COMMUNE_HEADER),
    commune_id: str | None = Query(None, alias="communeId"),
) -> str | None:
    """Indice de commune de la requête: en-tête prioritaire sur le paramètre de requête."""
    return (x_commune_id or "").strip() or (commune_id or "").strip() or None


def hint_with_body(hint: str | None, body_commune_id: str | None) -> str | None:
    """Complète l'indice par le `communeId` du corps, utilisé en dernier recours."""
    return hint or (body_commune_id or "").strip() or None


current_identity_dep = Depends(get_current_identity)
optional_identity_dep = Depends(get_optional_identity)
panel_dep = Depends(require_min_role(Role.ADMIN))
superadmin_dep = Depends(require_min_role(Role.SUPERADMIN))
commune_hint_dep = Depends(commune_hint)
