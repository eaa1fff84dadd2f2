"""
Module d'authentification et de gestion des tokens.

Ce module fournit les fonctions pour le hachage des mots de passe, la création et validation des
tokens JWT, et l'extraction des revendications (claims) utiles à la résolution de session.
"""

from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError
from passlib.context import CryptContext
from pydantic import BaseModel, ConfigDict

from securidem.domain.errors import INVALID_TOKEN, TOKEN_EXPIRED, Unauthenticated

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Deux noms historiques pour la version de session
SESSION_VERSION_CLAIMS = ("tokenVersion", "sessionVersion")


class TokenClaims(BaseModel):
    """Données contenues dans un token JWT."""

    model_config = ConfigDict(extra="ignore")

    sub: str | None = None
    email: str | None = None
    role: str | None = None
    commune_id: str | None = None
    session_version: int | None = None
    impersonated: bool = False
    original_user_id: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "TokenClaims":
        """Normalise un payload décodé (id/_id/sub, noms historiques de version)."""
        subject = data.get("id") or data.get("_id") or data.get("sub")
        version = None
        for name in SESSION_VERSION_CLAIMS:
            if data.get(name) is not None:
                version = data[name]
                break
        try:
            version = int(version) if version is not None else None
        except (TypeError, ValueError) as err:
            raise Unauthenticated("Version de session illisible", code=INVALID_TOKEN) from err
        return cls(
            sub=str(subject) if subject else None,
            email=data.get("email"),
            role=data.get("role"),
            commune_id=data.get("communeId"),
            session_version=version,
            impersonated=bool(data.get("impersonated", False)),
            original_user_id=data.get("originalUserId"),
        )


def hash_password(p: str) -> str:
    """Hache un mot de passe en utilisant PBKDF2."""
    return pwd_context.hash(p)


def verify_password(p: str, h: str) -> bool:
    """Vérifie un mot de passe contre son hash (faux si le hash est vide ou illisible)."""
    if not h:
        return False
    try:
        return pwd_context.verify(p, h)
    except ValueError:
        return False


def create_access_token(
    secret: str, alg: str, expires_min: int, payload: dict[str, Any]
) -> str:
    """Crée un token JWT d'accès avec expiration."""
    to_encode = payload.copy()
    expire = datetime.now(UTC) + timedelta(minutes=expires_min)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, secret, algorithm=alg)


def decode_token(token: str, secret: str, alg: str) -> TokenClaims:
    """Décode et valide un token JWT.

    Raises:
        Unauthenticated: `token_expired` si expiré, `invalid_token` sinon.
    """
    try:
        data = jwt.decode(token, secret, algorithms=[alg])
    except ExpiredSignatureError as err:
        raise Unauthenticated("Token expiré", code=TOKEN_EXPIRED) from err
    except InvalidTokenError as err:
        raise Unauthenticated("Token invalide", code=INVALID_TOKEN) from err
    claims = TokenClaims.from_payload(data)
    if not claims.sub and not claims.email:
        raise Unauthenticated("Token invalide - identifiant manquant", code=INVALID_TOKEN)
    return claims


def claims_for(account: dict[str, Any], **extra: Any) -> dict[str, Any]:
    """Payload JWT émis pour un compte (id, email, rôle, commune, version de session)."""
    payload = {
        "id": account["id"],
        "email": account.get("email", ""),
        "role": account.get("role", "user"),
        "communeId": account.get("communeId", ""),
        "tokenVersion": int(account.get("tokenVersion") or 0),
    }
    payload.update(extra)
    return payload
