"""Création du premier compte superadmin dans le stockage configuré.

Usage:
  python -m securidem.scripts.create_superadmin --email root@mairie.yt [--name "Direction"]

Le mot de passe est demandé au terminal (jamais passé en argument). Le script refuse d'écraser un
compte existant: pour réinitialiser un mot de passe, passer par le panel.
"""

from __future__ import annotations

import argparse
import getpass
import sys

import structlog

from securidem.core.container import container
from securidem.domain.accounts import MIN_PASSWORD_LENGTH
from securidem.domain.auth import hash_password
from securidem.domain.entities import Role
from securidem.domain.session import AccountDirectory, normalize_email

log = structlog.get_logger(__name__)


def create_superadmin(directory: AccountDirectory, email: str, password: str, name: str = "") -> dict:
    """Insère un superadmin dans `users`; ValueError si l'email est pris ou le mot de passe court."""
    email = normalize_email(email)
    if not email:
        raise ValueError("email requis")
    if len(password.strip()) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"mot de passe trop court (min {MIN_PASSWORD_LENGTH})")
    if directory.email_taken(email):
        raise ValueError(f"un compte existe déjà pour {email}")
    users = directory.repos[0]
    record = users.insert(
        {
            "name": name,
            "email": email,
            "passwordHash": hash_password(password),
            "role": Role.SUPERADMIN.value,
            "communeId": "",
            "isActive": True,
            "tokenVersion": 0,
        }
    )
    log.info("superadmin_created", id=record["id"], storage=container.storage_backend)
    return record


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Crée un compte superadmin")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", default="")
    args = parser.parse_args(argv)
    if container.storage_backend != "redis":
        print("Attention: stockage en mémoire, compte perdu en fin de processus", file=sys.stderr)

    password = getpass.getpass("Mot de passe: ")
    if password != getpass.getpass("Confirmation: "):
        print("Les mots de passe ne correspondent pas", file=sys.stderr)
        return 1
    try:
        record = create_superadmin(
            AccountDirectory(container.users, container.admins), args.email, password, args.name
        )
    except ValueError as err:
        print(f"Échec: {err}", file=sys.stderr)
        return 1
    print(f"Superadmin créé: {record['email']} ({record['id']})")
    return 0


if __name__ == "__main__":  # pragma: no cover - script entry
    sys.exit(main())
