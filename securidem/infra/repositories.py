"""
Repositories pour la gestion des documents.

Ce module fournit un magasin de documents générique (une instance par collection), avec une
version en mémoire et une version Redis. Les filtres sont des `Predicate` évalués côté adaptateur.
"""

import json
import re
import secrets
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

import redis

from securidem.domain.entities import utcnow
from securidem.domain.predicates import All, Predicate

_STORE_ID_RE = re.compile(r"^[0-9a-f]{24}$")

SortKey = str | Callable[[dict[str, Any]], Any]
Sort = Iterable[tuple[SortKey, bool]]


def new_id() -> str:
    """Génère un identifiant de document (24 caractères hexadécimaux)."""
    return secrets.token_hex(12)


def is_store_id(value: str | None) -> bool:
    """Vrai si la valeur a le format d'un identifiant de document."""
    return bool(value) and bool(_STORE_ID_RE.match(str(value).strip().lower()))


def _sort_docs(docs: list[dict[str, Any]], sort: Sort | None) -> list[dict[str, Any]]:
    if not sort:
        return docs
    for key, descending in reversed(list(sort)):
        getter = key if callable(key) else (lambda d, k=key: d.get(k))

        def _key(doc, getter=getter):
            value = getter(doc)
            # Les valeurs nulles passent en dernier, quel que soit le sens.
            rank = (value is not None) if descending else (value is None)
            return (rank, value if value is not None else 0)

        docs.sort(key=_key, reverse=descending)
    return docs


class _DocumentRepo:
    """Opérations de requête communes; les sous-classes gèrent le stockage brut."""

    def __init__(self, collection: str):
        self.collection = collection

    # --- stockage brut ---
    def _load(self, doc_id: str) -> dict[str, Any] | None:  # pragma: no cover - abstract
        raise NotImplementedError

    def _store(self, doc: dict[str, Any]) -> None:  # pragma: no cover - abstract
        raise NotImplementedError

    def _remove(self, doc_id: str) -> bool:  # pragma: no cover - abstract
        raise NotImplementedError

    def _scan(self) -> list[dict[str, Any]]:  # pragma: no cover - abstract
        raise NotImplementedError

    # --- API publique ---
    def get(self, doc_id: str) -> dict[str, Any] | None:
        """Retourne un document par id, ou None s'il est absent."""
        if not doc_id:
            return None
        return self._load(str(doc_id))

    def find(
        self,
        predicate: Predicate | None = None,
        sort: Sort | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Liste les documents satisfaisant le prédicat, triés puis paginés."""
        pred = predicate or All()
        docs = _sort_docs([d for d in self._scan() if pred.matches(d)], sort)
        if skip:
            docs = docs[skip:]
        if limit is not None:
            docs = docs[:limit]
        return docs

    def find_one(self, predicate: Predicate) -> dict[str, Any] | None:
        """Premier document satisfaisant le prédicat."""
        return next((d for d in self._scan() if predicate.matches(d)), None)

    def count(self, predicate: Predicate | None = None) -> int:
        pred = predicate or All()
        return sum(1 for d in self._scan() if pred.matches(d))

    def insert(self, doc: dict[str, Any]) -> dict[str, Any]:
        """Crée un document (id et horodatages ajoutés s'ils manquent)."""
        record = dict(doc)
        record.setdefault("id", new_id())
        now = utcnow()
        record.setdefault("createdAt", now)
        record["updatedAt"] = now
        self._store(record)
        return record

    def save(self, doc: dict[str, Any]) -> dict[str, Any]:
        """Enregistre/écrase un document complet."""
        record = dict(doc)
        record["updatedAt"] = utcnow()
        self._store(record)
        return record

    def update(self, doc_id: str, changes: dict[str, Any]) -> dict[str, Any] | None:
        """Applique `changes` (sémantique $set) et renvoie le document à jour."""
        current = self.get(doc_id)
        if current is None:
            return None
        current.update(changes)
        return self.save(current)

    def update_many(self, predicate: Predicate, changes: dict[str, Any]) -> tuple[int, int]:
        """Met à jour tous les documents ciblés; renvoie (trouvés, modifiés)."""
        matched = modified = 0
        for doc in self.find(predicate):
            matched += 1
            if any(doc.get(k) != v for k, v in changes.items()):
                doc.update(changes)
                self.save(doc)
                modified += 1
        return matched, modified

    def delete(self, doc_id: str) -> bool:
        """Supprime définitivement un document."""
        if not doc_id:
            return False
        return self._remove(str(doc_id))


class InMemoryDocumentRepo(_DocumentRepo):
    """
    Dépôt de documents en mémoire (utilisé pour dev/tests).

    Stocke les enregistrements dans un dict local, non persistant.
    """

    def __init__(self, collection: str):
        """Initialise une base mémoire vide."""
        super().__init__(collection)
        self._db: dict[str, dict[str, Any]] = {}

    def _load(self, doc_id: str) -> dict[str, Any] | None:
        doc = self._db.get(doc_id)
        return dict(doc) if doc is not None else None

    def _store(self, doc: dict[str, Any]) -> None:
        self._db[doc["id"]] = dict(doc)

    def _remove(self, doc_id: str) -> bool:
        return self._db.pop(doc_id, None) is not None

    def _scan(self) -> list[dict[str, Any]]:
        return [dict(d) for d in self._db.values()]


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return {"$date": value.isoformat()}
    raise TypeError(f"Type non sérialisable: {type(value).__name__}")


def _decode(obj: dict[str, Any]) -> Any:
    if set(obj) == {"$date"}:
        return datetime.fromisoformat(obj["$date"])
    return obj


class RedisDocumentRepo(_DocumentRepo):
    """Dépôt de documents adossé à Redis (clé: `{collection}:{id}`, index `{collection}:ids`)."""

    def __init__(self, url: str, collection: str):
        """Crée un client Redis à partir de l'URL fournie."""
        super().__init__(collection)
        self.client = redis.Redis.from_url(url, decode_responses=True)
        self.idx_key = f"{collection}:ids"

    def _key(self, doc_id: str) -> str:
        return f"{self.collection}:{doc_id}"

    def _load(self, doc_id: str) -> dict[str, Any] | None:
        raw = self.client.get(self._key(doc_id))
        return json.loads(raw, object_hook=_decode) if raw else None

    def _store(self, doc: dict[str, Any]) -> None:
        pipe = self.client.pipeline()
        pipe.set(self._key(doc["id"]), json.dumps(doc, default=_encode))
        pipe.sadd(self.idx_key, doc["id"])
        pipe.execute()

    def _remove(self, doc_id: str) -> bool:
        pipe = self.client.pipeline()
        pipe.delete(self._key(doc_id))
        pipe.srem(self.idx_key, doc_id)
        deleted, _ = pipe.execute()
        return bool(deleted)

    def _scan(self) -> list[dict[str, Any]]:
        ids = sorted(self.client.smembers(self.idx_key) or [])
        if not ids:
            return []
        raws = self.client.mget([self._key(i) for i in ids])
        return [json.loads(raw, object_hook=_decode) for raw in raws if raw]
