"""Prédicats abstraits sur les documents stockés.

Le cœur émet un arbre ET/OU de conditions (égalité, appartenance, bornes nullables...) que chaque
adaptateur de stockage sait évaluer. Les dépôts en mémoire et Redis appellent `matches(doc)`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any


def _fold(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class Predicate:
    """Condition booléenne sur un document (dict)."""

    def matches(self, doc: Mapping[str, Any]) -> bool:  # pragma: no cover - abstract
        raise NotImplementedError

    def __and__(self, other: Predicate) -> Predicate:
        return And.of(self, other)

    def __or__(self, other: Predicate) -> Predicate:
        return Or.of(self, other)


@dataclass(frozen=True)
class All(Predicate):
    """Toujours vrai (aucun filtre)."""

    def matches(self, doc: Mapping[str, Any]) -> bool:
        return True


@dataclass(frozen=True)
class Eq(Predicate):
    field: str
    value: Any

    def matches(self, doc: Mapping[str, Any]) -> bool:
        return doc.get(self.field) == self.value


@dataclass(frozen=True)
class In(Predicate):
    """Champ scalaire appartenant à un ensemble (comparaison insensible à la casse si `fold`)."""

    field: str
    values: frozenset
    fold: bool = False

    def matches(self, doc: Mapping[str, Any]) -> bool:
        value = doc.get(self.field)
        if self.fold:
            value = _fold(value)
        return value in self.values


@dataclass(frozen=True)
class AnyIn(Predicate):
    """Champ liste dont au moins un élément appartient à l'ensemble."""

    field: str
    values: frozenset
    fold: bool = False

    def matches(self, doc: Mapping[str, Any]) -> bool:
        items = doc.get(self.field) or []
        if isinstance(items, str):
            items = [items]
        for item in items:
            if (_fold(item) if self.fold else item) in self.values:
                return True
        return False


@dataclass(frozen=True)
class Lte(Predicate):
    """`field <= bound`; une valeur absente/nulle vaut `null_ok`."""

    field: str
    bound: Any
    null_ok: bool = False

    def matches(self, doc: Mapping[str, Any]) -> bool:
        value = doc.get(self.field)
        if value is None:
            return self.null_ok
        return value <= self.bound


@dataclass(frozen=True)
class Gte(Predicate):
    """`field >= bound`; une valeur absente/nulle vaut `null_ok`."""

    field: str
    bound: Any
    null_ok: bool = False

    def matches(self, doc: Mapping[str, Any]) -> bool:
        value = doc.get(self.field)
        if value is None:
            return self.null_ok
        return value >= self.bound


@dataclass(frozen=True)
class Exists(Predicate):
    field: str
    present: bool = True

    def matches(self, doc: Mapping[str, Any]) -> bool:
        return (doc.get(self.field) not in (None, "")) is self.present


@dataclass(frozen=True)
class Match(Predicate):
    """Sous-chaîne insensible à la casse dans l'un des champs."""

    fields: tuple[str, ...]
    text: str

    def matches(self, doc: Mapping[str, Any]) -> bool:
        needle = self.text.strip().lower()
        if not needle:
            return True
        return any(needle in str(doc.get(f) or "").lower() for f in self.fields)


@dataclass(frozen=True)
class And(Predicate):
    parts: tuple[Predicate, ...]

    @classmethod
    def of(cls, *parts: Predicate) -> Predicate:
        flat: list[Predicate] = []
        for part in parts:
            if isinstance(part, All):
                continue
            flat.extend(part.parts if isinstance(part, And) else (part,))
        if not flat:
            return All()
        if len(flat) == 1:
            return flat[0]
        return cls(tuple(flat))

    def matches(self, doc: Mapping[str, Any]) -> bool:
        return all(p.matches(doc) for p in self.parts)


@dataclass(frozen=True)
class Or(Predicate):
    parts: tuple[Predicate, ...]

    @classmethod
    def of(cls, *parts: Predicate) -> Predicate:
        flat: list[Predicate] = []
        for part in parts:
            if isinstance(part, All):
                return All()
            flat.extend(part.parts if isinstance(part, Or) else (part,))
        if len(flat) == 1:
            return flat[0]
        return cls(tuple(flat))

    def matches(self, doc: Mapping[str, Any]) -> bool:
        return any(p.matches(doc) for p in self.parts)


def keyset(values: Iterable[str]) -> frozenset:
    """Ensemble de clés normalisées (minuscules, sans vides)."""
    return frozenset(v for v in (_fold(x) for x in values) if v)
