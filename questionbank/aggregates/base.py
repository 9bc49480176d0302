"""
Aggregate index contract.

An aggregate index holds one summary entry per question it scopes, grouped
into namespaces (one namespace per theme, subtheme or group, or the single
"global" namespace). The index answers exact counts and approximately
uniform random draws per namespace.

Which field scopes an index is modelled explicitly as a ScopeKind rather
than inferred from optional question attributes.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

GLOBAL_NAMESPACE = "global"


class ScopeKind(str, Enum):
    """The taxonomy level an index (or a user counter) is scoped by."""

    GLOBAL = "global"
    THEME = "theme"
    SUBTHEME = "subtheme"
    GROUP = "group"

    @property
    def field(self) -> str | None:
        """Question attribute holding this scope's identifier."""
        return _SCOPE_FIELDS[self]

    def namespace_for(self, question: Any) -> str | None:
        """
        Namespace a question falls into for this scope.

        Returns None when the question lacks the scope field (no entry
        should exist for it).
        """
        if self is ScopeKind.GLOBAL:
            return GLOBAL_NAMESPACE
        return getattr(question, self.field, None) or None


_SCOPE_FIELDS: dict[ScopeKind, str | None] = {
    ScopeKind.GLOBAL: None,
    ScopeKind.THEME: "theme_id",
    ScopeKind.SUBTHEME: "subtheme_id",
    ScopeKind.GROUP: "group_id",
}

FIELD_SCOPES: dict[str, ScopeKind] = {
    field: kind for kind, field in _SCOPE_FIELDS.items() if field is not None
}


class IndexPurpose(str, Enum):
    COUNT = "count"
    RANDOM = "random"


@dataclass(frozen=True)
class SummaryEntry:
    """Projection of a question stored in one aggregate index."""

    question_id: str
    namespace: str

    @classmethod
    def for_scope(cls, question: Any, scope: ScopeKind) -> SummaryEntry | None:
        namespace = scope.namespace_for(question)
        if namespace is None:
            return None
        return cls(question_id=question.id, namespace=namespace)


@dataclass(frozen=True)
class Bounds:
    """Optional range over the entry sort key (the question id)."""

    lower: str | None = None
    upper: str | None = None
    lower_inclusive: bool = True
    upper_inclusive: bool = True

    def contains(self, key: str) -> bool:
        if self.lower is not None:
            if key < self.lower or (key == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if key > self.upper or (key == self.upper and not self.upper_inclusive):
                return False
        return True

    @property
    def is_unbounded(self) -> bool:
        return self.lower is None and self.upper is None


class AggregateIndex(ABC):
    """Named, persistent summary structure over the question table."""

    def __init__(self, name: str, scope: ScopeKind, purpose: IndexPurpose):
        self.name = name
        self.scope = scope
        self.purpose = purpose

    def entry_for(self, question: Any) -> SummaryEntry | None:
        """Summary entry this index holds for a question, if any."""
        return SummaryEntry.for_scope(question, self.scope)

    @abstractmethod
    def insert(self, entry: SummaryEntry) -> None:
        """Add an entry. Raises DuplicateEntryError if already held."""

    @abstractmethod
    def delete(self, entry: SummaryEntry) -> None:
        """Remove an entry. Raises EntryMissingError if absent."""

    @abstractmethod
    def replace(self, old: SummaryEntry, new: SummaryEntry) -> None:
        """Swap an entry for another. Raises EntryMissingError if old is absent."""

    @abstractmethod
    def count(self, namespace: str, bounds: Bounds | None = None) -> int:
        """Exact number of entries in a namespace."""

    @abstractmethod
    def random_sample(self, namespace: str, n: int) -> list[str]:
        """Draw up to n distinct question ids from a namespace."""

    @abstractmethod
    def insert_if_missing(self, entry: SummaryEntry) -> bool:
        """Insert unless already held; returns True when inserted."""

    @abstractmethod
    def clear(self, namespace: str | None = None) -> None:
        """Drop every entry, or only those of one namespace."""

    @abstractmethod
    def namespaces(self) -> list[str]:
        """Namespaces currently holding at least one entry."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} scope={self.scope.value} purpose={self.purpose.value}>"
