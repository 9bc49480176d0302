"""
The eight question aggregates.

Two purposes (exact counts, random draws) times four scopes (global, theme,
subtheme, group). The registry dispatches on ScopeKind / IndexPurpose so
callers never pick an index by probing optional question fields.
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterator, Mapping
from enum import Enum

from sqlalchemy.orm import sessionmaker

from config import Settings
from questionbank.aggregates.base import AggregateIndex, IndexPurpose, ScopeKind
from questionbank.aggregates.memory import InMemoryAggregateIndex
from questionbank.aggregates.sql import SqlAggregateIndex


class AggregateName(str, Enum):
    TOTAL_COUNT = "question_count_total"
    COUNT_BY_THEME = "question_count_by_theme"
    COUNT_BY_SUBTHEME = "question_count_by_subtheme"
    COUNT_BY_GROUP = "question_count_by_group"
    RANDOM_GLOBAL = "random_questions"
    RANDOM_BY_THEME = "random_questions_by_theme"
    RANDOM_BY_SUBTHEME = "random_questions_by_subtheme"
    RANDOM_BY_GROUP = "random_questions_by_group"


AGGREGATE_SPECS: dict[AggregateName, tuple[ScopeKind, IndexPurpose]] = {
    AggregateName.TOTAL_COUNT: (ScopeKind.GLOBAL, IndexPurpose.COUNT),
    AggregateName.COUNT_BY_THEME: (ScopeKind.THEME, IndexPurpose.COUNT),
    AggregateName.COUNT_BY_SUBTHEME: (ScopeKind.SUBTHEME, IndexPurpose.COUNT),
    AggregateName.COUNT_BY_GROUP: (ScopeKind.GROUP, IndexPurpose.COUNT),
    AggregateName.RANDOM_GLOBAL: (ScopeKind.GLOBAL, IndexPurpose.RANDOM),
    AggregateName.RANDOM_BY_THEME: (ScopeKind.THEME, IndexPurpose.RANDOM),
    AggregateName.RANDOM_BY_SUBTHEME: (ScopeKind.SUBTHEME, IndexPurpose.RANDOM),
    AggregateName.RANDOM_BY_GROUP: (ScopeKind.GROUP, IndexPurpose.RANDOM),
}

IndexFactory = Callable[[str, ScopeKind, IndexPurpose], AggregateIndex]


class AggregateRegistry:
    """Holds the eight aggregate indexes in a fixed order."""

    def __init__(self, indexes: Mapping[AggregateName, AggregateIndex]):
        missing = [name.value for name in AggregateName if name not in indexes]
        if missing:
            raise ValueError(f"Aggregate registry is missing indexes: {', '.join(missing)}")
        self._indexes = {name: indexes[name] for name in AggregateName}

    @classmethod
    def build(cls, factory: IndexFactory) -> AggregateRegistry:
        return cls(
            {
                name: factory(name.value, scope, purpose)
                for name, (scope, purpose) in AGGREGATE_SPECS.items()
            }
        )

    @classmethod
    def in_memory(cls, rng: random.Random | None = None) -> AggregateRegistry:
        return cls.build(lambda name, scope, purpose: InMemoryAggregateIndex(name, scope, purpose, rng=rng))

    @classmethod
    def sql(cls, session_factory: sessionmaker) -> AggregateRegistry:
        return cls.build(
            lambda name, scope, purpose: SqlAggregateIndex(name, scope, purpose, session_factory)
        )

    def get(self, name: AggregateName | str) -> AggregateIndex:
        return self._indexes[AggregateName(name)]

    def find(self, scope: ScopeKind, purpose: IndexPurpose) -> AggregateIndex:
        for index in self._indexes.values():
            if index.scope is scope and index.purpose is purpose:
                return index
        raise KeyError(f"No {purpose.value} aggregate for scope {scope.value}")

    def counter(self, scope: ScopeKind) -> AggregateIndex:
        return self.find(scope, IndexPurpose.COUNT)

    def random_pool(self, scope: ScopeKind) -> AggregateIndex:
        return self.find(scope, IndexPurpose.RANDOM)

    def for_scope(self, scope: ScopeKind) -> list[AggregateIndex]:
        """Both indexes (count and random) scoped by one taxonomy level."""
        return [index for index in self._indexes.values() if index.scope is scope]

    def __iter__(self) -> Iterator[AggregateIndex]:
        return iter(self._indexes.values())

    def __len__(self) -> int:
        return len(self._indexes)


def build_registry(settings: Settings, session_factory: sessionmaker | None = None) -> AggregateRegistry:
    """Create the registry for the configured aggregate backend."""
    if settings.uses_sql_aggregates():
        if session_factory is None:
            raise ValueError("SQL aggregates require a session factory")
        return AggregateRegistry.sql(session_factory)
    return AggregateRegistry.in_memory()
