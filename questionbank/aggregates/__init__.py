"""
Question aggregates: the eight summary indexes over the question table.

Sync, query and repair services live in their own submodules
(questionbank.aggregates.sync, .queries, .repair).
"""

from questionbank.aggregates.base import (
    GLOBAL_NAMESPACE,
    AggregateIndex,
    Bounds,
    IndexPurpose,
    ScopeKind,
    SummaryEntry,
)
from questionbank.aggregates.memory import InMemoryAggregateIndex
from questionbank.aggregates.registry import AGGREGATE_SPECS, AggregateName, AggregateRegistry, build_registry
from questionbank.aggregates.sql import SqlAggregateIndex

__all__ = [
    "GLOBAL_NAMESPACE",
    "AGGREGATE_SPECS",
    "AggregateIndex",
    "AggregateName",
    "AggregateRegistry",
    "Bounds",
    "InMemoryAggregateIndex",
    "IndexPurpose",
    "ScopeKind",
    "SqlAggregateIndex",
    "SummaryEntry",
    "build_registry",
]
