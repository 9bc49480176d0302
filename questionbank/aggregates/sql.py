"""
SQL-backed aggregate index.

Entries live in the aggregate_entries table. Every call opens its own
session scope, so one index failing never leaves another index's work
half-applied in a shared transaction.
"""

from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from questionbank.aggregates.base import AggregateIndex, Bounds, IndexPurpose, ScopeKind, SummaryEntry
from questionbank.db.database import session_scope
from questionbank.db.models import AggregateEntry
from questionbank.errors import AggregateIndexError, DuplicateEntryError, EntryMissingError


class SqlAggregateIndex(AggregateIndex):
    def __init__(
        self,
        name: str,
        scope: ScopeKind,
        purpose: IndexPurpose,
        session_factory: sessionmaker,
    ):
        super().__init__(name, scope, purpose)
        self._session_factory = session_factory

    # ========================================
    # Mutations
    # ========================================

    def insert(self, entry: SummaryEntry) -> None:
        try:
            with session_scope(self._session_factory) as session:
                if self._get(session, entry) is not None:
                    raise DuplicateEntryError(
                        f"{self.name}: entry already present for {entry.question_id} in {entry.namespace}",
                        index_name=self.name,
                    )
                session.add(self._row(entry))
        except IntegrityError as e:
            raise DuplicateEntryError(f"{self.name}: {e}", index_name=self.name) from e
        except SQLAlchemyError as e:
            raise AggregateIndexError(f"{self.name}: insert failed: {e}", index_name=self.name) from e

    def delete(self, entry: SummaryEntry) -> None:
        try:
            with session_scope(self._session_factory) as session:
                row = self._get(session, entry)
                if row is None:
                    raise self._missing(entry)
                session.delete(row)
        except SQLAlchemyError as e:
            raise AggregateIndexError(f"{self.name}: delete failed: {e}", index_name=self.name) from e

    def replace(self, old: SummaryEntry, new: SummaryEntry) -> None:
        try:
            with session_scope(self._session_factory) as session:
                row = self._get(session, old)
                if row is None:
                    raise self._missing(old)
                if old == new:
                    return
                session.delete(row)
                session.flush()
                if self._get(session, new) is None:
                    session.add(self._row(new))
        except SQLAlchemyError as e:
            raise AggregateIndexError(f"{self.name}: replace failed: {e}", index_name=self.name) from e

    def insert_if_missing(self, entry: SummaryEntry) -> bool:
        try:
            with session_scope(self._session_factory) as session:
                if self._get(session, entry) is not None:
                    return False
                session.add(self._row(entry))
                return True
        except SQLAlchemyError as e:
            raise AggregateIndexError(f"{self.name}: insert failed: {e}", index_name=self.name) from e

    def clear(self, namespace: str | None = None) -> None:
        stmt = delete(AggregateEntry).where(AggregateEntry.index_name == self.name)
        if namespace is not None:
            stmt = stmt.where(AggregateEntry.namespace == namespace)
        try:
            with session_scope(self._session_factory) as session:
                session.execute(stmt)
        except SQLAlchemyError as e:
            raise AggregateIndexError(f"{self.name}: clear failed: {e}", index_name=self.name) from e

    # ========================================
    # Reads
    # ========================================

    def count(self, namespace: str, bounds: Bounds | None = None) -> int:
        stmt = (
            select(func.count())
            .select_from(AggregateEntry)
            .where(
                AggregateEntry.index_name == self.name,
                AggregateEntry.namespace == namespace,
            )
        )
        if bounds is not None:
            key = AggregateEntry.question_id
            if bounds.lower is not None:
                stmt = stmt.where(key >= bounds.lower if bounds.lower_inclusive else key > bounds.lower)
            if bounds.upper is not None:
                stmt = stmt.where(key <= bounds.upper if bounds.upper_inclusive else key < bounds.upper)
        try:
            with session_scope(self._session_factory) as session:
                return int(session.scalar(stmt) or 0)
        except SQLAlchemyError as e:
            raise AggregateIndexError(f"{self.name}: count failed: {e}", index_name=self.name) from e

    def random_sample(self, namespace: str, n: int) -> list[str]:
        if n <= 0:
            return []
        stmt = (
            select(AggregateEntry.question_id)
            .where(
                AggregateEntry.index_name == self.name,
                AggregateEntry.namespace == namespace,
            )
            .order_by(func.random())
            .limit(n)
        )
        try:
            with session_scope(self._session_factory) as session:
                return list(session.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise AggregateIndexError(f"{self.name}: random draw failed: {e}", index_name=self.name) from e

    def namespaces(self) -> list[str]:
        stmt = select(AggregateEntry.namespace).where(AggregateEntry.index_name == self.name).distinct()
        try:
            with session_scope(self._session_factory) as session:
                return list(session.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise AggregateIndexError(f"{self.name}: namespace scan failed: {e}", index_name=self.name) from e

    # ========================================
    # Helpers
    # ========================================

    def _get(self, session: Session, entry: SummaryEntry) -> AggregateEntry | None:
        return session.get(AggregateEntry, (self.name, entry.namespace, entry.question_id))

    def _row(self, entry: SummaryEntry) -> AggregateEntry:
        return AggregateEntry(
            index_name=self.name,
            namespace=entry.namespace,
            question_id=entry.question_id,
        )

    def _missing(self, entry: SummaryEntry) -> EntryMissingError:
        return EntryMissingError(
            f"{self.name}: no entry for {entry.question_id} in {entry.namespace}",
            index_name=self.name,
        )
