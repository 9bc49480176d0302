"""
Aggregate synchronization.

Fans question lifecycle events (create / update / delete) out to the eight
aggregate indexes. The primary question row is the source of truth and is
always written first; every per-index operation then runs inside its own
failure boundary, so one failing index never blocks the others and never
fails the caller's write.

Self-healing rules, which keep the aggregates correct between
reconciliation runs:
- replace() reporting a missing entry falls back to insert()
- delete() reporting a missing entry counts as success
- insert() of an entry already held counts as success
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from loguru import logger

from questionbank.aggregates.base import FIELD_SCOPES, AggregateIndex, ScopeKind, SummaryEntry
from questionbank.aggregates.registry import AggregateRegistry
from questionbank.db.models import TAXONOMY_FIELDS, Question
from questionbank.errors import DuplicateEntryError, EntryMissingError, QuestionNotFoundError
from questionbank.stores.question_store import QuestionStore


@dataclass
class IndexOutcome:
    """Result of one operation against one aggregate index."""

    index: str
    action: str  # insert, delete, replace, replace->insert, skip
    ok: bool = True
    error: str | None = None


@dataclass
class SyncReport:
    """Per-index outcomes of one lifecycle event."""

    question_id: str
    event: str
    outcomes: list[IndexOutcome] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)

    @property
    def failures(self) -> list[IndexOutcome]:
        return [outcome for outcome in self.outcomes if not outcome.ok]

    @property
    def touched(self) -> list[str]:
        return [outcome.index for outcome in self.outcomes if outcome.action != "skip"]

    def add(self, outcome: IndexOutcome) -> None:
        self.outcomes.append(outcome)


class AggregateSyncOrchestrator:
    """
    Keeps the aggregate indexes consistent with the question table.

    Usage:
        sync = AggregateSyncOrchestrator(QuestionStore(factory), registry)
        question, report = sync.insert_question(title="...", theme_id=theme.id)
        sync.on_update(question.id, {"theme_id": other_theme.id})
        sync.on_delete(question.id)
    """

    def __init__(self, question_store: QuestionStore, registry: AggregateRegistry):
        self.question_store = question_store
        self.registry = registry

    # ========================================
    # Lifecycle events
    # ========================================

    def insert_question(self, **fields: Any) -> tuple[Question, SyncReport]:
        """Persist a question, then populate its aggregate entries."""
        question = self.question_store.insert(**fields)
        return question, self.on_create(question)

    def on_create(self, question: Question) -> SyncReport:
        """
        Insert the question into every index whose scope field it has.

        Never raises: failures are logged and reported.
        """
        report = SyncReport(question_id=question.id, event="create")
        for index in self.registry:
            entry = index.entry_for(question)
            if entry is None:
                report.add(IndexOutcome(index=index.name, action="skip"))
                continue
            report.add(self._insert(index, entry))

        self._log_report(report)
        return report

    def on_update(self, question_id: str, updates: Mapping[str, Any]) -> SyncReport:
        """
        Apply a field patch, then migrate the entries of changed scopes.

        Args:
            question_id: Question to patch
            updates: Field -> new value

        Returns:
            SyncReport of the aggregate work (empty when no taxonomy field changed)

        Raises:
            QuestionNotFoundError: unknown question id
            TaxonomyMismatchError: the patched taxonomy is inconsistent
        """
        previous = self.question_store.get(question_id)
        if previous is None:
            raise QuestionNotFoundError(question_id)
        before = previous.taxonomy()

        updated = self.question_store.patch(question_id, updates)

        report = SyncReport(question_id=question_id, event="update")
        changed = [name for name in TAXONOMY_FIELDS if name in updates and updates[name] != before[name]]
        if not changed:
            return report

        for field_name in changed:
            scope = FIELD_SCOPES[field_name]
            for index in self.registry.for_scope(scope):
                old_entry = index.entry_for(previous)
                new_entry = index.entry_for(updated)
                if scope is ScopeKind.THEME and old_entry is not None and new_entry is not None:
                    report.add(self._replace(index, old_entry, new_entry))
                else:
                    self._move(report, index, old_entry, new_entry)

        self._log_report(report)
        return report

    def on_delete(self, question_id: str) -> bool:
        """
        Delete the question row and its aggregate entries.

        Returns whether the primary row was removed. Calling it again for the
        same id returns False without raising.
        """
        removed, _ = self.delete_question(question_id)
        return removed

    def delete_question(self, question_id: str) -> tuple[bool, SyncReport]:
        """on_delete, also returning the per-index report."""
        report = SyncReport(question_id=question_id, event="delete")
        question = self.question_store.get(question_id)
        if question is None:
            logger.warning(f"Delete requested for unknown question {question_id}")
            return False, report

        removed = self.question_store.delete(question_id)

        for index in self.registry:
            entry = index.entry_for(question)
            if entry is None:
                report.add(IndexOutcome(index=index.name, action="skip"))
                continue
            report.add(self._delete(index, entry))

        self._log_report(report)
        return removed, report

    # ========================================
    # Per-index operations
    # ========================================

    def _insert(self, index: AggregateIndex, entry: SummaryEntry) -> IndexOutcome:
        try:
            index.insert(entry)
        except DuplicateEntryError:
            logger.debug(f"{index.name}: {entry.question_id} already present in {entry.namespace}")
        except Exception as e:  # Each index is its own failure boundary
            return self._failed(index, "insert", entry.question_id, e)
        return IndexOutcome(index=index.name, action="insert")

    def _delete(self, index: AggregateIndex, entry: SummaryEntry) -> IndexOutcome:
        try:
            index.delete(entry)
        except EntryMissingError:
            logger.debug(f"{index.name}: {entry.question_id} already absent from {entry.namespace}")
        except Exception as e:  # Each index is its own failure boundary
            return self._failed(index, "delete", entry.question_id, e)
        return IndexOutcome(index=index.name, action="delete")

    def _replace(self, index: AggregateIndex, old_entry: SummaryEntry, new_entry: SummaryEntry) -> IndexOutcome:
        try:
            index.replace(old_entry, new_entry)
        except EntryMissingError:
            logger.info(
                f"{index.name}: no entry for {old_entry.question_id} in {old_entry.namespace}, "
                f"inserting into {new_entry.namespace}"
            )
            outcome = self._insert(index, new_entry)
            outcome.action = "replace->insert" if outcome.ok else outcome.action
            return outcome
        except Exception as e:  # Each index is its own failure boundary
            return self._failed(index, "replace", old_entry.question_id, e)
        return IndexOutcome(index=index.name, action="replace")

    def _move(
        self,
        report: SyncReport,
        index: AggregateIndex,
        old_entry: SummaryEntry | None,
        new_entry: SummaryEntry | None,
    ) -> None:
        if old_entry is not None:
            report.add(self._delete(index, old_entry))
        if new_entry is not None:
            report.add(self._insert(index, new_entry))

    def _failed(self, index: AggregateIndex, action: str, question_id: str, error: Exception) -> IndexOutcome:
        logger.warning(f"Aggregate {action} failed on {index.name} for question {question_id}: {error}")
        return IndexOutcome(index=index.name, action=action, ok=False, error=str(error))

    def _log_report(self, report: SyncReport) -> None:
        if report.ok:
            logger.debug(
                f"Synced {report.event} of {report.question_id} across {len(report.touched)} aggregates"
            )
        else:
            failed = ", ".join(outcome.index for outcome in report.failures)
            logger.warning(
                f"Synced {report.event} of {report.question_id} with {len(report.failures)} "
                f"failed aggregates: {failed}"
            )
