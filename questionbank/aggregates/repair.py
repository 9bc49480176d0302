"""
Aggregate reconciliation (backfill).

Re-derives aggregate entries from the question table. A repair run clears
the index on its first call, then walks the questions in id order in
batches, inserting any missing entry. Each call stops after max_batches and
hands back a cursor so long runs can be resumed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from config import Settings, get_settings
from questionbank.aggregates.base import AggregateIndex, IndexPurpose
from questionbank.aggregates.registry import AggregateName, AggregateRegistry
from questionbank.stores.question_store import QuestionStore


@dataclass
class RepairResult:
    index: str
    total_processed: int
    batch_count: int
    next_cursor: str | None
    is_complete: bool


class AggregateRepairService:
    def __init__(
        self,
        registry: AggregateRegistry,
        question_store: QuestionStore,
        settings: Settings | None = None,
    ):
        self.registry = registry
        self.question_store = question_store
        self.settings = settings or get_settings()

    def repair_index(
        self,
        name: AggregateName | str,
        start_cursor: str | None = None,
        batch_size: int | None = None,
        max_batches: int | None = None,
    ) -> RepairResult:
        """
        Rebuild one index from the question table.

        Args:
            name: Aggregate to rebuild
            start_cursor: Resume point from a previous call (None starts over and clears the index)
            batch_size: Questions per batch (default from settings)
            max_batches: Batches before returning (default from settings)

        Returns:
            RepairResult; is_complete is False when next_cursor should be passed back in
        """
        index = self.registry.get(name)
        batch_size = batch_size or self.settings.repair_batch_size
        max_batches = max_batches or self.settings.repair_max_batches

        if start_cursor is None:
            index.clear()
            logger.info(f"Cleared {index.name} for repair")

        cursor = start_cursor
        processed = 0
        batches = 0
        while batches < max_batches:
            page = self.question_store.paginate(cursor, batch_size)
            if not page:
                return RepairResult(index.name, processed, batches, None, True)

            inserted = 0
            for question in page:
                entry = index.entry_for(question)
                if entry is not None and index.insert_if_missing(entry):
                    inserted += 1
            processed += len(page)
            batches += 1
            cursor = page[-1].id
            logger.debug(f"{index.name}: batch {batches} processed {len(page)} questions, {inserted} inserted")

            if len(page) < batch_size:
                return RepairResult(index.name, processed, batches, None, True)

        logger.info(f"{index.name}: paused after {batches} batches at cursor {cursor}")
        return RepairResult(index.name, processed, batches, cursor, False)

    def repair_all(self) -> list[RepairResult]:
        """Run every index to completion."""
        results = []
        for index in self.registry:
            results.append(self._repair_to_completion(index))
        return results

    def _repair_to_completion(self, index: AggregateIndex) -> RepairResult:
        result = self.repair_index(index.name)
        processed, batches = result.total_processed, result.batch_count
        while not result.is_complete:
            result = self.repair_index(index.name, start_cursor=result.next_cursor)
            processed += result.total_processed
            batches += result.batch_count
        logger.info(f"Repaired {index.name}: {processed} questions in {batches} batches")
        return RepairResult(index.name, processed, batches, None, True)

    def check_consistency(self) -> dict[str, Any]:
        """
        Compare every count index with the question table.

        Returns dict with:
            - valid: bool - True if no mismatch was found
            - mismatches: list of {index, namespace, claimed, actual}
        """
        mismatches: list[dict[str, Any]] = []
        for index in self.registry:
            if index.purpose is not IndexPurpose.COUNT:
                continue
            expected = self.question_store.count_grouped_by(index.scope)
            namespaces = set(expected) | set(index.namespaces())
            for namespace in sorted(namespaces):
                actual = expected.get(namespace, 0)
                claimed = index.count(namespace)
                if claimed != actual:
                    mismatches.append(
                        {"index": index.name, "namespace": namespace, "claimed": claimed, "actual": actual}
                    )

        if mismatches:
            logger.warning(f"Aggregate consistency check found {len(mismatches)} mismatches")
        return {"valid": not mismatches, "mismatches": mismatches}
