"""In-process aggregate index, used for tests and the "memory" backend."""

from __future__ import annotations

import random
import threading
from collections import defaultdict

from questionbank.aggregates.base import AggregateIndex, Bounds, IndexPurpose, ScopeKind, SummaryEntry
from questionbank.errors import DuplicateEntryError, EntryMissingError


class _Members:
    """Ids of one namespace: a dense list for draws plus an id -> slot map."""

    __slots__ = ("ids", "slots")

    def __init__(self):
        self.ids: list[str] = []
        self.slots: dict[str, int] = {}

    def __contains__(self, question_id: str) -> bool:
        return question_id in self.slots

    def __len__(self) -> int:
        return len(self.ids)

    def add(self, question_id: str) -> None:
        self.slots[question_id] = len(self.ids)
        self.ids.append(question_id)

    def remove(self, question_id: str) -> None:
        # Swap with the last id so removal stays O(1)
        slot = self.slots.pop(question_id)
        last = self.ids.pop()
        if last != question_id:
            self.ids[slot] = last
            self.slots[last] = slot


class InMemoryAggregateIndex(AggregateIndex):
    """Namespace -> members, guarded by a lock."""

    def __init__(
        self,
        name: str,
        scope: ScopeKind,
        purpose: IndexPurpose,
        rng: random.Random | None = None,
    ):
        super().__init__(name, scope, purpose)
        self._members: dict[str, _Members] = defaultdict(_Members)
        self._lock = threading.Lock()
        self._rng = rng or random.Random()

    def insert(self, entry: SummaryEntry) -> None:
        with self._lock:
            members = self._members[entry.namespace]
            if entry.question_id in members:
                raise DuplicateEntryError(
                    f"{self.name}: entry already present for {entry.question_id} in {entry.namespace}",
                    index_name=self.name,
                )
            members.add(entry.question_id)

    def delete(self, entry: SummaryEntry) -> None:
        with self._lock:
            self._discard(entry)

    def replace(self, old: SummaryEntry, new: SummaryEntry) -> None:
        with self._lock:
            self._discard(old)
            members = self._members[new.namespace]
            if new.question_id not in members:
                members.add(new.question_id)

    def count(self, namespace: str, bounds: Bounds | None = None) -> int:
        with self._lock:
            members = self._members.get(namespace)
            if members is None:
                return 0
            if bounds is None or bounds.is_unbounded:
                return len(members)
            return sum(1 for question_id in members.ids if bounds.contains(question_id))

    def random_sample(self, namespace: str, n: int) -> list[str]:
        if n <= 0:
            return []
        with self._lock:
            members = self._members.get(namespace)
            if members is None:
                return []
            return self._rng.sample(members.ids, min(n, len(members)))

    def insert_if_missing(self, entry: SummaryEntry) -> bool:
        with self._lock:
            members = self._members[entry.namespace]
            if entry.question_id in members:
                return False
            members.add(entry.question_id)
            return True

    def clear(self, namespace: str | None = None) -> None:
        with self._lock:
            if namespace is None:
                self._members.clear()
            else:
                self._members.pop(namespace, None)

    def namespaces(self) -> list[str]:
        with self._lock:
            return [ns for ns, members in self._members.items() if len(members)]

    def _discard(self, entry: SummaryEntry) -> None:
        members = self._members.get(entry.namespace)
        if members is None or entry.question_id not in members:
            raise EntryMissingError(
                f"{self.name}: no entry for {entry.question_id} in {entry.namespace}",
                index_name=self.name,
            )
        members.remove(entry.question_id)
        if not len(members):
            del self._members[entry.namespace]
