"""
Read-side queries over the aggregates.

Counts come from the count indexes and fall back to a primary-store scan
when an index fails. Random draws degrade to an empty list.
"""

from __future__ import annotations

from collections.abc import Iterable

from loguru import logger

from questionbank.aggregates.base import GLOBAL_NAMESPACE, Bounds, ScopeKind
from questionbank.aggregates.registry import AggregateRegistry
from questionbank.quiz.mode_filter import ModeFilteredPoolResolver
from questionbank.quiz.modes import QuestionMode
from questionbank.quiz.scope_resolver import HierarchicalScopeResolver, ScopeSelection
from questionbank.stats.counters import CounterMetric, UserStatsCounter
from questionbank.stores.question_store import QuestionStore
from questionbank.stores.taxonomy_store import TaxonomyStore
from questionbank.stores.user_store import UserActivityStore


class AggregateQueries:
    def __init__(
        self,
        registry: AggregateRegistry,
        question_store: QuestionStore,
        counter: UserStatsCounter | None = None,
        taxonomy_store: TaxonomyStore | None = None,
        activity_store: UserActivityStore | None = None,
    ):
        self.registry = registry
        self.question_store = question_store
        self.counter = counter
        self.taxonomy_store = taxonomy_store
        self.activity_store = activity_store

    # ========================================
    # Counts
    # ========================================

    def total_question_count(self) -> int:
        return self._count(ScopeKind.GLOBAL, GLOBAL_NAMESPACE)

    def theme_question_count(self, theme_id: str, bounds: Bounds | None = None) -> int:
        return self._count(ScopeKind.THEME, theme_id, bounds)

    def subtheme_question_count(self, subtheme_id: str, bounds: Bounds | None = None) -> int:
        return self._count(ScopeKind.SUBTHEME, subtheme_id, bounds)

    def group_question_count(self, group_id: str, bounds: Bounds | None = None) -> int:
        return self._count(ScopeKind.GROUP, group_id, bounds)

    def _count(self, scope: ScopeKind, namespace: str, bounds: Bounds | None = None) -> int:
        index = self.registry.counter(scope)
        try:
            return index.count(namespace, bounds)
        except Exception as e:  # Counts fall back to the source of truth
            logger.warning(f"Count from {index.name}/{namespace} failed, scanning questions: {e}")
            questions = self.question_store.list_by_scope(scope, namespace)
            if bounds is None:
                return len(questions)
            return sum(1 for question in questions if bounds.contains(question.id))

    # ========================================
    # Random draws
    # ========================================

    def random_questions(self, count: int) -> list[str]:
        return self._sample(ScopeKind.GLOBAL, GLOBAL_NAMESPACE, count)

    def random_questions_by_theme(self, theme_id: str, count: int) -> list[str]:
        return self._sample(ScopeKind.THEME, theme_id, count)

    def random_questions_by_subtheme(self, subtheme_id: str, count: int) -> list[str]:
        return self._sample(ScopeKind.SUBTHEME, subtheme_id, count)

    def random_questions_by_group(self, group_id: str, count: int) -> list[str]:
        return self._sample(ScopeKind.GROUP, group_id, count)

    def _sample(self, scope: ScopeKind, namespace: str, count: int) -> list[str]:
        index = self.registry.random_pool(scope)
        try:
            return index.random_sample(namespace, count)
        except Exception as e:  # A failing pool yields no questions, not an error
            logger.warning(f"Random draw from {index.name}/{namespace} failed: {e}")
            return []

    # ========================================
    # Mode counts
    # ========================================

    def count_for_mode(self, mode: QuestionMode | str, user_id: str | None = None) -> int:
        """
        Number of questions available in a mode.

        unanswered = max(0, total - answered); incorrect and bookmarked come
        from the user's counters. Without a user every mode but "all" is 0.
        """
        mode = QuestionMode.parse(mode)
        total = self.total_question_count()
        if mode is QuestionMode.ALL:
            return total
        if user_id is None or self.counter is None:
            return 0

        if mode is QuestionMode.UNANSWERED:
            answered = self.counter.get(user_id, CounterMetric.ANSWERED)
            return max(0, total - answered)
        if mode is QuestionMode.INCORRECT:
            return self.counter.get(user_id, CounterMetric.INCORRECT)
        return self.counter.get(user_id, CounterMetric.BOOKMARKED)

    def all_question_counts(self, user_id: str | None = None) -> dict[str, int]:
        return {mode.value: self.count_for_mode(mode, user_id) for mode in QuestionMode}

    # ========================================
    # Selection counts
    # ========================================

    def count_for_selection(
        self,
        mode: QuestionMode | str,
        user_id: str | None = None,
        themes: Iterable[str] | None = None,
        subthemes: Iterable[str] | None = None,
        groups: Iterable[str] | None = None,
    ) -> int:
        """
        Number of questions available in a mode within a taxonomy selection.

        Overlapping selections are counted once, with the same precedence
        quiz collection uses:

        - no selection: count_for_mode
        - a single theme, subtheme or group: that node's count index and,
          for user modes, the user's counter for that node
        - anything else: the ids collection would draw from (mode "all")
          or the user's mode-filtered pool

        Raises:
            InvalidModeError: unknown mode
        """
        mode = QuestionMode.parse(mode)
        selection = ScopeSelection.from_lists(themes, subthemes, groups)
        if selection.is_empty:
            return self.count_for_mode(mode, user_id)
        if mode is not QuestionMode.ALL and user_id is None:
            return 0

        single = _single_scope(selection)
        if single is not None and (mode is QuestionMode.ALL or self.counter is not None):
            return self._count_single(mode, user_id, *single)

        if mode is QuestionMode.ALL:
            return len(self._selection_ids(selection))
        return len(self._mode_filter().resolve(user_id, mode, selection))

    def _count_single(self, mode: QuestionMode, user_id: str | None, kind: ScopeKind, scope_id: str) -> int:
        total = self._count(kind, scope_id)
        if mode is QuestionMode.ALL:
            return total
        if mode is QuestionMode.UNANSWERED:
            answered = self.counter.get(user_id, CounterMetric.ANSWERED, kind, scope_id)
            return max(0, total - answered)
        metric = CounterMetric.INCORRECT if mode is QuestionMode.INCORRECT else CounterMetric.BOOKMARKED
        return self.counter.get(user_id, metric, kind, scope_id)

    def _selection_ids(self, selection: ScopeSelection) -> set[str]:
        """Every id the sampler could return for this selection."""
        scopes = HierarchicalScopeResolver(self._require_taxonomy()).resolve(selection)
        ids: set[str] = set()
        for group_id in scopes.groups:
            ids.update(q.id for q in self.question_store.list_by_group(group_id))
        for subtheme_id in selection.subthemes:
            selected_groups = scopes.selected_groups_of(subtheme_id)
            if selected_groups:
                ids.update(
                    q.id
                    for q in self.question_store.list_by_subtheme(subtheme_id)
                    if not q.group_id or q.group_id not in selected_groups
                )
            elif subtheme_id in scopes.subthemes:
                ids.update(q.id for q in self.question_store.list_by_subtheme(subtheme_id))
        for theme_id in scopes.themes:
            ids.update(q.id for q in self.question_store.list_by_theme(theme_id))
        return ids

    def _mode_filter(self) -> ModeFilteredPoolResolver:
        if self.activity_store is None:
            raise ValueError("Selection counts for user modes need an activity store")
        return ModeFilteredPoolResolver(self.activity_store, self._require_taxonomy())

    def _require_taxonomy(self) -> TaxonomyStore:
        if self.taxonomy_store is None:
            raise ValueError("Selection counts need a taxonomy store")
        return self.taxonomy_store


def _single_scope(selection: ScopeSelection) -> tuple[ScopeKind, str] | None:
    nodes = [
        *((ScopeKind.THEME, theme_id) for theme_id in selection.themes),
        *((ScopeKind.SUBTHEME, subtheme_id) for subtheme_id in selection.subthemes),
        *((ScopeKind.GROUP, group_id) for group_id in selection.groups),
    ]
    return nodes[0] if len(nodes) == 1 else None
