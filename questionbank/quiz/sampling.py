"""
Random sampling across effective scopes (question mode "all").

Each effective scope contributes up to target_count ids; the union is
deduplicated and, when larger than the target, shuffled and truncated.
Per-scope draws are not proportional to scope size.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TypeVar

from loguru import logger

from questionbank.aggregates.base import GLOBAL_NAMESPACE, AggregateIndex, ScopeKind
from questionbank.aggregates.registry import AggregateRegistry
from questionbank.quiz.scope_resolver import EffectiveScopes
from questionbank.stores.question_store import QuestionStore

T = TypeVar("T")


def fisher_yates_shuffle(items: Sequence[T], rng: random.Random | None = None) -> list[T]:
    """Return a uniformly shuffled copy of items."""
    rng = rng or random.Random()
    shuffled = list(items)
    for i in range(len(shuffled) - 1, 0, -1):
        j = rng.randint(0, i)
        shuffled[i], shuffled[j] = shuffled[j], shuffled[i]
    return shuffled


class RandomSamplingAssembler:
    def __init__(
        self,
        registry: AggregateRegistry,
        question_store: QuestionStore,
        rng: random.Random | None = None,
    ):
        self.registry = registry
        self.question_store = question_store
        self._rng = rng or random.Random()

    def assemble(self, scopes: EffectiveScopes, target_count: int) -> list[str]:
        """
        Draw up to target_count distinct question ids from the effective scopes.

        Args:
            scopes: Output of HierarchicalScopeResolver.resolve
            target_count: Upper bound on the result size

        Returns:
            Deduplicated question ids, never more than target_count
        """
        if target_count <= 0:
            return []

        if scopes.is_empty:
            ids = self._draw(self.registry.random_pool(ScopeKind.GLOBAL), GLOBAL_NAMESPACE, target_count)
            logger.debug(f"Drew {len(ids)} questions from the global pool")
            return ids

        collected: list[str] = []

        # Groups are never overridden
        group_pool = self.registry.random_pool(ScopeKind.GROUP)
        for group_id in scopes.groups:
            collected.extend(self._draw(group_pool, group_id, target_count))

        subtheme_pool = self.registry.random_pool(ScopeKind.SUBTHEME)
        for subtheme_id in scopes.selection.subthemes:
            selected_groups = scopes.selected_groups_of(subtheme_id)
            if selected_groups:
                collected.extend(self._complement(subtheme_id, selected_groups))
            elif subtheme_id in scopes.subthemes:
                collected.extend(self._draw(subtheme_pool, subtheme_id, target_count))

        theme_pool = self.registry.random_pool(ScopeKind.THEME)
        for theme_id in scopes.themes:
            collected.extend(self._draw(theme_pool, theme_id, target_count))

        unique = list(dict.fromkeys(collected))
        if len(unique) > target_count:
            unique = fisher_yates_shuffle(unique, self._rng)[:target_count]

        logger.debug(f"Assembled {len(unique)} questions from {len(collected)} drawn ids")
        return unique

    def _complement(self, subtheme_id: str, selected_groups: set[str]) -> list[str]:
        """Questions of a subtheme outside its selected groups, via a direct scan."""
        questions = self.question_store.list_by_subtheme(subtheme_id)
        return [q.id for q in questions if not q.group_id or q.group_id not in selected_groups]

    def _draw(self, index: AggregateIndex, namespace: str, n: int) -> list[str]:
        try:
            return index.random_sample(namespace, n)
        except Exception as e:  # A failing pool yields fewer questions, not an error
            logger.warning(f"Random draw from {index.name}/{namespace} failed: {e}")
            return []
