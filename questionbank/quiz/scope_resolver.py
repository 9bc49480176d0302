"""
Hierarchical scope resolution.

A caller selects any mix of themes, subthemes and groups. A more specific
selection overrides its ancestors so a question is never drawn twice:

    group selected    -> its subtheme and its theme are overridden
    subtheme selected -> its theme is overridden

A subtheme with only some of its groups selected is not simply dropped;
the sampler still surfaces its complement (the questions outside those
groups). EffectiveScopes.groups_by_subtheme carries what it needs.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from loguru import logger

from questionbank.stores.taxonomy_store import TaxonomyStore


def _unique(ids: Iterable[str] | None) -> tuple[str, ...]:
    return tuple(dict.fromkeys(i for i in ids or () if i))


@dataclass(frozen=True)
class ScopeSelection:
    """Raw, request-scoped taxonomy selection."""

    themes: tuple[str, ...] = ()
    subthemes: tuple[str, ...] = ()
    groups: tuple[str, ...] = ()

    @classmethod
    def from_lists(
        cls,
        themes: Iterable[str] | None = None,
        subthemes: Iterable[str] | None = None,
        groups: Iterable[str] | None = None,
    ) -> ScopeSelection:
        return cls(themes=_unique(themes), subthemes=_unique(subthemes), groups=_unique(groups))

    @property
    def is_empty(self) -> bool:
        return not (self.themes or self.subthemes or self.groups)


@dataclass
class EffectiveScopes:
    """Non-overlapping scopes to draw from, plus the override bookkeeping."""

    selection: ScopeSelection
    themes: list[str] = field(default_factory=list)
    subthemes: list[str] = field(default_factory=list)
    groups: list[str] = field(default_factory=list)

    overridden_subthemes: set[str] = field(default_factory=set)
    overridden_themes_by_group: set[str] = field(default_factory=set)
    overridden_themes_by_subtheme: set[str] = field(default_factory=set)

    # Selected subtheme -> its selected child groups
    groups_by_subtheme: dict[str, set[str]] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return self.selection.is_empty

    def selected_groups_of(self, subtheme_id: str) -> set[str]:
        return self.groups_by_subtheme.get(subtheme_id, set())


class HierarchicalScopeResolver:
    def __init__(self, taxonomy_store: TaxonomyStore):
        self.taxonomy_store = taxonomy_store

    def resolve(self, selection: ScopeSelection) -> EffectiveScopes:
        """
        Compute the effective scopes for a selection.

        Unknown group or subtheme ids override nothing; they are kept in the
        selection and simply yield no questions.
        """
        scopes = EffectiveScopes(selection=selection, groups=list(selection.groups))
        if selection.is_empty:
            return scopes

        groups = self.taxonomy_store.get_groups(selection.groups)
        for group_id in selection.groups:
            group = groups.get(group_id)
            if group is None:
                logger.debug(f"Selected group {group_id} not found")
                continue
            scopes.overridden_subthemes.add(group.subtheme_id)

        parent_ids = set(selection.subthemes) | scopes.overridden_subthemes
        subthemes = self.taxonomy_store.get_subthemes(parent_ids)

        for subtheme_id in scopes.overridden_subthemes:
            parent = subthemes.get(subtheme_id)
            if parent is not None:
                scopes.overridden_themes_by_group.add(parent.theme_id)

        for subtheme_id in selection.subthemes:
            subtheme = subthemes.get(subtheme_id)
            if subtheme is None:
                logger.debug(f"Selected subtheme {subtheme_id} not found")
                continue
            scopes.overridden_themes_by_subtheme.add(subtheme.theme_id)

        selected_subthemes = set(selection.subthemes)
        for group_id in selection.groups:
            group = groups.get(group_id)
            if group is not None and group.subtheme_id in selected_subthemes:
                scopes.groups_by_subtheme.setdefault(group.subtheme_id, set()).add(group_id)

        scopes.subthemes = [s for s in selection.subthemes if s not in scopes.overridden_subthemes]
        overridden_themes = scopes.overridden_themes_by_group | scopes.overridden_themes_by_subtheme
        scopes.themes = [t for t in selection.themes if t not in overridden_themes]

        logger.debug(
            f"Effective scopes: {len(scopes.themes)} themes, {len(scopes.subthemes)} subthemes, "
            f"{len(scopes.groups)} groups ({len(scopes.groups_by_subtheme)} subthemes with complements)"
        )
        return scopes
