"""
Mode-filtered question pools (unanswered / incorrect / bookmarked).

The candidate list comes from the user's own activity. A taxonomy selection
is then applied as an in-memory filter with the same precedence as the
sampler: group match, else subtheme match, else theme match.
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from questionbank.db.models import Question
from questionbank.errors import InvalidModeError
from questionbank.quiz.modes import QuestionMode
from questionbank.quiz.scope_resolver import ScopeSelection
from questionbank.stores.taxonomy_store import TaxonomyStore
from questionbank.stores.user_store import UserActivityStore


class ModeFilteredPoolResolver:
    def __init__(self, activity_store: UserActivityStore, taxonomy_store: TaxonomyStore):
        self.activity_store = activity_store
        self.taxonomy_store = taxonomy_store

    def resolve(self, user_id: str, mode: QuestionMode | str, selection: ScopeSelection) -> list[Question]:
        """
        Candidate questions for a user-specific mode, filtered by the selection.

        Raises:
            InvalidModeError: unknown mode, or "all" (served by the sampler)
        """
        candidates = self.candidates(user_id, mode)
        if selection.is_empty:
            return candidates

        filtered = self.filter(candidates, selection)
        logger.debug(f"Mode filter kept {len(filtered)} of {len(candidates)} candidates for user {user_id}")
        return filtered

    def candidates(self, user_id: str, mode: QuestionMode | str) -> list[Question]:
        mode = QuestionMode.parse(mode)
        if mode is QuestionMode.INCORRECT:
            return self.activity_store.incorrect_questions(user_id)
        if mode is QuestionMode.UNANSWERED:
            return self.activity_store.unanswered_questions(user_id)
        if mode is QuestionMode.BOOKMARKED:
            return self.activity_store.bookmarked_questions(user_id)
        raise InvalidModeError(mode.value)

    def filter(self, questions: Sequence[Question], selection: ScopeSelection) -> list[Question]:
        selected_groups = set(selection.groups)
        selected_subthemes = set(selection.subthemes)
        selected_themes = set(selection.themes)

        overridden_subthemes = {
            group.subtheme_id for group in self.taxonomy_store.get_groups(selection.groups).values()
        }
        overridden_themes = {
            subtheme.theme_id for subtheme in self.taxonomy_store.get_subthemes(selection.subthemes).values()
        }

        kept: list[Question] = []
        for question in questions:
            if question.group_id and question.group_id in selected_groups:
                kept.append(question)
            elif question.subtheme_id in selected_subthemes and (
                question.subtheme_id not in overridden_subthemes or not question.group_id
            ):
                kept.append(question)
            elif question.theme_id in selected_themes and question.theme_id not in overridden_themes:
                kept.append(question)
        return kept
