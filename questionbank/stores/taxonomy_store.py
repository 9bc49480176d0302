"""
Taxonomy store: themes, subthemes and groups.

Read-mostly from the core's point of view. The create_* helpers exist for
seeding and tests.
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from questionbank.db.database import session_scope
from questionbank.db.models import Group, Subtheme, Theme
from questionbank.errors import TaxonomyMismatchError


class TaxonomyStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ========================================
    # Creation
    # ========================================

    def create_theme(self, name: str, theme_id: str | None = None, **fields) -> Theme:
        theme = Theme(name=name, **fields)
        if theme_id:
            theme.id = theme_id
        with session_scope(self._session_factory) as session:
            session.add(theme)
        return theme

    def create_subtheme(self, name: str, theme_id: str, subtheme_id: str | None = None, **fields) -> Subtheme:
        with session_scope(self._session_factory) as session:
            if session.get(Theme, theme_id) is None:
                raise TaxonomyMismatchError(f"Theme not found: {theme_id}")
            subtheme = Subtheme(name=name, theme_id=theme_id, **fields)
            if subtheme_id:
                subtheme.id = subtheme_id
            session.add(subtheme)
        return subtheme

    def create_group(self, name: str, subtheme_id: str, group_id: str | None = None, **fields) -> Group:
        with session_scope(self._session_factory) as session:
            if session.get(Subtheme, subtheme_id) is None:
                raise TaxonomyMismatchError(f"Subtheme not found: {subtheme_id}")
            group = Group(name=name, subtheme_id=subtheme_id, **fields)
            if group_id:
                group.id = group_id
            session.add(group)
        return group

    # ========================================
    # Lookups
    # ========================================

    def get_theme(self, theme_id: str) -> Theme | None:
        with session_scope(self._session_factory) as session:
            return session.get(Theme, theme_id)

    def get_subtheme(self, subtheme_id: str) -> Subtheme | None:
        with session_scope(self._session_factory) as session:
            return session.get(Subtheme, subtheme_id)

    def get_group(self, group_id: str) -> Group | None:
        with session_scope(self._session_factory) as session:
            return session.get(Group, group_id)

    def get_subthemes(self, subtheme_ids: Iterable[str]) -> dict[str, Subtheme]:
        """Bulk lookup; unknown ids are absent from the result."""
        ids = list(dict.fromkeys(subtheme_ids))
        if not ids:
            return {}
        with session_scope(self._session_factory) as session:
            rows = session.scalars(select(Subtheme).where(Subtheme.id.in_(ids))).all()
        return {row.id: row for row in rows}

    def get_groups(self, group_ids: Iterable[str]) -> dict[str, Group]:
        """Bulk lookup; unknown ids are absent from the result."""
        ids = list(dict.fromkeys(group_ids))
        if not ids:
            return {}
        with session_scope(self._session_factory) as session:
            rows = session.scalars(select(Group).where(Group.id.in_(ids))).all()
        return {row.id: row for row in rows}

    def list_theme_ids(self) -> list[str]:
        with session_scope(self._session_factory) as session:
            return list(session.scalars(select(Theme.id).order_by(Theme.id)).all())

    def list_subtheme_ids(self) -> list[str]:
        with session_scope(self._session_factory) as session:
            return list(session.scalars(select(Subtheme.id).order_by(Subtheme.id)).all())

    def list_group_ids(self) -> list[str]:
        with session_scope(self._session_factory) as session:
            return list(session.scalars(select(Group.id).order_by(Group.id)).all())


def validate_question_taxonomy(
    session: Session,
    theme_id: str | None,
    subtheme_id: str | None,
    group_id: str | None,
) -> None:
    """
    Enforce the question taxonomy invariant inside an open session.

    Raises TaxonomyMismatchError when a referenced node is unknown or the
    group/subtheme parents disagree with the question's own fields.
    """
    if not theme_id:
        raise TaxonomyMismatchError("Questions require a theme_id")
    if session.get(Theme, theme_id) is None:
        raise TaxonomyMismatchError(f"Theme not found: {theme_id}")

    if group_id and not subtheme_id:
        raise TaxonomyMismatchError(f"Group {group_id} set without a subtheme_id")

    if subtheme_id:
        subtheme = session.get(Subtheme, subtheme_id)
        if subtheme is None:
            raise TaxonomyMismatchError(f"Subtheme not found: {subtheme_id}")
        if subtheme.theme_id != theme_id:
            raise TaxonomyMismatchError(
                f"Subtheme {subtheme_id} belongs to theme {subtheme.theme_id}, not {theme_id}"
            )

    if group_id:
        group = session.get(Group, group_id)
        if group is None:
            raise TaxonomyMismatchError(f"Group not found: {group_id}")
        if group.subtheme_id != subtheme_id:
            raise TaxonomyMismatchError(
                f"Group {group_id} belongs to subtheme {group.subtheme_id}, not {subtheme_id}"
            )
