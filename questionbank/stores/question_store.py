"""
Primary question store.

The question table is the single source of truth; the aggregates are a
derived cache. Every method runs in its own session scope and returns
detached rows that stay readable after the scope closes.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from questionbank.aggregates.base import ScopeKind
from questionbank.db.database import session_scope
from questionbank.db.models import TAXONOMY_FIELDS, Question
from questionbank.errors import QuestionNotFoundError
from questionbank.stores.taxonomy_store import validate_question_taxonomy

_SCOPE_COLUMNS = {
    ScopeKind.THEME: Question.theme_id,
    ScopeKind.SUBTHEME: Question.subtheme_id,
    ScopeKind.GROUP: Question.group_id,
}

_WRITABLE_FIELDS = frozenset(
    {
        "title",
        "question_code",
        "question_text",
        "explanation_text",
        "alternatives",
        "correct_alternative_index",
        *TAXONOMY_FIELDS,
    }
)


def normalize_title(title: str) -> str:
    return title.strip().lower()


class QuestionStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ========================================
    # Point reads / writes
    # ========================================

    def get(self, question_id: str) -> Question | None:
        with session_scope(self._session_factory) as session:
            return session.get(Question, question_id)

    def get_many(self, question_ids: Iterable[str]) -> list[Question]:
        """Fetch questions in the given order, dropping ids that no longer exist."""
        ids = list(dict.fromkeys(question_ids))
        if not ids:
            return []
        with session_scope(self._session_factory) as session:
            rows = session.scalars(select(Question).where(Question.id.in_(ids))).all()
        by_id = {row.id: row for row in rows}
        return [by_id[question_id] for question_id in ids if question_id in by_id]

    def insert(self, **fields: Any) -> Question:
        """Validate the taxonomy and persist a new question."""
        unknown = set(fields) - _WRITABLE_FIELDS - {"id"}
        if unknown:
            raise TypeError(f"Unknown question fields: {', '.join(sorted(unknown))}")

        with session_scope(self._session_factory) as session:
            validate_question_taxonomy(
                session,
                fields.get("theme_id"),
                fields.get("subtheme_id"),
                fields.get("group_id"),
            )
            question = Question(normalized_title=normalize_title(fields.get("title", "")), **fields)
            session.add(question)
            session.flush()
            logger.debug(f"Inserted question {question.id}")
        return question

    def patch(self, question_id: str, updates: Mapping[str, Any]) -> Question:
        """
        Apply a field patch to a persisted question.

        Taxonomy edits are validated against the merged result. Raises
        QuestionNotFoundError for an unknown id.
        """
        unknown = set(updates) - _WRITABLE_FIELDS
        if unknown:
            raise TypeError(f"Unknown question fields: {', '.join(sorted(unknown))}")

        with session_scope(self._session_factory) as session:
            question = session.get(Question, question_id)
            if question is None:
                raise QuestionNotFoundError(question_id)

            merged = {field: updates.get(field, getattr(question, field)) for field in TAXONOMY_FIELDS}
            if any(field in updates for field in TAXONOMY_FIELDS):
                validate_question_taxonomy(session, merged["theme_id"], merged["subtheme_id"], merged["group_id"])

            for field, value in updates.items():
                setattr(question, field, value)
            if "title" in updates:
                question.normalized_title = normalize_title(updates["title"])
        return question

    def delete(self, question_id: str) -> bool:
        """Delete a question row. Returns False when it did not exist."""
        with session_scope(self._session_factory) as session:
            question = session.get(Question, question_id)
            if question is None:
                return False
            session.delete(question)
        return True

    # ========================================
    # Scans
    # ========================================

    def list_all(self) -> list[Question]:
        with session_scope(self._session_factory) as session:
            return list(session.scalars(select(Question).order_by(Question.id)).all())

    def list_by_scope(self, scope: ScopeKind, scope_id: str) -> list[Question]:
        if scope is ScopeKind.GLOBAL:
            return self.list_all()
        column = _SCOPE_COLUMNS[scope]
        with session_scope(self._session_factory) as session:
            return list(session.scalars(select(Question).where(column == scope_id).order_by(Question.id)).all())

    def list_by_theme(self, theme_id: str) -> list[Question]:
        return self.list_by_scope(ScopeKind.THEME, theme_id)

    def list_by_subtheme(self, subtheme_id: str) -> list[Question]:
        return self.list_by_scope(ScopeKind.SUBTHEME, subtheme_id)

    def list_by_group(self, group_id: str) -> list[Question]:
        return self.list_by_scope(ScopeKind.GROUP, group_id)

    def count_all(self) -> int:
        with session_scope(self._session_factory) as session:
            return int(session.scalar(select(func.count()).select_from(Question)) or 0)

    def count_by_scope(self, scope: ScopeKind, scope_id: str) -> int:
        if scope is ScopeKind.GLOBAL:
            return self.count_all()
        column = _SCOPE_COLUMNS[scope]
        with session_scope(self._session_factory) as session:
            return int(session.scalar(select(func.count()).select_from(Question).where(column == scope_id)) or 0)

    def count_grouped_by(self, scope: ScopeKind) -> dict[str, int]:
        """Question counts per scope value, omitting questions without the field."""
        if scope is ScopeKind.GLOBAL:
            return {"global": self.count_all()}
        column = _SCOPE_COLUMNS[scope]
        with session_scope(self._session_factory) as session:
            rows = session.execute(
                select(column, func.count()).where(column.is_not(None)).group_by(column)
            ).all()
        return {scope_id: int(count) for scope_id, count in rows}

    def paginate(self, after_id: str | None, limit: int) -> list[Question]:
        """Keyset page over the question table in id order."""
        stmt = select(Question).order_by(Question.id).limit(limit)
        if after_id is not None:
            stmt = stmt.where(Question.id > after_id)
        with session_scope(self._session_factory) as session:
            return list(session.scalars(stmt).all())
