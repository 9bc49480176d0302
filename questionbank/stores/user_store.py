"""Per-user secondary indexes: answered, incorrect and bookmarked questions."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from questionbank.db.database import session_scope
from questionbank.db.models import Question, UserBookmark, UserQuestionStat


class UserActivityStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def answered_question_ids(self, user_id: str) -> set[str]:
        stmt = select(UserQuestionStat.question_id).where(
            UserQuestionStat.user_id == user_id,
            UserQuestionStat.has_answered.is_(True),
        )
        with session_scope(self._session_factory) as session:
            return set(session.scalars(stmt).all())

    def incorrect_questions(self, user_id: str) -> list[Question]:
        stmt = (
            select(Question)
            .join(UserQuestionStat, UserQuestionStat.question_id == Question.id)
            .where(
                UserQuestionStat.user_id == user_id,
                UserQuestionStat.is_incorrect.is_(True),
            )
            .order_by(Question.id)
        )
        with session_scope(self._session_factory) as session:
            return list(session.scalars(stmt).all())

    def bookmarked_questions(self, user_id: str) -> list[Question]:
        stmt = (
            select(Question)
            .join(UserBookmark, UserBookmark.question_id == Question.id)
            .where(UserBookmark.user_id == user_id)
            .order_by(Question.id)
        )
        with session_scope(self._session_factory) as session:
            return list(session.scalars(stmt).all())

    def unanswered_questions(self, user_id: str) -> list[Question]:
        """Every question minus the user's answered set."""
        answered = self.answered_question_ids(user_id)
        with session_scope(self._session_factory) as session:
            questions = session.scalars(select(Question).order_by(Question.id)).all()
        return [question for question in questions if question.id not in answered]
