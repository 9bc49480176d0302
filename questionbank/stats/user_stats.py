"""
User answer statistics and bookmarks.

The stat and bookmark rows are the primary writes and fail loudly. The
scope counters derived from them are best-effort: a counter failure is
logged and never fails the answer submission. rebuild_counts() re-derives
the counters from the primary rows.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from questionbank.aggregates.base import ScopeKind
from questionbank.db.database import session_scope
from questionbank.db.models import Question, UserBookmark, UserQuestionStat
from questionbank.errors import QuestionNotFoundError
from questionbank.stats.counters import CounterMetric, ScopeKey, UserStatsCounter, scope_keys


@dataclass
class AnswerResult:
    """What recording an answer changed."""

    question_id: str
    is_new: bool
    was_incorrect: bool
    is_incorrect: bool


def _copy_taxonomy(target: UserQuestionStat | UserBookmark, question: Question) -> None:
    target.theme_id = question.theme_id
    target.subtheme_id = question.subtheme_id
    target.group_id = question.group_id


def _row_scopes(row: UserQuestionStat | UserBookmark) -> list[ScopeKey]:
    return scope_keys({"theme_id": row.theme_id, "subtheme_id": row.subtheme_id, "group_id": row.group_id})


class UserStatsService:
    def __init__(self, session_factory: sessionmaker, counter: UserStatsCounter | None = None):
        self._session_factory = session_factory
        self.counter = counter or UserStatsCounter(session_factory)

    def record_answer(self, user_id: str, question_id: str, is_correct: bool) -> AnswerResult:
        """
        Record a user's latest answer to a question.

        Counter effects:
            first answer               -> answered +1 (and incorrect +1 if wrong)
            correct/unanswered -> wrong -> incorrect +1
            wrong -> correct           -> incorrect -1

        A concurrent first answer for the same (user, question) may insert
        the stat row between our read and our write. The write is then
        replayed against the row that won, so counters are bumped once.

        Raises:
            QuestionNotFoundError: unknown question id
        """
        try:
            result, scopes = self._write_answer(user_id, question_id, is_correct)
        except IntegrityError:
            logger.debug(f"Stat row for {user_id}/{question_id} created concurrently, retrying as update")
            result, scopes = self._write_answer(user_id, question_id, is_correct)

        if result.is_new:
            self._bump(user_id, CounterMetric.ANSWERED, scopes, 1)
        if result.is_incorrect and not result.was_incorrect:
            self._bump(user_id, CounterMetric.INCORRECT, scopes, 1)
        elif result.was_incorrect and not result.is_incorrect:
            self._bump(user_id, CounterMetric.INCORRECT, scopes, -1)
        return result

    def _write_answer(self, user_id: str, question_id: str, is_correct: bool) -> tuple[AnswerResult, list[ScopeKey]]:
        with session_scope(self._session_factory) as session:
            question = session.get(Question, question_id)
            if question is None:
                raise QuestionNotFoundError(question_id)

            stat = session.scalar(
                select(UserQuestionStat).where(
                    UserQuestionStat.user_id == user_id,
                    UserQuestionStat.question_id == question_id,
                )
            )
            is_new = stat is None
            if stat is None:
                stat = UserQuestionStat(user_id=user_id, question_id=question_id)
                session.add(stat)
                was_incorrect = False
            else:
                was_incorrect = bool(stat.is_incorrect)

            stat.has_answered = True
            stat.is_incorrect = not is_correct
            _copy_taxonomy(stat, question)
            scopes = _row_scopes(stat)

        result = AnswerResult(
            question_id=question_id,
            is_new=is_new,
            was_incorrect=was_incorrect,
            is_incorrect=not is_correct,
        )
        return result, scopes

    def toggle_bookmark(self, user_id: str, question_id: str) -> bool:
        """
        Add or remove a bookmark. Returns True when the question is now bookmarked.

        If a concurrent request bookmarked the question first, the add is
        already in place: True is returned and that request owns the
        counter bump.
        """
        try:
            with session_scope(self._session_factory) as session:
                question = session.get(Question, question_id)
                if question is None:
                    raise QuestionNotFoundError(question_id)

                bookmark = session.scalar(
                    select(UserBookmark).where(
                        UserBookmark.user_id == user_id,
                        UserBookmark.question_id == question_id,
                    )
                )
                if bookmark is None:
                    bookmark = UserBookmark(user_id=user_id, question_id=question_id)
                    _copy_taxonomy(bookmark, question)
                    session.add(bookmark)
                    bookmarked = True
                else:
                    session.delete(bookmark)
                    bookmarked = False
                scopes = _row_scopes(bookmark)
        except IntegrityError:
            logger.debug(f"Bookmark {user_id}/{question_id} created concurrently")
            return True

        self._bump(user_id, CounterMetric.BOOKMARKED, scopes, 1 if bookmarked else -1)
        return bookmarked

    def reset_stats(self, user_id: str) -> int:
        """Delete a user's answer stats and zero answered/incorrect. Bookmarks are kept."""
        with session_scope(self._session_factory) as session:
            result = session.execute(delete(UserQuestionStat).where(UserQuestionStat.user_id == user_id))
            removed = result.rowcount or 0
        self.counter.reset(user_id, [CounterMetric.ANSWERED, CounterMetric.INCORRECT])
        logger.info(f"Reset {removed} answer stats for user {user_id}")
        return removed

    def rebuild_counts(self, user_id: str) -> dict[str, int]:
        """Re-derive every counter of a user from the stat and bookmark rows."""
        tallies: Counter[tuple[CounterMetric, ScopeKind, str]] = Counter()
        with session_scope(self._session_factory) as session:
            stats = session.scalars(select(UserQuestionStat).where(UserQuestionStat.user_id == user_id)).all()
            bookmarks = session.scalars(select(UserBookmark).where(UserBookmark.user_id == user_id)).all()

        for stat in stats:
            for kind, scope_id in _row_scopes(stat):
                if stat.has_answered:
                    tallies[(CounterMetric.ANSWERED, kind, scope_id)] += 1
                if stat.is_incorrect:
                    tallies[(CounterMetric.INCORRECT, kind, scope_id)] += 1
        for bookmark in bookmarks:
            for kind, scope_id in _row_scopes(bookmark):
                tallies[(CounterMetric.BOOKMARKED, kind, scope_id)] += 1

        self.counter.replace_all(user_id, tallies)
        totals = {
            metric.value: tallies[(metric, ScopeKind.GLOBAL, "global")]
            for metric in CounterMetric
        }
        logger.info(f"Rebuilt counters for user {user_id}: {totals}")
        return totals

    def get_count(
        self,
        user_id: str,
        metric: CounterMetric | str,
        scope_kind: ScopeKind = ScopeKind.GLOBAL,
        scope_id: str | None = None,
    ) -> int:
        return self.counter.get(user_id, CounterMetric(metric), scope_kind, scope_id)

    def _bump(self, user_id: str, metric: CounterMetric, scopes: list[ScopeKey], delta: int) -> None:
        try:
            self.counter.adjust(user_id, metric, scopes, delta)
        except Exception as e:  # Counters never fail the primary write
            logger.warning(f"Failed to adjust {metric.value} counters for user {user_id}: {e}")
