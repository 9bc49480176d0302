"""
Atomic per-user scope counters.

Each counter is one row keyed by (user, metric, scope kind, scope id).
Adjustments are a single UPDATE ... SET value = value + delta, floored at
zero, so concurrent answer submissions never lose an update. The row is
inserted on first touch.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum

from loguru import logger
from sqlalchemy import case, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from questionbank.aggregates.base import GLOBAL_NAMESPACE, ScopeKind
from questionbank.db.database import session_scope
from questionbank.db.models import UserScopeCount

ScopeKey = tuple[ScopeKind, str]


class CounterMetric(str, Enum):
    ANSWERED = "answered"
    INCORRECT = "incorrect"
    BOOKMARKED = "bookmarked"


def scope_keys(taxonomy: Mapping[str, str | None]) -> list[ScopeKey]:
    """Counter scopes a question contributes to: global plus each taxonomy level it has."""
    keys: list[ScopeKey] = [(ScopeKind.GLOBAL, GLOBAL_NAMESPACE)]
    for kind in (ScopeKind.THEME, ScopeKind.SUBTHEME, ScopeKind.GROUP):
        scope_id = taxonomy.get(kind.field)
        if scope_id:
            keys.append((kind, scope_id))
    return keys


class UserStatsCounter:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def adjust(self, user_id: str, metric: CounterMetric, scopes: Iterable[ScopeKey], delta: int) -> None:
        """Add delta to every scope's counter. Each scope commits on its own."""
        if delta == 0:
            return
        for kind, scope_id in scopes:
            self._adjust_one(user_id, metric, kind, scope_id, delta)

    def _adjust_one(self, user_id: str, metric: CounterMetric, kind: ScopeKind, scope_id: str, delta: int) -> None:
        if self._update(user_id, metric, kind, scope_id, delta):
            return
        if delta < 0:
            # Nothing to decrement; the floor is zero
            return
        try:
            with session_scope(self._session_factory) as session:
                session.add(
                    UserScopeCount(
                        user_id=user_id,
                        metric=metric.value,
                        scope_kind=kind.value,
                        scope_id=scope_id,
                        value=delta,
                    )
                )
        except IntegrityError:
            # Another writer created the row first
            logger.debug(f"Counter row for {user_id}/{metric.value}/{kind.value}/{scope_id} raced, retrying update")
            self._update(user_id, metric, kind, scope_id, delta)

    def _update(self, user_id: str, metric: CounterMetric, kind: ScopeKind, scope_id: str, delta: int) -> bool:
        new_value = UserScopeCount.value + delta
        stmt = (
            update(UserScopeCount)
            .where(
                UserScopeCount.user_id == user_id,
                UserScopeCount.metric == metric.value,
                UserScopeCount.scope_kind == kind.value,
                UserScopeCount.scope_id == scope_id,
            )
            .values(value=case((new_value < 0, 0), else_=new_value), updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        with session_scope(self._session_factory) as session:
            result = session.execute(stmt)
            return result.rowcount > 0

    def get(
        self,
        user_id: str,
        metric: CounterMetric,
        kind: ScopeKind = ScopeKind.GLOBAL,
        scope_id: str | None = None,
    ) -> int:
        stmt = select(UserScopeCount.value).where(
            UserScopeCount.user_id == user_id,
            UserScopeCount.metric == metric.value,
            UserScopeCount.scope_kind == kind.value,
            UserScopeCount.scope_id == (scope_id or GLOBAL_NAMESPACE),
        )
        with session_scope(self._session_factory) as session:
            return int(session.scalar(stmt) or 0)

    def reset(self, user_id: str, metrics: Iterable[CounterMetric]) -> None:
        """Drop a user's counters for the given metrics (reads return 0 afterwards)."""
        stmt = delete(UserScopeCount).where(
            UserScopeCount.user_id == user_id,
            UserScopeCount.metric.in_([metric.value for metric in metrics]),
        )
        with session_scope(self._session_factory) as session:
            session.execute(stmt)

    def replace_all(self, user_id: str, values: Mapping[tuple[CounterMetric, ScopeKind, str], int]) -> None:
        """Overwrite every counter of a user in one transaction."""
        with session_scope(self._session_factory) as session:
            session.execute(delete(UserScopeCount).where(UserScopeCount.user_id == user_id))
            session.add_all(
                UserScopeCount(
                    user_id=user_id,
                    metric=metric.value,
                    scope_kind=kind.value,
                    scope_id=scope_id,
                    value=value,
                )
                for (metric, kind, scope_id), value in values.items()
                if value > 0
            )
