"""
Per-user activity models.

- UserQuestionStat: latest answer state per (user, question)
- UserBookmark: bookmarked questions
- UserScopeCount: answered/incorrect/bookmarked counters keyed by
  (user, metric, scope kind, scope id)

Stat and bookmark rows copy the question's taxonomy so counters can be
rebuilt without joining the question table.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id


class UserQuestionStat(Base):
    __tablename__ = "user_question_stats"
    __table_args__ = (UniqueConstraint("user_id", "question_id", name="uq_user_question_stat"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )
    has_answered: Mapped[bool] = mapped_column(Boolean, default=True)
    is_incorrect: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    answered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    theme_id: Mapped[str | None] = mapped_column(String(64))
    subtheme_id: Mapped[str | None] = mapped_column(String(64))
    group_id: Mapped[str | None] = mapped_column(String(64))


class UserBookmark(Base):
    __tablename__ = "user_bookmarks"
    __table_args__ = (UniqueConstraint("user_id", "question_id", name="uq_user_bookmark"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    question_id: Mapped[str] = mapped_column(
        ForeignKey("questions.id", ondelete="CASCADE"), nullable=False
    )

    theme_id: Mapped[str | None] = mapped_column(String(64))
    subtheme_id: Mapped[str | None] = mapped_column(String(64))
    group_id: Mapped[str | None] = mapped_column(String(64))


class UserScopeCount(Base):
    __tablename__ = "user_scope_counts"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    metric: Mapped[str] = mapped_column(String(16), primary_key=True)  # answered/incorrect/bookmarked
    scope_kind: Mapped[str] = mapped_column(String(16), primary_key=True)  # global/theme/subtheme/group
    scope_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
