"""Custom quiz model: a persisted, user-authored question list."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id


class CustomQuiz(Base):
    __tablename__ = "custom_quizzes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    author_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    test_mode: Mapped[str] = mapped_column(String(16), nullable=False)  # study/exam
    question_mode: Mapped[str] = mapped_column(String(16), nullable=False)
    question_ids: Mapped[list] = mapped_column(JSON, default=list)

    selected_themes: Mapped[list] = mapped_column(JSON, default=list)
    selected_subthemes: Mapped[list] = mapped_column(JSON, default=list)
    selected_groups: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
