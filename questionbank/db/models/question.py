"""
Question model: the primary collection the aggregates summarize.

Taxonomy invariant: group_id implies subtheme_id, the group's parent is
subtheme_id and the subtheme's parent is theme_id.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id

TAXONOMY_FIELDS = ("theme_id", "subtheme_id", "group_id")


class Question(Base):
    __tablename__ = "questions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    normalized_title: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    question_code: Mapped[str | None] = mapped_column(String(32))
    question_text: Mapped[str] = mapped_column(Text, default="")
    explanation_text: Mapped[str] = mapped_column(Text, default="")
    alternatives: Mapped[list] = mapped_column(JSON, default=list)
    correct_alternative_index: Mapped[int] = mapped_column(Integer, default=0)

    # Taxonomy
    theme_id: Mapped[str] = mapped_column(ForeignKey("themes.id"), nullable=False, index=True)
    subtheme_id: Mapped[str | None] = mapped_column(ForeignKey("subthemes.id"), index=True)
    group_id: Mapped[str | None] = mapped_column(ForeignKey("groups.id"), index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    def taxonomy(self) -> dict[str, str | None]:
        """Snapshot of the scoping fields."""
        return {field: getattr(self, field) for field in TAXONOMY_FIELDS}

    def __repr__(self) -> str:
        return (
            f"<Question {self.id} theme={self.theme_id} "
            f"subtheme={self.subtheme_id} group={self.group_id}>"
        )
