"""
Aggregate entry rows for the SQL-backed aggregate index.

One row per (index, question) where the index's scope field is present on
the question. The namespace is the scope value ("global" for the two
corpus-wide indexes).
"""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class AggregateEntry(Base):
    __tablename__ = "aggregate_entries"

    index_name: Mapped[str] = mapped_column(String(64), primary_key=True)
    namespace: Mapped[str] = mapped_column(String(64), primary_key=True)
    question_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    def __repr__(self) -> str:
        return f"<AggregateEntry {self.index_name}:{self.namespace}:{self.question_id}>"
