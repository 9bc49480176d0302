"""
Taxonomy models: a strict three-level tree.

Theme -> Subtheme -> Group. A subtheme has exactly one parent theme and a
group has exactly one parent subtheme. The core only reads these rows.
"""

from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, new_id


class Theme(Base):
    __tablename__ = "themes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    prefix: Mapped[str | None] = mapped_column(String(16))
    display_order: Mapped[int | None] = mapped_column(Integer)

    def __repr__(self) -> str:
        return f"<Theme {self.id} {self.name!r}>"


class Subtheme(Base):
    __tablename__ = "subthemes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    theme_id: Mapped[str] = mapped_column(
        ForeignKey("themes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    prefix: Mapped[str | None] = mapped_column(String(16))

    def __repr__(self) -> str:
        return f"<Subtheme {self.id} {self.name!r} theme={self.theme_id}>"


class Group(Base):
    __tablename__ = "groups"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    subtheme_id: Mapped[str] = mapped_column(
        ForeignKey("subthemes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    prefix: Mapped[str | None] = mapped_column(String(16))

    def __repr__(self) -> str:
        return f"<Group {self.id} {self.name!r} subtheme={self.subtheme_id}>"
