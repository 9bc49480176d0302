"""Declarative base and shared column helpers."""

from __future__ import annotations

from uuid import uuid4

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def new_id() -> str:
    """Generate a string primary key."""
    return uuid4().hex
