"""Question selection modes for quiz creation."""

from __future__ import annotations

from enum import Enum

from questionbank.errors import InvalidModeError


class QuestionMode(str, Enum):
    ALL = "all"
    UNANSWERED = "unanswered"
    INCORRECT = "incorrect"
    BOOKMARKED = "bookmarked"

    @classmethod
    def parse(cls, value: QuestionMode | str) -> QuestionMode:
        """Coerce a raw value, raising InvalidModeError for anything unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidModeError(value) from None

    @property
    def is_filtered(self) -> bool:
        """Modes whose pool comes from the user's own activity."""
        return self is not QuestionMode.ALL


class TestMode(str, Enum):
    STUDY = "study"
    EXAM = "exam"

    __test__ = False  # not a pytest class
