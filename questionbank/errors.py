"""
Exception hierarchy for the question bank core.

Primary-row failures (not found, taxonomy mismatch, invalid mode) are fatal
and propagate to the caller. Aggregate failures derive from
AggregateIndexError and are caught, logged and reported by the sync layer.
"""

from __future__ import annotations


class QuestionBankError(Exception):
    """Base class for all question bank errors."""


class QuestionNotFoundError(QuestionBankError, LookupError):
    """Raised when a write targets a question id that does not exist."""

    def __init__(self, question_id: str):
        super().__init__(f"Question not found: {question_id}")
        self.question_id = question_id


class TaxonomyMismatchError(QuestionBankError, ValueError):
    """Raised when a question's theme/subtheme/group references disagree."""


class InvalidModeError(QuestionBankError, ValueError):
    """Raised for an unknown question mode."""

    def __init__(self, mode: object):
        super().__init__(f"Unknown question mode: {mode!r}")
        self.mode = mode


class AggregateIndexError(QuestionBankError):
    """An aggregate index operation failed."""

    def __init__(self, message: str, index_name: str | None = None):
        super().__init__(message)
        self.index_name = index_name


class EntryMissingError(AggregateIndexError, KeyError):
    """The index does not hold the targeted entry."""

    def __str__(self) -> str:
        # KeyError would otherwise wrap the message in quotes
        return str(self.args[0]) if self.args else "entry missing"


class DuplicateEntryError(AggregateIndexError):
    """The index already holds the entry being inserted."""


__all__ = [
    "QuestionBankError",
    "QuestionNotFoundError",
    "TaxonomyMismatchError",
    "InvalidModeError",
    "AggregateIndexError",
    "EntryMissingError",
    "DuplicateEntryError",
]
