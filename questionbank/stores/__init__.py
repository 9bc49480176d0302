"""Primary data stores."""

from questionbank.stores.question_store import QuestionStore, normalize_title
from questionbank.stores.taxonomy_store import TaxonomyStore, validate_question_taxonomy
from questionbank.stores.user_store import UserActivityStore

__all__ = [
    "QuestionStore",
    "TaxonomyStore",
    "UserActivityStore",
    "normalize_title",
    "validate_question_taxonomy",
]
