# SQLAlchemy models
from .aggregate import AggregateEntry
from .base import Base, new_id
from .question import TAXONOMY_FIELDS, Question
from .quiz import CustomQuiz
from .taxonomy import Group, Subtheme, Theme
from .user_stats import UserBookmark, UserQuestionStat, UserScopeCount

__all__ = [
    # Base
    "Base",
    "new_id",
    # Taxonomy
    "Theme",
    "Subtheme",
    "Group",
    # Questions
    "Question",
    "TAXONOMY_FIELDS",
    # Aggregates
    "AggregateEntry",
    # User activity
    "UserQuestionStat",
    "UserBookmark",
    "UserScopeCount",
    # Quizzes
    "CustomQuiz",
]
