"""Per-user statistics: answer stats, bookmarks and scope counters."""

from questionbank.stats.counters import CounterMetric, UserStatsCounter, scope_keys
from questionbank.stats.user_stats import AnswerResult, UserStatsService

__all__ = [
    "AnswerResult",
    "CounterMetric",
    "UserStatsCounter",
    "UserStatsService",
    "scope_keys",
]
