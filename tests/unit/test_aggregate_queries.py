"""Unit tests for count and random-draw queries over the aggregates."""

import pytest

from questionbank.aggregates.base import Bounds, ScopeKind
from questionbank.aggregates.memory import InMemoryAggregateIndex
from questionbank.aggregates.queries import AggregateQueries
from questionbank.aggregates.registry import AggregateName, AggregateRegistry
from questionbank.errors import InvalidModeError
from questionbank.stats.counters import CounterMetric, UserStatsCounter
from questionbank.stats.user_stats import UserStatsService

USER = "user-1"


@pytest.fixture
def queries(sync, question_store, session_factory):
    return AggregateQueries(sync.registry, question_store, UserStatsCounter(session_factory))


class TestCounts:
    """Tests for scoped counts."""

    def test_scoped_counts(self, queries, fraturas_bank):
        assert queries.total_question_count() == 18
        assert queries.theme_question_count("T1") == 18
        assert queries.theme_question_count("T2") == 0
        assert queries.subtheme_question_count("S1") == 18
        assert queries.group_question_count("G1") == 10
        assert queries.group_question_count("G2") == 5

    def test_bounded_theme_count(self, queries, fraturas_bank):
        # ids are "g1-00".."g1-09", "g2-00".."g2-04", "s1-00".."s1-02"
        assert queries.theme_question_count("T1", Bounds(lower="g2-00", upper="g2-99")) == 5

    def test_count_falls_back_to_scan(self, question_store, fraturas_bank, sync):
        class Unavailable(InMemoryAggregateIndex):
            def count(self, namespace, bounds=None):
                raise RuntimeError("index offline")

        indexes = {AggregateName(index.name): index for index in sync.registry}
        broken = indexes[AggregateName.COUNT_BY_GROUP]
        indexes[AggregateName.COUNT_BY_GROUP] = Unavailable(broken.name, broken.scope, broken.purpose)
        queries = AggregateQueries(AggregateRegistry(indexes), question_store)

        assert queries.group_question_count("G1") == 10
        assert queries.group_question_count("G1", Bounds(upper="g1-04")) == 5


class TestRandomDraws:
    """Tests for bounded random draws."""

    def test_draws_are_scoped(self, queries, fraturas_bank):
        assert sorted(queries.random_questions_by_group("G2", 10)) == sorted(fraturas_bank.g2)
        assert len(queries.random_questions_by_theme("T1", 4)) == 4
        assert len(queries.random_questions_by_subtheme("S1", 50)) == 18
        assert len(queries.random_questions(7)) == 7

    def test_failing_pool_returns_empty(self, question_store, fraturas_bank, sync):
        class Unavailable(InMemoryAggregateIndex):
            def random_sample(self, namespace, n):
                raise RuntimeError("pool offline")

        indexes = {AggregateName(index.name): index for index in sync.registry}
        broken = indexes[AggregateName.RANDOM_GLOBAL]
        indexes[AggregateName.RANDOM_GLOBAL] = Unavailable(broken.name, broken.scope, broken.purpose)
        queries = AggregateQueries(AggregateRegistry(indexes), question_store)

        assert queries.random_questions(5) == []


class TestModeCounts:
    """Tests for per-mode counts."""

    def test_counts_for_user(self, queries, session_factory, fraturas_bank):
        stats = UserStatsService(session_factory)
        stats.record_answer(USER, fraturas_bank.g1[0], is_correct=False)
        stats.record_answer(USER, fraturas_bank.g1[1], is_correct=True)
        stats.toggle_bookmark(USER, fraturas_bank.direct[0])

        assert queries.all_question_counts(USER) == {
            "all": 18,
            "unanswered": 16,
            "incorrect": 1,
            "bookmarked": 1,
        }

    def test_counts_without_user(self, queries, fraturas_bank):
        assert queries.all_question_counts() == {"all": 18, "unanswered": 0, "incorrect": 0, "bookmarked": 0}

    def test_unanswered_never_negative(self, queries, session_factory, fraturas_bank):
        counter = UserStatsCounter(session_factory)
        counter.adjust(USER, CounterMetric.ANSWERED, [(ScopeKind.GLOBAL, "global")], 500)
        assert queries.count_for_mode("unanswered", USER) == 0


@pytest.fixture
def selection_queries(sync, question_store, taxonomy_store, activity_store, session_factory):
    return AggregateQueries(
        sync.registry,
        question_store,
        UserStatsCounter(session_factory),
        taxonomy_store=taxonomy_store,
        activity_store=activity_store,
    )


@pytest.fixture
def activity(session_factory, fraturas_bank):
    """Wrong on g1-00, g2-00 and s1-00, right on g1-01, bookmark on g2-01."""
    stats = UserStatsService(session_factory)
    for question_id in (fraturas_bank.g1[0], fraturas_bank.g2[0], fraturas_bank.direct[0]):
        stats.record_answer(USER, question_id, is_correct=False)
    stats.record_answer(USER, fraturas_bank.g1[1], is_correct=True)
    stats.toggle_bookmark(USER, fraturas_bank.g2[1])
    return fraturas_bank


class TestSelectionCounts:
    """Tests for mode counts within a theme/subtheme/group selection."""

    def test_empty_selection_uses_mode_counts(self, selection_queries, activity):
        assert selection_queries.count_for_selection("all", USER) == 18
        assert selection_queries.count_for_selection("unanswered", USER, [], [], []) == 14

    @pytest.mark.parametrize(
        "themes, subthemes, groups, expected",
        [
            ([], [], ["G1"], 10),
            ([], [], ["G1", "G2"], 15),
            ([], ["S1"], ["G1"], 18),
            (["T1"], ["S1"], ["G1"], 18),
            ([], ["S1"], ["G2"], 18),
            (["T1"], [], ["G2"], 5),
            (["T1", "T2"], [], [], 18),
        ],
    )
    def test_all_mode_counts_overlap_once(self, selection_queries, fraturas_bank, themes, subthemes, groups, expected):
        assert selection_queries.count_for_selection("all", None, themes, subthemes, groups) == expected

    def test_single_node_reads_user_counters(self, selection_queries, activity):
        assert selection_queries.count_for_selection("incorrect", USER, groups=["G1"]) == 1
        assert selection_queries.count_for_selection("incorrect", USER, subthemes=["S1"]) == 3
        assert selection_queries.count_for_selection("unanswered", USER, subthemes=["S1"]) == 14
        assert selection_queries.count_for_selection("unanswered", USER, groups=["G2"]) == 4
        assert selection_queries.count_for_selection("bookmarked", USER, themes=["T1"]) == 1

    def test_overlapping_selection_filters_user_pool(self, selection_queries, activity):
        # g2-00 sits in S1, but S1 is narrowed to G1 plus its ungrouped questions
        assert selection_queries.count_for_selection("incorrect", USER, [], ["S1"], ["G1"]) == 2
        assert selection_queries.count_for_selection("incorrect", USER, ["T1"], ["S1"], ["G1"]) == 2
        assert selection_queries.count_for_selection("unanswered", USER, [], ["S1"], ["G1"]) == 10
        assert selection_queries.count_for_selection("bookmarked", USER, ["T1"], [], ["G1"]) == 1

    def test_single_node_without_counters_scans(self, sync, question_store, taxonomy_store, activity_store, activity):
        queries = AggregateQueries(
            sync.registry, question_store, taxonomy_store=taxonomy_store, activity_store=activity_store
        )
        assert queries.count_for_selection("incorrect", USER, groups=["G1"]) == 1
        assert queries.count_for_selection("unanswered", USER, groups=["G2"]) == 4

    def test_user_modes_without_user(self, selection_queries, activity):
        assert selection_queries.count_for_selection("incorrect", None, [], ["S1"], ["G1"]) == 0

    def test_invalid_mode(self, selection_queries, fraturas_bank):
        with pytest.raises(InvalidModeError):
            selection_queries.count_for_selection("favorites", USER, themes=["T1"])
