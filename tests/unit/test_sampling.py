"""
Unit tests for the random sampling assembler.

Uses the Trauma / Fraturas bank: 10 questions in G1, 5 in G2 and 3 tagged
to S1 without a group.
"""

import random

import pytest

from questionbank.aggregates.base import GLOBAL_NAMESPACE, SummaryEntry
from questionbank.aggregates.memory import InMemoryAggregateIndex
from questionbank.aggregates.registry import AggregateName, AggregateRegistry
from questionbank.quiz.sampling import RandomSamplingAssembler, fisher_yates_shuffle
from questionbank.quiz.scope_resolver import EffectiveScopes, HierarchicalScopeResolver, ScopeSelection


@pytest.fixture
def assembler(sync, question_store, rng):
    return RandomSamplingAssembler(sync.registry, question_store, rng=rng)


@pytest.fixture
def resolver(taxonomy_store):
    return HierarchicalScopeResolver(taxonomy_store)


def _assemble(assembler, resolver, target, themes=(), subthemes=(), groups=()):
    scopes = resolver.resolve(ScopeSelection.from_lists(themes, subthemes, groups))
    return assembler.assemble(scopes, target)


class TestFisherYates:
    """Tests for the shuffle helper."""

    def test_is_a_permutation(self):
        items = list(range(50))
        shuffled = fisher_yates_shuffle(items, random.Random(7))
        assert sorted(shuffled) == items
        assert items == list(range(50))

    def test_seeded_is_reproducible(self):
        items = list("abcdefgh")
        assert fisher_yates_shuffle(items, random.Random(3)) == fisher_yates_shuffle(items, random.Random(3))

    def test_empty_and_single(self):
        assert fisher_yates_shuffle([]) == []
        assert fisher_yates_shuffle(["only"]) == ["only"]


class TestScenarios:
    """End-to-end sampling over the Fraturas bank."""

    def test_subtheme_with_one_group_selected(self, assembler, resolver, fraturas_bank):
        """{subthemes: [S1], groups: [G1]} -> the 10 G1 questions plus the 8-question complement."""
        result = _assemble(assembler, resolver, 50, subthemes=["S1"], groups=["G1"])

        assert len(result) == 18
        assert len(set(result)) == 18
        assert set(result) == set(fraturas_bank.g1 + fraturas_bank.g2 + fraturas_bank.direct)

    def test_override_precedence_includes_grouped_question_once(self, assembler, resolver, fraturas_bank):
        result = _assemble(assembler, resolver, 50, themes=["T1"], subthemes=["S1"], groups=["G1"])

        q = fraturas_bank.g1[0]
        assert result.count(q) == 1
        assert set(fraturas_bank.g2 + fraturas_bank.direct) <= set(result)
        assert len(result) == len(set(result)) == 18

    def test_both_groups_selected_complement_is_direct_questions(self, assembler, resolver, fraturas_bank):
        result = _assemble(assembler, resolver, 50, subthemes=["S1"], groups=["G1", "G2"])
        assert set(result) == set(fraturas_bank.g1 + fraturas_bank.g2 + fraturas_bank.direct)

    def test_group_only(self, assembler, resolver, fraturas_bank):
        result = _assemble(assembler, resolver, 50, groups=["G2"])
        assert sorted(result) == sorted(fraturas_bank.g2)

    def test_subtheme_only_draws_from_random_pool(self, assembler, resolver, fraturas_bank):
        result = _assemble(assembler, resolver, 50, subthemes=["S1"])
        assert len(result) == 18

    def test_theme_only(self, assembler, resolver, fraturas_bank):
        result = _assemble(assembler, resolver, 50, themes=["T1"])
        assert len(result) == 18

    def test_unpopulated_theme_yields_nothing(self, assembler, resolver, fraturas_bank):
        assert _assemble(assembler, resolver, 50, themes=["T2"]) == []


class TestBoundedSampling:
    """The result never exceeds the target and never repeats an id."""

    @pytest.mark.parametrize("target", [1, 5, 17, 18, 40])
    def test_bounded_and_distinct(self, assembler, resolver, fraturas_bank, target):
        result = _assemble(assembler, resolver, target, themes=["T1"], subthemes=["S1"], groups=["G1"])

        assert len(result) == min(target, 18)
        assert len(set(result)) == len(result)

    def test_zero_target(self, assembler, resolver, fraturas_bank):
        assert _assemble(assembler, resolver, 0, groups=["G1"]) == []

    def test_empty_selection_draws_from_global_pool(self, rng, question_store):
        """Empty selection with target 20 over 1000 questions -> 20 distinct ids."""
        registry = AggregateRegistry.in_memory(rng=rng)
        pool = registry.get(AggregateName.RANDOM_GLOBAL)
        corpus = {f"q{i:04d}" for i in range(1000)}
        for question_id in corpus:
            pool.insert(SummaryEntry(question_id, GLOBAL_NAMESPACE))

        assembler = RandomSamplingAssembler(registry, question_store, rng=rng)
        result = assembler.assemble(EffectiveScopes(selection=ScopeSelection()), 20)

        assert len(result) == 20
        assert len(set(result)) == 20
        assert set(result) <= corpus

    def test_failing_pool_degrades_to_fewer_questions(self, question_store, fraturas_bank, sync):
        """A pool that cannot draw contributes nothing; the complement still arrives."""

        class Unavailable(InMemoryAggregateIndex):
            def random_sample(self, namespace, n):
                raise RuntimeError("pool offline")

        broken = sync.registry.get(AggregateName.RANDOM_BY_GROUP)
        indexes = {AggregateName(index.name): index for index in sync.registry}
        indexes[AggregateName.RANDOM_BY_GROUP] = Unavailable(broken.name, broken.scope, broken.purpose)
        assembler = RandomSamplingAssembler(AggregateRegistry(indexes), question_store)

        scopes = EffectiveScopes(
            selection=ScopeSelection.from_lists(subthemes=["S1"], groups=["G1"]),
            groups=["G1"],
            overridden_subthemes={"S1"},
            groups_by_subtheme={"S1": {"G1"}},
        )
        result = assembler.assemble(scopes, 50)

        assert sorted(result) == sorted(fraturas_bank.g2 + fraturas_bank.direct)
