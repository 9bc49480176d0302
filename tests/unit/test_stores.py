"""Unit tests for the primary question and taxonomy stores."""

import pytest

from questionbank.aggregates.base import ScopeKind
from questionbank.errors import QuestionNotFoundError, TaxonomyMismatchError


@pytest.fixture
def bank(question_store, taxonomy):
    question_store.insert(id="q-a", title="A", theme_id="T1", subtheme_id="S1", group_id="G1")
    question_store.insert(id="q-b", title="B", theme_id="T1", subtheme_id="S1", group_id="G2")
    question_store.insert(id="q-c", title="C", theme_id="T1", subtheme_id="S1")
    question_store.insert(id="q-d", title="D", theme_id="T2")
    return question_store


class TestTaxonomyStore:
    """Tests for taxonomy creation and lookups."""

    def test_lookups(self, taxonomy_store, taxonomy):
        assert taxonomy_store.get_theme("T1").name == "Trauma"
        assert taxonomy_store.get_subtheme("S1").theme_id == "T1"
        assert taxonomy_store.get_group("G2").subtheme_id == "S1"
        assert taxonomy_store.get_group("G9") is None

    def test_bulk_lookups_skip_unknown(self, taxonomy_store, taxonomy):
        assert set(taxonomy_store.get_groups(["G1", "G9", "G1"])) == {"G1"}
        assert set(taxonomy_store.get_subthemes(["S1", "S2"])) == {"S1", "S2"}
        assert taxonomy_store.get_groups([]) == {}

    def test_list_ids(self, taxonomy_store, taxonomy):
        assert taxonomy_store.list_theme_ids() == ["T1", "T2"]
        assert taxonomy_store.list_subtheme_ids() == ["S1", "S2"]
        assert taxonomy_store.list_group_ids() == ["G1", "G2"]

    def test_child_requires_parent(self, taxonomy_store, taxonomy):
        with pytest.raises(TaxonomyMismatchError):
            taxonomy_store.create_subtheme("Orphan", "T9")
        with pytest.raises(TaxonomyMismatchError):
            taxonomy_store.create_group("Orphan", "S9")

    def test_generated_ids(self, taxonomy_store):
        theme = taxonomy_store.create_theme("Pediatria")
        subtheme = taxonomy_store.create_subtheme("Neonatologia", theme.id)
        assert len(theme.id) == 32
        assert taxonomy_store.get_subtheme(subtheme.id).theme_id == theme.id


class TestQuestionStoreWrites:
    """Tests for insert/patch/delete and the taxonomy invariant."""

    @pytest.mark.parametrize("taxonomy_fields", [
        {"theme_id": None},
        {"theme_id": "T9"},
        {"theme_id": "T2", "subtheme_id": "S1"},
        {"theme_id": "T1", "group_id": "G1"},
        {"theme_id": "T2", "subtheme_id": "S2", "group_id": "G1"},
        {"theme_id": "T1", "subtheme_id": "S1", "group_id": "G9"},
    ])
    def test_insert_rejects_inconsistent_taxonomy(self, question_store, taxonomy, taxonomy_fields):
        with pytest.raises(TaxonomyMismatchError):
            question_store.insert(title="Bad", **taxonomy_fields)
        assert question_store.count_all() == 0

    def test_insert_rejects_unknown_fields(self, question_store, taxonomy):
        with pytest.raises(TypeError):
            question_store.insert(title="Q", theme_id="T1", difficulty=3)

    def test_patch_unknown_question(self, question_store, taxonomy):
        with pytest.raises(QuestionNotFoundError):
            question_store.patch("missing", {"title": "x"})

    def test_patch_validates_merged_taxonomy(self, bank):
        with pytest.raises(TaxonomyMismatchError):
            bank.patch("q-a", {"group_id": None, "subtheme_id": "S2"})
        bank.patch("q-a", {"theme_id": "T2", "subtheme_id": "S2", "group_id": None})
        assert bank.get("q-a").taxonomy() == {"theme_id": "T2", "subtheme_id": "S2", "group_id": None}

    def test_delete(self, bank):
        assert bank.delete("q-a") is True
        assert bank.delete("q-a") is False
        assert bank.get("q-a") is None


class TestQuestionStoreReads:
    """Tests for scans, counts and pagination."""

    def test_get_many_preserves_order_and_drops_missing(self, bank):
        questions = bank.get_many(["q-c", "gone", "q-a", "q-c"])
        assert [q.id for q in questions] == ["q-c", "q-a"]

    def test_scans(self, bank):
        assert [q.id for q in bank.list_all()] == ["q-a", "q-b", "q-c", "q-d"]
        assert [q.id for q in bank.list_by_theme("T1")] == ["q-a", "q-b", "q-c"]
        assert [q.id for q in bank.list_by_subtheme("S1")] == ["q-a", "q-b", "q-c"]
        assert [q.id for q in bank.list_by_group("G2")] == ["q-b"]

    def test_counts(self, bank):
        assert bank.count_all() == 4
        assert bank.count_by_scope(ScopeKind.GLOBAL, "global") == 4
        assert bank.count_by_scope(ScopeKind.THEME, "T2") == 1
        assert bank.count_by_scope(ScopeKind.GROUP, "G1") == 1
        assert bank.count_grouped_by(ScopeKind.SUBTHEME) == {"S1": 3}

    def test_paginate(self, bank):
        first = bank.paginate(None, 3)
        assert [q.id for q in first] == ["q-a", "q-b", "q-c"]
        assert [q.id for q in bank.paginate(first[-1].id, 3)] == ["q-d"]
        assert bank.paginate("q-d", 3) == []
