"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
Tests run against an in-memory SQLite database; no server is required.
"""
import random
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from questionbank.aggregates.registry import AggregateRegistry  # noqa: E402
from questionbank.aggregates.sync import AggregateSyncOrchestrator  # noqa: E402
from questionbank.db.database import create_session_factory  # noqa: E402
from questionbank.db.models import Base  # noqa: E402
from questionbank.stores import QuestionStore, TaxonomyStore, UserActivityStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ========================================
# Database
# ========================================


@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def settings():
    """Settings isolated from the environment's database and log file."""
    return Settings(
        database_url="sqlite://",
        aggregate_backend="memory",
        log_file=None,
        max_quiz_questions=120,
        unfiltered_pool_multiplier=2,
    )


# ========================================
# Stores and registries
# ========================================


@pytest.fixture
def question_store(session_factory):
    return QuestionStore(session_factory)


@pytest.fixture
def taxonomy_store(session_factory):
    return TaxonomyStore(session_factory)


@pytest.fixture
def activity_store(session_factory):
    return UserActivityStore(session_factory)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture(params=["memory", "sql"])
def registry(request, session_factory, rng):
    """Both aggregate backends; tests using this run once per backend."""
    if request.param == "memory":
        return AggregateRegistry.in_memory(rng=rng)
    return AggregateRegistry.sql(session_factory)


@pytest.fixture
def memory_registry(rng):
    return AggregateRegistry.in_memory(rng=rng)


@pytest.fixture
def sync(question_store, registry):
    return AggregateSyncOrchestrator(question_store, registry)


# ========================================
# Taxonomy: Trauma / Fraturas
# ========================================


@pytest.fixture
def taxonomy(taxonomy_store):
    """
    Theme "Trauma" (T1) with subtheme "Fraturas" (S1) and its groups
    "Classificação" (G1) and "Tratamento" (G2), plus a second theme
    "Cardiologia" (T2) with subtheme "Arritmias" (S2).
    """
    taxonomy_store.create_theme("Trauma", theme_id="T1")
    taxonomy_store.create_subtheme("Fraturas", "T1", subtheme_id="S1")
    taxonomy_store.create_group("Classificação", "S1", group_id="G1")
    taxonomy_store.create_group("Tratamento", "S1", group_id="G2")
    taxonomy_store.create_theme("Cardiologia", theme_id="T2")
    taxonomy_store.create_subtheme("Arritmias", "T2", subtheme_id="S2")
    return SimpleNamespace(theme="T1", subtheme="S1", g1="G1", g2="G2", other_theme="T2", other_subtheme="S2")


def _make_questions(sync, prefix, count, **taxonomy):
    questions = []
    for i in range(count):
        question, _ = sync.insert_question(
            id=f"{prefix}-{i:02d}",
            title=f"  {prefix.upper()} Question {i}  ",
            question_text=f"Text for {prefix} {i}",
            alternatives=["A", "B", "C", "D"],
            correct_alternative_index=0,
            **taxonomy,
        )
        questions.append(question)
    return questions


@pytest.fixture
def make_questions(sync):
    """Factory: insert N questions through the sync layer."""

    def _make(prefix, count, **taxonomy):
        return _make_questions(sync, prefix, count, **taxonomy)

    return _make


@pytest.fixture
def fraturas_bank(taxonomy, make_questions):
    """10 questions in G1, 5 in G2 and 3 tagged to S1 directly."""
    g1 = make_questions("g1", 10, theme_id="T1", subtheme_id="S1", group_id="G1")
    g2 = make_questions("g2", 5, theme_id="T1", subtheme_id="S1", group_id="G2")
    direct = make_questions("s1", 3, theme_id="T1", subtheme_id="S1")
    return SimpleNamespace(
        g1=[q.id for q in g1],
        g2=[q.id for q in g2],
        direct=[q.id for q in direct],
    )
