"""
Quiz creation entry point.

QuestionCollector.collect_questions composes scope resolution, random
sampling (mode "all") and mode-filtered pools (every other mode).
CustomQuizService turns the collected pool into a persisted CustomQuiz.
"""

from __future__ import annotations

import random
from collections.abc import Iterable
from datetime import date

from loguru import logger
from sqlalchemy.orm import sessionmaker

from config import Settings, get_settings
from questionbank.aggregates.registry import AggregateRegistry
from questionbank.db.database import session_scope
from questionbank.db.models import CustomQuiz, Question
from questionbank.quiz.mode_filter import ModeFilteredPoolResolver
from questionbank.quiz.modes import QuestionMode
from questionbank.quiz.sampling import RandomSamplingAssembler, fisher_yates_shuffle
from questionbank.quiz.schemas import CustomQuizRequest, QuizCreationResult
from questionbank.quiz.scope_resolver import HierarchicalScopeResolver, ScopeSelection
from questionbank.stores.question_store import QuestionStore
from questionbank.stores.taxonomy_store import TaxonomyStore
from questionbank.stores.user_store import UserActivityStore

NO_QUESTIONS_FOUND = "NO_QUESTIONS_FOUND"
NO_QUESTIONS_FOUND_AFTER_FILTER = "NO_QUESTIONS_FOUND_AFTER_FILTER"


class QuestionCollector:
    def __init__(
        self,
        question_store: QuestionStore,
        scope_resolver: HierarchicalScopeResolver,
        assembler: RandomSamplingAssembler,
        pool_resolver: ModeFilteredPoolResolver,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        self.question_store = question_store
        self.scope_resolver = scope_resolver
        self.assembler = assembler
        self.pool_resolver = pool_resolver
        self.settings = settings or get_settings()
        self._rng = rng or random.Random()

    @classmethod
    def from_session_factory(
        cls,
        session_factory: sessionmaker,
        registry: AggregateRegistry,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ) -> QuestionCollector:
        question_store = QuestionStore(session_factory)
        taxonomy_store = TaxonomyStore(session_factory)
        return cls(
            question_store=question_store,
            scope_resolver=HierarchicalScopeResolver(taxonomy_store),
            assembler=RandomSamplingAssembler(registry, question_store, rng=rng),
            pool_resolver=ModeFilteredPoolResolver(UserActivityStore(session_factory), taxonomy_store),
            settings=settings,
            rng=rng,
        )

    def collect_questions(
        self,
        user_id: str,
        mode: QuestionMode | str,
        selected_themes: Iterable[str] | None,
        selected_subthemes: Iterable[str] | None,
        selected_groups: Iterable[str] | None,
        max_count: int,
    ) -> list[Question]:
        """
        Collect the candidate questions for a quiz.

        Mode "all" returns at most max_count questions. Other modes return the
        whole filtered pool, or max_count * unfiltered_pool_multiplier
        candidates when nothing was selected; the caller shuffles and cuts.

        Raises:
            InvalidModeError: unknown mode
        """
        mode = QuestionMode.parse(mode)
        selection = ScopeSelection.from_lists(selected_themes, selected_subthemes, selected_groups)

        if mode is QuestionMode.ALL:
            scopes = self.scope_resolver.resolve(selection)
            ids = self.assembler.assemble(scopes, max_count)
            # Ids deleted between the draw and this read are dropped
            questions = self.question_store.get_many(ids)
            logger.info(f"Collected {len(questions)} questions (mode=all, max={max_count})")
            return questions

        pool = self.pool_resolver.resolve(user_id, mode, selection)
        if selection.is_empty:
            limit = max_count * self.settings.unfiltered_pool_multiplier
            if len(pool) > limit:
                pool = fisher_yates_shuffle(pool, self._rng)[:limit]
        logger.info(f"Collected {len(pool)} questions (mode={mode.value}, user={user_id})")
        return pool


class CustomQuizService:
    def __init__(
        self,
        collector: QuestionCollector,
        session_factory: sessionmaker,
        settings: Settings | None = None,
        rng: random.Random | None = None,
    ):
        self.collector = collector
        self._session_factory = session_factory
        self.settings = settings or get_settings()
        self._rng = rng or random.Random()

    def create(self, user_id: str, request: CustomQuizRequest) -> QuizCreationResult:
        """Collect, shuffle and persist a custom quiz for a user."""
        cap = self.settings.max_quiz_questions
        requested = min(request.num_questions, cap) if request.num_questions else cap

        questions = self.collector.collect_questions(
            user_id,
            request.question_mode,
            request.selected_themes,
            request.selected_subthemes,
            request.selected_groups,
            requested,
        )

        if not questions:
            if request.question_mode.is_filtered:
                return QuizCreationResult(
                    success=False,
                    error=NO_QUESTIONS_FOUND_AFTER_FILTER,
                    error_message="No questions matched the selected filters. Adjust the filters or pick other themes.",
                )
            return QuizCreationResult(
                success=False,
                error=NO_QUESTIONS_FOUND,
                error_message="No questions matched the selected criteria. Adjust the filters or pick other themes.",
            )

        question_ids = [question.id for question in questions]
        if len(question_ids) > requested:
            question_ids = fisher_yates_shuffle(question_ids, self._rng)[:requested]

        quiz = CustomQuiz(
            name=request.name or f"Custom Quiz - {date.today().isoformat()}",
            description=request.description or f"Custom quiz with {len(question_ids)} questions",
            author_id=user_id,
            test_mode=request.test_mode.value,
            question_mode=request.question_mode.value,
            question_ids=question_ids,
            selected_themes=list(request.selected_themes),
            selected_subthemes=list(request.selected_subthemes),
            selected_groups=list(request.selected_groups),
        )
        with session_scope(self._session_factory) as session:
            session.add(quiz)
            session.flush()
            quiz_id = quiz.id

        logger.info(f"Created custom quiz {quiz_id} with {len(question_ids)} questions for user {user_id}")
        return QuizCreationResult(success=True, quiz_id=quiz_id, question_count=len(question_ids))
