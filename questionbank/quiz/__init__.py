"""Custom quiz creation: scope resolution, sampling and mode-filtered pools."""

from questionbank.quiz.collector import (
    NO_QUESTIONS_FOUND,
    NO_QUESTIONS_FOUND_AFTER_FILTER,
    CustomQuizService,
    QuestionCollector,
)
from questionbank.quiz.mode_filter import ModeFilteredPoolResolver
from questionbank.quiz.modes import QuestionMode, TestMode
from questionbank.quiz.sampling import RandomSamplingAssembler, fisher_yates_shuffle
from questionbank.quiz.schemas import CustomQuizRequest, QuizCreationResult
from questionbank.quiz.scope_resolver import EffectiveScopes, HierarchicalScopeResolver, ScopeSelection

__all__ = [
    "NO_QUESTIONS_FOUND",
    "NO_QUESTIONS_FOUND_AFTER_FILTER",
    "CustomQuizRequest",
    "CustomQuizService",
    "EffectiveScopes",
    "HierarchicalScopeResolver",
    "ModeFilteredPoolResolver",
    "QuestionCollector",
    "QuestionMode",
    "QuizCreationResult",
    "RandomSamplingAssembler",
    "ScopeSelection",
    "TestMode",
    "fisher_yates_shuffle",
]
