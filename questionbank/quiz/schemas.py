"""Request/response models for custom quiz creation."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from questionbank.quiz.modes import QuestionMode, TestMode


class CustomQuizRequest(BaseModel):
    """Request model for creating a custom quiz."""

    name: str | None = Field(None, description="Quiz name (defaults to 'Custom Quiz - <date>')")
    description: str | None = Field(None, description="Quiz description")
    test_mode: TestMode = Field(TestMode.STUDY, description="Test mode: study or exam")
    question_mode: QuestionMode = Field(
        QuestionMode.ALL,
        description="Question mode: all, unanswered, incorrect, bookmarked",
    )
    num_questions: int | None = Field(None, ge=1, description="Requested quiz size (capped by settings)")
    selected_themes: list[str] = Field(default_factory=list)
    selected_subthemes: list[str] = Field(default_factory=list)
    selected_groups: list[str] = Field(default_factory=list)

    @field_validator("question_mode", mode="before")
    @classmethod
    def _parse_mode(cls, value):
        return QuestionMode.parse(value)


class QuizCreationResult(BaseModel):
    """Outcome of a custom quiz creation attempt."""

    success: bool
    quiz_id: str | None = None
    question_count: int = 0
    error: str | None = None
    error_message: str | None = None
