"""Lesson and quiz result records."""

from datetime import datetime
from typing import Any

from pydantic import Field

from spanish_tutor.models.profile import CamelModel, utcnow


class Lesson(CamelModel):
    """One generated lesson. ``content`` is the parsed LLM JSON, unvalidated."""

    user_id: str
    stage: int
    content: Any
    created_at: datetime = Field(default_factory=utcnow)


class QuestionResult(CamelModel):
    question: str
    user_answer: int | None
    correct_answer: Any = None
    is_correct: bool


class Grading(CamelModel):
    score: float
    results: list[QuestionResult]
    passed: bool

    @property
    def correct_count(self) -> int:
        return sum(1 for r in self.results if r.is_correct)


class QuizResult(CamelModel):
    user_id: str
    lesson_id: str
    score: float
    answers: list[int | None]
    results: list[QuestionResult]
    timestamp: datetime = Field(default_factory=utcnow)


class SubmissionResult(CamelModel):
    """Response body of a quiz submission."""

    score: float
    results: list[QuestionResult]
    passed: bool
    new_stage: int | None = None
