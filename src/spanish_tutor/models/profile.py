"""Per-user profile and progress records."""

from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model whose wire/storage form uses camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class StartingLevel(StrEnum):
    """Self-reported proficiency chosen at onboarding."""

    NONE = "none"
    BEGINNER = "beginner"
    LOW_BEGINNER = "low-beginner"


class Profile(CamelModel):
    user_id: str
    name: str
    email: str
    level: StartingLevel | None = None
    current_stage: int = 1
    lessons_completed: int = 0
    overall_accuracy: float = 0.0
    created_at: datetime = Field(default_factory=utcnow)


class Mistake(CamelModel):
    question: str
    timestamp: datetime = Field(default_factory=utcnow)


class Progress(CamelModel):
    words_learned: list[str] = Field(default_factory=list)
    mistakes: list[Mistake] = Field(default_factory=list)
    completed_lessons: list[str] = Field(default_factory=list)
