"""In-progress quiz answers held by the client until submission."""

from typing import Any

from spanish_tutor.client.api import TutorClient
from spanish_tutor.progress.engine import UNANSWERED, extract_quiz


class IncompleteQuizError(Exception):
    def __init__(self, unanswered: list[int]):
        super().__init__("Please answer all questions before submitting.")
        self.unanswered = unanswered


class QuizSession:
    """Answers for one generated lesson, one slot per question."""

    def __init__(self, lesson_id: str, lesson: Any):
        self.lesson_id = lesson_id
        self.lesson = lesson
        self.questions = extract_quiz(lesson)
        self.answers: list[int] = [UNANSWERED] * len(self.questions)

    def select(self, question: int, option: int) -> None:
        if not 0 <= question < len(self.questions):
            raise IndexError(f"No question {question}")
        options = self.questions[question].get("options") or []
        if not 0 <= option < len(options):
            raise IndexError(f"Question {question} has no option {option}")
        self.answers[question] = option

    @property
    def unanswered(self) -> list[int]:
        return [i for i, a in enumerate(self.answers) if a == UNANSWERED]

    @property
    def is_complete(self) -> bool:
        return not self.unanswered

    def submit(self, client: TutorClient) -> dict:
        """Send the answers; refuses while any question is unanswered."""
        if not self.is_complete:
            raise IncompleteQuizError(self.unanswered)
        return client.submit_quiz(self.lesson_id, list(self.answers))
