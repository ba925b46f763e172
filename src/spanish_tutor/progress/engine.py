"""Quiz grading and stage progression.

Pure functions: inputs are never mutated, updated copies are returned.
"""

from datetime import datetime
from typing import Any

from spanish_tutor.errors import LessonConfigurationError, ValidationFailure
from spanish_tutor.models.lesson import Grading, QuestionResult
from spanish_tutor.models.profile import Mistake, Profile, Progress, utcnow

PASS_THRESHOLD = 75.0
UNANSWERED = -1


def extract_quiz(lesson_content: Any) -> list[dict]:
    """Return the quiz questions of a lesson; anything malformed counts as empty."""
    if not isinstance(lesson_content, dict):
        return []
    quiz = lesson_content.get("quiz")
    if not isinstance(quiz, list):
        return []
    return [q if isinstance(q, dict) else {} for q in quiz]


def extract_words(lesson_content: Any) -> list[str]:
    """Vocabulary from list-shaped lesson content; items without ``word`` are skipped."""
    if not isinstance(lesson_content, dict):
        return []
    items = lesson_content.get("content")
    if not isinstance(items, list):
        return []
    words = []
    for item in items:
        if not isinstance(item, dict):
            continue
        word = item.get("word")
        if isinstance(word, str) and word:
            words.append(word)
    return words


def validate_answers(quiz: list[dict], answers: list[int | None]) -> None:
    """Reject submissions with a wrong length or unanswered questions.

    Out-of-range option indices are allowed and simply graded as wrong.
    """
    if len(answers) != len(quiz):
        raise ValidationFailure(
            f"Expected {len(quiz)} answers but received {len(answers)}"
        )
    unanswered = [i for i, a in enumerate(answers) if a is None or a <= UNANSWERED]
    if unanswered:
        raise ValidationFailure(
            "Please answer all questions before submitting "
            f"(unanswered: {', '.join(str(i + 1) for i in unanswered)})"
        )


def grade_quiz(quiz: list[dict], answers: list[int | None]) -> Grading:
    """Compare each answer with the stored correct index.

    Raises:
        LessonConfigurationError: The lesson has no questions to grade.
    """
    if not quiz:
        raise LessonConfigurationError("Lesson has no quiz questions")

    results = []
    for i, question in enumerate(quiz):
        answer = answers[i] if i < len(answers) else None
        correct = question.get("correct")
        results.append(
            QuestionResult(
                question=str(question.get("question", "")),
                user_answer=answer,
                correct_answer=correct,
                is_correct=answer is not None and answer == correct,
            )
        )

    correct_count = sum(1 for r in results if r.is_correct)
    score = 100 * correct_count / len(quiz)
    return Grading(score=score, results=results, passed=score >= PASS_THRESHOLD)


def running_accuracy(previous: float, previous_count: int, score: float) -> float:
    """Incremental mean: weight the old mean by the pre-increment count."""
    return (previous * previous_count + score) / (previous_count + 1)


def apply_grading(
    profile: Profile,
    progress: Progress,
    lesson_id: str,
    lesson_content: Any,
    grading: Grading,
    *,
    max_stage: int,
    now: datetime | None = None,
) -> tuple[Profile, Progress]:
    """Fold one graded submission into copies of the profile and progress."""
    now = now or utcnow()

    previous_count = profile.lessons_completed
    stage = profile.current_stage
    if grading.passed and stage < max_stage:
        stage += 1
    updated_profile = profile.model_copy(
        update={
            "lessons_completed": previous_count + 1,
            "overall_accuracy": running_accuracy(
                profile.overall_accuracy, previous_count, grading.score
            ),
            "current_stage": stage,
        }
    )

    words = list(progress.words_learned)
    for word in extract_words(lesson_content):
        if word not in words:
            words.append(word)

    mistakes = list(progress.mistakes)
    mistakes.extend(
        Mistake(question=r.question, timestamp=now)
        for r in grading.results
        if not r.is_correct
    )

    updated_progress = progress.model_copy(
        update={
            "words_learned": words,
            "mistakes": mistakes,
            "completed_lessons": [*progress.completed_lessons, lesson_id],
        }
    )
    return updated_profile, updated_progress


def advance_on_submission(
    profile: Profile,
    progress: Progress,
    lesson_id: str,
    lesson_content: Any,
    answers: list[int | None],
    *,
    max_stage: int = 5,
    now: datetime | None = None,
) -> tuple[Profile, Progress, Grading]:
    """Grade ``answers`` against the lesson quiz and advance the learner.

    Args:
        profile: Current profile record.
        progress: Current progress record.
        lesson_id: Id of the lesson being submitted.
        lesson_content: Parsed lesson JSON containing ``quiz``.
        answers: One selected option index per question.
        max_stage: Highest reachable stage.
        now: Timestamp recorded on new mistakes.

    Returns:
        ``(updated_profile, updated_progress, grading)``.
    """
    grading = grade_quiz(extract_quiz(lesson_content), answers)
    updated_profile, updated_progress = apply_grading(
        profile, progress, lesson_id, lesson_content, grading, max_stage=max_stage, now=now
    )
    return updated_profile, updated_progress, grading
