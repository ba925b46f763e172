"""Quiz submission: grade, record the result, then commit the learner update."""

import structlog

from spanish_tutor.errors import ConflictError, NotFound
from spanish_tutor.models.lesson import QuizResult, SubmissionResult
from spanish_tutor.progress.engine import (
    apply_grading,
    extract_quiz,
    grade_quiz,
    validate_answers,
)
from spanish_tutor.storage import records
from spanish_tutor.storage.kv import KeyValueStore

logger = structlog.get_logger()


def submit_quiz(
    store: KeyValueStore,
    user_id: str,
    lesson_id: str,
    answers: list[int | None],
    *,
    max_stage: int = 5,
    max_attempts: int = 5,
) -> SubmissionResult:
    """Grade a submission and advance the learner's profile and progress.

    The quiz result is always stored. Profile and progress are committed
    together with a versioned compare-and-set; on a concurrent write the
    update is recomputed from fresh records. When either record is missing
    the grading is still returned but nothing else is persisted.

    Raises:
        NotFound: The lesson does not exist for this user.
        ValidationFailure: Answers do not match the quiz.
        ConflictError: Every compare-and-set attempt lost a race.
    """
    lesson = records.load_lesson(store, user_id, lesson_id)
    if lesson is None:
        raise NotFound("Lesson not found")

    quiz = extract_quiz(lesson.content)
    if quiz:
        validate_answers(quiz, answers)
    grading = grade_quiz(quiz, answers)

    result_id = records.create_quiz_result(
        store,
        QuizResult(
            user_id=user_id,
            lesson_id=lesson_id,
            score=grading.score,
            answers=answers,
            results=grading.results,
        ),
    )
    logger.info(
        "quiz_graded",
        user_id=user_id,
        lesson_id=lesson_id,
        result_id=result_id,
        score=grading.score,
        passed=grading.passed,
    )

    for attempt in range(1, max_attempts + 1):
        profile, profile_version = records.load_profile_versioned(store, user_id)
        progress, progress_version = records.load_progress_versioned(store, user_id)

        if profile is None or progress is None:
            logger.warning(
                "progress_update_skipped",
                user_id=user_id,
                has_profile=profile is not None,
                has_progress=progress is not None,
            )
            return SubmissionResult(
                score=grading.score,
                results=grading.results,
                passed=grading.passed,
                new_stage=profile.current_stage if profile else None,
            )

        updated_profile, updated_progress = apply_grading(
            profile, progress, lesson_id, lesson.content, grading, max_stage=max_stage
        )
        committed = store.compare_and_set_many({
            records.profile_key(user_id): (updated_profile.to_record(), profile_version),
            records.progress_key(user_id): (updated_progress.to_record(), progress_version),
        })
        if committed:
            if updated_profile.current_stage != profile.current_stage:
                logger.info(
                    "stage_advanced",
                    user_id=user_id,
                    old_stage=profile.current_stage,
                    new_stage=updated_profile.current_stage,
                )
            return SubmissionResult(
                score=grading.score,
                results=grading.results,
                passed=grading.passed,
                new_stage=updated_profile.current_stage,
            )
        logger.info("progress_update_conflict", user_id=user_id, attempt=attempt)

    raise ConflictError("Progress was updated concurrently, please retry")
