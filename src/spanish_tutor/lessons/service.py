"""Lesson start: generate for the learner's current stage and persist."""

from typing import Any

import structlog
from starlette.concurrency import run_in_threadpool

from spanish_tutor.errors import NotFound
from spanish_tutor.lessons.generator import LessonGenerator
from spanish_tutor.models.lesson import Lesson
from spanish_tutor.storage import records
from spanish_tutor.storage.kv import KeyValueStore

logger = structlog.get_logger()


async def start_lesson(
    store: KeyValueStore, generator: LessonGenerator, user_id: str
) -> tuple[str, Any]:
    """Return ``(lesson_id, content)`` for a freshly generated, stored lesson.

    Store access blocks on file locks and disk IO and runs in the threadpool.
    """
    profile = await run_in_threadpool(records.load_profile, store, user_id)
    progress = await run_in_threadpool(records.load_progress, store, user_id)
    if profile is None or progress is None:
        raise NotFound("Profile not found")

    content = await generator.generate(
        profile.current_stage,
        words_learned=progress.words_learned,
        mistakes=[m.question for m in progress.mistakes],
    )
    lesson_id = await run_in_threadpool(
        records.create_lesson,
        store,
        Lesson(user_id=user_id, stage=profile.current_stage, content=content),
    )
    logger.info("lesson_generated", user_id=user_id, lesson_id=lesson_id, stage=profile.current_stage)
    return lesson_id, content
