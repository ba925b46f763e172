"""Typed access to profile, progress, lesson and quiz result records."""

import time

from spanish_tutor.models.lesson import Lesson, QuizResult
from spanish_tutor.models.profile import Profile, Progress
from spanish_tutor.storage.kv import KeyValueStore


def profile_key(user_id: str) -> str:
    return f"profile:{user_id}"


def progress_key(user_id: str) -> str:
    return f"progress:{user_id}"


def lesson_prefix(user_id: str) -> str:
    return f"lesson:{user_id}:"


def quiz_result_prefix(user_id: str) -> str:
    return f"quiz_result:{user_id}:"


def _now_ms() -> int:
    return int(time.time() * 1000)


def add_with_timestamp(store: KeyValueStore, prefix: str, value: dict) -> str:
    """Insert under ``<prefix><epoch ms>``, bumping the timestamp on collision."""
    stamp = _now_ms()
    while not store.add(f"{prefix}{stamp}", value):
        stamp += 1
    return f"{prefix}{stamp}"


def load_profile(store: KeyValueStore, user_id: str) -> Profile | None:
    data = store.get(profile_key(user_id))
    return Profile.model_validate(data) if data is not None else None


def load_profile_versioned(store: KeyValueStore, user_id: str) -> tuple[Profile | None, int]:
    data, version = store.get_versioned(profile_key(user_id))
    return (Profile.model_validate(data) if data is not None else None), version


def save_profile(store: KeyValueStore, profile: Profile) -> None:
    store.set(profile_key(profile.user_id), profile.to_record())


def load_progress(store: KeyValueStore, user_id: str) -> Progress | None:
    data = store.get(progress_key(user_id))
    return Progress.model_validate(data) if data is not None else None


def load_progress_versioned(store: KeyValueStore, user_id: str) -> tuple[Progress | None, int]:
    data, version = store.get_versioned(progress_key(user_id))
    return (Progress.model_validate(data) if data is not None else None), version


def save_progress(store: KeyValueStore, user_id: str, progress: Progress) -> None:
    store.set(progress_key(user_id), progress.to_record())


def create_lesson(store: KeyValueStore, lesson: Lesson) -> str:
    return add_with_timestamp(store, lesson_prefix(lesson.user_id), lesson.to_record())


def load_lesson(store: KeyValueStore, user_id: str, lesson_id: str) -> Lesson | None:
    """Load a lesson owned by ``user_id``; ids outside the user's prefix are not found."""
    if not lesson_id.startswith(lesson_prefix(user_id)):
        return None
    data = store.get(lesson_id)
    return Lesson.model_validate(data) if data is not None else None


def create_quiz_result(store: KeyValueStore, result: QuizResult) -> str:
    return add_with_timestamp(store, quiz_result_prefix(result.user_id), result.to_record())


def recent_quiz_results(store: KeyValueStore, user_id: str, limit: int = 10) -> list[dict]:
    """Most recent quiz results first, as stored records."""
    results = store.get_by_prefix(quiz_result_prefix(user_id))
    results.sort(key=lambda r: QuizResult.model_validate(r).timestamp, reverse=True)
    return results[:limit]
