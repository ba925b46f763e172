"""REST API routes: signup, onboarding, lessons, quizzes and progress."""

import structlog
from fastapi import APIRouter, Depends

from spanish_tutor.api.deps import (
    get_auth_provider,
    get_current_user_id,
    get_lesson_generator,
    get_store,
)
from spanish_tutor.auth.provider import AuthProvider
from spanish_tutor.config import Settings, get_settings
from spanish_tutor.errors import NotFound
from spanish_tutor.lessons.generator import LessonGenerator
from spanish_tutor.lessons.service import start_lesson
from spanish_tutor.models.profile import CamelModel, Profile, Progress, StartingLevel
from spanish_tutor.progress.service import submit_quiz as submit_quiz_answers
from spanish_tutor.storage import records
from spanish_tutor.storage.kv import KeyValueStore

logger = structlog.get_logger()
router = APIRouter()


class SignupRequest(CamelModel):
    email: str | None = None
    password: str | None = None
    name: str | None = None


class LoginRequest(CamelModel):
    email: str | None = None
    password: str | None = None


class OnboardRequest(CamelModel):
    level: StartingLevel


class SubmitQuizRequest(CamelModel):
    lesson_id: str
    answers: list[int | None]


def _require_profile(store: KeyValueStore, user_id: str) -> Profile:
    profile = records.load_profile(store, user_id)
    if profile is None:
        raise NotFound("Profile not found")
    return profile


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.post("/signup")
def signup(
    req: SignupRequest,
    auth: AuthProvider = Depends(get_auth_provider),
    store: KeyValueStore = Depends(get_store),
) -> dict:
    """Register a user and create their initial profile at stage 1."""
    user = auth.sign_up(req.email, req.password, req.name)
    records.save_profile(
        store,
        Profile(user_id=user.id, name=user.name, email=user.email, created_at=user.created_at),
    )
    return {"user": user.public()}


@router.post("/login")
def login(req: LoginRequest, auth: AuthProvider = Depends(get_auth_provider)) -> dict:
    session = auth.sign_in(req.email, req.password)
    return {
        "accessToken": session.access_token,
        "tokenType": session.token_type,
        "user": session.user.public(),
    }


@router.post("/onboard")
def onboard(
    req: OnboardRequest,
    user_id: str = Depends(get_current_user_id),
    store: KeyValueStore = Depends(get_store),
) -> dict:
    """Record the starting level and create empty progress if none exists."""
    profile = _require_profile(store, user_id)
    records.save_profile(store, profile.model_copy(update={"level": req.level}))
    if records.load_progress(store, user_id) is None:
        records.save_progress(store, user_id, Progress())
    logger.info("user_onboarded", user_id=user_id, level=req.level.value)
    return {"success": True}


@router.get("/profile")
def get_profile(
    user_id: str = Depends(get_current_user_id),
    store: KeyValueStore = Depends(get_store),
) -> dict:
    profile = _require_profile(store, user_id)
    progress = records.load_progress(store, user_id)
    return {
        "profile": profile.to_record(),
        "progress": progress.to_record() if progress else None,
    }


@router.post("/generate-lesson")
async def generate_lesson(
    user_id: str = Depends(get_current_user_id),
    store: KeyValueStore = Depends(get_store),
    generator: LessonGenerator = Depends(get_lesson_generator),
) -> dict:
    lesson_id, content = await start_lesson(store, generator, user_id)
    return {"lessonId": lesson_id, "lesson": content}


@router.post("/submit-quiz")
def submit_quiz(
    req: SubmitQuizRequest,
    user_id: str = Depends(get_current_user_id),
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    result = submit_quiz_answers(
        store,
        user_id,
        req.lesson_id,
        req.answers,
        max_stage=settings.max_stage,
        max_attempts=settings.submission_max_attempts,
    )
    return result.to_record()


@router.get("/progress")
def get_progress(
    user_id: str = Depends(get_current_user_id),
    store: KeyValueStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> dict:
    """Profile, progress and the most recent quiz results."""
    profile = _require_profile(store, user_id)
    progress = records.load_progress(store, user_id)
    return {
        "profile": profile.to_record(),
        "progress": progress.to_record() if progress else None,
        "recentQuizzes": records.recent_quiz_results(
            store, user_id, limit=settings.recent_quiz_limit
        ),
    }
