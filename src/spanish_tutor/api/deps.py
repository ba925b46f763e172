"""FastAPI dependencies: store, auth, generator and the current user."""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from spanish_tutor.auth.provider import AuthProvider
from spanish_tutor.config import Settings, get_settings
from spanish_tutor.errors import UpstreamFailure
from spanish_tutor.lessons.generator import LessonGenerator
from spanish_tutor.storage.kv import KeyValueStore, build_store

bearer_scheme = HTTPBearer(auto_error=False)


_store: KeyValueStore | None = None
_generator: LessonGenerator | None = None


def get_store(settings: Settings = Depends(get_settings)) -> KeyValueStore:
    """Process-wide store, created on first use."""
    global _store
    if _store is None:
        _store = build_store(settings)
    return _store


def get_auth_provider(
    settings: Settings = Depends(get_settings),
    store: KeyValueStore = Depends(get_store),
) -> AuthProvider:
    return AuthProvider(
        store,
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        token_ttl_minutes=settings.access_token_expire_minutes,
    )


def get_lesson_generator(settings: Settings = Depends(get_settings)) -> LessonGenerator:
    """Process-wide generator; its HTTP connection pool is reused across requests."""
    global _generator
    if not settings.openai_api_key:
        raise UpstreamFailure(
            "LLM API key not configured. Please ensure OPENAI_API_KEY is set."
        )
    if _generator is None:
        _generator = _build_lesson_generator(settings)
    return _generator


async def close_lesson_generator() -> None:
    """Close the shared generator's client; called on application shutdown."""
    global _generator
    if _generator is not None:
        await _generator.close()
        _generator = None


def _build_lesson_generator(settings: Settings) -> LessonGenerator:
    return LessonGenerator(
        api_key=settings.openai_api_key,
        model=settings.generation_model,
        base_url=settings.llm_base_url,
        temperature=settings.llm_temperature,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout_seconds,
        max_retries=settings.llm_max_retries,
    )


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth: AuthProvider = Depends(get_auth_provider),
) -> str:
    return auth.resolve(credentials.credentials if credentials else None)
