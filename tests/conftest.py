"""Shared fixtures: in-memory store, fake lesson generator and an API client."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from spanish_tutor.api.deps import get_lesson_generator, get_store
from spanish_tutor.api.routes import router
from spanish_tutor.config import Settings, get_settings
from spanish_tutor.errors import install_error_handlers
from spanish_tutor.storage.kv import InMemoryStore


def make_lesson(stage: int = 1, correct: tuple[int, ...] = (0, 1, 2, 3)) -> dict:
    """Stage-1 shaped lesson with one vocabulary item per question."""
    words = ["hola", "adiós", "gracias", "por favor", "sí", "no"]
    return {
        "title": "Basic Greetings",
        "stage": stage,
        "content": [
            {"word": words[i % len(words)], "translation": "t", "pronunciation": "p", "example": "e"}
            for i in range(len(correct))
        ],
        "quiz": [
            {
                "question": f"Question {i + 1}?",
                "options": ["A", "B", "C", "D"],
                "correct": c,
            }
            for i, c in enumerate(correct)
        ],
    }


class FakeGenerator:
    """Stands in for LessonGenerator; records the arguments of each call."""

    def __init__(self, lesson: dict | None = None):
        self.lesson = lesson
        self.calls: list[dict] = []

    async def generate(self, stage, words_learned=(), mistakes=()):
        self.calls.append(
            {"stage": stage, "words_learned": list(words_learned), "mistakes": list(mistakes)}
        )
        return self.lesson if self.lesson is not None else make_lesson(stage)


@pytest.fixture
def settings():
    return Settings(
        openai_api_key="test-key",
        jwt_secret_key="test-secret",
        store_backend="memory",
        max_stage=5,
        recent_quiz_limit=10,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def app(settings, store, generator):
    app = FastAPI()
    install_error_handlers(app)
    app.include_router(router)
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_lesson_generator] = lambda: generator
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


def signup_and_login(client, email="ana@example.com", password="secret123", name="Ana"):
    """Create a user and return the Authorization header for them."""
    response = client.post("/signup", json={"email": email, "password": password, "name": name})
    assert response.status_code == 200, response.text
    response = client.post("/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['accessToken']}"}
