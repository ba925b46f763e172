"""API route tests against an in-memory store and a fake generator."""

from conftest import make_lesson, signup_and_login

from spanish_tutor.errors import ParseFailure, UpstreamFailure
from spanish_tutor.models.lesson import Lesson
from spanish_tutor.storage import records


def onboarded(client, **kwargs):
    headers = signup_and_login(client, **kwargs)
    response = client.post("/onboard", json={"level": "none"}, headers=headers)
    assert response.status_code == 200
    return headers


class TestHealthCheck:
    def test_health_returns_ok(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestSignup:
    def test_signup_creates_profile(self, client, store):
        response = client.post(
            "/signup", json={"email": "ana@example.com", "password": "secret123", "name": "Ana"}
        )
        assert response.status_code == 200
        user = response.json()["user"]
        assert user["email"] == "ana@example.com"

        profile = store.get(f"profile:{user['id']}")
        assert profile["currentStage"] == 1
        assert profile["lessonsCompleted"] == 0
        assert profile["overallAccuracy"] == 0
        assert profile["level"] is None
        assert store.get(f"progress:{user['id']}") is None

    def test_signup_missing_fields(self, client):
        response = client.post("/signup", json={"email": "ana@example.com"})
        assert response.status_code == 400
        assert "error" in response.json()

    def test_signup_duplicate(self, client):
        signup_and_login(client)
        response = client.post(
            "/signup", json={"email": "ana@example.com", "password": "secret123", "name": "Ana"}
        )
        assert response.status_code == 400

    def test_login_bad_password(self, client):
        signup_and_login(client)
        response = client.post("/login", json={"email": "ana@example.com", "password": "nope!!"})
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid login credentials"}


class TestAuthRequired:
    def test_missing_token(self, client):
        for method, path in [
            ("post", "/onboard"),
            ("get", "/profile"),
            ("post", "/generate-lesson"),
            ("post", "/submit-quiz"),
            ("get", "/progress"),
        ]:
            response = getattr(client, method)(path)
            assert response.status_code == 401, path
            assert response.json() == {"error": "Unauthorized"}

    def test_invalid_token(self, client):
        response = client.get("/profile", headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == 401


class TestOnboarding:
    def test_onboard_sets_level_and_progress(self, client):
        headers = signup_and_login(client)
        response = client.post("/onboard", json={"level": "low-beginner"}, headers=headers)
        assert response.status_code == 200
        assert response.json() == {"success": True}

        data = client.get("/profile", headers=headers).json()
        assert data["profile"]["level"] == "low-beginner"
        assert data["progress"] == {"wordsLearned": [], "mistakes": [], "completedLessons": []}

    def test_invalid_level(self, client):
        headers = signup_and_login(client)
        response = client.post("/onboard", json={"level": "fluent"}, headers=headers)
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid request")

    def test_reonboarding_keeps_progress(self, client, store):
        headers = onboarded(client)
        lesson_id = client.post("/generate-lesson", headers=headers).json()["lessonId"]
        client.post("/submit-quiz", json={"lessonId": lesson_id, "answers": [0, 1, 2, 3]},
                    headers=headers)

        client.post("/onboard", json={"level": "beginner"}, headers=headers)
        progress = client.get("/profile", headers=headers).json()["progress"]
        assert progress["completedLessons"] == [lesson_id]

    def test_onboard_without_profile(self, client, store):
        headers = signup_and_login(client)
        user_id = client.post(
            "/login", json={"email": "ana@example.com", "password": "secret123"}
        ).json()["user"]["id"]
        store.set(f"profile:{user_id}", None)
        response = client.post("/onboard", json={"level": "none"}, headers=headers)
        assert response.status_code == 404


class TestProfile:
    def test_profile_before_onboarding(self, client):
        headers = signup_and_login(client)
        data = client.get("/profile", headers=headers).json()
        assert data["profile"]["name"] == "Ana"
        assert data["progress"] is None


class TestGenerateLesson:
    def test_generates_and_persists(self, client, store, generator):
        headers = onboarded(client)
        response = client.post("/generate-lesson", headers=headers)
        assert response.status_code == 200
        body = response.json()
        assert body["lessonId"].startswith("lesson:")
        assert body["lesson"]["quiz"][0]["options"] == ["A", "B", "C", "D"]

        stored = store.get(body["lessonId"])
        assert stored["stage"] == 1
        assert stored["content"] == body["lesson"]
        assert generator.calls[0]["stage"] == 1

    def test_requires_onboarding(self, client):
        headers = signup_and_login(client)
        response = client.post("/generate-lesson", headers=headers)
        assert response.status_code == 404
        assert response.json() == {"error": "Profile not found"}

    def test_upstream_failure(self, client, generator):
        async def fail(*args, **kwargs):
            raise UpstreamFailure("Failed to generate lesson from AI: 503 - unavailable")

        generator.generate = fail
        headers = onboarded(client)
        response = client.post("/generate-lesson", headers=headers)
        assert response.status_code == 500
        assert "503" in response.json()["error"]

    def test_parse_failure(self, client, generator):
        async def fail(*args, **kwargs):
            raise ParseFailure("Failed to generate lesson: AI returned invalid JSON")

        generator.generate = fail
        headers = onboarded(client)
        assert client.post("/generate-lesson", headers=headers).status_code == 500

    def test_passes_history_to_generator(self, client, generator):
        headers = onboarded(client)
        lesson_id = client.post("/generate-lesson", headers=headers).json()["lessonId"]
        client.post("/submit-quiz", json={"lessonId": lesson_id, "answers": [0, 0, 0, 0]},
                    headers=headers)
        client.post("/generate-lesson", headers=headers)
        last = generator.calls[-1]
        assert last["words_learned"] == ["hola", "adiós", "gracias", "por favor"]
        assert last["mistakes"] == ["Question 2?", "Question 3?", "Question 4?"]


class TestSubmitQuiz:
    def test_passing_submission_advances_stage(self, client, store):
        headers = onboarded(client)
        lesson_id = client.post("/generate-lesson", headers=headers).json()["lessonId"]

        response = client.post(
            "/submit-quiz", json={"lessonId": lesson_id, "answers": [0, 1, 9, 3]}, headers=headers
        )
        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 75
        assert body["passed"] is True
        assert body["newStage"] == 2
        assert body["results"][2] == {
            "question": "Question 3?",
            "userAnswer": 9,
            "correctAnswer": 2,
            "isCorrect": False,
        }

        data = client.get("/profile", headers=headers).json()
        assert data["profile"]["currentStage"] == 2
        assert data["profile"]["lessonsCompleted"] == 1
        assert data["profile"]["overallAccuracy"] == 75
        assert data["progress"]["completedLessons"] == [lesson_id]
        assert len(data["progress"]["mistakes"]) == 1

    def test_failing_submission_keeps_stage(self, client):
        headers = onboarded(client)
        lesson_id = client.post("/generate-lesson", headers=headers).json()["lessonId"]
        body = client.post(
            "/submit-quiz", json={"lessonId": lesson_id, "answers": [3, 3, 3, 3]}, headers=headers
        ).json()
        assert body["score"] == 25
        assert body["passed"] is False
        assert body["newStage"] == 1

    def test_unanswered_questions_rejected(self, client):
        headers = onboarded(client)
        lesson_id = client.post("/generate-lesson", headers=headers).json()["lessonId"]
        response = client.post(
            "/submit-quiz", json={"lessonId": lesson_id, "answers": [0, -1, 2, 3]}, headers=headers
        )
        assert response.status_code == 400
        profile = client.get("/profile", headers=headers).json()["profile"]
        assert profile["lessonsCompleted"] == 0

    def test_wrong_answer_count_rejected(self, client):
        headers = onboarded(client)
        lesson_id = client.post("/generate-lesson", headers=headers).json()["lessonId"]
        response = client.post(
            "/submit-quiz", json={"lessonId": lesson_id, "answers": [0, 1]}, headers=headers
        )
        assert response.status_code == 400

    def test_unknown_lesson(self, client):
        headers = onboarded(client)
        response = client.post(
            "/submit-quiz", json={"lessonId": "lesson:nobody:1", "answers": [0]}, headers=headers
        )
        assert response.status_code == 404
        assert response.json() == {"error": "Lesson not found"}

    def test_cannot_submit_other_users_lesson(self, client):
        ana = onboarded(client)
        lesson_id = client.post("/generate-lesson", headers=ana).json()["lessonId"]
        bob = onboarded(client, email="bob@example.com", name="Bob")
        response = client.post(
            "/submit-quiz", json={"lessonId": lesson_id, "answers": [0, 1, 2, 3]}, headers=bob
        )
        assert response.status_code == 404

    def test_empty_quiz_is_server_error(self, client, generator):
        generator.lesson = {"title": "Broken", "content": [], "quiz": []}
        headers = onboarded(client)
        lesson_id = client.post("/generate-lesson", headers=headers).json()["lessonId"]
        response = client.post(
            "/submit-quiz", json={"lessonId": lesson_id, "answers": []}, headers=headers
        )
        assert response.status_code == 500
        assert response.json() == {"error": "Lesson has no quiz questions"}

    def test_grades_without_progress_record(self, client, store):
        headers = signup_and_login(client)
        user_id = client.post(
            "/login", json={"email": "ana@example.com", "password": "secret123"}
        ).json()["user"]["id"]
        lesson_id = records.create_lesson(
            store,
            Lesson(user_id=user_id, stage=1, content=make_lesson()),
        )

        response = client.post(
            "/submit-quiz", json={"lessonId": lesson_id, "answers": [0, 1, 2, 3]}, headers=headers
        )
        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 100
        assert body["newStage"] == 1
        assert store.get(f"profile:{user_id}")["lessonsCompleted"] == 0
        assert len(store.get_by_prefix(f"quiz_result:{user_id}:")) == 1

    def test_stage_stops_at_max(self, client):
        headers = onboarded(client)
        stages = []
        for _ in range(6):
            lesson_id = client.post("/generate-lesson", headers=headers).json()["lessonId"]
            body = client.post(
                "/submit-quiz", json={"lessonId": lesson_id, "answers": [0, 1, 2, 3]},
                headers=headers,
            ).json()
            stages.append(body["newStage"])
        assert stages == [2, 3, 4, 5, 5, 5]


class TestProgress:
    def test_recent_quizzes(self, client):
        headers = onboarded(client)
        for answers in ([0, 0, 0, 0], [0, 1, 2, 0], [0, 1, 0, 0]):
            lesson_id = client.post("/generate-lesson", headers=headers).json()["lessonId"]
            client.post("/submit-quiz", json={"lessonId": lesson_id, "answers": answers},
                        headers=headers)

        data = client.get("/progress", headers=headers).json()
        assert data["profile"]["lessonsCompleted"] == 3
        assert data["profile"]["overallAccuracy"] == 50
        scores = [q["score"] for q in data["recentQuizzes"]]
        assert sorted(scores) == [25, 50, 75]
        assert all(q["lessonId"].startswith("lesson:") for q in data["recentQuizzes"])

    def test_recent_quizzes_limited(self, client, settings):
        settings.recent_quiz_limit = 2
        headers = onboarded(client)
        for _ in range(3):
            lesson_id = client.post("/generate-lesson", headers=headers).json()["lessonId"]
            client.post("/submit-quiz", json={"lessonId": lesson_id, "answers": [0, 1, 2, 3]},
                        headers=headers)
        data = client.get("/progress", headers=headers).json()
        assert len(data["recentQuizzes"]) == 2
