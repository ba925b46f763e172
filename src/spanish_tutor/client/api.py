"""HTTP client for the tutor API."""

from typing import Any

import httpx
import structlog

logger = structlog.get_logger()


class ClientError(Exception):
    """A non-2xx response or a transport failure."""

    def __init__(self, status_code: int | None, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


class TutorClient:
    """Thin wrapper over every API endpoint.

    Args:
        base_url: API root, e.g. ``http://localhost:8000``.
        http: Pre-built ``httpx.Client`` (tests pass a FastAPI TestClient).
        timeout: Request timeout in seconds when the client builds its own.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        http: httpx.Client | None = None,
        timeout: float = 90.0,
    ):
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)
        self.access_token: str | None = None

    def close(self) -> None:
        self._http.close()

    def _request(self, method: str, path: str, json: Any = None) -> dict:
        headers = {}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        try:
            response = self._http.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as e:
            logger.error("api_request_failed", method=method, path=path, error=str(e))
            raise ClientError(None, f"Network error: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            raise ClientError(response.status_code, message or response.reason_phrase)
        return data

    def health(self) -> dict:
        return self._request("GET", "/health")

    def signup(self, email: str, password: str, name: str) -> dict:
        """Register, then sign in so later calls are authenticated."""
        data = self._request(
            "POST", "/signup", {"email": email, "password": password, "name": name}
        )
        self.login(email, password)
        return data["user"]

    def login(self, email: str, password: str) -> dict:
        data = self._request("POST", "/login", {"email": email, "password": password})
        self.access_token = data["accessToken"]
        return data["user"]

    def logout(self) -> None:
        self.access_token = None

    def onboard(self, level: str) -> None:
        self._request("POST", "/onboard", {"level": level})

    def profile(self) -> dict:
        return self._request("GET", "/profile")

    def generate_lesson(self) -> tuple[str, Any]:
        data = self._request("POST", "/generate-lesson")
        return data["lessonId"], data["lesson"]

    def submit_quiz(self, lesson_id: str, answers: list[int]) -> dict:
        return self._request("POST", "/submit-quiz", {"lessonId": lesson_id, "answers": answers})

    def progress(self) -> dict:
        return self._request("GET", "/progress")
