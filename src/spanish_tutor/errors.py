"""Error taxonomy and the uniform ``{"error": ...}`` response envelope."""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger()


class TutorError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthFailure(TutorError):
    status_code = 401


class NotFound(TutorError):
    status_code = 404


class ValidationFailure(TutorError):
    status_code = 400


class ConflictError(TutorError):
    """Concurrent updates kept winning the compare-and-set race."""

    status_code = 409


class UpstreamFailure(TutorError):
    """The generation API failed or returned an unusable envelope."""

    status_code = 500


class ParseFailure(TutorError):
    """Generated text was not valid JSON."""

    status_code = 500


class LessonConfigurationError(TutorError):
    """A stored lesson cannot be graded (e.g. it has no quiz questions)."""

    status_code = 500


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def install_error_handlers(app: FastAPI) -> None:
    """Convert every failure into the ``{"error": str}`` envelope."""

    @app.exception_handler(TutorError)
    async def _tutor_error(request: Request, exc: TutorError) -> JSONResponse:
        logger.warning(
            "request_failed",
            path=request.url.path,
            status=exc.status_code,
            error_type=type(exc).__name__,
            error=exc.message,
        )
        return error_response(exc.message, exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        details = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()) if p != 'body')}: {err.get('msg')}"
            for err in exc.errors()
        )
        logger.warning("request_invalid", path=request.url.path, details=details)
        return error_response(f"Invalid request: {details}", 400)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return error_response(str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("request_crashed", path=request.url.path)
        return error_response("Internal server error", 500)
