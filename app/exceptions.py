"""
Application error taxonomy and the FastAPI handlers that render it.

Services raise the typed errors below; the handlers registered in
``app.main`` turn them into the uniform envelope.  Anything that is not an
``AppError`` is treated as unexpected: it is logged with request context
and surfaced as a generic 500 without internal detail.
"""
import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.responses import api_error

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 400
    code = "app_error"
    message = "Application error"

    def __init__(self, message: str | None = None, code: str | None = None):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        super().__init__(self.message)

    @property
    def error(self):
        return {"code": self.code}


class ValidationError(AppError):
    status_code = 422
    code = "validation_error"
    message = "The given data was invalid."

    def __init__(self, errors: dict[str, list[str]], message: str | None = None):
        self.errors = errors
        if message is None:
            # Mirror the first field message, like request validation does.
            first = next(iter(errors.values()), [])
            message = first[0] if first else None
        super().__init__(message)

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls({field: [message]})

    @property
    def error(self):
        return self.errors


class NotFoundError(AppError):
    status_code = 404
    code = "not_found"
    message = "Resource not found"

    def __init__(self, model: str | None = None, message: str | None = None):
        self.model = model
        if message is None and model is not None:
            message = f"{model} not found"
        super().__init__(message)


class AuthorizationError(AppError):
    status_code = 403
    code = "forbidden"
    message = "This action is unauthorized."


class AuthenticationError(AppError):
    status_code = 401
    code = "unauthenticated"
    message = "Unauthenticated."


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------

def _request_context(request: Request) -> dict:
    # Plain id only: the ORM user is expired once get_db has rolled back.
    return {
        "method": request.method,
        "path": request.url.path,
        "user_id": getattr(request.state, "user_id", None),
    }


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if not isinstance(exc, ValidationError):
        logger.warning("%s: %s %s", type(exc).__name__, exc.message, _request_context(request))
    return api_error(exc.message, exc.status_code, error=exc.error)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return api_error(message, exc.status_code, error={"code": "http_error"})


def _field_name(loc: tuple) -> str:
    # ("body", "content") -> "content"; ("query", "page") -> "page"
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header", "form")]
    return ".".join(parts) or "request"


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: dict[str, list[str]] = {}
    for err in exc.errors():
        field = _field_name(tuple(err.get("loc", ())))
        message = err.get("msg", "Invalid value")
        if err.get("type") == "missing":
            message = f"The {field} field is required."
        errors.setdefault(field, []).append(message)
    first = next(iter(errors.values()))[0] if errors else ValidationError.message
    return api_error(first, 422, error=errors)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception %s", _request_context(request), exc_info=exc)
    return api_error("Something went wrong. Please try again later.", 500, error={"code": "server_error"})
