# File: civictrack/core/errors.py
"""Domain errors raised by services and the handlers that render them.

Every error response has the same body: ``{"code": ..., "message": ...}``,
plus ``errors`` (field-level messages) for validation failures.
"""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500
    code = "server_error"
    default_message = "Server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class InvalidArgument(AppError):
    status_code = 400
    code = "invalid_argument"
    default_message = "Invalid argument"

    def __init__(self, message: str | None = None, errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    default_message = "Forbidden"


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    default_message = "Conflict"


class Unauthenticated(AppError):
    status_code = 401
    code = "unauthenticated"
    default_message = "Not authenticated"


_HTTP_CODES = {
    400: "invalid_argument",
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
}


def _body(code: str, message: str, errors: list[dict] | None = None) -> dict:
    body = {"code": code, "message": message}
    if errors:
        body["errors"] = errors
    return body


async def app_error_handler(request: Request, exc: AppError):
    errors = getattr(exc, "errors", None)
    return JSONResponse(status_code=exc.status_code, content=_body(exc.code, exc.message, errors))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        # drop the leading "body"/"query"/"path" segment
        loc = [str(p) for p in err.get("loc", ())][1:]
        errors.append({"field": ".".join(loc) or None, "message": err.get("msg", "invalid")})
    return JSONResponse(
        status_code=400,
        content=_body("invalid_argument", "Validation failed", errors),
    )


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    code = _HTTP_CODES.get(exc.status_code, "error")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content=_body(code, message),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content=_body("server_error", "Server error"))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
