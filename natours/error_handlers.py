"""Centralised error responder.

All exceptions raised while handling a request end up here and are rendered
as one JSON envelope. Development mode returns the error type and stack
trace; production mode only shows messages of operational errors.
"""

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from natours.config import get_settings
from natours.errors import AppError, InternalError, NotFoundError, ValidationError

logger = logging.getLogger("natours")

RATE_LIMIT_MESSAGE = "Too many requests from this IP, please try again in an hour!"


def _format_validation_errors(exc: RequestValidationError) -> str:
    messages = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc)
        msg = err.get("msg", "invalid value")
        messages.append(f"{field}: {msg}" if field else msg)
    return "Invalid input data. " + ". ".join(messages)


def error_response(request: Request, exc: AppError, original: BaseException | None = None) -> JSONResponse:
    """Render an AppError according to the current environment mode."""
    settings = get_settings()
    source = original or exc

    if not exc.is_operational:
        logger.error(
            "ERROR %s %s: %s",
            request.method,
            request.url.path,
            source,
            exc_info=(type(source), source, source.__traceback__),
        )
    elif exc.status_code >= 500:
        logger.error("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)

    if settings.is_production:
        if exc.is_operational:
            body = {"status": exc.status, "message": exc.message}
        else:
            body = {"status": "error", "message": InternalError.default_message}
        return JSONResponse(status_code=exc.status_code, content=body)

    body = {
        "status": exc.status,
        "message": exc.message if exc.is_operational else str(source) or exc.message,
        "error": {"type": type(source).__name__, "status_code": exc.status_code},
        "stack": "".join(traceback.format_exception(type(source), source, source.__traceback__)),
    }
    return JSONResponse(status_code=exc.status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the exception handlers that funnel every error into error_response."""

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        return error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return error_response(request, ValidationError(_format_validation_errors(exc)), exc)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        if exc.status_code == 404 and exc.detail == "Not Found":
            app_error: AppError = NotFoundError(f"Can't find {request.url.path} on this server!")
        else:
            app_error = AppError(str(exc.detail), status_code=exc.status_code)
        response = error_response(request, app_error, exc)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RateLimitExceeded)
    async def handle_rate_limit(request: Request, exc: RateLimitExceeded) -> JSONResponse:
        logger.warning("Rate limit exceeded for %s on %s", request.client.host if request.client else "unknown", request.url.path)
        return error_response(request, AppError(RATE_LIMIT_MESSAGE, status_code=429), exc)

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        return error_response(request, InternalError(), exc)
