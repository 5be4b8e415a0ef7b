"""Application errors and their HTTP rendering.

Every error leaves the API as ``{"message": ...}``. Server errors carry the
stack trace as well when running in development.
"""

import traceback

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

import config

logger = structlog.get_logger(__name__)


class AppError(Exception):
    status_code = 500
    default_message = "Something went wrong!"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    status_code = 400
    default_message = "Invalid request"


class ConflictError(AppError):
    status_code = 400
    default_message = "Resource already exists"


class AuthenticationError(AppError):
    status_code = 401
    default_message = "Not authenticated"


class PermissionDenied(AppError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class ServiceError(AppError):
    status_code = 500


def _error_response(request: Request, status_code: int, message: str, exc: Exception = None) -> JSONResponse:
    body = {"message": message}
    if status_code >= 500 and exc is not None and config.is_development():
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=status_code, content=body)


async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error("request_failed", path=request.url.path, method=request.method, error=exc.message, exc_info=exc)
    else:
        logger.info("request_rejected", path=request.url.path, status=exc.status_code, error=exc.message)
    return _error_response(request, exc.status_code, exc.message, exc)


async def http_error_handler(request: Request, exc: HTTPException):
    return _error_response(request, exc.status_code, str(exc.detail))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
    else:
        message = "Invalid request"
    return _error_response(request, 400, message)


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error("unhandled_error", path=request.url.path, method=request.method, exc_info=exc)
    return _error_response(request, 500, str(exc) or "Something went wrong!", exc)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
