"""
Application error taxonomy and the FastAPI handlers that turn it into the
standard ``{success, message, data?, errors?}`` envelope.
"""
import logging
import traceback
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from bankdesk.shared.config import settings
from bankdesk.shared.http import fail

logger = logging.getLogger(__name__)

INTERNAL_ERROR = "Internal server error"


class AppError(Exception):
    status_code: int = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        data: Any = None,
        errors: Optional[list] = None,
        is_operational: bool = True,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.data = data
        self.errors = errors
        self.is_operational = is_operational


class ValidationError(AppError):
    status_code = 400

    def __init__(self, message: str = "Validation failed", errors: Optional[list] = None, **kw):
        super().__init__(message, errors=errors, **kw)


class AuthenticationError(AppError):
    status_code = 401

    def __init__(self, message: str = "Authentication failed", **kw):
        super().__init__(message, **kw)


class AuthorizationError(AppError):
    status_code = 403

    def __init__(self, message: str = "Insufficient permissions", **kw):
        super().__init__(message, **kw)


class ApprovalRequired(AuthorizationError):
    """Denial raised by the approval gates; always carries a ``data`` payload."""


class NotFoundError(AppError):
    status_code = 404

    def __init__(self, message: str = "Resource not found", **kw):
        super().__init__(message, **kw)


class ConflictError(AppError):
    status_code = 409

    def __init__(self, message: str = "Resource conflict", **kw):
        super().__init__(message, **kw)


class DatabaseError(AppError):
    status_code = 500

    def __init__(self, message: str = "Database operation failed", **kw):
        kw.setdefault("is_operational", False)
        super().__init__(message, **kw)


class ExternalServiceError(AppError):
    status_code = 502

    def __init__(self, message: str = "External service error", **kw):
        kw.setdefault("is_operational", False)
        super().__init__(message, **kw)


def _dev_errors(exc: BaseException) -> list:
    return [{"type": type(exc).__name__, "detail": str(exc),
             "stack": traceback.format_exception(type(exc), exc, exc.__traceback__)}]


async def _app_error_handler(request: Request, exc: AppError):
    if exc.is_operational:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
        return JSONResponse(status_code=exc.status_code, content=fail(exc.message, exc.data, exc.errors))
    logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message,
                 exc_info=exc)
    if settings.is_dev:
        return JSONResponse(status_code=exc.status_code, content=fail(exc.message, exc.data, _dev_errors(exc)))
    return JSONResponse(status_code=exc.status_code, content=fail(INTERNAL_ERROR))


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in e.get("loc", ()) if p != "body"), "message": e.get("msg")}
        for e in exc.errors()
    ]
    return JSONResponse(status_code=400, content=fail("Validation failed", errors=errors))


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        message = f"Can't find {request.url.path} on this server!"
    else:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content=fail(message), headers=exc.headers)


async def _integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning("integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return JSONResponse(status_code=409, content=fail("Duplicate field value entered"))


async def _unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path)
    if settings.is_dev:
        return JSONResponse(status_code=500, content=fail(str(exc) or INTERNAL_ERROR, errors=_dev_errors(exc)))
    return JSONResponse(status_code=500, content=fail(INTERNAL_ERROR))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, _app_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(IntegrityError, _integrity_error_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
