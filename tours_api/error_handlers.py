"""
Global exception handlers: every failure leaves the API in one of two shapes.

    AppError / driver errors -> {"status": "fail" | "error", "message": ...}
    request validation       -> 400 {"message": "Validation failed", "errors": [...]}

Unexpected exceptions become 500 responses; their text is only exposed
outside production.
"""

import logging
from typing import Any, Dict, List

from bson.errors import InvalidId
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from tours_api.config import settings
from tours_api.errors import AppError, RequestValidationFailed
from tours_api.validation.request import format_validation_errors

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Something went very wrong!"

# FastAPI error locations use "path" for path parameters
_LOCATION_PARTS = {"path": "params", "query": "query", "body": "body"}


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on the FastAPI app."""
    _register_app_error_handler(app)
    _register_validation_error_handlers(app)
    _register_http_error_handler(app)
    _register_database_error_handlers(app)
    _register_generic_error_handler(app)


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "fail" if status_code < 500 else "error", "message": message},
    )


def _register_app_error_handler(app: FastAPI) -> None:

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{exc.status_code} on {request.method} {request.url.path}: {exc.message}")
        else:
            logger.warning(f"{exc.status_code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_response())


def _register_validation_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationFailed)
    async def request_validation_failed_handler(request: Request, exc: RequestValidationFailed):
        logger.info(f"Validation failed on {request.method} {request.url.path}: {exc.errors}")
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def fastapi_validation_error_handler(request: Request, exc: RequestValidationError):
        """Errors from FastAPI's own parameter parsing (e.g. headers) use the same envelope."""
        logger.info(f"Validation failed on {request.method} {request.url.path}: {exc.errors()}")
        failure = RequestValidationFailed(_group_by_part(exc.errors()))
        return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=failure.to_response())


def _group_by_part(errors) -> List[Dict[str, Any]]:
    grouped: Dict[str, List[Dict[str, Any]]] = {}
    for error in errors:
        loc = tuple(error.get("loc", ()))
        part = _LOCATION_PARTS.get(str(loc[0]), str(loc[0])) if loc else "body"
        trimmed = dict(error, loc=loc[1:])
        grouped.setdefault(part, []).extend(format_validation_errors([trimmed]))
    return [{"in": part, "errors": issues} for part, issues in grouped.items()]


def _register_http_error_handler(app: FastAPI) -> None:

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
            return _fail(exc.status_code, f"Can't find {request.url.path} on this server!")
        response = _fail(exc.status_code, str(exc.detail))
        if exc.headers:
            response.headers.update(exc.headers)
        return response


def _register_database_error_handlers(app: FastAPI) -> None:

    @app.exception_handler(DuplicateKeyError)
    async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
        key_value = (exc.details or {}).get("keyValue") or {}
        value = next(iter(key_value.values()), "")
        logger.info(f"Duplicate key on {request.url.path}: {key_value}")
        return _fail(
            status.HTTP_400_BAD_REQUEST,
            f"Duplicate field value: {value}. Please use another value!",
        )

    @app.exception_handler(InvalidId)
    async def invalid_id_handler(request: Request, exc: InvalidId):
        return _fail(status.HTTP_400_BAD_REQUEST, "Invalid id")


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(
            f"Unhandled exception on {request.method} {request.url.path}: {exc}",
            exc_info=True,
        )
        message = GENERIC_ERROR_MESSAGE if settings.is_production() else str(exc) or GENERIC_ERROR_MESSAGE
        return _fail(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
