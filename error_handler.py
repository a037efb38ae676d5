"""
Error handling for the Phonebook API
Maps domain errors, validation errors and storage failures to JSON responses
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from models.schemas import ErrorResponse, ErrorType
from utils.config import Config

logger = logging.getLogger(__name__)


class PhonebookError(Exception):
    """Base class for errors that map to a fixed HTTP status."""

    status_code = 500
    code = ErrorType.INTERNAL_SERVER_ERROR
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidIdentifier(PhonebookError):
    status_code = 400
    code = ErrorType.INVALID_IDENTIFIER
    default_message = "malformatted id"


class MissingField(PhonebookError):
    status_code = 400
    code = ErrorType.MISSING_FIELD
    default_message = "name or number missing"


class InvalidPayload(PhonebookError):
    status_code = 400
    code = ErrorType.INVALID_PAYLOAD
    default_message = "request body must be a JSON object"


class Unauthorized(PhonebookError):
    status_code = 401
    code = ErrorType.UNAUTHORIZED
    default_message = "token missing or invalid"


class NotFound(PhonebookError):
    status_code = 404
    code = ErrorType.NOT_FOUND
    default_message = "person not found"


class Conflict(PhonebookError):
    status_code = 409
    code = ErrorType.CONFLICT
    default_message = "resource already exists"


class StorageFailure(PhonebookError):
    status_code = 500
    code = ErrorType.STORAGE_FAILURE
    default_message = "storage operation failed"


def error_response(status_code: int, code: ErrorType, message: str, exc: Optional[Exception] = None) -> JSONResponse:
    body = ErrorResponse(
        code=code,
        message=message,
        details=str(exc) if exc is not None and Config.DEBUG else None
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def phonebook_exception_handler(request: Request, exc: PhonebookError):
    if exc.status_code >= 500:
        logger.error(f"{exc.code.value} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code.value} on {request.method} {request.url.path}: {exc.message}")
    return error_response(exc.status_code, exc.code, exc.message, exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")
    return error_response(400, ErrorType.INVALID_PAYLOAD, "Invalid request data", exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return error_response(404, ErrorType.UNKNOWN_ENDPOINT, "unknown endpoint")
    if exc.status_code == 405:
        return error_response(405, ErrorType.UNKNOWN_ENDPOINT, "method not allowed")
    return error_response(exc.status_code, ErrorType.INTERNAL_SERVER_ERROR, str(exc.detail))


async def storage_exception_handler(request: Request, exc: PyMongoError):
    logger.error(f"MongoDB error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return error_response(StorageFailure.status_code, StorageFailure.code, StorageFailure.default_message, exc)


# Global error handler
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler for unhandled errors"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return error_response(
        500,
        ErrorType.INTERNAL_SERVER_ERROR,
        "An unexpected error occurred. Please try again later.",
        exc
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PhonebookError, phonebook_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(PyMongoError, storage_exception_handler)
    app.add_exception_handler(Exception, global_exception_handler)
