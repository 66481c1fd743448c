"""Domain errors and their HTTP translation."""
import logging
from typing import Dict, List, NamedTuple

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FieldError(NamedTuple):
    """A single field/message pair."""
    field: str
    message: str


def errors_to_map(errors: List[FieldError]) -> Dict[str, List[str]]:
    """Group field errors by field name, preserving order."""
    grouped: Dict[str, List[str]] = {}
    for error in errors:
        grouped.setdefault(error.field, []).append(error.message)
    return grouped


class StoreError(Exception):
    """Base class for errors recovered at the API boundary."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StoreError):
    """Malformed or out-of-range input."""

    def __init__(self, errors: List[FieldError], message: str = "One or more validation errors occurred"):
        super().__init__(message)
        self.errors = list(errors)


class NotFoundError(StoreError):
    status_code = 404


class UnauthorizedError(StoreError):
    status_code = 401


class ForbiddenError(StoreError):
    status_code = 403


class ProductUnavailableError(StoreError):
    pass


class InsufficientStockError(StoreError):
    pass


class InvalidTransitionError(StoreError):
    pass


class AuthenticationError(StoreError):
    """Login rejected (bad credentials or lockout)."""


async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    body = {"message": exc.message}
    if isinstance(exc, ValidationError):
        body["errors"] = errors_to_map(exc.errors)

    logger.info("Request rejected", extra={
        "path": request.url.path,
        "error_type": type(exc).__name__,
        "status_code": exc.status_code,
        "error_message": exc.message
    })
    return JSONResponse(status_code=exc.status_code, content=body)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = []
    for error in exc.errors():
        # Drop the "body"/"path"/"query" prefix from the location
        location = [str(part) for part in error.get("loc", ())[1:]]
        errors.append(FieldError(".".join(location) or "request", error.get("msg", "Invalid value")))

    return JSONResponse(
        status_code=400,
        content={
            "message": "One or more validation errors occurred",
            "errors": errors_to_map(errors)
        }
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception", extra={
        "path": request.url.path,
        "method": request.method
    })
    return JSONResponse(status_code=500, content={"message": "An unexpected error occurred"})


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the domain error translation to the application."""
    app.add_exception_handler(StoreError, store_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
