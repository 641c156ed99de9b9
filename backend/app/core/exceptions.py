# app/core/exceptions.py

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
import structlog

logger = structlog.get_logger()

GENERIC_ERROR = "Internal server error"


class AnonDropError(Exception):
    """Base class for every failure the message drop reports."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str = GENERIC_ERROR):
        super().__init__(message)
        self.message = message


class ValidationError(AnonDropError):
    """Missing or unusable caller input."""

    status_code = status.HTTP_400_BAD_REQUEST


class CipherError(AnonDropError):
    """A sealed field could not be opened (wrong key, corruption, truncation)."""


class MalformedTokenError(CipherError):
    """A sealed field is not in the `iv:ciphertext` hex layout."""


class StoreUnavailableError(AnonDropError):
    """The document store could not be reached in time. Safe to retry."""


async def anon_drop_exception_handler(request: Request, exc: AnonDropError):
    if isinstance(exc, ValidationError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    # Only the class name is logged: messages may describe sealed data
    logger.error("request_failed", error_type=type(exc).__name__, path=request.url.path)
    return JSONResponse(status_code=exc.status_code, content={"error": GENERIC_ERROR})


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning("invalid_request_body", path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Invalid request body"},
    )


async def global_exception_handler(request: Request, exc: Exception):
    """
    Catch-all for unhandled exceptions.
    Keeps stack traces and sealed data out of responses.
    """
    logger.error("unhandled_exception", error_type=type(exc).__name__, path=request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": GENERIC_ERROR},
    )
