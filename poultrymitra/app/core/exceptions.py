"""
Custom exceptions and error handlers for consistent error responses.

Every domain failure raised by the ledger and connection components is an
AppException subclass with a stable error code, so the HTTP layer can render
it without knowing the component that raised it.
"""

import logging
from typing import Any, Dict

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger("poultrymitra.errors")


class AppException(Exception):
    """Base application exception."""

    retryable = False

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InvalidArgumentError(AppException):
    """Raised when a caller supplies a malformed or out-of-range value."""

    def __init__(self, message: str, field: str = None):
        super().__init__(
            message=message,
            error_code="ERR_INVALID_ARGUMENT",
            status_code=status.HTTP_400_BAD_REQUEST,
            details={"field": field} if field else None
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class TransactionConflictError(AppException):
    """
    Raised when a concurrent commit invalidated the data a transaction read.

    Safe to retry the whole operation from scratch.
    """

    retryable = True

    def __init__(self, message: str = "Concurrent update detected, please retry", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_TX_CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class StorageUnavailableError(AppException):
    """Raised when the backing database cannot be reached."""

    def __init__(self, message: str = "Storage backend is unavailable"):
        super().__init__(
            message=message,
            error_code="ERR_STORAGE_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class AlreadyConnectedError(AppException):
    """Raised when the farmer and dealer already share an approved connection."""

    def __init__(self, farmer_id: int, dealer_id: int):
        super().__init__(
            message="Farmer and dealer are already connected",
            error_code="ERR_CONN_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"farmer_id": farmer_id, "dealer_id": dealer_id}
        )


class RequestAlreadyPendingError(AppException):
    """Raised when a pending connection request already exists for the pair."""

    def __init__(self, farmer_id: int, dealer_id: int):
        super().__init__(
            message="A connection request is already pending",
            error_code="ERR_CONN_002",
            status_code=status.HTTP_409_CONFLICT,
            details={"farmer_id": farmer_id, "dealer_id": dealer_id}
        )


class CapacityExceededError(AppException):
    """Raised when a dealer has reached the farmer limit of their plan."""

    def __init__(self, dealer_id: int, limit: int):
        super().__init__(
            message="This dealer has reached the maximum number of connected farmers on their current plan",
            error_code="ERR_CONN_003",
            status_code=status.HTTP_403_FORBIDDEN,
            details={"dealer_id": dealer_id, "limit": limit}
        )


class InvalidStateError(AppException):
    """Raised when a connection is resolved while it is no longer pending."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONN_004",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_encoder(exc.errors())
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s", type(exc).__name__)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
