"""
Custom exceptions and handlers for consistent API error responses.

Every error raised by the rating engine is an ``APIError`` so the request
layer can tell "you already reviewed this" from "you don't own this review"
from "transient failure, retry" without string matching.
"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)


class APIError(HTTPException):
    """Base API error with consistent structure"""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code

    def __str__(self) -> str:
        return str(self.detail)


class NotFoundError(APIError):
    """Resource not found error"""

    def __init__(
        self, detail: str = "Resource not found", error_code: str = "NOT_FOUND"
    ):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND, detail=detail, error_code=error_code
        )


class ValidationError(APIError):
    """Validation error"""

    def __init__(
        self,
        detail: str = "Validation failed",
        error_code: str = "VALIDATION_ERROR",
        status_code: int = status.HTTP_400_BAD_REQUEST,
    ):
        super().__init__(
            status_code=status_code,
            detail=detail,
            error_code=error_code,
        )


class InvalidScoreError(ValidationError):
    """A criterion score outside the allowed range or granularity"""

    def __init__(self, detail: str = "Invalid score", field: Optional[str] = None):
        super().__init__(
            detail=detail,
            error_code="INVALID_SCORE",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        )
        self.field = field


class AuthenticationError(APIError):
    """Caller identity missing or malformed"""

    def __init__(
        self, detail: str = "Authentication required", error_code: str = "AUTH_REQUIRED"
    ):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            error_code=error_code,
        )


class ForbiddenError(APIError):
    """Permission denied error"""

    def __init__(
        self, detail: str = "Permission denied", error_code: str = "FORBIDDEN"
    ):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN, detail=detail, error_code=error_code
        )


class ConflictError(APIError):
    """Resource conflict error"""

    def __init__(self, detail: str = "Resource conflict", error_code: str = "CONFLICT"):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT, detail=detail, error_code=error_code
        )


class ConstraintViolationError(ConflictError):
    """A store-level uniqueness constraint rejected the write"""

    def __init__(self, detail: str = "Constraint violation"):
        super().__init__(detail=detail, error_code="CONSTRAINT_VIOLATION")


class TransactionFailureError(APIError):
    """The store failed during an atomic write; nothing was committed"""

    def __init__(
        self,
        detail: str = "Transaction failed, please retry",
        retryable: bool = True,
    ):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
            error_code="TRANSACTION_FAILURE",
            headers={"Retry-After": "1"} if retryable else None,
        )
        self.retryable = retryable


async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors"""
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} at {request.url.path}: {exc.detail}")
    else:
        logger.warning(f"{exc.error_code} at {request.url.path}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.detail,
            "error_code": exc.error_code,
            "path": str(request.url.path),
        },
        headers=exc.headers,
    )


def register_exception_handlers(app):
    """Register all exception handlers with the FastAPI app"""
    app.add_exception_handler(APIError, handle_api_error)
